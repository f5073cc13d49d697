"""Gmail Archiver - Copy a Gmail mailbox and its labels into an archive account."""

from gmail_archiver.core.models import (
    ItemOutcome,
    Label,
    MailMessage,
    MessagePage,
    TransferSummary,
)
from gmail_archiver.pipeline.transfer import MailboxTransfer

__all__ = [
    "ItemOutcome",
    "Label",
    "MailMessage",
    "MailboxTransfer",
    "MessagePage",
    "TransferSummary",
]
