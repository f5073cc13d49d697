"""Narrow interface over one mailbox account's remote API."""

from __future__ import annotations

from typing import Literal, Protocol

from gmail_archiver.core.models import Label, MailMessage, MessagePage

Representation = Literal["raw", "metadata"]


class MailboxApi(Protocol):
    """The seven remote operations the transfer engine consumes.

    An instance is bound to a single account. Implementations raise
    ``TransientApiError`` for retryable failures and ``GmailArchiverError``
    for everything else.
    """

    def list_labels(self) -> list[Label]: ...

    def create_label(self, name: str) -> str: ...

    def get_label(self, label_id: str) -> Label: ...

    def list_messages(
        self, page_token: str | None = None, page_size: int = 100
    ) -> MessagePage: ...

    def get_message(
        self, message_id: str, representation: Representation = "raw"
    ) -> MailMessage: ...

    def import_message(self, raw: str) -> str: ...

    def modify_message_labels(self, message_id: str, add_label_ids: list[str]) -> None: ...
