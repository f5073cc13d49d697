"""Dataclasses for the Gmail Archiver domain model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Label:
    """A label as listed or fetched from one account."""

    label_id: str
    name: str


@dataclass(frozen=True)
class MessagePage:
    """One page of message IDs from the list API. No token means last page."""

    message_ids: tuple[str, ...] = field(default_factory=tuple)
    next_page_token: str | None = None


@dataclass(frozen=True)
class MailMessage:
    """A fetched message. ``raw`` is the base64url RFC 2822 payload."""

    message_id: str
    thread_id: str = ""
    label_ids: tuple[str, ...] = field(default_factory=tuple)
    raw: str | None = None
    internal_date: str = ""


class ItemOutcome(Enum):
    """Terminal state of one message in the transfer loop."""

    TRANSFERRED = "transferred"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TransferSummary:
    """Mutable run summary, updated only by the transfer loop."""

    labels_created: list[str] = field(default_factory=list)
    total_emails_processed: int = 0
    total_emails_transferred: int = 0
    total_emails_skipped: int = 0
    total_emails_failed: int = 0
    label_counts: dict[str, int] = field(default_factory=dict)
    dry_run: bool = False
    cancelled: bool = False

    def record_labels(self, names: list[str]) -> None:
        """Count one transferred message against each mirrored label name."""
        for name in names:
            self.label_counts[name] = self.label_counts.get(name, 0) + 1
