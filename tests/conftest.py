"""Shared fixtures for Gmail Archiver tests."""

from __future__ import annotations

import base64
import random
from collections import defaultdict
from pathlib import Path
from typing import Any

import pytest

from gmail_archiver.config.settings import GmailArchiverSettings
from gmail_archiver.core.backoff import BackoffPolicy
from gmail_archiver.core.exceptions import GmailArchiverError
from gmail_archiver.core.models import Label, MailMessage, MessagePage
from gmail_archiver.core.rate_limiter import TokenBucket

SOURCE_EMAIL = "source@x"
ARCHIVE_EMAIL = "archive@x"

MUTATING_CALLS = {"create_label", "import_message", "modify_message_labels"}


def encode_raw(text: str) -> str:
    """base64url-encode an RFC 2822 message the way the Gmail API returns it."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


class FakeClock:
    """Controllable monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeMailbox:
    """In-memory MailboxApi that records every call and can inject failures."""

    def __init__(
        self,
        labels: list[Label] | None = None,
        messages: list[MailMessage] | None = None,
    ) -> None:
        self.labels: dict[str, Label] = {lbl.label_id: lbl for lbl in labels or []}
        self.messages = list(messages or [])
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.imported: dict[str, str] = {}
        self.applied: dict[str, list[str]] = defaultdict(list)
        self._failures: dict[str, list[Exception]] = defaultdict(list)
        self._next_label = 1
        self._next_import = 1

    def fail_next(self, operation: str, *errors: Exception) -> None:
        """Raise the given errors, in order, on the next calls to ``operation``."""
        self._failures[operation].extend(errors)

    def _record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def count(self, operation: str) -> int:
        return self.call_names().count(operation)

    def list_labels(self) -> list[Label]:
        self._record("list_labels")
        return list(self.labels.values())

    def create_label(self, name: str) -> str:
        self._record("create_label", name)
        label_id = f"Label_{self._next_label}"
        self._next_label += 1
        self.labels[label_id] = Label(label_id=label_id, name=name)
        return label_id

    def get_label(self, label_id: str) -> Label:
        self._record("get_label", label_id)
        if label_id not in self.labels:
            raise GmailArchiverError(f"Failed to get label {label_id}: 404")
        return self.labels[label_id]

    def list_messages(self, page_token: str | None = None, page_size: int = 100) -> MessagePage:
        self._record("list_messages", page_token, page_size)
        start = int(page_token) if page_token else 0
        end = start + page_size
        chunk = self.messages[start:end]
        return MessagePage(
            message_ids=tuple(m.message_id for m in chunk),
            next_page_token=str(end) if end < len(self.messages) else None,
        )

    def get_message(self, message_id: str, representation: str = "raw") -> MailMessage:
        self._record("get_message", message_id, representation)
        for message in self.messages:
            if message.message_id == message_id:
                return message
        raise GmailArchiverError(f"Failed to get message {message_id}: 404")

    def import_message(self, raw: str) -> str:
        self._record("import_message", raw)
        imported_id = f"imp_{self._next_import}"
        self._next_import += 1
        self.imported[imported_id] = raw
        return imported_id

    def modify_message_labels(self, message_id: str, add_label_ids: list[str]) -> None:
        self._record("modify_message_labels", message_id, list(add_label_ids))
        self.applied[message_id].extend(add_label_ids)


SYSTEM_LABELS = [
    Label("INBOX", "INBOX"),
    Label("UNREAD", "UNREAD"),
    Label("STARRED", "STARRED"),
    Label("IMPORTANT", "IMPORTANT"),
    Label("TRASH", "TRASH"),
    Label("SPAM", "SPAM"),
    Label("CATEGORY_PERSONAL", "CATEGORY_PERSONAL"),
]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> TokenBucket:
    """Default-rate limiter on the fake clock, so pacing never really sleeps."""
    return TokenBucket(2, clock=clock, sleep=clock.sleep)


@pytest.fixture
def backoff() -> BackoffPolicy:
    return BackoffPolicy(rng=random.Random(42))


@pytest.fixture
def settings(tmp_path: Path) -> GmailArchiverSettings:
    """Settings for both test accounts with deduplication off."""
    return GmailArchiverSettings(
        _env_file=None,
        source_email=SOURCE_EMAIL,
        archive_email=ARCHIVE_EMAIL,
        dedup_enabled=False,
        database_path=tmp_path / "data" / "test.db",
    )


@pytest.fixture
def project_mailbox() -> FakeMailbox:
    """Source account with 3 messages, 2 of them labeled 'Project-X'."""
    labels = [*SYSTEM_LABELS, Label("Label_px", "Project-X")]
    messages = [
        MailMessage(
            "m1", "t1", ("Label_px", "UNREAD"), encode_raw("Subject: one\r\n\r\nfirst")
        ),
        MailMessage(
            "m2", "t2", ("Label_px", "CATEGORY_PERSONAL"), encode_raw("Subject: two\r\n\r\nsecond")
        ),
        MailMessage(
            "m3", "t3", ("STARRED", "IMPORTANT"), encode_raw("Subject: three\r\n\r\nthird")
        ),
    ]
    return FakeMailbox(labels=labels, messages=messages)


@pytest.fixture
def archive_mailbox() -> FakeMailbox:
    """Empty archive account."""
    return FakeMailbox()


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """Temporary database path for tests."""
    return tmp_path / "test.db"
