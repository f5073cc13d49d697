"""Source label resolution and namespaced destination label mirroring."""

from __future__ import annotations

import logging

from gmail_archiver.core.mailbox import MailboxApi
from gmail_archiver.core.rate_limiter import TokenBucket
from gmail_archiver.core.retry import Retrier

logger = logging.getLogger(__name__)

CATEGORY_PREFIX = "CATEGORY_"
TRANSIENT_MARKERS = frozenset({"UNREAD", "STARRED", "IMPORTANT"})
DISPOSAL_MARKERS = frozenset({"TRASH", "SPAM"})


class LabelMirror:
    """Maps source label IDs to names and mirrors them into the archive account.

    Destination labels are named ``<source_email>/<name>`` and created on first
    use. Both mappings live for one run; each distinct name costs at most one
    lookup (and one create) against the destination.
    """

    def __init__(
        self,
        source: MailboxApi,
        destination: MailboxApi,
        limiter: TokenBucket,
        source_email: str,
        *,
        retrier: Retrier | None = None,
        dry_run: bool = False,
        exclude_trash_and_spam: bool = True,
    ) -> None:
        self._source = source
        self._destination = destination
        self._limiter = limiter
        self._retrier = retrier or Retrier(limiter)
        self._source_email = source_email
        self._dry_run = dry_run
        self._excluded = TRANSIENT_MARKERS | (
            DISPOSAL_MARKERS if exclude_trash_and_spam else frozenset()
        )
        self._names: dict[str, str] = {}
        self._destination_ids: dict[str, str] = {}
        self.created_names: list[str] = []

    def resolve_name(self, label_id: str) -> str:
        """Display name for a source label ID, or the ID itself if lookup fails.

        Transient errors are retried first; the ID is used only after a
        permanent error or once the retry budget is spent.
        """
        cached = self._names.get(label_id)
        if cached is not None:
            return cached

        try:
            name = self._retrier.call(
                lambda: self._source.get_label(label_id).name,
                f"resolve label {label_id}",
            )
        except Exception as e:
            logger.warning("Failed to resolve name for label ID %s: %s", label_id, e)
            return label_id

        self._names[label_id] = name
        return name

    def is_mirrorable(self, name: str) -> bool:
        """System categories and transient markers are never mirrored."""
        return not name.startswith(CATEGORY_PREFIX) and name not in self._excluded

    def mirrored_name(self, name: str) -> str:
        return f"{self._source_email}/{name}"

    def resolve_mirrorable(self, label_ids: tuple[str, ...]) -> list[str]:
        """Resolve label IDs to names, dropping excluded and duplicate names."""
        names: list[str] = []
        for label_id in label_ids:
            name = self.resolve_name(label_id)
            if self.is_mirrorable(name) and name not in names:
                names.append(name)
        return names

    def main_label(self) -> str:
        """Destination ID of the top-level label named after the source account."""
        return self.get_or_create_destination(self._source_email)

    def destination_for(self, source_label_name: str) -> str:
        """Destination ID of the mirrored label for a source label name."""
        return self.get_or_create_destination(self.mirrored_name(source_label_name))

    def get_or_create_destination(self, name: str) -> str:
        """Destination label ID for an exact label name, creating it if absent.

        In dry-run mode the lookup still happens but nothing is created; a
        placeholder ID stands in for the label that would be created.
        """
        cached = self._destination_ids.get(name)
        if cached is not None:
            return cached

        labels = self._retrier.call(self._destination.list_labels, "list labels")
        existing = next((lbl for lbl in labels if lbl.name == name), None)
        if existing is not None:
            logger.info("Label already exists: %s", name)
            label_id = existing.label_id
        elif self._dry_run:
            logger.info("[DRY RUN] Would create label: %s", name)
            label_id = f"dry-run-label-{name}"
            self.created_names.append(name)
        else:
            self._limiter.acquire()
            label_id = self._destination.create_label(name)
            logger.info("Created new label: %s", name)
            self.created_names.append(name)

        self._destination_ids[name] = label_id
        return label_id
