"""Transfer orchestrator: paginate → fetch → resolve labels → import → label."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from gmail_archiver.config.settings import GmailArchiverSettings
from gmail_archiver.core.auth import authenticate, build_gmail_service
from gmail_archiver.core.backoff import BackoffPolicy
from gmail_archiver.core.gmail_client import GmailClient
from gmail_archiver.core.mailbox import MailboxApi
from gmail_archiver.core.models import ItemOutcome, Label, MailMessage, TransferSummary
from gmail_archiver.core.rate_limiter import TokenBucket
from gmail_archiver.core.retry import Retrier
from gmail_archiver.pipeline.confirm import ConfirmationGate, build_prompt
from gmail_archiver.pipeline.labels import LabelMirror
from gmail_archiver.storage.tracker import TransferTracker, content_hash

logger = logging.getLogger(__name__)


class MailboxTransfer:
    """Copies every message of the source account into the archive account.

    Per run:
    1. Ask the operator for confirmation (no remote mutation happens before).
    2. Look up or create the main label named after the source account.
    3. Page through the source mailbox; each message goes through
       fetch → label resolution → import → one label-apply call carrying
       the main label plus mirrored labels.

    Listing, fetching, label lookups and label application are retried on
    transient errors; import and label creation run once.

    Every remote call first takes a token from the shared limiter. Messages are
    handled one at a time in API order; a failing message is logged and counted
    but never stops the run.
    """

    def __init__(
        self,
        settings: GmailArchiverSettings | None = None,
        *,
        source: MailboxApi | None = None,
        destination: MailboxApi | None = None,
        limiter: TokenBucket | None = None,
        backoff: BackoffPolicy | None = None,
        gate: ConfirmationGate | None = None,
        tracker: TransferTracker | None = None,
        on_progress: Callable[[TransferSummary], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings or GmailArchiverSettings()
        self._source = source
        self._destination = destination
        self._limiter = limiter or TokenBucket(self._settings.requests_per_second)
        self._backoff = backoff or BackoffPolicy(
            self._settings.backoff_base_seconds,
            self._settings.backoff_jitter_seconds,
        )
        self._gate = gate or ConfirmationGate()
        self._tracker = tracker
        self._owns_tracker = False
        self._on_progress = on_progress
        self._retrier = Retrier(
            self._limiter,
            self._backoff,
            max_retries=self._settings.max_retries,
            sleep=sleep,
        )

    @property
    def on_progress(self) -> Callable[[TransferSummary], None] | None:
        return self._on_progress

    @on_progress.setter
    def on_progress(self, callback: Callable[[TransferSummary], None] | None) -> None:
        self._on_progress = callback

    def _ensure_initialized(
        self,
    ) -> tuple[MailboxApi, MailboxApi, TransferTracker | None]:
        """Authenticate both accounts and open the tracker if not already done."""
        source_email, archive_email = self._settings.require_accounts()

        if self._source is None or self._destination is None:
            self._settings.ensure_directories()

        if self._source is None:
            creds = authenticate(self._settings, source_email)
            self._source = GmailClient(
                build_gmail_service(creds), num_retries=self._settings.num_retries
            )

        if self._destination is None:
            creds = authenticate(self._settings, archive_email)
            self._destination = GmailClient(
                build_gmail_service(creds), num_retries=self._settings.num_retries
            )

        return self._source, self._destination, self._ensure_tracker()

    def _ensure_tracker(self) -> TransferTracker | None:
        """Open the dedup database when enabled and not injected."""
        if self._tracker is None and self._settings.dedup_enabled:
            self._settings.ensure_directories()
            self._tracker = TransferTracker(self._settings.database_path)
            self._tracker.connect()
            self._owns_tracker = True
        return self._tracker

    def run(self, dry_run: bool | None = None) -> TransferSummary:
        """Run a full transfer.

        Args:
            dry_run: Override settings.dry_run. A dry run performs every lookup
                but issues no label create, import or modify calls.

        Returns:
            TransferSummary with final counts. A declined confirmation returns
            an empty summary with ``cancelled`` set.
        """
        dry_run = self._settings.dry_run if dry_run is None else dry_run
        source_email, archive_email = self._settings.require_accounts()
        source, _, tracker = self._ensure_initialized()

        summary = TransferSummary(dry_run=dry_run)
        logger.info("Running in %s mode", "DRY RUN" if dry_run else "LIVE")

        prompt = build_prompt(
            dry_run=dry_run, source_email=source_email, archive_email=archive_email
        )
        if not self._gate.confirm(prompt):
            logger.warning("Transfer cancelled by user.")
            summary.cancelled = True
            return summary

        mirror = LabelMirror(
            source,
            self._destination,  # type: ignore[arg-type]
            self._limiter,
            source_email,
            retrier=self._retrier,
            dry_run=dry_run,
            exclude_trash_and_spam=self._settings.exclude_trash_and_spam,
        )

        run_id = tracker.start_run(source_email, archive_email, dry_run=dry_run) if tracker else 0
        try:
            main_label_id = mirror.main_label()
            self._sync_created_labels(mirror, summary)
            logger.info(
                "%s main label: %s",
                "[DRY RUN] Would use" if dry_run else "Using",
                source_email,
            )

            page_token: str | None = None
            while True:
                page = self._retrier.call(
                    lambda: source.list_messages(
                        page_token, self._settings.max_results_per_page
                    ),
                    "list messages",
                )

                for message_id in page.message_ids:
                    self.process_item(
                        message_id, main_label_id, summary, mirror=mirror, dry_run=dry_run
                    )

                summary.total_emails_processed += len(page.message_ids)
                logger.info(
                    "Progress: processed=%d transferred=%d skipped=%d failed=%d",
                    summary.total_emails_processed,
                    summary.total_emails_transferred,
                    summary.total_emails_skipped,
                    summary.total_emails_failed,
                )
                self._notify(summary)

                page_token = page.next_page_token
                if not page_token:
                    break
        finally:
            if tracker:
                tracker.complete_run(
                    run_id,
                    emails_processed=summary.total_emails_processed,
                    emails_transferred=summary.total_emails_transferred,
                    emails_skipped=summary.total_emails_skipped,
                    emails_failed=summary.total_emails_failed,
                )

        return summary

    def process_item(
        self,
        message_id: str,
        main_label_id: str,
        summary: TransferSummary,
        *,
        mirror: LabelMirror,
        dry_run: bool = False,
    ) -> ItemOutcome:
        """Move one message through fetch → resolve → transfer and count the result."""
        try:
            message = self._retrier.call(
                lambda: self._source.get_message(message_id, "raw"),  # type: ignore[union-attr]
                f"fetch message {message_id}",
            )
        except Exception as e:
            logger.error("Failed to fetch message %s: %s", message_id, e)
            summary.total_emails_failed += 1
            return ItemOutcome.FAILED

        label_names = mirror.resolve_mirrorable(message.label_ids)

        digest = content_hash(message.raw) if self._tracker and message.raw else None
        record = self._tracker.get_message(digest) if self._tracker and digest else None
        if record and record["status"] == "labeled":
            logger.info(
                "Skipping message %s: already archived as %s",
                message_id,
                record["dest_message_id"],
            )
            summary.total_emails_skipped += 1
            return ItemOutcome.SKIPPED

        try:
            if dry_run:
                for name in label_names:
                    mirror.destination_for(name)
                logger.info(
                    "[DRY RUN] Would transfer message %s with labels %s",
                    message_id,
                    label_names,
                )
            else:
                self._transfer(message, label_names, main_label_id, mirror, digest, record)
                logger.info("Transferred message: %s", message_id)
        except Exception as e:
            logger.error("Failed to transfer message %s: %s", message_id, e)
            if self._tracker and digest and not dry_run:
                self._tracker.record_failure(digest, message_id, str(e))
            summary.total_emails_failed += 1
            return ItemOutcome.FAILED
        finally:
            self._sync_created_labels(mirror, summary)

        summary.total_emails_transferred += 1
        summary.record_labels(label_names)
        return ItemOutcome.TRANSFERRED

    def _transfer(
        self,
        message: MailMessage,
        label_names: list[str],
        main_label_id: str,
        mirror: LabelMirror,
        digest: str | None,
        record: dict | None,
    ) -> None:
        """Import (unless a previous run already did) and apply all labels at once."""
        if record and record["status"] == "imported" and record["dest_message_id"]:
            dest_id = record["dest_message_id"]
            logger.info(
                "Message %s already imported as %s, re-applying labels",
                message.message_id,
                dest_id,
            )
        else:
            if not message.raw:
                raise ValueError(f"Message {message.message_id} has no raw content")
            self._limiter.acquire()
            dest_id = self._destination.import_message(message.raw)  # type: ignore[union-attr]
            if self._tracker and digest:
                self._tracker.record_imported(digest, message.message_id, dest_id)

        label_ids = [main_label_id]
        for name in label_names:
            label_ids.append(mirror.destination_for(name))

        destination: MailboxApi = self._destination  # type: ignore[assignment]
        self._retrier.call(
            lambda: destination.modify_message_labels(dest_id, label_ids),
            f"label message {dest_id}",
        )
        if self._tracker and digest:
            self._tracker.mark_labeled(digest)

    def list_labels(self, account: str = "source") -> list[Label]:
        """List labels of the source or archive account."""
        source, destination, _ = self._ensure_initialized()
        client = source if account == "source" else destination
        self._limiter.acquire()
        return client.list_labels()

    def get_status(self) -> dict[str, int]:
        """Get tracked message counts by status."""
        tracker = self._ensure_tracker()
        return tracker.count_by_status() if tracker else {}

    def recent_runs(self, limit: int = 5) -> list[dict]:
        tracker = self._ensure_tracker()
        return tracker.recent_runs(limit) if tracker else []

    def close(self) -> None:
        """Clean up resources."""
        if self._tracker and self._owns_tracker:
            self._tracker.close()

    @staticmethod
    def _sync_created_labels(mirror: LabelMirror, summary: TransferSummary) -> None:
        for name in mirror.created_names[len(summary.labels_created):]:
            summary.labels_created.append(name)

    def _notify(self, summary: TransferSummary) -> None:
        """Send progress update to callback if registered."""
        if self._on_progress:
            self._on_progress(summary)
