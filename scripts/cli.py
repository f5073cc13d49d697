"""Minimal CLI entry point for running the Gmail Archiver."""

from __future__ import annotations

import argparse
import logging
import sys

from gmail_archiver.config.settings import GmailArchiverSettings
from gmail_archiver.core.models import TransferSummary
from gmail_archiver.pipeline.confirm import ConfirmationGate
from gmail_archiver.pipeline.transfer import MailboxTransfer


def setup_logging(level: str) -> None:
    """Configure logging with timestamp and module info."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def on_progress(summary: TransferSummary) -> None:
    """Print progress updates to stdout after each page."""
    print(
        f"processed={summary.total_emails_processed} "
        f"transferred={summary.total_emails_transferred} "
        f"skipped={summary.total_emails_skipped} "
        f"failed={summary.total_emails_failed}",
        end="\r",
        flush=True,
    )


def print_summary(summary: TransferSummary) -> None:
    """Print the end-of-run report."""
    if summary.cancelled:
        print("\nTransfer cancelled by user.")
        return

    would = "that would be " if summary.dry_run else ""
    print("\n\nTransfer Summary:")
    print(f"Total emails processed: {summary.total_emails_processed}")
    print(f"Total emails {would}transferred: {summary.total_emails_transferred}")
    print(f"Skipped (already archived): {summary.total_emails_skipped}")
    print(f"Failed: {summary.total_emails_failed}")

    heading = "Labels that would be created:" if summary.dry_run else "Labels created:"
    print(heading)
    for label in summary.labels_created:
        print(f"- {label}")

    if summary.label_counts:
        print("Emails per label:")
        for label, count in sorted(summary.label_counts.items()):
            print(f"  {label}: {count}")

    print(f"\nEmail {'dry run' if summary.dry_run else 'transfer'} completed.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Gmail Archiver - Copy a mailbox and its labels into an archive account"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    transfer_parser = subparsers.add_parser("transfer", help="Transfer all messages")
    transfer_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        dest="dry_run",
        help="Look everything up but create, import and modify nothing",
    )
    transfer_parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip the interactive confirmation prompt",
    )

    labels_parser = subparsers.add_parser("list-labels", help="List labels of an account")
    labels_parser.add_argument(
        "--account",
        choices=("source", "archive"),
        default="source",
        help="Which account to list (default: source)",
    )

    subparsers.add_parser("status", help="Show archived message counts and recent runs")
    return parser


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    settings = GmailArchiverSettings()
    setup_logging(settings.log_level)

    gate = ConfirmationGate(auto_confirm=getattr(args, "yes", False))
    transfer = MailboxTransfer(settings=settings, gate=gate, on_progress=on_progress)

    try:
        if args.command == "transfer":
            summary = transfer.run(dry_run=args.dry_run)
            print_summary(summary)

        elif args.command == "list-labels":
            labels = transfer.list_labels(args.account)
            print(f"\nFound {len(labels)} labels:\n")
            for label in sorted(labels, key=lambda x: x.name):
                print(f"  {label.label_id:40s} {label.name}")

        elif args.command == "status":
            counts = transfer.get_status()
            print("\nArchived message counts by status:")
            for status, count in sorted(counts.items()):
                print(f"  {status}: {count}")
            print("\nRecent runs:")
            for run in transfer.recent_runs():
                mode = "dry run" if run["dry_run"] else "live"
                print(
                    f"  #{run['run_id']} {run['started_at']} ({mode}) "
                    f"transferred={run['emails_transferred']} failed={run['emails_failed']}"
                )

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        transfer.close()


if __name__ == "__main__":
    main()
