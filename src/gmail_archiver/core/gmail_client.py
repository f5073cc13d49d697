"""Gmail API client implementing the MailboxApi operations for one account."""

from __future__ import annotations

import logging
from typing import Any

from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from gmail_archiver.core.exceptions import (
    GmailArchiverError,
    RateLimitError,
    TransientApiError,
)
from gmail_archiver.core.mailbox import Representation
from gmail_archiver.core.models import Label, MailMessage, MessagePage

logger = logging.getLogger(__name__)

_SERVER_ERROR_STATUSES = {500, 502, 503, 504}
_RATE_LIMIT_REASONS = ("ratelimitexceeded", "quotaexceeded")


def _is_rate_limit_error(exc: Exception) -> bool:
    """Check whether an exception represents a Gmail API quota/rate limit."""
    if isinstance(exc, HttpError):
        if exc.status_code == 429:
            return True
        if exc.status_code == 403:
            error_str = str(exc).lower()
            return any(reason in error_str for reason in _RATE_LIMIT_REASONS)
        return False
    error_str = str(exc)
    return "429" in error_str or "rateLimitExceeded" in error_str


def is_transient_error(exc: Exception) -> bool:
    """Rate limits and server-side errors are retryable; nothing else is."""
    if _is_rate_limit_error(exc):
        return True
    if isinstance(exc, HttpError):
        return exc.status_code in _SERVER_ERROR_STATUSES
    error_str = str(exc)
    return "backendError" in error_str or "internalError" in error_str


class GmailClient:
    """Thin wrapper around the Gmail API for a single account."""

    def __init__(
        self,
        service: Resource,
        user_id: str = "me",
        *,
        num_retries: int = 0,
    ) -> None:
        self._service = service
        self._user_id = user_id
        self._num_retries = num_retries

    def _execute(self, request: Any, context: str) -> Any:
        """Execute one API request, translating failures into archiver errors.

        Args:
            request: A googleapiclient HttpRequest object.
            context: Description for error messages (e.g. "list labels").

        Returns:
            The API response dict.

        Raises:
            RateLimitError: On 429 / quota responses.
            TransientApiError: On server-side errors.
            GmailArchiverError: On any other failure.
        """
        try:
            return request.execute(num_retries=self._num_retries)
        except Exception as e:
            if _is_rate_limit_error(e):
                raise RateLimitError(f"Rate limited during {context}: {e}") from e
            if is_transient_error(e):
                raise TransientApiError(f"Server error during {context}: {e}") from e
            raise GmailArchiverError(f"Failed to {context}: {e}") from e

    def list_labels(self) -> list[Label]:
        """List all labels of the account."""
        request = self._service.users().labels().list(userId=self._user_id)
        results = self._execute(request, "list labels")
        return [Label(label_id=lbl["id"], name=lbl["name"]) for lbl in results.get("labels", [])]

    def get_label(self, label_id: str) -> Label:
        """Fetch a single label by ID."""
        request = self._service.users().labels().get(userId=self._user_id, id=label_id)
        result = self._execute(request, f"get label {label_id}")
        return Label(label_id=result["id"], name=result["name"])

    def create_label(self, name: str) -> str:
        """Create a label visible in both the label list and message list.

        Returns:
            The new label ID.
        """
        body = {
            "name": name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        request = self._service.users().labels().create(userId=self._user_id, body=body)
        result = self._execute(request, f"create label {name!r}")
        logger.debug("Created label %r -> %s", name, result["id"])
        return result["id"]

    def list_messages(
        self, page_token: str | None = None, page_size: int = 100
    ) -> MessagePage:
        """Fetch one page of message IDs.

        Args:
            page_token: Continuation token from the previous page, if any.
            page_size: Number of messages per page (1-500).
        """
        kwargs: dict[str, Any] = {
            "userId": self._user_id,
            "maxResults": page_size,
        }
        if page_token:
            kwargs["pageToken"] = page_token

        request = self._service.users().messages().list(**kwargs)
        response = self._execute(request, "list messages")

        ids = tuple(msg["id"] for msg in response.get("messages", []))
        logger.debug("Listed %d message IDs (page)", len(ids))
        return MessagePage(message_ids=ids, next_page_token=response.get("nextPageToken") or None)

    def get_message(
        self, message_id: str, representation: Representation = "raw"
    ) -> MailMessage:
        """Fetch a message with its label IDs, either raw or metadata-only."""
        request = (
            self._service.users()
            .messages()
            .get(userId=self._user_id, id=message_id, format=representation)
        )
        data = self._execute(request, f"get message {message_id}")
        return MailMessage(
            message_id=data["id"],
            thread_id=data.get("threadId", ""),
            label_ids=tuple(data.get("labelIds", [])),
            raw=data.get("raw"),
            internal_date=data.get("internalDate", ""),
        )

    def import_message(self, raw: str) -> str:
        """Import a raw message, dating it from its Date header.

        Returns:
            The imported message's ID in this account.
        """
        request = (
            self._service.users()
            .messages()
            .import_(
                userId=self._user_id,
                body={"raw": raw},
                internalDateSource="dateHeader",
            )
        )
        result = self._execute(request, "import message")
        return result["id"]

    def modify_message_labels(self, message_id: str, add_label_ids: list[str]) -> None:
        """Add labels to a message in a single call."""
        request = (
            self._service.users()
            .messages()
            .modify(
                userId=self._user_id,
                id=message_id,
                body={"addLabelIds": list(add_label_ids)},
            )
        )
        self._execute(request, f"modify labels of {message_id}")
