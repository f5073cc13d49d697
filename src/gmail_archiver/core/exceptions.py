"""Custom exceptions for the Gmail Archiver."""


class GmailArchiverError(Exception):
    """Base exception for all Gmail Archiver errors."""


class AuthenticationError(GmailArchiverError):
    """Failed to authenticate with Gmail API."""


class ConfigurationError(GmailArchiverError):
    """Required configuration is missing or invalid."""


class TransientApiError(GmailArchiverError):
    """Gmail API failure that is worth retrying (quota or server-side)."""


class RateLimitError(TransientApiError):
    """Gmail API rate limit exceeded."""
