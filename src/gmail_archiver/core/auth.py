"""Per-account Gmail API credentials: service-account delegation or cached OAuth."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from google.auth.credentials import Credentials as BaseCredentials
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import Resource, build

from gmail_archiver.config.settings import GmailArchiverSettings
from gmail_archiver.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]


def authenticate(settings: GmailArchiverSettings, account: str) -> BaseCredentials:
    """Obtain credentials acting as ``account`` using the configured auth mode."""
    if settings.auth_mode == "oauth":
        return authenticate_oauth(
            settings.client_secret_path, token_path_for(settings.token_dir, account)
        )
    return authenticate_service_account(settings.credentials_path, account)


def authenticate_service_account(key_path: Path | None, account: str) -> BaseCredentials:
    """Build domain-wide delegated credentials impersonating ``account``.

    Args:
        key_path: Service account JSON key. Falls back to
            ``GOOGLE_APPLICATION_CREDENTIALS`` when None.
        account: Mailbox address to impersonate.

    Raises:
        AuthenticationError: If the key is missing or unusable.
    """
    if key_path is None:
        env_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        if not env_path:
            raise AuthenticationError(
                "No service account key configured. Set ARCHIVER_CREDENTIALS_PATH "
                "or GOOGLE_APPLICATION_CREDENTIALS."
            )
        key_path = Path(env_path)

    if not key_path.exists():
        raise AuthenticationError(f"Service account key not found: {key_path}")

    logger.info("Authenticating for account: %s", account)
    try:
        creds = service_account.Credentials.from_service_account_file(
            str(key_path), scopes=SCOPES, subject=account
        )
        creds.refresh(Request())
    except Exception as e:
        raise AuthenticationError(f"Service account authorization failed for {account}: {e}") from e

    logger.info("Authorization successful for %s", account)
    return creds


def authenticate_oauth(credentials_path: Path, token_path: Path) -> Credentials:
    """Authenticate with Gmail API, using cached token if available.

    Args:
        credentials_path: Path to OAuth 2.0 client credentials JSON.
        token_path: Path to store/load the OAuth token for one account.

    Returns:
        Valid Google OAuth2 credentials.

    Raises:
        AuthenticationError: If authentication fails.
    """
    creds: Credentials | None = None

    if token_path.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
        except Exception as e:
            logger.warning("Failed to load cached token: %s", e)
            creds = None

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            _save_token(creds, token_path)
            return creds
        except Exception as e:
            logger.warning("Token refresh failed, re-authenticating: %s", e)

    if not credentials_path.exists():
        raise AuthenticationError(
            f"Credentials file not found: {credentials_path}. "
            "Download it from Google Cloud Console."
        )

    try:
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), SCOPES)
        creds = flow.run_local_server(port=0)
        _save_token(creds, token_path)
        logger.info("Authentication successful, token cached at %s", token_path)
        return creds
    except Exception as e:
        raise AuthenticationError(f"OAuth flow failed: {e}") from e


def token_path_for(token_dir: Path, account: str) -> Path:
    """Cached token location for one account."""
    safe = account.replace("@", "_at_").replace("/", "_")
    return token_dir / f"{safe}.json"


def build_gmail_service(creds: BaseCredentials) -> Resource:
    """Build a Gmail API service resource."""
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def _save_token(creds: Credentials, token_path: Path) -> None:
    """Save credentials to the token cache file."""
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
