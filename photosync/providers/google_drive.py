"""
Google Drive appDataFolder client for remote sync.

Provides OAuth authentication and name-addressed upload/download of the
snapshot and media objects in the application-private Drive space.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from io import BytesIO
from pathlib import Path

from django.conf import settings
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload, MediaIoBaseDownload, MediaIoBaseUpload

from photosync import secrets
from photosync.providers.base import RemoteObject, RemoteObjectStore

logger = logging.getLogger(__name__)

# Google API scopes
SCOPES = [
    "https://www.googleapis.com/auth/drive.appdata",
    "https://www.googleapis.com/auth/userinfo.email",
]

APP_DATA_SPACE = "appDataFolder"
FILE_FIELDS = "id,name,modifiedTime"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleDriveError(Exception):
    """Base exception for Google Drive operations."""

    pass


class TokenExpiredError(GoogleDriveError):
    """Raised when token refresh fails."""

    pass


def _client_config() -> tuple[str, str, str]:
    """Client id, secret and redirect URI, settings first, then the credentials file."""
    client_id = settings.GOOGLE_CLIENT_ID
    client_secret = settings.GOOGLE_CLIENT_SECRET
    redirect_uri = settings.GOOGLE_REDIRECT_URI

    if not client_id or not client_secret:
        stored = secrets.get_oauth_client_config() or {}
        client_id = client_id or stored.get("client_id", "")
        client_secret = client_secret or stored.get("client_secret", "")
        redirect_uri = stored.get("redirect_uri") or redirect_uri

    return client_id, client_secret, redirect_uri


def create_oauth_flow(state: str | None = None) -> Flow:
    """
    Create an OAuth flow for Google Drive authentication.

    Args:
        state: Optional state parameter for CSRF protection

    Returns:
        Configured OAuth Flow object
    """
    client_id, client_secret, redirect_uri = _client_config()
    client_config = {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": TOKEN_URI,
            "redirect_uris": [redirect_uri],
        }
    }
    flow = Flow.from_client_config(client_config, scopes=SCOPES, state=state)
    flow.redirect_uri = redirect_uri
    return flow


def get_authorization_url(state: str | None = None) -> tuple[str, str]:
    """
    Generate the Google OAuth authorization URL.

    Returns:
        Tuple of (authorization_url, state)
    """
    flow = create_oauth_flow()
    authorization_url, state = flow.authorization_url(
        access_type="offline",
        include_granted_scopes="true",
        prompt="consent",
        state=state,
    )
    return authorization_url, state


def exchange_code_for_tokens(code: str) -> dict:
    """
    Exchange an authorization code for access and refresh tokens.

    Args:
        code: The authorization code pasted back by the user

    Returns:
        Dict with access_token, refresh_token, expires_at, email
    """
    flow = create_oauth_flow()
    flow.fetch_token(code=code)
    credentials = flow.credentials

    service = build("oauth2", "v2", credentials=credentials)
    user_info = service.userinfo().get().execute()

    return {
        "access_token": credentials.token,
        "refresh_token": credentials.refresh_token,
        "expires_at": credentials.expiry,
        "email": user_info.get("email"),
    }


def _escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _parse_modified_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class DriveAppDataClient(RemoteObjectStore):
    """
    RemoteObjectStore backed by the Drive ``appDataFolder`` space.

    Objects are addressed by name; when several share a name the most
    recently modified one wins, and uploads overwrite it in place.

    The Drive service object is built once per thread, since the HTTP
    transport underneath it is not thread-safe. Credentials are shared and
    refreshed under a lock.
    """

    def __init__(self):
        self._credentials: Credentials | None = None
        self._refresh_lock = threading.Lock()
        self._local = threading.local()

    def _get_credentials(self) -> Credentials:
        """Build credentials from the stored Drive tokens."""
        if self._credentials is None:
            tokens = secrets.get_tokens()
            if tokens is None:
                raise TokenExpiredError("Google Drive is not connected")

            # google-auth compares expiry against naive UTC
            expiry = tokens.get("expires_at")
            if expiry is not None and expiry.tzinfo is not None:
                expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

            client_id, client_secret, _ = _client_config()
            self._credentials = Credentials(
                token=tokens["access_token"],
                refresh_token=tokens["refresh_token"],
                token_uri=TOKEN_URI,
                client_id=client_id,
                client_secret=client_secret,
                expiry=expiry,
            )
        return self._credentials

    def refresh_token_if_needed(self) -> bool:
        """
        Refresh the access token if expired or expiring soon.

        Returns:
            True if token was refreshed, False otherwise

        Raises:
            TokenExpiredError: If refresh fails
        """
        with self._refresh_lock:
            credentials = self._get_credentials()

            # Check if refresh is needed (expired or expiring in next 5 minutes)
            if credentials.expiry:
                expiry = credentials.expiry
                if expiry.tzinfo is None:
                    expiry = expiry.replace(tzinfo=timezone.utc)
                if expiry > datetime.now(timezone.utc) + timedelta(minutes=5):
                    return False

            if not credentials.refresh_token:
                raise TokenExpiredError("No refresh token available")

            try:
                credentials.refresh(Request())

                secrets.set_tokens(
                    access_token=credentials.token,
                    refresh_token=credentials.refresh_token,
                    expires_at=credentials.expiry,
                )

                logger.info("Refreshed Drive access token")
                return True

            except Exception as e:
                logger.error(f"Drive token refresh failed: {e}")
                raise TokenExpiredError(f"Token refresh failed: {e}") from e

    def _get_service(self):
        """Get or create this thread's Drive API service."""
        service = getattr(self._local, "service", None)
        if service is None:
            self.refresh_token_if_needed()
            service = build("drive", "v3", credentials=self._get_credentials())
            self._local.service = service
        return service

    def get_user_info(self) -> dict:
        """
        Get basic user info for connection testing.

        Returns:
            Dict with email and display_name
        """
        service = self._get_service()
        about = service.about().get(fields="user").execute()
        return {
            "email": about["user"].get("emailAddress"),
            "display_name": about["user"].get("displayName"),
        }

    def find_latest_by_name(self, name: str) -> RemoteObject | None:
        service = self._get_service()
        response = (
            service.files()
            .list(
                spaces=APP_DATA_SPACE,
                q=f"name = '{_escape_query_value(name)}' and trashed = false",
                orderBy="modifiedTime desc",
                pageSize=1,
                fields=f"files({FILE_FIELDS})",
            )
            .execute()
        )

        files = response.get("files", [])
        if not files:
            return None

        data = files[0]
        return RemoteObject(
            id=data["id"],
            name=data.get("name", name),
            modified_time=_parse_modified_time(data.get("modifiedTime")),
        )

    def download(self, object_id: str, destination: Path) -> bool:
        """
        Download an object's content to ``destination``.

        Transfer errors are logged and reported as False; a partially
        written destination is removed.
        """
        destination = Path(destination)
        try:
            service = self._get_service()
            request = service.files().get_media(fileId=object_id)
            destination.parent.mkdir(parents=True, exist_ok=True)

            with open(destination, "wb") as f:
                downloader = MediaIoBaseDownload(f, request)
                done = False
                while not done:
                    status, done = downloader.next_chunk()
                    if status:
                        logger.debug(f"Download progress: {int(status.progress() * 100)}%")

            return True

        except Exception as e:
            logger.warning(f"Download of {object_id} failed: {e}")
            destination.unlink(missing_ok=True)
            return False

    def create_or_update(self, name: str, content: bytes | Path, mime_type: str) -> str:
        """
        Upload ``content`` under ``name``, overwriting the newest existing
        object of that name.

        Raises:
            GoogleDriveError: If Drive returned no object id
        """
        service = self._get_service()

        if isinstance(content, (bytes, bytearray)):
            media = MediaIoBaseUpload(BytesIO(content), mimetype=mime_type, resumable=True)
        else:
            media = MediaFileUpload(str(content), mimetype=mime_type, resumable=True)

        existing = self.find_latest_by_name(name)
        if existing is None:
            result = (
                service.files()
                .create(
                    body={"name": name, "parents": [APP_DATA_SPACE]},
                    media_body=media,
                    fields=FILE_FIELDS,
                )
                .execute()
            )
            logger.debug(f"Created remote object {name}")
        else:
            # parents cannot be set on update
            result = (
                service.files()
                .update(
                    fileId=existing.id,
                    body={"name": name},
                    media_body=media,
                    fields=FILE_FIELDS,
                )
                .execute()
            )
            logger.debug(f"Updated remote object {name} ({existing.id})")

        object_id = result.get("id")
        if not object_id:
            raise GoogleDriveError(f"Upload of {name} returned no file id")
        return object_id


def get_remote_store() -> DriveAppDataClient | None:
    """
    Build an authenticated Drive client.

    Returns:
        The client, or None when no account is connected or its tokens
        can no longer be refreshed
    """
    if not secrets.has_tokens():
        logger.debug("No Drive account connected")
        return None

    client = DriveAppDataClient()
    try:
        client.refresh_token_if_needed()
    except TokenExpiredError as e:
        logger.warning(f"Drive account unavailable: {e}")
        return None
    return client
