"""
Drive credentials file.

The connected Google Drive account's OAuth tokens, and optionally the OAuth
client registration, live in one JSON file next to the catalog rather than
in the catalog database, so an exported or restored catalog never carries
credentials. The file is written atomically and kept at mode 600.

Layout::

    {
        "drive": {"access_token": ..., "refresh_token": ...,
                  "expires_at": "<iso8601>", "email": ...},
        "oauth_client": {"client_id": ..., "client_secret": ...,
                         "redirect_uri": ...}
    }
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from datetime import datetime
from pathlib import Path

from django.conf import settings

logger = logging.getLogger(__name__)

DRIVE_KEY = "drive"
OAUTH_CLIENT_KEY = "oauth_client"


class SecretsError(Exception):
    """Base exception for credential file operations."""

    pass


class SecretsFileError(SecretsError):
    """Raised when the credentials file can't be read or written."""

    pass


class CredentialsFile:
    """Read-modify-write access to the credentials JSON file."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path if path is not None else settings.SECRETS_FILE)

    def read(self) -> dict:
        if not self.path.exists():
            return {}

        try:
            return json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            logger.error(f"Credentials file {self.path} is not valid JSON: {e}")
            raise SecretsFileError(f"Invalid credentials file: {e}") from e
        except OSError as e:
            logger.error(f"Could not read credentials file {self.path}: {e}")
            raise SecretsFileError(f"Could not read credentials file: {e}") from e

    def write(self, data: dict) -> None:
        """Replace the file contents atomically, owner read/write only."""
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".secrets_", suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)
            logger.error(f"Could not write credentials file {self.path}: {e}")
            raise SecretsFileError(f"Could not write credentials file: {e}") from e

    def update(self, key: str, value: dict | None) -> bool:
        """
        Set or remove one top-level section.

        Returns:
            False when removing a section that wasn't there
        """
        data = self.read()
        if value is None:
            if key not in data:
                return False
            del data[key]
        else:
            data[key] = value
        self.write(data)
        return True


def _load_secrets() -> dict:
    return CredentialsFile().read()


def get_tokens() -> dict | None:
    """
    The connected account's tokens.

    Returns:
        Dict with access_token, refresh_token, expires_at (datetime or
        None) and email, or None when Drive isn't connected
    """
    tokens = _load_secrets().get(DRIVE_KEY)
    if tokens is None:
        return None

    expires_at = tokens.get("expires_at")
    try:
        tokens["expires_at"] = datetime.fromisoformat(expires_at) if expires_at else None
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable token expiry {expires_at!r}")
        tokens["expires_at"] = None
    return tokens


def set_tokens(
    access_token: str,
    refresh_token: str,
    expires_at: datetime | None = None,
    email: str | None = None,
) -> None:
    """
    Store tokens for the Drive account.

    A refresh passes no email; the one saved at connect time is kept.
    """
    credentials = CredentialsFile()
    previous = credentials.read().get(DRIVE_KEY) or {}
    credentials.update(
        DRIVE_KEY,
        {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": expires_at.isoformat() if expires_at else None,
            "email": email or previous.get("email"),
        },
    )
    logger.info("Saved Drive tokens")


def delete_tokens() -> bool:
    """Disconnect Drive. Returns False if it wasn't connected."""
    deleted = CredentialsFile().update(DRIVE_KEY, None)
    if deleted:
        logger.info("Deleted Drive tokens")
    return deleted


def has_tokens() -> bool:
    return DRIVE_KEY in _load_secrets()


def get_oauth_client_config() -> dict | None:
    """Stored OAuth client registration (client_id, client_secret, redirect_uri)."""
    return _load_secrets().get(OAUTH_CLIENT_KEY)


def set_oauth_client_config(client_id: str, client_secret: str, redirect_uri: str | None = None) -> None:
    client = {"client_id": client_id, "client_secret": client_secret}
    if redirect_uri:
        client["redirect_uri"] = redirect_uri
    CredentialsFile().update(OAUTH_CLIENT_KEY, client)
    logger.info("Saved OAuth client registration")
