"""
Session Store - process-wide holder of the current credential.

The credential survives restarts in a small JSON file under the fixed key
"authToken"; a missing or unreadable file means signed out. Every write
replaces the whole file (temp file + os.replace), so readers never see a
half-written credential.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from civic_hub.client.base import Path
from civic_hub.core.settings import settings

logger = logging.getLogger(__name__)

STORAGE_KEY = "authToken"


class Credential(BaseModel):
    """Bearer token plus which path issued it."""
    access_token: str
    provenance: Path
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


def credential_from_session(auth, provenance: Path) -> Optional[Credential]:
    """Credential for an AuthSession, or None while email confirmation is pending."""
    if auth.session is None:
        return None
    return Credential(
        access_token=auth.session.access_token,
        refresh_token=auth.session.refresh_token,
        provenance=provenance,
        user_id=auth.user.id if auth.user else None,
    )


class SessionStore:
    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.SESSION_STORE_PATH
        self._lock = threading.Lock()
        self._credential: Optional[Credential] = self._load()

    def get_credential(self) -> Optional[Credential]:
        return self._credential

    def set_credential(self, credential: Optional[Credential]) -> None:
        with self._lock:
            self._persist(credential)
            self._credential = credential
        if credential is None:
            logger.info("Session cleared")
        else:
            logger.info(f"Session stored (provenance={credential.provenance.value})")

    def clear(self) -> None:
        self.set_credential(None)

    @property
    def provenance(self) -> Optional[Path]:
        credential = self._credential
        return credential.provenance if credential else None

    def _load(self) -> Optional[Credential]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f).get(STORAGE_KEY)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None

        if not raw:
            return None
        try:
            return Credential.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring malformed stored credential: {e}")
            return None

    def _persist(self, credential: Optional[Credential]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        payload = {STORAGE_KEY: credential.model_dump(mode="json") if credential else None}

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
