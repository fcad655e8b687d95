# planner/services/google_auth.py
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterable, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from core.logs import get_logger
from core.settings import CLIENT_SECRET_PATH, GOOGLE_CALENDAR, TOKEN_PATH


SCOPES = list(GOOGLE_CALENDAR.scopes)


class GoogleAuth:
    """OAuth credentials for the read-only calendar overlay, cached in ``token.json``."""

    def __init__(
        self,
        secrets_path: str | Path = CLIENT_SECRET_PATH,
        token_path: str | Path = TOKEN_PATH,
    ):
        self.secrets_path = Path(secrets_path)
        self.token_path = Path(token_path)
        self.secrets_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.creds: Optional[Credentials] = None
        self.logger = get_logger("google_auth")
        self.logger.debug("Token path: %s", self.token_path)

    def load_cached(self) -> Optional[Credentials]:
        """Credentials from ``token.json`` refreshed if needed, without any consent prompt."""
        if self.creds and self.creds.valid and self._has_required_scopes(self.creds):
            return self.creds
        if not self.token_path.exists():
            return None
        try:
            creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
        except (ValueError, json.JSONDecodeError) as exc:
            self.logger.warning("Failed to load token.json: %s", exc)
            return None
        if not self._has_required_scopes(creds):
            self.logger.info("Cached token lacks calendar scopes; ignoring it")
            return None
        if not creds.valid:
            if not (creds.expired and creds.refresh_token):
                return None
            try:
                creds.refresh(Request())
            except RefreshError as exc:
                self.logger.warning("Token refresh failed: %s", exc)
                return None
            self._persist_credentials(creds)
        self.creds = creds
        return creds

    def ensure_credentials(self) -> bool:
        """Cached credentials or, failing that, the local-server consent flow."""
        if self.load_cached() is not None:
            self._log_active_scopes(self.creds.scopes)
            return True

        self.reset_credentials()
        if not self.secrets_path.exists():
            raise FileNotFoundError(
                f"{self.secrets_path} not found. "
                "Create a Desktop OAuth client in Google Cloud and download its JSON."
            )
        flow = InstalledAppFlow.from_client_secrets_file(str(self.secrets_path), SCOPES)
        self.logger.info("Running OAuth consent flow (local server)")
        self.creds = flow.run_local_server(
            port=0,
            access_type="offline",
            prompt="consent",
            include_granted_scopes=True,
        )

        if not self.creds:
            raise RuntimeError("Could not obtain Google credentials")
        if not self._has_required_scopes(self.creds):
            raise RuntimeError("Google authorization is missing the calendar scope")

        self._persist_credentials(self.creds)
        self._log_active_scopes(self.creds.scopes)
        return True

    def get_credentials(self) -> Optional[Credentials]:
        return self.creds or self.load_cached()

    def get_active_scopes(self) -> list[str]:
        if not self.creds:
            return []
        return sorted(set(self.creds.scopes or []))

    def reset_credentials(self) -> None:
        self.creds = None
        try:
            if self.token_path.exists():
                self.token_path.unlink()
                self.logger.info("Removed cached Google token")
        except OSError as exc:
            self.logger.warning("Failed to remove cached token: %s", exc)

    # ----- helpers -----
    def _persist_credentials(self, creds: Credentials) -> None:
        data = creds.to_json()
        tmp_path = self.token_path.with_suffix(".tmp")
        try:
            tmp_path.write_text(data, encoding="utf-8")
            os.replace(tmp_path, self.token_path)
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

    @staticmethod
    def _has_required_scopes(creds: Credentials) -> bool:
        current = set(creds.scopes or [])
        return all(scope in current for scope in SCOPES)

    def _log_active_scopes(self, scopes: Iterable[str] | None) -> None:
        scopes_list = sorted(set(scopes or []))
        self.logger.info("Active scopes: %s", ", ".join(scopes_list) if scopes_list else "-")
