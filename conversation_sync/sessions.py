from typing import Any, Dict

import requests
from requests import Session

from conversation_sync.config import SyncSettings
from conversation_sync.errors import SessionError
from conversation_sync.request_helpers import (
    build_url,
    check_response,
    decode_json,
    log_exception,
    log_request,
    token_headers,
)


class LookerSessionProvider:
    """Elevated login, per-user sudo sessions and logout against Looker."""

    def __init__(self, ctx: Dict[str, Any], sess: Session, settings: SyncSettings):
        self.ctx = ctx
        self.sess = sess
        self.settings = settings

    def _url(self, path: str) -> str:
        return build_url(
            self.settings.looker_base_url, f"{self.settings.api_root}/{path}"
        )

    def _access_token(self, resp: requests.Response, what: str) -> str:
        check_response(resp, SessionError, what)
        data = decode_json(resp, SessionError, what)
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise SessionError(
                f"{what} response did not carry an access_token",
                status_code=resp.status_code,
            )
        return token

    def login(self) -> str:
        url = self._url("login")
        form = {
            "client_id": self.settings.looker_client_id,
            "client_secret": self.settings.looker_client_secret,
        }
        log_request(self.ctx, "POST", url, {"params": form}, prefix="[login] ")
        try:
            resp = self.sess.post(url, data=form, timeout=self.settings.timeout)
        except requests.RequestException as e:
            raise SessionError(f"admin login request failed: {e}") from e
        token = self._access_token(resp, "admin login")
        self.ctx["log"].info("[login] Looker admin login successful")
        return token

    def impersonate(self, admin_token: str, principal_id: Any) -> str:
        url = self._url(f"login/{principal_id}")
        try:
            resp = self.sess.post(
                url,
                headers=token_headers(admin_token),
                timeout=self.settings.timeout,
            )
        except requests.RequestException as e:
            raise SessionError(f"sudo request failed: {e}") from e
        return self._access_token(resp, "sudo")

    def end_session(self, token: str) -> None:
        url = self._url("logout")
        try:
            resp = self.sess.delete(
                url, headers=token_headers(token), timeout=self.settings.timeout
            )
            resp.close()
        except requests.RequestException as e:
            log_exception(self.ctx, url, e, prefix="[logout] ")
