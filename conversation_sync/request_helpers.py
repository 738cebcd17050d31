import traceback
from typing import Any, Dict, Type
from urllib.parse import urljoin

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from conversation_sync.errors import SyncError

_SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "api-key",
    "proxy-authorization",
}
_SENSITIVE_PARAMS = {
    "access_token",
    "token",
    "apikey",
    "api_key",
    "authorization",
    "signature",
    "client_id",
    "client_secret",
    "refresh_token",
    "secret",
    "password",
    "private_key",
    "x-authorization",
    "auth",
}
_BODY_PREVIEW_CHARS = 500


def build_url(base_url: str, path: str) -> str:
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


def build_session(pool_size: int) -> Session:
    """Session shared by every worker of a run.

    The connection pool is sized to the worker pool so workers never queue
    for a socket, and retries are disabled: a failed call fails its unit of
    work and nothing is resubmitted.
    """
    s = Session()
    adapter = HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
        max_retries=Retry(total=0, raise_on_status=False),
    )
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


def token_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"token {token}"}


def body_preview(resp: requests.Response) -> str:
    try:
        text = resp.text or ""
    except Exception:
        return ""
    return text[:_BODY_PREVIEW_CHARS]


def check_response(
    resp: requests.Response, error_cls: Type[SyncError], what: str
) -> requests.Response:
    if resp.status_code != 200:
        raise error_cls(
            f"{what} failed with status {resp.status_code}: {body_preview(resp)}",
            status_code=resp.status_code,
            body=body_preview(resp),
        )
    return resp


def decode_json(
    resp: requests.Response, error_cls: Type[SyncError], what: str
) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise error_cls(
            f"{what} returned an undecodable body: {e}",
            status_code=resp.status_code,
            body=body_preview(resp),
        ) from e


def log_request(
    ctx: Dict[str, Any],
    method: str,
    url: str,
    opts: Dict[str, Any],
    prefix: str = "",
):
    log = ctx["log"]
    safe_headers = dict(opts.get("headers") or {})
    for k in list(safe_headers):
        if k.lower() in _SENSITIVE_HEADERS:
            safe_headers[k] = "***REDACTED***"
    safe_params = dict(opts.get("params") or {})
    for k in list(safe_params):
        if k.lower() in _SENSITIVE_PARAMS:
            safe_params[k] = "***REDACTED***"
    log.info(
        f"{prefix}{method} {url} params={safe_params} headers={safe_headers}"
    )


def log_exception(
    ctx: Dict[str, Any], url: str, e: Exception, prefix: str = ""
):
    ctx["log"].error(
        f"{prefix}Error calling {url}: {e}\nStack Trace: {traceback.format_exc()}"
    )
