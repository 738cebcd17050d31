from typing import Any, Dict, List

import requests
from requests import Session

from conversation_sync.config import SyncSettings
from conversation_sync.errors import DiscoveryError
from conversation_sync.parsing import rows_to_df, rows_to_principals
from conversation_sync.request_helpers import (
    build_url,
    check_response,
    decode_json,
    log_request,
    token_headers,
)
from conversation_sync.types import Principal

# Looker's "no row limit" value for saved query runs
UNLIMITED_ROWS = -1


def discover_principals(
    ctx: Dict[str, Any],
    sess: Session,
    settings: SyncSettings,
    admin_token: str,
) -> List[Principal]:
    """Run the registered user report and return every principal it lists."""
    url = build_url(
        settings.looker_base_url,
        f"{settings.api_root}/queries/{settings.looker_user_query_id}/run/json",
    )
    opts = {
        "params": {"limit": UNLIMITED_ROWS},
        "headers": token_headers(admin_token),
    }
    log_request(ctx, "GET", url, opts, prefix="[discovery] ")
    try:
        resp = sess.get(url, timeout=settings.timeout, **opts)
    except requests.RequestException as e:
        raise DiscoveryError(f"user report request failed: {e}") from e

    check_response(resp, DiscoveryError, "user report")
    data = decode_json(resp, DiscoveryError, "user report")
    if not isinstance(data, list):
        raise DiscoveryError(
            f"user report returned {type(data).__name__}, expected a list of rows"
        )

    try:
        principals = rows_to_principals(
            rows_to_df(data), log=ctx["log"]
        )
    except (KeyError, ValueError, TypeError) as e:
        raise DiscoveryError(f"user report rows could not be decoded: {e}") from e

    ctx["log"].info(f"[discovery] Found {len(principals)} principals to process")
    return principals
