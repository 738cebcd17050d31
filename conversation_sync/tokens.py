from typing import Any, Dict

import requests
from requests import Session

from conversation_sync.config import SyncSettings
from conversation_sync.errors import TokenError
from conversation_sync.request_helpers import check_response, decode_json
from conversation_sync.small_utils import dig


def get_access_token(
    ctx: Dict[str, Any], sess: Session, settings: SyncSettings
) -> str:
    """Bearer token for the warehouse.

    A configured ``bigquery.access_token`` wins (local development);
    otherwise the default service account token is read from the metadata
    server.
    """
    log = ctx["log"]
    if settings.gcp_access_token:
        log.info("[token] Using configured warehouse access token")
        return settings.gcp_access_token

    log.info("[token] Requesting warehouse token from metadata server")
    try:
        resp = sess.get(
            settings.metadata_token_url,
            headers={"Metadata-Flavor": "Google"},
            timeout=settings.timeout,
        )
    except requests.RequestException as e:
        raise TokenError(f"metadata token request failed: {e}") from e

    check_response(resp, TokenError, "metadata token lookup")
    token = dig(decode_json(resp, TokenError, "metadata token lookup"), "access_token")
    if not token:
        raise TokenError("metadata token response did not carry an access_token")
    return token
