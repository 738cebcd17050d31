from typing import Any, Dict, List, Optional

import requests
from requests import Session

from conversation_sync.config import SyncSettings
from conversation_sync.errors import DetailFetchError, ListingError
from conversation_sync.pruning import prune_agent_messages
from conversation_sync.request_helpers import (
    build_url,
    check_response,
    decode_json,
    log_exception,
    log_request,
    token_headers,
)
from conversation_sync.sessions import LookerSessionProvider
from conversation_sync.types import (
    CONVERSATION_FIELDS,
    Conversation,
    ConversationSummary,
    Principal,
)


def list_conversations(
    ctx: Dict[str, Any],
    sess: Session,
    settings: SyncSettings,
    token: str,
    created_on: Optional[str] = None,
    prefix: str = "",
) -> List[ConversationSummary]:
    url = build_url(
        settings.looker_base_url, f"{settings.api_root}/conversations/search"
    )
    opts: Dict[str, Any] = {"headers": token_headers(token)}
    if created_on:
        opts["params"] = {"created_at": created_on}
    log_request(ctx, "GET", url, opts, prefix=prefix)
    try:
        resp = sess.get(url, timeout=settings.timeout, **opts)
    except requests.RequestException as e:
        raise ListingError(f"conversation search request failed: {e}") from e

    check_response(resp, ListingError, "conversation search")
    data = decode_json(resp, ListingError, "conversation search")
    if not isinstance(data, list):
        raise ListingError(
            f"conversation search returned {type(data).__name__}, expected a list"
        )

    summaries = [
        ConversationSummary(id=str(item["id"]))
        for item in data
        if isinstance(item, dict) and item.get("id") is not None
    ]
    ctx["log"].info(f"{prefix}search returned {len(summaries)} conversations")
    return summaries


def get_conversation_detail(
    ctx: Dict[str, Any],
    sess: Session,
    settings: SyncSettings,
    token: str,
    conversation_id: str,
) -> Conversation:
    url = build_url(
        settings.looker_base_url,
        f"{settings.api_root}/conversations/{conversation_id}",
    )
    try:
        resp = sess.get(
            url,
            params={"fields": ",".join(CONVERSATION_FIELDS)},
            headers=token_headers(token),
            timeout=settings.timeout,
        )
    except requests.RequestException as e:
        raise DetailFetchError(
            f"detail request for conversation {conversation_id} failed: {e}"
        ) from e

    what = f"detail for conversation {conversation_id}"
    check_response(resp, DetailFetchError, what)
    data = decode_json(resp, DetailFetchError, what)
    if not isinstance(data, dict) or data.get("id") is None:
        raise DetailFetchError(f"{what} is not a conversation object")

    detail = Conversation.from_dict(data)
    if isinstance(detail.messages, list):
        detail.messages = prune_agent_messages(detail.messages)
    return detail


def fetch_principal_conversations(
    ctx: Dict[str, Any],
    sess: Session,
    provider: LookerSessionProvider,
    admin_token: str,
    principal: Principal,
    created_on: Optional[str] = None,
) -> List[Conversation]:
    """Sudo as ``principal`` and return their pruned conversations.

    ``created_on`` (YYYY-MM-DD) limits the search to that creation date;
    None fetches everything. SessionError and ListingError propagate to the
    caller, while a failed detail fetch only skips that conversation. The
    sudo session is always logged out.
    """
    prefix = f"[principal {principal.id}] "
    user_token = provider.impersonate(admin_token, principal.id)
    try:
        summaries = list_conversations(
            ctx, sess, provider.settings, user_token, created_on, prefix=prefix
        )
        if not summaries:
            return []

        detailed: List[Conversation] = []
        for summary in summaries:
            try:
                detailed.append(
                    get_conversation_detail(
                        ctx, sess, provider.settings, user_token, summary.id
                    )
                )
            except DetailFetchError as e:
                log_exception(ctx, f"conversations/{summary.id}", e, prefix=prefix)
        return detailed
    finally:
        provider.end_session(user_token)
