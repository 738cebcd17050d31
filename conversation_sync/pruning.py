from typing import Any, List

from conversation_sync.small_utils import dig_dict, pop_keys

USER_MESSAGE_KEY = "userMessage"
SYSTEM_TYPE = "system"


def prune_agent_messages(messages: List[Any]) -> List[Any]:
    """Strip heavy, low-value substructures from a conversation's messages.

    Mutates the message dicts in place and returns the same list. Messages
    that do not look like ``{"type": ..., "message": {...}}`` are left alone,
    as is any branch of the tree that is missing or not an object.

    user messages:   message.debugInfo is dropped, nothing else.
    system messages: the duplicated message.systemMessage and the echoed
                     debugInfo.request are dropped, then under
                     debugInfo.response.data.systemMessage:
                       - thoughtSignature (on itself and on its text)
                       - schema.result / schema.datasources
                       - data.result / data.formattedData and the schema of
                         every data.query.datasources entry
                       - chart.result
    """
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        body = msg.get("message")
        if not isinstance(body, dict):
            continue

        if USER_MESSAGE_KEY in body:
            body.pop("debugInfo", None)
            continue

        if msg.get("type") != SYSTEM_TYPE:
            continue

        body.pop("systemMessage", None)

        debug_info = dig_dict(body, "debugInfo")
        pop_keys(debug_info, "request")

        sys_msg = dig_dict(debug_info, "response", "data", "systemMessage")
        if sys_msg is None:
            continue
        _prune_system_message(sys_msg)

    return messages


def _prune_system_message(sys_msg: dict) -> None:
    pop_keys(dig_dict(sys_msg, "text"), "thoughtSignature")
    sys_msg.pop("thoughtSignature", None)

    pop_keys(dig_dict(sys_msg, "schema"), "result", "datasources")

    data = dig_dict(sys_msg, "data")
    if data is not None:
        pop_keys(data, "result", "formattedData")
        datasources = (dig_dict(data, "query") or {}).get("datasources")
        if isinstance(datasources, list):
            for ds in datasources:
                pop_keys(ds, "schema")

    pop_keys(dig_dict(sys_msg, "chart"), "result")
