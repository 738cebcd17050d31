from typing import Any, Dict, Optional


def dig(obj: Any, path: Optional[str]):
    if not path:
        return None
    cur = obj
    for key in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
        if cur is None:
            return None
    return cur


def dig_dict(obj: Any, *keys: str) -> Optional[Dict[str, Any]]:
    """Follow ``keys`` through nested dicts; None unless the end is a dict.

    Any missing segment, or a segment that is not an object, stops the walk
    without raising.
    """
    cur = obj
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur if isinstance(cur, dict) else None


def pop_keys(obj: Optional[Dict[str, Any]], *keys: str) -> None:
    if not isinstance(obj, dict):
        return
    for key in keys:
        obj.pop(key, None)
