from typing import Any, Dict, List

import pandas as pd

from conversation_sync.types import Principal

PRINCIPAL_ID_COLUMN = "user.id"
PRINCIPAL_EMAIL_COLUMN = "user.email"


def rows_to_df(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    """Report rows (one dict per row, dotted column names) as a DataFrame."""
    return pd.DataFrame(rows)


def rows_to_principals(df: pd.DataFrame, log=None) -> List[Principal]:
    """Map report rows (``user.id``/``user.email`` columns) to principals.

    Raises KeyError when either column is missing from a non-empty frame and
    ValueError when an id is not integral. Rows without an id are dropped.
    """
    if df.empty:
        return []
    missing = [
        c for c in (PRINCIPAL_ID_COLUMN, PRINCIPAL_EMAIL_COLUMN) if c not in df.columns
    ]
    if missing:
        raise KeyError(f"report rows are missing columns: {missing}")

    principals: List[Principal] = []
    for idx, row in df.iterrows():
        raw_id = row[PRINCIPAL_ID_COLUMN]
        if raw_id is None or pd.isna(raw_id):
            if log is not None:
                log.info(f"[discovery] skipping row {idx}: no {PRINCIPAL_ID_COLUMN}")
            continue
        as_float = float(raw_id)
        if not as_float.is_integer():
            raise ValueError(f"non-integral principal id: {raw_id!r}")
        raw_email = row[PRINCIPAL_EMAIL_COLUMN]
        email = "" if raw_email is None or pd.isna(raw_email) else str(raw_email)
        principals.append(Principal(id=int(as_float), email=email))
    return principals
