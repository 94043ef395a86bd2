from __future__ import annotations

from typing import Iterable, List, Optional


def csv_to_list(v: str | List[str] | None) -> List[str]:
    """Accept a comma-separated env value or an already-split list."""
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return [str(s).strip() for s in v if s is not None and str(s).strip()]
    return [s.strip() for s in str(v).split(",") if s.strip()]


def first_non_empty(values: Iterable[Optional[str]]) -> Optional[str]:
    for v in values:
        if v is not None and str(v).strip():
            return str(v).strip()
    return None


def blank_to_none(v: object) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None
