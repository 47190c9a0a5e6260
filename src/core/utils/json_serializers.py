"""Shared JSON serialization hook for ``json.dumps(default=...)``."""

import dataclasses
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel


def json_serializer(obj: Any) -> Any:
    """
    Type-safe JSON serializer.

    - datetime/date -> ISO 8601 string
    - Decimal -> float
    - Path -> string
    - Enum -> value
    - pydantic models -> JSON-mode dump using field aliases
    - dataclasses -> dict
    - sets/frozensets -> list

    Anything else raises TypeError, which json.dumps propagates, so that
    unexpected objects are rejected rather than silently stringified.
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


__all__ = ["json_serializer"]
