from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class ActionRequest:
    """Connection id plus the normalized payload of a single tool call.

    Build the payload with ``normalize_payload``; the mapping is read-only for
    the lifetime of the call.
    """

    connection_id: str
    payload: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
