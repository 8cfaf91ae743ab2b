# backend/proxycache/entry.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class CacheStatus(str, Enum):
    MISS = "miss"
    FRESH = "fresh"
    STALE = "stale"


@dataclass
class UpstreamResponse:
    """What the passthrough got back from the upstream API."""
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class CacheEntry:
    status_code: int
    headers: Dict[str, str]
    body: Any
    stored_at: float
    expires_at: float
    source_url: Optional[str] = None

    def to_dict(self):
        return {
            "status_code": self.status_code,
            "stored_at": self.stored_at,
            "expires_at": self.expires_at,
            "source_url": self.source_url,
        }


@dataclass
class CacheLookup:
    status: CacheStatus
    data: Optional[CacheEntry] = None
