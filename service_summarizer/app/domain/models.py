"""
Data models for the summarization gateway.
"""

import json
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class SummaryMode(str, Enum):
    """Prompt style requested by the dashboard."""
    BRIEF = "brief"
    ANALYSIS = "analysis"


class SummarySource(str, Enum):
    """Non-provider values of the response ``source`` field."""
    CACHE = "cache"
    STALE_CACHE = "stale-cache"


class NormalizedRequest(BaseModel):
    """Summarize request body, already clustered upstream."""

    text: str
    context: Optional[str] = None
    mode: SummaryMode = SummaryMode.BRIEF


class SummaryResponse(BaseModel):
    """Summarize response body."""

    summary: str
    source: str
    degraded: bool = False
    provider: Optional[str] = Field(default=None, description="Provider that produced the summary")


@dataclass
class CacheEntry:
    """Summary stored in the shared cache."""
    fingerprint: str
    summary: str
    created_at: float
    ttl: int
    served_from: str
    degraded: bool = False

    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_fresh(self, now: float) -> bool:
        return now <= self.expires_at()

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        return cls(
            fingerprint=data["fingerprint"],
            summary=data["summary"],
            created_at=float(data["created_at"]),
            ttl=int(data["ttl"]),
            served_from=data["served_from"],
            degraded=bool(data.get("degraded", False)),
        )


@dataclass
class SummaryResult:
    """Outcome of a successful summarize call."""
    summary: str
    source: str
    degraded: bool
    provider: Optional[str]
    fingerprint: str
    rate_limit: Optional[Any] = None

    def to_response(self) -> SummaryResponse:
        return SummaryResponse(
            summary=self.summary,
            source=self.source,
            degraded=self.degraded,
            provider=self.provider,
        )
