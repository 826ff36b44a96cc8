"""
Uniform call contract for summarization providers.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..domain.models import SummaryMode


class ProviderClient(ABC):
    """
    One external summarizer behind the gateway's provider contract.

    ``invoke`` returns the summary text or raises one of:

    - ``ProviderTimeoutError`` / ``ProviderTransientError`` for timeouts, 5xx and
      other retryable upstream failures
    - ``ProviderQuotaExceededError`` when the provider reports its quota as spent
    - ``InvalidInputError`` when the provider rejects the input itself

    Adapters translate their own wire protocol into these outcomes.
    """

    #: Results from degraded providers are tagged as such in responses
    degraded: bool = False

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def invoke(
        self,
        text: str,
        timeout: float,
        *,
        context: Optional[str] = None,
        mode: SummaryMode = SummaryMode.BRIEF,
    ) -> str:
        """Summarize ``text`` within ``timeout`` seconds."""

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
