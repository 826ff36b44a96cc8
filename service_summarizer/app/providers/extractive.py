"""
Local extractive summarizer used as the last, degraded tier of the chain.
"""

import re
from typing import List, Optional

from shared.errors import InvalidInputError
from ..domain.models import SummaryMode
from .base import ProviderClient

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_MAX_SUMMARY_CHARS = 400

LEAD_COUNT = {
    SummaryMode.BRIEF: 2,
    SummaryMode.ANALYSIS: 3,
}


class ExtractiveProvider(ProviderClient):
    """Returns the lead headlines/sentences of the input without any model call."""

    degraded = True

    def __init__(self, name: str = "extractive"):
        super().__init__(name)

    def _segments(self, text: str) -> List[str]:
        segments: List[str] = []
        seen = set()
        for line in text.splitlines():
            for sentence in _SENTENCE_END.split(line.strip()):
                sentence = sentence.strip(" -•*\t")
                key = sentence.casefold()
                if sentence and key not in seen:
                    seen.add(key)
                    segments.append(sentence)
        return segments

    async def invoke(
        self,
        text: str,
        timeout: float,
        *,
        context: Optional[str] = None,
        mode: SummaryMode = SummaryMode.BRIEF,
    ) -> str:
        segments = self._segments(text)
        if not segments:
            raise InvalidInputError("Nothing to summarize", details={"provider": self.name})

        lead = []
        for segment in segments[:LEAD_COUNT[mode]]:
            if segment[-1] not in ".!?":
                segment += "."
            lead.append(segment)

        summary = " ".join(lead)
        if len(summary) > _MAX_SUMMARY_CHARS:
            summary = summary[:_MAX_SUMMARY_CHARS - 1].rstrip() + "…"
        return summary
