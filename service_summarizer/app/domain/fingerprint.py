"""
Content-addressed request fingerprints.

A fingerprint is the shared cache key for a summary, so two dashboards asking
about the same headlines must arrive at the same digest regardless of how the
text was formatted on the way in. Digests are plain SHA-256 with no salt and
stay stable across restarts and instances.
"""

import hashlib
import re
import unicodedata
from typing import Optional, Union

from .models import SummaryMode

FINGERPRINT_VERSION = "v1"

_WHITESPACE = re.compile(r"\s+")
_FIELD_SEPARATOR = "\x1f"


def normalize(text: Optional[str]) -> str:
    """Strip formatting noise: width/compat forms, case and whitespace runs."""
    if not text:
        return ""
    folded = unicodedata.normalize("NFKC", text).casefold()
    return _WHITESPACE.sub(" ", folded).strip()


def fingerprint(
    text: str,
    context: Optional[str] = None,
    mode: Union[SummaryMode, str] = SummaryMode.BRIEF,
) -> str:
    """Return a fixed-width hex digest identifying the normalized request."""
    mode_value = mode.value if isinstance(mode, SummaryMode) else str(mode)
    material = _FIELD_SEPARATOR.join(
        [FINGERPRINT_VERSION, mode_value, normalize(text), normalize(context)]
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
