"""
Summarizer caching package.

Holds the cross-client summary cache. Entries are written once per
fingerprint by whichever instance gets a provider answer first and then read
by every client asking about the same headlines.
"""

from .summary_cache import SharedSummaryCache

__all__ = ["SharedSummaryCache"]
