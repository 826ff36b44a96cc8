"""
Prompt templates for chat-completion providers.
"""

from typing import Dict, List, Optional

from ..domain.models import SummaryMode

SYSTEM_PROMPTS = {
    SummaryMode.BRIEF: (
        "You are an intelligence desk editor. Summarize the key development in the "
        "headlines below in at most two concise sentences. State facts only, name the "
        "places and actors involved, and do not speculate or add a preamble."
    ),
    SummaryMode.ANALYSIS: (
        "You are a geopolitical analyst. From the headlines below, give the single most "
        "significant development, then one sentence on its likely implications. "
        "Stay under 80 words, avoid hedging language, and do not add a preamble."
    ),
}

MAX_TOKENS = {
    SummaryMode.BRIEF: 150,
    SummaryMode.ANALYSIS: 220,
}


def build_messages(text: str, context: Optional[str], mode: SummaryMode) -> List[Dict[str, str]]:
    """Build the chat messages for one summarize request."""
    user_content = f"Headlines:\n{text.strip()}"
    if context and context.strip():
        user_content += f"\n\nContext:\n{context.strip()}"

    return [
        {"role": "system", "content": SYSTEM_PROMPTS[mode]},
        {"role": "user", "content": user_content},
    ]


def clean_completion(content: str) -> str:
    """Trim whitespace and wrapping quotes some models add around answers."""
    cleaned = content.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in ("\"", "'"):
        cleaned = cleaned[1:-1].strip()
    return cleaned
