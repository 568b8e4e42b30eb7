import re
from typing import List, Pattern


# Applied in order; each match is removed.
INJECTION_PATTERNS: List[Pattern] = [
    re.compile(r"<\|?\s*/?\s*(system|assistant|user|im_start|im_end|endoftext)\s*\|?>", re.IGNORECASE),
    re.compile(r"</?\s*(system|assistant|user_content|user|instructions?|prompt)\s*>", re.IGNORECASE),
    re.compile(
        r"\b(ignore|disregard|forget|override)\s+(all\s+|any\s+|the\s+)?(previous|prior|above|earlier|preceding)\s+"
        r"(instructions?|prompts?|rules|context|directions)\b[.!]?",
        re.IGNORECASE,
    ),
    re.compile(r"\byou\s+are\s+now\s+(a|an|the|in)\b[^\n.]*[.!]?", re.IGNORECASE),
    re.compile(r"\bnew\s+instructions?\s*:", re.IGNORECASE),
    re.compile(r"^\s*(system|assistant)\s*:\s*", re.IGNORECASE | re.MULTILINE),
]

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def sanitize_user_input(text: str) -> str:
    """Strip common prompt-injection markers from user text.

    Best-effort only. Output is still embedded in prompts as untrusted content.
    """
    if not text:
        return ""
    out = text
    for pattern in INJECTION_PATTERNS:
        out = pattern.sub("", out)
    out = _EXCESS_NEWLINES.sub("\n\n", out)
    return out.strip()
