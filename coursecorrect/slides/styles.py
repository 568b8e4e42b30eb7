from typing import Dict


BASIC_STYLES: Dict[str, str] = {
    "modern": "Clean, minimalist design with bold typography and ample white space. Use gradients and subtle shadows.",
    "corporate": "Professional, polished look with consistent branding elements. Navy, gray, and accent colors.",
    "playful": "Colorful, engaging design with illustrations and icons. Rounded corners and friendly fonts.",
    "technical": "Data-focused with charts, diagrams, and code snippets. Dark theme with syntax highlighting.",
}

ACCENT_COLORS: Dict[str, str] = {
    "modern": "#2563eb",
    "playful": "#ea580c",
    "minimal": "#18181b",
    "academic": "#d4a843",
}

# Short guides for the one-shot enhanced deck.
DECK_STYLES: Dict[str, str] = {
    "modern": "Professional corporate theme. White/light background, dark text. Accent: #2563eb (professional blue). "
    "Clean sans-serif typography, ample whitespace. Like a polished Keynote template. "
    "Suggest shield-check, zap, or trending-up icons.",
    "playful": "Warm, engaging educational theme. Light warm background, dark text. Accent: #ea580c (energetic orange). "
    "Rounded elements, friendly typography. Like a modern e-learning platform. Suggest star, trophy, or rocket icons.",
    "minimal": "Ultra-clean minimalist theme. Near-white background, very dark text. Accent: #18181b (near-black). "
    "Maximum whitespace, thin geometric lines. Like a Swiss design poster. Suggest circle-dot, minus, or hash icons.",
    "academic": "Formal scholarly theme. Dark navy background (#0f172a), light text. Accent: #d4a843 (gold). "
    "Structured layout, gold accents. Like a university lecture deck. Suggest book-open, award, or scale icons.",
}

# Longer guides used when slides are built from approved findings.
GUIDED_STYLES: Dict[str, str] = {
    "modern": "Professional corporate theme. White/light background, dark text. Accent: #2563eb (professional blue). "
    "Clean sans-serif typography, ample whitespace, subtle drop shadows. Like a polished Keynote template. "
    "Suggest shield-check, zap, or trending-up icons.",
    "playful": "Warm, engaging educational theme. Light warm background (#fffbeb cream), dark text. "
    "Accent: #ea580c (energetic orange). Rounded elements, friendly typography, subtle warm gradients. "
    "Like a modern e-learning platform. Suggest star, trophy, or rocket icons.",
    "minimal": "Ultra-clean minimalist theme. Near-white background (#fafafa), very dark text. Accent: #18181b "
    "(near-black). Maximum whitespace, thin geometric lines, precise typography. Like a Swiss design poster. "
    "Suggest circle-dot, minus, or hash icons.",
    "academic": "Formal scholarly theme. Dark navy background (#0f172a), light text. Accent: #d4a843 (gold). "
    "Structured layout, serif-influenced display type, gold divider lines. Like a university lecture deck. "
    "Suggest book-open, award, or scale icons.",
}

ICON_HINT = "A Lucide icon name (shield-check, zap, trending-up, book-open, target, award, star, clock)"
IMAGE_PROMPT_FORMAT = (
    "Flat vector illustration of [specific subject with 2-3 details], clean white background, "
    "[color palette], no text, no labels"
)


def accent_for(style: str) -> str:
    # Unknown styles get the academic gold.
    return ACCENT_COLORS.get(style, ACCENT_COLORS["academic"])


def basic_style(style: str) -> str:
    return BASIC_STYLES.get(style or "modern", BASIC_STYLES["modern"])


def deck_style(style: str) -> str:
    return DECK_STYLES.get(style, DECK_STYLES["modern"])


def guided_style(style: str) -> str:
    return GUIDED_STYLES.get(style, GUIDED_STYLES["modern"])
