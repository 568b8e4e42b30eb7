from .common import SlideJob, parse_or_none, respond, with_prompt
from ..results import FontOptions, GeneratedTheme, ThemeOption, ThemeOptions
from ..sanitize import sanitize_user_input


THEME_DESIGNER = (
    "You are a brand identity designer. Generate a cohesive presentation color palette and typography "
    "recommendation based on user preferences."
)

DEFAULT_THEME = GeneratedTheme(
    primary_color="#2563eb",
    secondary_color="#60a5fa",
    background_color="#ffffff",
    text_color="#1e293b",
    muted_text_color="#94a3b8",
    font_suggestion="Inter",
    layout_style="geometric",
    design_reasoning="A clean, professional default palette.",
)

FALLBACK_THEME_OPTIONS = [
    ThemeOption(
        name="Clean & Light", description="Airy and modern with warm white space and teal accents",
        background_color="#fafaf9", text_color="#1c1917", primary_color="#0d9488",
        secondary_color="#5eead4", muted_text_color="#78716c", font_suggestion="Inter", layout_style="minimal",
    ),
    ThemeOption(
        name="Midnight Bold", description="High-contrast dark navy with bright amber highlights",
        background_color="#0f172a", text_color="#f8fafc", primary_color="#f59e0b",
        secondary_color="#fbbf24", muted_text_color="#94a3b8", font_suggestion="Space Grotesk", layout_style="bold",
    ),
    ThemeOption(
        name="Warm Sunset", description="Inviting cream tones with warm red energy",
        background_color="#fef3c7", text_color="#451a03", primary_color="#dc2626",
        secondary_color="#f97316", muted_text_color="#92400e", font_suggestion="DM Sans", layout_style="organic",
    ),
    ThemeOption(
        name="Ocean Professional", description="Deep blue authority with cool sky blue accents",
        background_color="#0c4a6e", text_color="#e0f2fe", primary_color="#38bdf8",
        secondary_color="#7dd3fc", muted_text_color="#7dd3fc", font_suggestion="IBM Plex Sans",
        layout_style="structured",
    ),
    ThemeOption(
        name="Forest & Gold", description="Rich green prestige with gold accent flourishes",
        background_color="#14532d", text_color="#f0fdf4", primary_color="#eab308",
        secondary_color="#a3e635", muted_text_color="#86efac", font_suggestion="Playfair Display",
        layout_style="editorial",
    ),
    ThemeOption(
        name="Neon Tech", description="Edgy dark zinc with vibrant purple glow",
        background_color="#18181b", text_color="#e4e4e7", primary_color="#a855f7",
        secondary_color="#c084fc", muted_text_color="#71717a", font_suggestion="Outfit", layout_style="geometric",
    ),
]

FALLBACK_FONTS = ["Inter", "Poppins", "Space Grotesk", "DM Sans", "Playfair Display"]

MIN_THEMES = 4
MIN_FONTS = 3


def build_theme_prompt(job: SlideJob) -> str:
    q = job.req.theme_questionnaire
    personality = sanitize_user_input(q.brand_personality) if q and q.brand_personality else "not specified"
    audience = sanitize_user_input(q.audience) if q and q.audience else "not specified"
    feeling = sanitize_user_input(q.desired_feeling) if q and q.desired_feeling else "not specified"
    brand_color = sanitize_user_input(q.primary_color) if q and q.primary_color else ""

    lines = [
        "Generate a cohesive presentation color palette and typography recommendation.",
        "",
        "User preferences:",
        f"- Brand personality: {personality}",
        f"- Target audience: {audience}",
        f"- Desired feeling: {feeling}",
        f"- Brand color to build around: {brand_color}" if brand_color
        else "- No specific brand color provided, choose freely",
        "",
        "Requirements:",
        "- backgroundColor must be a light color (white or near-white) for readability",
        "- textColor must have high contrast against backgroundColor (WCAG AA minimum)",
        "- primaryColor should be vibrant and work as an accent on the light background",
        "- secondaryColor should complement primaryColor",
        "- fontSuggestion must be a real Google Font name",
        '- layoutStyle: "geometric" for structured/corporate, "organic" for warm/approachable, '
        '"editorial" for elegant/premium, "structured" for clean/functional',
    ]
    if brand_color:
        lines.append(
            f"- Build the entire palette around the provided brand color {brand_color}. "
            "Use it as primaryColor or derive primaryColor from it."
        )
    lines += [
        "",
        "CRITICAL: All colors must be valid 6-digit hex codes starting with #. "
        "Ensure sufficient contrast between text and background.",
    ]
    return "\n".join(lines)


async def handle_theme(job: SlideJob) -> dict:
    result = await job.generate(
        GeneratedTheme, with_prompt([], build_theme_prompt(job)), system_instruction=THEME_DESIGNER
    )
    theme = parse_or_none(result.text, GeneratedTheme, "generateTheme") or DEFAULT_THEME
    return respond(theme.dump(), result.usage)


def build_theme_options_prompt(job: SlideJob) -> str:
    return f"""Propose 6 distinct presentation themes for this course.

<user_content>
Course: "{job.topic}"
Industry: {job.sector}
</user_content>

Each theme needs a short evocative name, a one-sentence description, and hex colors for
backgroundColor, textColor, primaryColor, secondaryColor, and mutedTextColor, plus a real Google Font
name in fontSuggestion and a layoutStyle (minimal, bold, organic, structured, editorial, or geometric).

CRITICAL CONSTRAINTS:
- Make the 6 themes clearly different: mix at least 2 dark-background and 2 light-background themes
- textColor must have WCAG AA contrast against backgroundColor
- All colors must be valid 6-digit hex codes starting with #
- Do not reuse the same font or layoutStyle more than twice"""


async def handle_theme_options(job: SlideJob) -> dict:
    result = await job.generate(ThemeOptions, with_prompt([], build_theme_options_prompt(job)))
    parsed = parse_or_none(result.text, ThemeOptions, "generateThemeOptions")
    if parsed is None or len(parsed.themes) < MIN_THEMES:
        themes = FALLBACK_THEME_OPTIONS
    else:
        themes = parsed.themes[:6]
    return respond({"themes": [t.dump() for t in themes]}, result.usage)


def build_font_prompt(job: SlideJob) -> str:
    character = sanitize_user_input(job.req.theme_character or "") or "clean and professional"
    return f"""Suggest 5 heading fonts for a presentation.

<user_content>
Course: "{job.topic}"
Industry: {job.sector}
Theme character: {character}
</user_content>

Return 5 real Google Font family names in fonts, best match first. Mix at least one serif
and one geometric sans. Names only, exactly as listed on Google Fonts."""


async def handle_font_options(job: SlideJob) -> dict:
    result = await job.generate(FontOptions, with_prompt([], build_font_prompt(job)))
    parsed = parse_or_none(result.text, FontOptions, "generateFontOptions")
    fonts = [f.strip() for f in parsed.fonts if f and f.strip()] if parsed else []
    if len(fonts) < MIN_FONTS:
        fonts = list(FALLBACK_FONTS)
    return respond({"fonts": fonts[:5]}, result.usage)
