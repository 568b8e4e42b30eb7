"""Typed model outputs. Each one doubles as the ``responseSchema`` for its call."""

from typing import List, Literal, Optional

from pydantic import Field

from .models import CamelModel, Finding, Severity, StudyGuideSection


class AnalysisIssue(CamelModel):
    description: str
    severity: Severity
    location: Optional[str] = None


class CourseAnalysis(CamelModel):
    freshness_score: int = Field(ge=0, le=100)
    engagement_score: int = Field(ge=0, le=100)
    freshness_issues: List[AnalysisIssue] = Field(default_factory=list)
    engagement_issues: List[AnalysisIssue] = Field(default_factory=list)
    summary: str = ""


class RegulatoryUpdate(CamelModel):
    id: str
    original_text: str
    updated_text: str
    citation: str
    reason: str
    source_url: Optional[str] = None


OriginalType = Literal["paragraph", "bullet_list", "table", "heading"]
SuggestedType = Literal[
    "accordion",
    "timeline",
    "flip_card",
    "infographic",
    "tabbed_content",
    "process_diagram",
    "comparison_table",
    "interactive_quiz",
]


class TransformItem(CamelModel):
    label: str = ""
    content: str = ""


class TransformContent(CamelModel):
    title: Optional[str] = None
    items: List[TransformItem] = Field(default_factory=list)


class VisualTransformation(CamelModel):
    section_id: str
    original_type: OriginalType
    suggested_type: SuggestedType
    visual_description: str
    image_prompt: Optional[str] = None
    content: TransformContent


# demo-slides

class BasicSlide(CamelModel):
    title: str
    bullets: List[str] = Field(default_factory=list)
    visual_prompt: str = ""
    color_theme: str = ""


class SlideContent(CamelModel):
    title: str
    subtitle: Optional[str] = None
    bullets: List[str] = Field(default_factory=list)
    citation_ids: List[int] = Field(default_factory=list)
    key_fact: Optional[str] = None
    source_page_number: Optional[int] = None


class PageClassification(CamelModel):
    page_number: int
    page_title: str = ""
    classification: str = Field(
        description="TEXT_HEAVY | DIAGRAM | INFOGRAPHIC | TITLE_PAGE | TABLE_OF_CONTENTS"
    )
    reason: str = ""


class VisualStyle(CamelModel):
    accent_color: str
    layout: str
    icon_suggestion: Optional[str] = None


class EnhancedSlide(CamelModel):
    id: str
    before: SlideContent
    after: SlideContent
    changes_summary: str = ""
    image_prompt: str = ""
    design_reasoning: str = Field(
        "",
        description="Why you chose this page and this layout. What visual transformation are you applying?",
    )
    visual_style: VisualStyle


class Citation(CamelModel):
    id: int
    title: str
    url: str
    snippet: str = ""
    accessed_date: str = ""


class DeckMetadata(CamelModel):
    topic: str = ""
    sector: str = ""
    location: str = ""
    update_mode: str = ""
    search_queries: List[str] = Field(default_factory=list)


class EnhancedDeck(CamelModel):
    page_classifications: List[PageClassification] = Field(
        default_factory=list,
        description="Classify EVERY page of the uploaded PDF before selecting slides. This forces careful reading.",
    )
    slides: List[EnhancedSlide] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    metadata: DeckMetadata = Field(default_factory=DeckMetadata)


class SlideFix(CamelModel):
    slide_id: str
    reason: str = ""
    corrected_after: SlideContent


class SlideReview(CamelModel):
    flagged: List[SlideFix] = Field(
        default_factory=list,
        description="Only slides whose before and after are too similar. Empty when every slide passes.",
    )


class FindingsScan(CamelModel):
    findings: List[Finding] = Field(default_factory=list)
    search_queries: List[str] = Field(default_factory=list)
    course_summary: str = ""
    total_estimated_findings: int = 0


class SectorInference(CamelModel):
    sector: str
    confidence: str
    alternatives: List[str] = Field(default_factory=list)
    reasoning: str = ""
    is_ambiguous: bool = False
    detected_topics: List[str] = Field(default_factory=list)


class GeneratedTheme(CamelModel):
    primary_color: str = Field(description="Main accent color (hex, e.g. #2563eb)")
    secondary_color: str = Field(description="Supporting color (hex)")
    background_color: str = Field(description="Slide background color (hex)")
    text_color: str = Field(description="Primary text color (hex)")
    muted_text_color: str = Field(description="Secondary/muted text color (hex)")
    font_suggestion: str = Field(description="Google Font name for headings (e.g. Poppins, Inter, Playfair Display)")
    layout_style: str = Field(description="One of: geometric, organic, editorial, structured")
    design_reasoning: str = Field(
        description="1-2 sentence explanation of why this palette fits the user's preferences"
    )


class ThemeOption(CamelModel):
    name: str = "Theme"
    description: str = ""
    background_color: str = "#ffffff"
    text_color: str = "#1e293b"
    primary_color: str = "#2563eb"
    secondary_color: str = "#60a5fa"
    muted_text_color: str = "#94a3b8"
    font_suggestion: str = "Inter"
    layout_style: str = "geometric"


class ThemeOptions(CamelModel):
    themes: List[ThemeOption] = Field(default_factory=list)


class FontOptions(CamelModel):
    fonts: List[str] = Field(default_factory=list, description="Real Google Font family names")


class StudyGuide(CamelModel):
    sections: List[StudyGuideSection] = Field(default_factory=list)


class QuizQuestion(CamelModel):
    id: int
    type: Literal["multiple-choice"] = "multiple-choice"
    topic: str = ""
    question: str
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: str
    explanation: str = ""


class Quiz(CamelModel):
    questions: List[QuizQuestion] = Field(default_factory=list)


class VerifiedFinding(CamelModel):
    finding_id: str
    title: str
    status: Literal["verified", "updated", "unverified"]
    original_description: str = ""
    updated_info: Optional[str] = None
    source_url: Optional[str] = None
    source_title: Optional[str] = None
    confidence: str = "medium"
    verification_note: str = ""


class Verification(CamelModel):
    findings: List[VerifiedFinding] = Field(default_factory=list)
    search_queries: List[str] = Field(default_factory=list)


class CourseSummary(CamelModel):
    course_title: str
    learning_objectives: List[str] = Field(default_factory=list)
    key_topics: List[str] = Field(default_factory=list)
    difficulty: str = Field("intermediate", description="beginner | intermediate | advanced")
    estimated_duration: str = "Unknown"
    module_count: int = 0
    summary: str = ""


class GeneratedSlide(CamelModel):
    title: str
    subtitle: Optional[str] = None
    bullets: List[str] = Field(default_factory=list)
    key_fact: Optional[str] = None
    layout_suggestion: str = Field(
        "two-column", description="hero | two-column | stats-highlight | comparison | timeline"
    )
    source_context: Optional[str] = None


class DataVerification(CamelModel):
    total_source_pages: int = 0
    pages_referenced: int = 0
    coverage_percentage: float = Field(0, ge=0, le=100)
    missing_topics: List[str] = Field(default_factory=list)


class SlideDeckContent(CamelModel):
    slides: List[GeneratedSlide] = Field(default_factory=list)
    data_verification: Optional[DataVerification] = None
    disclaimer: Optional[str] = None


class InfographicSelection(CamelModel):
    selected_slide_index: int
    reasoning: str = ""
    image_prompt: str = ""
