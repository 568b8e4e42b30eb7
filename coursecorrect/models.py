from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Severity = Literal["low", "medium", "high"]
FindingCategory = Literal["outdated", "missing", "compliance", "structural"]
UpdateMode = Literal["regulatory", "visual", "full"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class FileRef(CamelModel):
    name: str = ""
    type: str = ""
    data: Optional[str] = None
    storage_path: Optional[str] = None


class Finding(CamelModel):
    id: str
    category: FindingCategory
    title: str
    description: str
    severity: Severity
    source_snippet: Optional[str] = None
    current_info: Optional[str] = None


class StudyGuideSection(CamelModel):
    title: str
    summary: str
    key_points: List[str] = Field(default_factory=list)
    takeaway: str


class SlideSummary(CamelModel):
    title: str = ""
    bullets: List[str] = Field(default_factory=list)
    key_fact: Optional[str] = None


# Requests. Required fields are checked in the handlers so a missing value is a 400.

class AnalysisConfig(CamelModel):
    goal: Optional[str] = None
    target_audience: Optional[str] = None
    standards_context: Optional[str] = None
    location: Optional[str] = None


class AnalyzeCourseRequest(CamelModel):
    text: Optional[str] = None
    files: List[FileRef] = Field(default_factory=list)
    config: Optional[AnalysisConfig] = None


class JurisdictionRequest(CamelModel):
    location: Optional[str] = None
    regulation_type: Optional[str] = None


class RegulatoryUpdateRequest(CamelModel):
    content: Optional[str] = None
    domain_context: Optional[str] = None
    location: Optional[str] = None


class VisualTransformRequest(CamelModel):
    content: Optional[str] = None
    theme: Optional[str] = None


class GenerateAssetRequest(CamelModel):
    prompt: Optional[str] = None
    base_image: Optional[str] = None
    project_id: Optional[str] = None
    transformation_id: Optional[str] = None


class CloudMetricsRequest(CamelModel):
    days_back: Any = None


class DesignPreferences(CamelModel):
    audience: Optional[str] = None
    feeling: Optional[str] = None
    emphasis: Optional[str] = None


class ThemeQuestionnaire(CamelModel):
    brand_personality: Optional[str] = None
    audience: Optional[str] = None
    desired_feeling: Optional[str] = None
    primary_color: Optional[str] = None


class ThemePreferences(CamelModel):
    name: str = ""
    description: str = ""


class DemoSlidesRequest(CamelModel):
    topic: Optional[str] = None
    action: Optional[str] = None
    location: Optional[str] = None
    style: Optional[str] = None
    sector: Optional[str] = None
    update_mode: Optional[UpdateMode] = None
    enhanced: bool = False
    infer_sector: bool = False
    file_data: Optional[FileRef] = None
    files: List[FileRef] = Field(default_factory=list)
    approved_findings: Optional[List[Finding]] = None
    user_context: Optional[str] = None
    design_preferences: Optional[DesignPreferences] = None
    theme_questionnaire: Optional[ThemeQuestionnaire] = None
    theme_character: Optional[str] = None
    theme_preferences: Optional[ThemePreferences] = None
    study_guide_sections: List[StudyGuideSection] = Field(default_factory=list)
    slides: List[SlideSummary] = Field(default_factory=list)

    def all_files(self) -> List[FileRef]:
        """Legacy single ``fileData`` plus the ``files`` list."""
        files = list(self.files)
        if self.file_data is not None:
            files.insert(0, self.file_data)
        return files
