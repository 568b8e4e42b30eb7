from .common import SlideJob, parse_or_none, respond, with_prompt
from ..results import SectorInference


INDUSTRIES = [
    "Healthcare, Pharmaceuticals",
    "Construction, Manufacturing, Mining & Resources",
    "Food Service, Hospitality & Tourism",
    "Transportation & Logistics, Aviation",
    "Finance & Banking, Insurance, Accounting & Audit",
    "Energy & Utilities, Environmental & Sustainability",
    "Legal & Compliance, Government & Public Sector",
    "Information Technology, Cloud Computing, Cybersecurity, Software Engineering, Data Science & AI",
    "Telecommunications, Media & Communications",
    "Education & Training, Human Resources, Project Management",
    "Real Estate, Retail & E-Commerce",
    "Agriculture, Nonprofit & NGO",
]

FALLBACK_SECTOR = {
    "sector": "General",
    "confidence": "low",
    "reasoning": "Could not parse analysis result.",
    "isAmbiguous": True,
    "alternatives": ["Healthcare", "Construction", "Manufacturing", "Information Technology"],
    "detectedTopics": [],
}


def build_sector_prompt(topic: str) -> str:
    industries = "\n".join(f"- {i}" for i in INDUSTRIES)
    subject = f'Topic: "{topic}"' if topic else "No topic provided - infer from files only."
    return f"""Determine the primary industry for this training/certification material.

{subject}

Pick the single best-matching industry:
{industries}

Return the industry name exactly as listed above.

CRITICAL RULES:
- Identify the PRIMARY industry of the course itself, not industries mentioned as examples within the course.
- A cloud computing certification that uses plumbing as an analogy is Cloud Computing, not Construction.
- Set isAmbiguous to false unless the course genuinely spans two equal industries.
- Include 3-5 specific subjects in detectedTopics (e.g., "AWS Solutions Architect", "EC2 Instance Types"), not generic category names."""


async def handle_infer_sector(job: SlideJob) -> dict:
    files = await job.files()
    result = await job.generate(SectorInference, with_prompt(files, build_sector_prompt(job.topic)))
    inference = parse_or_none(result.text, SectorInference, "inferSector")
    if inference is None:
        return respond(dict(FALLBACK_SECTOR), result.usage)
    return respond(inference.dump(), result.usage)
