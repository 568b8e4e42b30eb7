from typing import List

from .common import SlideJob, parse_or_none, respond, with_prompt
from .styles import basic_style
from ..results import BasicSlide


def build_system_prompt(style: str, location: str = None) -> str:
    lines = ["Create modernized training slides.", "", f"Design Style: {basic_style(style)}"]
    if location:
        lines.append(f"Geographic Context: {location} (include relevant local regulations/standards)")
    lines += [
        "",
        "For each slide:",
        "1. Create a clear, action-oriented title",
        "2. Write 3-5 concise bullet points",
        "3. Suggest a visual prompt for AI image generation",
        "4. Recommend a color theme that fits the style",
        "",
        "Each bullet must include a specific fact, regulation number, or actionable instruction, "
        "not generic statements.",
    ]
    return "\n".join(lines)


def fallback_slides(topic: str, raw_text: str) -> List[dict]:
    return [
        {
            "title": topic,
            "bullets": [raw_text[:200]],
            "visualPrompt": f"Professional illustration for {topic}",
            "colorTheme": "blue-600",
        }
    ]


async def handle_basic(job: SlideJob) -> dict:
    files = await job.files()
    topic = job.topic
    if files:
        prompt = f"Analyze this document and create modernized training slides based on its content. Topic context: {topic}"
    else:
        prompt = f"Create 5-7 modernized training slides for this topic: {topic}"

    location = job.location if job.req.location else None
    result = await job.generate(
        List[BasicSlide],
        with_prompt(files, prompt),
        system_instruction=build_system_prompt(job.req.style or "modern", location),
    )
    parsed = parse_or_none(result.text, List[BasicSlide], "basic")
    if parsed is None:
        slides = fallback_slides(topic, result.text)
    else:
        slides = [s.dump() for s in parsed]
    return respond({"slides": slides}, result.usage)
