"""
Media slot planning.

Articles are split into sections at every level-2 heading (`## `). Index 0
is the intro (text before the first heading, possibly empty), index 1 is
the first heading section. Neither gets media, and neither do
conclusion-like sections.

Of the eligible sections, the last one gets the video and the first two
remaining get images.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional
import structlog

from .schemas import PlanMediaSlotsInput, PlanMediaSlotsOutput, MediaSlot

logger = structlog.get_logger()

# Zero-width split point before every line that starts a level-2 heading
_SECTION_SPLIT_RE = re.compile(r"(?m)^(?=## )")
_HEADING_LINE_RE = re.compile(r"^## (.*?)(?:\n|$)")

EXCLUDED_HEADING_PATTERNS = ("conclusion", "summary", "wrap up", "final thoughts")

MAX_IMAGE_SLOTS = 2
# Intro and first heading section never get media
FIRST_ELIGIBLE_INDEX = 2


@dataclass
class Section:
    """A contiguous span of the article starting at a `## ` heading (or the intro)."""
    index: int
    text: str
    heading: Optional[str] = None

    @property
    def heading_line(self) -> str:
        """The heading line as it appears in the text, trailing newline included."""
        match = _HEADING_LINE_RE.match(self.text)
        return match.group(0) if match else ""


def split_sections(markdown: str) -> List[Section]:
    """
    Split markdown into sections. Joining the section texts gives back the
    input exactly.
    """
    parts = _SECTION_SPLIT_RE.split(markdown)
    if not parts or parts[0].startswith("## "):
        # Keep the intro slot at index 0 even when the article opens with a heading
        parts = [""] + parts

    sections = []
    for index, text in enumerate(parts):
        heading = None
        if index > 0:
            match = _HEADING_LINE_RE.match(text)
            heading = match.group(1).strip() if match else None
        sections.append(Section(index=index, text=text, heading=heading))
    return sections


def join_sections(sections: List[Section]) -> str:
    return "".join(s.text for s in sections)


def is_excluded_heading(heading: str) -> bool:
    heading_lower = heading.lower()
    return any(pattern in heading_lower for pattern in EXCLUDED_HEADING_PATTERNS)


def eligible_slot_indices(sections: List[Section]) -> List[int]:
    """Indices of sections that may receive media, in document order."""
    return [
        s.index
        for s in sections
        if s.index >= FIRST_ELIGIBLE_INDEX and s.heading is not None and not is_excluded_heading(s.heading)
    ]


def assign_media_slots(
    sections: List[Section],
    include_images: bool,
    include_videos: bool,
) -> Dict[int, str]:
    """
    Map section index -> "image" | "video".

    The video takes the last eligible slot before images are handed out,
    so on a small eligible set the video can land anywhere relative to the
    images. That ordering is kept as-is.
    """
    remaining = eligible_slot_indices(sections)
    assignments: Dict[int, str] = {}

    if include_videos and remaining:
        assignments[remaining.pop()] = "video"

    if include_images:
        for index in remaining[:MAX_IMAGE_SLOTS]:
            assignments[index] = "image"

    return assignments


async def plan_media_slots(
    ctx,
    params: PlanMediaSlotsInput,
) -> PlanMediaSlotsOutput:
    """Pick which sections of the article receive an image or a video."""
    sections = split_sections(params.markdown)

    ctx.report_input({
        "markdown_length": len(params.markdown),
        "section_count": len(sections),
        "include_images": params.include_images,
        "include_videos": params.include_videos,
    })

    assignments = assign_media_slots(sections, params.include_images, params.include_videos)
    slots = [
        MediaSlot(index=index, heading=sections[index].heading, kind=kind)
        for index, kind in sorted(assignments.items())
    ]

    if not slots:
        logger.info("no_media_slots", section_count=len(sections))

    ctx.report_output({
        "slots": [s.model_dump() for s in slots],
        "section_count": len(sections),
        "status": "success",
    })

    return PlanMediaSlotsOutput(
        slots=slots,
        section_count=len(sections),
        status="success",
    )
