"""
Content enrichment: inject stock images and a video into article markdown.

Flow:
1. Plan slots (which sections get an image / the video)
2. Generate search terms, one batched LLM call per media kind, both kinds concurrently
3. Fetch media for every slot concurrently
4. Reassemble: media markup goes right after the heading line of its section

Enrichment never fails a job. Missing terms fall back to the heading
text (the keyword for a blank heading). Missing media leave the section
untouched, and an unexpected error returns the original markdown.
"""
import asyncio
from typing import Dict, List, Optional, Tuple
import structlog

from .media_fetcher import (
    _get_media_config,
    build_image_clients,
    build_video_client,
    find_best_image,
    find_video,
    render_image_markup,
    render_video_markup,
)
from .media_terms import generate_media_terms
from .schemas import (
    EnrichContentInput, EnrichContentOutput,
    GenerateMediaTermsInput, MediaSlot,
)
from .sections import Section, assign_media_slots, split_sections

logger = structlog.get_logger()


def assemble_enriched_markdown(
    sections: List[Section],
    media_by_index: Dict[int, str],
) -> str:
    """
    Rebuild the article with media markup inserted after the heading line of
    each section that got media. Section count and order never change.
    """
    parts = []
    for section in sections:
        markup = media_by_index.get(section.index)
        if not markup:
            parts.append(section.text)
            continue
        heading_line = section.heading_line
        parts.append(heading_line + markup + section.text[len(heading_line):])
    return "".join(parts)


async def enrich_content(
    ctx,
    params: EnrichContentInput,
) -> EnrichContentOutput:
    """Inject images and a video into the article's eligible sections."""
    markdown = params.markdown

    ctx.report_input({
        "markdown_length": len(markdown),
        "keyword": params.keyword,
        "include_images": params.include_images,
        "include_videos": params.include_videos,
    })

    if not params.include_images and not params.include_videos:
        ctx.report_output({"status": "skipped", "reason": "media disabled"})
        return EnrichContentOutput(markdown=markdown, status="skipped")

    sections = split_sections(markdown)
    assignments = assign_media_slots(sections, params.include_images, params.include_videos)
    slots = [
        MediaSlot(index=index, heading=sections[index].heading, kind=kind)
        for index, kind in sorted(assignments.items())
    ]

    if not slots:
        logger.info("enrichment_no_slots", section_count=len(sections))
        ctx.report_output({"status": "skipped", "reason": "no eligible sections"})
        return EnrichContentOutput(markdown=markdown, status="skipped")

    try:
        media_by_index = await _fetch_slot_media(ctx, params, slots)
        enriched = assemble_enriched_markdown(sections, media_by_index)
    except Exception as e:
        logger.error("enrichment_failed", error=str(e))
        ctx.report_output({"status": "error", "error": str(e)})
        return EnrichContentOutput(markdown=markdown, slots=slots, status="error")

    logger.info(
        "enrichment_complete",
        slots=len(slots),
        media_count=len(media_by_index),
    )

    ctx.report_output({
        "slots": [s.model_dump() for s in slots],
        "media_sections": sorted(media_by_index),
        "media_count": len(media_by_index),
        "markdown_length": len(enriched),
        "status": "success",
    })

    return EnrichContentOutput(
        markdown=enriched,
        slots=slots,
        media_count=len(media_by_index),
        status="success",
    )


async def _fetch_slot_media(ctx, params: EnrichContentInput, slots: List[MediaSlot]) -> Dict[int, str]:
    """
    Generate terms and fetch media for all slots. Returns section index -> markup.

    Terms are keyed by heading, so a repeated heading shares its search term,
    but every slot gets its own media.
    """
    image_headings = list(dict.fromkeys(s.heading for s in slots if s.kind == "image"))
    video_headings = list(dict.fromkeys(s.heading for s in slots if s.kind == "video"))

    image_terms, video_terms = await asyncio.gather(
        generate_media_terms(ctx, GenerateMediaTermsInput(
            headings=image_headings,
            keyword=params.keyword,
            kind="image",
            llm_config=params.llm_config,
        )),
        generate_media_terms(ctx, GenerateMediaTermsInput(
            headings=video_headings,
            keyword=params.keyword,
            kind="video",
            llm_config=params.llm_config,
        )),
    )

    config = _get_media_config(ctx, params.media_config)
    image_clients = build_image_clients(config)
    video_client = build_video_client(config)

    async def fetch_image(slot: MediaSlot) -> Tuple[int, Optional[str]]:
        term = image_terms.terms.get(slot.heading) or slot.heading or params.keyword
        image = await find_best_image(term, image_clients, verify=config.verify_images)
        return slot.index, render_image_markup(term, image.url) if image else None

    async def fetch_video(slot: MediaSlot) -> Tuple[int, Optional[str]]:
        term = video_terms.terms.get(slot.heading) or slot.heading or params.keyword
        video = await find_video(term, video_client)
        return slot.index, render_video_markup(video) if video else None

    try:
        results = await asyncio.gather(
            *[fetch_image(s) if s.kind == "image" else fetch_video(s) for s in slots],
        )
    finally:
        for client in image_clients:
            await client.close()
        if video_client:
            await video_client.close()

    return {index: markup for index, markup in results if markup}
