"""
Internal link plan generation.

Asks the LLM for insertion points: an exact snippet copied from the
article plus the same snippet rewritten with one markdown link. The plan
is only a proposal; `link_applier` decides what actually gets applied.
"""
import json
import random
from typing import List, Optional
import structlog
from pydantic import BaseModel, Field

from .llm import call_llm_validated, _get_llm_config
from .prompts import INTERNAL_LINKS_PROMPT
from .schemas import (
    GenerateLinkPlanInput, GenerateLinkPlanOutput,
    LinkableArticle, LinkPlanEntry,
)

logger = structlog.get_logger()

# Inclusive (min, max) links per article for each density tier
DENSITY_RANGES = {
    "low": (2, 3),
    "medium": (3, 5),
    "high": (5, 7),
}
DEFAULT_DENSITY = "medium"


class LLMLinkPlanResponse(BaseModel):
    """Expected response format for link plan generation."""
    links: List[LinkPlanEntry] = Field(default_factory=list)


def pick_target_link_count(density: str, rng: Optional[random.Random] = None) -> int:
    """Uniform pick within the density's range. Unknown densities use medium."""
    low, high = DENSITY_RANGES.get(density, DENSITY_RANGES[DEFAULT_DENSITY])
    rng = rng or random.Random()
    return rng.randint(low, high)


def _describe_candidates(candidates: List[LinkableArticle]) -> str:
    return "\n".join(
        f'{i}. Title: "{a.title}", Keyword: "{a.focus_keyword}", Slug: "{a.slug}"'
        for i, a in enumerate(candidates, 1)
    )


async def generate_link_plan(
    ctx,
    params: GenerateLinkPlanInput,
) -> GenerateLinkPlanOutput:
    """
    Propose internal link insertions for the article.

    Never raises. With no candidates the plan is skipped; on any LLM or
    parse failure it comes back empty with status "error".
    """
    if not params.candidates or not params.markdown:
        return GenerateLinkPlanOutput(status="skipped")

    rng = random.Random(params.seed) if params.seed is not None else random.Random()
    target_link_count = pick_target_link_count(params.density, rng)
    config = _get_llm_config(ctx, params.llm_config)

    ctx.report_input({
        "markdown_length": len(params.markdown),
        "candidates_count": len(params.candidates),
        "density": params.density,
        "target_link_count": target_link_count,
        "provider": config["provider"],
        "model": config["model"],
    })

    response_schema = f"Respond with JSON matching this schema:\n```json\n{json.dumps(LLMLinkPlanResponse.model_json_schema(), indent=2)}\n```"

    prompt = INTERNAL_LINKS_PROMPT.format(
        target_link_count=target_link_count,
        candidates=_describe_candidates(params.candidates),
        article=params.markdown,
        response_schema=response_schema,
    )

    try:
        validated = await call_llm_validated(
            prompt=prompt,
            config=config,
            response_model=LLMLinkPlanResponse,
            max_tokens=2000,
        )
    except Exception as e:
        logger.warning("link_plan_generation_failed", error=str(e)[:300])
        ctx.report_output({
            "status": "error",
            "error": str(e),
        })
        return GenerateLinkPlanOutput(target_link_count=target_link_count, status="error")

    entries = validated.links
    logger.info(
        "link_plan_generated",
        proposed=len(entries),
        target_link_count=target_link_count,
    )

    ctx.report_output({
        "entries": [e.model_dump() for e in entries],
        "target_link_count": target_link_count,
        "status": "success",
    })

    return GenerateLinkPlanOutput(
        entries=entries,
        target_link_count=target_link_count,
        status="success",
    )
