"""
Visual search term generation.

Turns section headings into short, concrete search phrases for stock
image and video search. All headings of one media kind go out in a single
LLM call.
"""
import json
from typing import Dict
import structlog
from pydantic import BaseModel, Field

from .llm import call_llm_validated, _get_llm_config
from .prompts import MEDIA_TERMS_PROMPT
from .schemas import GenerateMediaTermsInput, GenerateMediaTermsOutput

logger = structlog.get_logger()

MEDIA_LABELS = {
    "image": "photo",
    "video": "YouTube video",
}

# Terms longer than this are truncated to their first words
MAX_TERM_WORDS = 5


class LLMMediaTermsResponse(BaseModel):
    """Expected response format for batch search term generation."""
    terms: Dict[str, str] = Field(
        default_factory=dict,
        description="Exact heading -> visual search term (3-5 words)"
    )


def _clean_terms(raw_terms: Dict[str, str], headings) -> Dict[str, str]:
    """Keep only requested headings with non-blank terms."""
    wanted = set(headings)
    terms = {}
    for heading, term in raw_terms.items():
        if heading not in wanted or not isinstance(term, str):
            continue
        words = term.strip().strip('"').split()
        if words:
            terms[heading] = " ".join(words[:MAX_TERM_WORDS])
    return terms


async def generate_media_terms(
    ctx,
    params: GenerateMediaTermsInput,
) -> GenerateMediaTermsOutput:
    """
    Generate one visual search term per heading.

    Never raises: on any failure the mapping comes back empty and callers
    search with the heading text instead.
    """
    headings = [h for h in params.headings if h]

    if not headings:
        return GenerateMediaTermsOutput(status="skipped")

    config = _get_llm_config(ctx, params.llm_config)

    ctx.report_input({
        "headings": headings,
        "keyword": params.keyword,
        "kind": params.kind,
        "provider": config["provider"],
        "model": config["model"],
    })

    response_schema = f"Respond with JSON matching this schema:\n```json\n{json.dumps(LLMMediaTermsResponse.model_json_schema(), indent=2)}\n```"

    prompt = MEDIA_TERMS_PROMPT.format(
        media_label=MEDIA_LABELS[params.kind],
        keyword=params.keyword,
        headings="\n".join(f"- {h}" for h in headings),
        response_schema=response_schema,
    )

    try:
        validated = await call_llm_validated(
            prompt=prompt,
            config=config,
            response_model=LLMMediaTermsResponse,
            max_tokens=1000,
            max_retries=1,
        )
    except Exception as e:
        logger.warning("media_terms_generation_failed", kind=params.kind, error=str(e)[:300])
        ctx.report_output({
            "status": "error",
            "error": str(e),
        })
        return GenerateMediaTermsOutput(status="error")

    terms = _clean_terms(validated.terms, headings)
    missing = [h for h in headings if h not in terms]

    logger.info(
        "media_terms_generated",
        kind=params.kind,
        generated=len(terms),
        missing=len(missing),
    )

    ctx.report_output({
        "terms": terms,
        "missing_headings": missing,
        "status": "success",
    })

    return GenerateMediaTermsOutput(terms=terms, status="success")
