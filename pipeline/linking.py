"""
Internal linking: rank candidates, ask for a plan, apply what validates.

Linking is best-effort. Any failure leaves the markdown exactly as it
came in.
"""
import structlog

from .link_applier import apply_link_plan
from .link_plan import generate_link_plan
from .ranker import find_linkable_articles
from .schemas import (
    FindLinkableArticlesInput,
    GenerateLinkPlanInput,
    InsertInternalLinksInput, InsertInternalLinksOutput,
)

logger = structlog.get_logger()


async def insert_internal_links(
    ctx,
    params: InsertInternalLinksInput,
) -> InsertInternalLinksOutput:
    """Add internal links to previously published articles of the same project."""
    markdown = params.markdown

    ctx.report_input({
        "project_id": params.project_id,
        "keyword": params.keyword,
        "cluster_id": params.cluster_id,
        "density": params.density,
        "markdown_length": len(markdown),
    })

    try:
        ranked = await find_linkable_articles(ctx, FindLinkableArticlesInput(
            project_id=params.project_id,
            current_keyword=params.keyword,
            current_excerpt=params.excerpt,
            cluster_id=params.cluster_id,
            limit=params.candidates_limit,
            exclude_article_id=params.exclude_article_id,
        ))

        if not ranked.articles:
            logger.info("internal_linking_no_candidates", project_id=params.project_id)
            ctx.report_output({"status": "skipped", "reason": "no candidates"})
            return InsertInternalLinksOutput(markdown=markdown, status="skipped")

        plan = await generate_link_plan(ctx, GenerateLinkPlanInput(
            markdown=markdown,
            candidates=ranked.articles,
            density=params.density,
            seed=params.seed,
            llm_config=params.llm_config,
        ))

        if not plan.entries:
            ctx.report_output({"status": plan.status, "reason": "empty plan"})
            return InsertInternalLinksOutput(
                markdown=markdown,
                candidates_count=ranked.count,
                status="skipped" if plan.status == "success" else plan.status,
            )

        result = apply_link_plan(markdown, plan.entries)

    except Exception as e:
        logger.error("internal_linking_failed", error=str(e))
        ctx.report_output({"status": "error", "error": str(e)})
        return InsertInternalLinksOutput(markdown=markdown, status="error")

    logger.info(
        "internal_linking_complete",
        candidates=ranked.count,
        proposed=len(plan.entries),
        applied=len(result.applied),
    )

    ctx.report_output({
        "applied_slugs": result.applied_slugs,
        "rejected": [{"slug": r.entry.target_article_slug, "reason": r.reason} for r in result.rejected],
        "status": result.status,
    })

    return InsertInternalLinksOutput(
        markdown=result.markdown,
        candidates_count=ranked.count,
        proposed_count=len(plan.entries),
        applied_count=len(result.applied),
        applied_slugs=result.applied_slugs,
        status=result.status,
    )
