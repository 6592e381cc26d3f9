"""
Per-job processing unit: enrichment, then internal linking.

Linking runs strictly after enrichment so link snippets are matched
against the final markdown. Neither stage can fail the job; each reports
its own status.
"""
import structlog

from .enricher import enrich_content
from .linking import insert_internal_links
from .schemas import (
    EnrichContentInput,
    InsertInternalLinksInput,
    ProcessArticleInput, ProcessArticleOutput,
)

logger = structlog.get_logger()


async def process_article(
    ctx,
    params: ProcessArticleInput,
) -> ProcessArticleOutput:
    """Run the enrichment and linking stages over a generated article."""
    ctx.report_input({
        "keyword": params.keyword,
        "project_id": params.project_id,
        "include_images": params.include_images,
        "include_videos": params.include_videos,
        "include_internal_links": params.include_internal_links,
        "link_density": params.link_density,
    })

    enriched = await enrich_content(ctx, EnrichContentInput(
        markdown=params.markdown,
        keyword=params.keyword,
        include_images=params.include_images,
        include_videos=params.include_videos,
        media_config=params.media_config,
        llm_config=params.llm_config,
    ))
    markdown = enriched.markdown

    links_applied = 0
    linking_status = "skipped"
    if params.include_internal_links and params.project_id:
        linked = await insert_internal_links(ctx, InsertInternalLinksInput(
            markdown=markdown,
            project_id=params.project_id,
            keyword=params.keyword,
            excerpt=params.excerpt,
            cluster_id=params.cluster_id,
            density=params.link_density,
            exclude_article_id=params.article_id,
            seed=params.seed,
            llm_config=params.llm_config,
        ))
        markdown = linked.markdown
        links_applied = linked.applied_count
        linking_status = linked.status
    elif params.include_internal_links:
        ctx.warning("Internal linking requested without project_id - skipping")

    logger.info(
        "article_processed",
        enrichment_status=enriched.status,
        linking_status=linking_status,
        media_count=enriched.media_count,
        links_applied=links_applied,
    )

    ctx.report_output({
        "enrichment_status": enriched.status,
        "linking_status": linking_status,
        "media_count": enriched.media_count,
        "links_applied": links_applied,
        "markdown_length": len(markdown),
        "status": "success",
    })

    return ProcessArticleOutput(
        markdown=markdown,
        media_count=enriched.media_count,
        links_applied=links_applied,
        enrichment_status=enriched.status,
        linking_status=linking_status,
        status="success",
    )
