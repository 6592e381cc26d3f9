#!/usr/bin/env python3
"""
Run the enrichment + internal linking stages over a markdown file.

Credentials are read from the environment (GOOGLE_API_KEY, UNSPLASH_ACCESS_KEY,
YOUTUBE_API_KEY, ...). Internal linking needs --project-id and a reachable
AUTOTENT_DATABASE_URL.

Usage:
    python scripts/enrich_article.py article.md --keyword "best puppy food"
    python scripts/enrich_article.py article.md --keyword "..." --videos --project-id <uuid> -o out.md
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from pipeline.job import process_article
from pipeline.schemas import ProcessArticleInput
from shared.context import NodeContext


def configure_logging(verbose: bool) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


async def run(args) -> int:
    markdown = Path(args.input).read_text(encoding="utf-8")

    ctx = NodeContext(job_id=args.job_id)
    result = await process_article(ctx, ProcessArticleInput(
        markdown=markdown,
        keyword=args.keyword,
        excerpt=args.excerpt,
        project_id=args.project_id,
        article_id=args.article_id,
        cluster_id=args.cluster_id,
        include_images=not args.no_images,
        include_videos=args.videos,
        include_internal_links=bool(args.project_id),
        link_density=args.density,
        seed=args.seed,
    ))

    if args.output:
        Path(args.output).write_text(result.markdown, encoding="utf-8")
        print(f"Enriched article saved to {args.output}", file=sys.stderr)
    else:
        print(result.markdown)

    summary = result.model_dump(exclude={"markdown"})
    print(json.dumps(summary, indent=2), file=sys.stderr)
    for warning in ctx.warnings:
        print(f"⚠ {warning}", file=sys.stderr)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Enrich a markdown article with media and internal links")
    parser.add_argument("input", help="Path to the markdown article")
    parser.add_argument("--keyword", required=True, help="Focus keyword of the article")
    parser.add_argument("--excerpt", default="", help="Article excerpt")
    parser.add_argument("--project-id", default=None, help="Project to pick internal link targets from")
    parser.add_argument("--article-id", default=None, help="Id of this article (excluded from link targets)")
    parser.add_argument("--cluster-id", default=None, help="Topic cluster of this article")
    parser.add_argument("--density", default="medium", choices=["low", "medium", "high"], help="Internal link density")
    parser.add_argument("--no-images", action="store_true", help="Skip inline images")
    parser.add_argument("--videos", action="store_true", help="Embed one YouTube video")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the link count pick")
    parser.add_argument("--job-id", default=None, help="Job id bound to every log line")
    parser.add_argument("-o", "--output", default=None, help="Write the result here instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    configure_logging(args.verbose)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
