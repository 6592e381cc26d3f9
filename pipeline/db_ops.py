"""
Read-only database queries used by the internal-link ranker.

The pipeline never writes these tables; articles and clusters are
maintained by the dashboard and the publishing step.
"""
from typing import List, Optional, Set
from uuid import UUID
import structlog

from sqlalchemy import select

from shared.database import get_db_session
from shared.models import Article, TopicCluster
from .schemas import LinkableArticle

logger = structlog.get_logger()

# Candidates fetched per ranking run; ranking happens in memory
CANDIDATE_BATCH_SIZE = 100


def _as_uuid(value: str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


async def fetch_project_articles(
    project_id: str,
    limit: int = CANDIDATE_BATCH_SIZE,
) -> List[LinkableArticle]:
    """Most recently published articles of a project, newest first."""
    async with get_db_session() as db:
        result = await db.execute(
            select(Article)
            .where(Article.project_id == _as_uuid(project_id))
            .where(Article.published_at.isnot(None))
            .order_by(Article.published_at.desc())
            .limit(limit)
        )
        rows = result.scalars().all()

        articles = [
            LinkableArticle(
                id=str(row.id),
                title=row.title,
                slug=row.slug,
                excerpt=row.excerpt,
                focus_keyword=row.focus_keyword,
                published_at=row.published_at,
            )
            for row in rows
        ]

    logger.info("project_articles_fetched", project_id=str(project_id), count=len(articles))
    return articles


async def fetch_cluster_keywords(cluster_id: str) -> Set[str]:
    """Lowercased focus keywords of every article in a cluster."""
    async with get_db_session() as db:
        result = await db.execute(
            select(Article.focus_keyword)
            .where(Article.cluster_id == _as_uuid(cluster_id))
        )
        keywords = {
            kw.strip().lower()
            for kw in result.scalars().all()
            if kw and kw.strip()
        }

    logger.info("cluster_keywords_fetched", cluster_id=str(cluster_id), count=len(keywords))
    return keywords


async def fetch_pillar_keyword(cluster_id: str) -> Optional[str]:
    """Lowercased focus keyword of the cluster's pillar article, if it has one."""
    async with get_db_session() as db:
        result = await db.execute(
            select(Article.focus_keyword)
            .join(TopicCluster, TopicCluster.pillar_article_id == Article.id)
            .where(TopicCluster.id == _as_uuid(cluster_id))
        )
        keyword = result.scalar_one_or_none()

    if not keyword or not keyword.strip():
        return None
    return keyword.strip().lower()
