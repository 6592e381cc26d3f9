"""
Linkable-article ranking.

Scores a project's recent articles against the article being written:

    +100  candidate keyword is the cluster's pillar keyword
     +50  otherwise, candidate keyword belongs to the cluster
      +2  per current-keyword token found in the candidate keyword
      +1  per current-keyword token found in the candidate title

Sorting is stable, so equal scores keep the newest-first fetch order.
"""
from typing import Iterable, List, Optional, Set
import structlog

from .db_ops import (
    CANDIDATE_BATCH_SIZE,
    fetch_cluster_keywords,
    fetch_pillar_keyword,
    fetch_project_articles,
)
from .schemas import FindLinkableArticlesInput, FindLinkableArticlesOutput, LinkableArticle

logger = structlog.get_logger()

PILLAR_BONUS = 100
CLUSTER_BONUS = 50
KEYWORD_TOKEN_WEIGHT = 2
TITLE_TOKEN_WEIGHT = 1


def _tokens(text: str) -> List[str]:
    return (text or "").lower().split()


def score_linkable_article(
    article: LinkableArticle,
    current_tokens: List[str],
    cluster_keywords: Optional[Set[str]] = None,
    pillar_keyword: Optional[str] = None,
) -> int:
    focus_keyword = (article.focus_keyword or "").strip().lower()
    score = 0

    if pillar_keyword and focus_keyword == pillar_keyword:
        score += PILLAR_BONUS
    elif cluster_keywords and focus_keyword in cluster_keywords:
        score += CLUSTER_BONUS

    keyword_tokens = _tokens(focus_keyword)
    title_tokens = _tokens(article.title)
    score += KEYWORD_TOKEN_WEIGHT * sum(1 for t in current_tokens if t in keyword_tokens)
    score += TITLE_TOKEN_WEIGHT * sum(1 for t in current_tokens if t in title_tokens)
    return score


def rank_linkable_articles(
    articles: Iterable[LinkableArticle],
    current_keyword: str,
    cluster_keywords: Optional[Set[str]] = None,
    pillar_keyword: Optional[str] = None,
    limit: int = 10,
) -> List[LinkableArticle]:
    """Score, stable-sort descending and keep the top `limit`. Inputs are not mutated."""
    current_tokens = _tokens(current_keyword)
    cluster_keywords = {k.lower() for k in cluster_keywords or set() if k}
    pillar_keyword = pillar_keyword.lower() if pillar_keyword else None

    scored = [
        article.model_copy(update={
            "relevance_score": score_linkable_article(article, current_tokens, cluster_keywords, pillar_keyword),
        })
        for article in articles
    ]
    scored.sort(key=lambda a: a.relevance_score, reverse=True)
    return scored[:limit]


async def find_linkable_articles(
    ctx,
    params: FindLinkableArticlesInput,
) -> FindLinkableArticlesOutput:
    """Rank the project's recent articles as internal link targets."""
    ctx.report_input({
        "project_id": params.project_id,
        "current_keyword": params.current_keyword,
        "cluster_id": params.cluster_id,
        "limit": params.limit,
    })

    cluster_keywords: Set[str] = set()
    pillar_keyword = None
    if params.cluster_id:
        cluster_keywords = await fetch_cluster_keywords(params.cluster_id)
        pillar_keyword = await fetch_pillar_keyword(params.cluster_id)
        if pillar_keyword:
            cluster_keywords.add(pillar_keyword)

    candidates = await fetch_project_articles(params.project_id, limit=CANDIDATE_BATCH_SIZE)
    if params.exclude_article_id:
        candidates = [a for a in candidates if a.id != str(params.exclude_article_id)]

    ranked = rank_linkable_articles(
        candidates,
        params.current_keyword,
        cluster_keywords=cluster_keywords,
        pillar_keyword=pillar_keyword,
        limit=params.limit,
    )

    logger.info(
        "linkable_articles_ranked",
        project_id=params.project_id,
        candidates=len(candidates),
        returned=len(ranked),
        has_pillar=bool(pillar_keyword),
    )

    ctx.report_output({
        "articles": [
            {"slug": a.slug, "focus_keyword": a.focus_keyword, "relevance_score": a.relevance_score}
            for a in ranked
        ],
        "count": len(ranked),
        "status": "success",
    })

    return FindLinkableArticlesOutput(articles=ranked, count=len(ranked), status="success")
