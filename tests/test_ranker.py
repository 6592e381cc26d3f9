import pytest

import pipeline.ranker as ranker
from pipeline.ranker import find_linkable_articles, rank_linkable_articles, score_linkable_article
from pipeline.schemas import FindLinkableArticlesInput, LinkableArticle


def article(id, title, keyword):
    return LinkableArticle(id=id, title=title, slug=id, focus_keyword=keyword)


@pytest.fixture
def articles():
    # Newest first, the order the database returns them in
    return [
        article("a1", "Puppy Food Guide", "puppy food"),
        article("a2", "Dog Nutrition Basics", "Dog Nutrition"),
        article("a3", "Healthy Treats", "dog treats"),
        article("a4", "Cat Litter Reviews", "cat litter"),
        article("a5", "Aquarium Setup", "fish tanks"),
    ]


def test_token_overlap_scoring():
    a = article("a1", "Puppy Food Guide", "puppy food")

    # 2 keyword token hits * 2 + 2 title token hits * 1
    assert score_linkable_article(a, ["best", "puppy", "food"]) == 6


def test_rank_applies_pillar_and_cluster_bonuses(articles):
    ranked = rank_linkable_articles(
        articles,
        "best puppy food",
        cluster_keywords={"dog treats", "dog nutrition"},
        pillar_keyword="Dog Nutrition",
    )

    assert [a.id for a in ranked] == ["a2", "a3", "a1", "a4", "a5"]
    assert [a.relevance_score for a in ranked] == [100, 50, 6, 0, 0]


def test_rank_is_stable_and_limited(articles):
    ranked = rank_linkable_articles(articles, "unrelated query", limit=3)

    assert [a.id for a in ranked] == ["a1", "a2", "a3"]


def test_rank_does_not_mutate_inputs(articles):
    rank_linkable_articles(articles, "puppy food", pillar_keyword="puppy food")

    assert all(a.relevance_score == 0 for a in articles)


def test_empty_candidates():
    assert rank_linkable_articles([], "puppy food") == []


async def test_find_linkable_articles_node(ctx, monkeypatch, articles):
    async def fake_fetch_project_articles(project_id, limit=100):
        assert project_id == "proj-1"
        return list(articles)

    async def fake_fetch_cluster_keywords(cluster_id):
        return {"dog treats"}

    async def fake_fetch_pillar_keyword(cluster_id):
        return "dog nutrition"

    monkeypatch.setattr(ranker, "fetch_project_articles", fake_fetch_project_articles)
    monkeypatch.setattr(ranker, "fetch_cluster_keywords", fake_fetch_cluster_keywords)
    monkeypatch.setattr(ranker, "fetch_pillar_keyword", fake_fetch_pillar_keyword)

    result = await find_linkable_articles(ctx, FindLinkableArticlesInput(
        project_id="proj-1",
        current_keyword="best puppy food",
        cluster_id="cluster-1",
        limit=2,
        exclude_article_id="a2",
    ))

    assert result.status == "success"
    assert result.count == 2
    assert [a.id for a in result.articles] == ["a3", "a1"]


async def test_find_linkable_articles_without_cluster(ctx, monkeypatch, articles):
    async def fake_fetch_project_articles(project_id, limit=100):
        return list(articles)

    async def unexpected(cluster_id):
        raise AssertionError("cluster lookups need a cluster_id")

    monkeypatch.setattr(ranker, "fetch_project_articles", fake_fetch_project_articles)
    monkeypatch.setattr(ranker, "fetch_cluster_keywords", unexpected)
    monkeypatch.setattr(ranker, "fetch_pillar_keyword", unexpected)

    result = await find_linkable_articles(ctx, FindLinkableArticlesInput(
        project_id="proj-1",
        current_keyword="dog treats",
    ))

    assert result.articles[0].id == "a3"
    assert result.count == 5
