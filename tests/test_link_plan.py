import random

import pytest

import pipeline.link_plan as link_plan
from pipeline.link_plan import (
    DENSITY_RANGES,
    LLMLinkPlanResponse,
    generate_link_plan,
    pick_target_link_count,
)
from pipeline.schemas import GenerateLinkPlanInput, LinkableArticle, LinkPlanEntry

CANDIDATES = [
    LinkableArticle(id="1", title="Dog Nutrition Basics", slug="dog-nutrition", focus_keyword="dog nutrition"),
    LinkableArticle(id="2", title="Healthy Treats", slug="healthy-treats", focus_keyword="dog treats"),
]


@pytest.mark.parametrize("density", ["low", "medium", "high"])
def test_target_link_count_stays_in_range(density):
    low, high = DENSITY_RANGES[density]
    counts = {pick_target_link_count(density, random.Random(seed)) for seed in range(200)}

    assert counts == set(range(low, high + 1))


def test_unknown_density_uses_medium():
    counts = {pick_target_link_count("extreme", random.Random(seed)) for seed in range(200)}

    assert counts == {3, 4, 5}
    assert GenerateLinkPlanInput(density="EXTREME").density == "medium"
    assert GenerateLinkPlanInput(density="High").density == "high"


async def test_generate_link_plan_success(ctx, monkeypatch):
    prompts = []
    entry = LinkPlanEntry(
        target_article_slug="dog-nutrition",
        original_snippet="balanced diet",
        rewritten_snippet="[balanced diet](/dog-nutrition)",
    )

    async def fake_call_llm_validated(prompt, config, response_model, max_tokens=2000, max_retries=2):
        prompts.append(prompt)
        return LLMLinkPlanResponse(links=[entry])

    monkeypatch.setattr(link_plan, "call_llm_validated", fake_call_llm_validated)

    params = GenerateLinkPlanInput(
        markdown="Puppies need a balanced diet.",
        candidates=CANDIDATES,
        density="low",
        seed=7,
    )
    result = await generate_link_plan(ctx, params)
    again = await generate_link_plan(ctx, params)

    assert result.status == "success"
    assert result.entries == [entry]
    assert result.target_link_count in (2, 3)
    assert again.target_link_count == result.target_link_count
    assert 'Slug: "dog-nutrition"' in prompts[0]
    assert 'Slug: "healthy-treats"' in prompts[0]
    assert "Puppies need a balanced diet." in prompts[0]


async def test_generate_link_plan_failure_returns_empty_plan(ctx, monkeypatch):
    async def failing_call(*args, **kwargs):
        raise RuntimeError("provider down")

    monkeypatch.setattr(link_plan, "call_llm_validated", failing_call)

    result = await generate_link_plan(ctx, GenerateLinkPlanInput(
        markdown="Some article.",
        candidates=CANDIDATES,
    ))

    assert result.status == "error"
    assert result.entries == []


async def test_generate_link_plan_without_candidates_is_skipped(ctx, monkeypatch):
    async def unexpected(*args, **kwargs):
        raise AssertionError("LLM must not be called")

    monkeypatch.setattr(link_plan, "call_llm_validated", unexpected)

    result = await generate_link_plan(ctx, GenerateLinkPlanInput(markdown="Some article.", candidates=[]))

    assert result.status == "skipped"
    assert result.entries == []
