import pytest

import pipeline.niche as niche
from pipeline.niche import (
    DEFAULT_NICHE,
    UNIVERSAL_AUTHORITIES,
    detect_niche,
    find_authority_domains,
    get_domain_whitelist,
    make_lookup_cache,
    parse_domain_list,
)
from pipeline.schemas import GetDomainWhitelistInput

CONFIG = {"provider": "gemini", "model": "gemini-2.5-flash", "fallback": None}


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def fake_llm(responses, calls):
    async def fake_generate_text(prompt, config, max_tokens=2000, json_mode=False, response_schema=None):
        calls.append(prompt)
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
    return fake_generate_text


def test_parse_domain_list():
    text = "- https://www.akc.org/\n2. petmd.com\nnot a domain\nPetMD.com\n\n* vet.cornell.edu"

    assert parse_domain_list(text) == ["www.akc.org", "petmd.com", "vet.cornell.edu"]


def test_parse_domain_list_is_capped():
    text = "\n".join(f"site{i}.com" for i in range(20))

    assert len(parse_domain_list(text)) == 10


async def test_detect_niche_is_cached_until_ttl(monkeypatch, clock):
    calls = []
    monkeypatch.setattr(niche, "generate_text", fake_llm(['"Canine Nutrition."', "Puppy Care"], calls))
    cache = make_lookup_cache(ttl=60, timer=clock)

    assert await detect_niche("Best Puppy Food", CONFIG, cache=cache) == "Canine Nutrition"
    assert await detect_niche("best puppy food ", CONFIG, cache=cache) == "Canine Nutrition"
    assert len(calls) == 1

    clock.now = 61
    assert await detect_niche("best puppy food", CONFIG, cache=cache) == "Puppy Care"
    assert len(calls) == 2


async def test_detect_niche_failure_falls_back_and_is_not_cached(monkeypatch, clock):
    calls = []
    monkeypatch.setattr(niche, "generate_text", fake_llm([RuntimeError("down"), "Canine Nutrition"], calls))
    cache = make_lookup_cache(timer=clock)

    assert await detect_niche("puppy food", CONFIG, cache=cache) == DEFAULT_NICHE
    assert await detect_niche("puppy food", CONFIG, cache=cache) == "Canine Nutrition"


async def test_cache_is_bounded(monkeypatch, clock):
    calls = []
    monkeypatch.setattr(niche, "generate_text", fake_llm(["A", "B", "C"], calls))
    cache = make_lookup_cache(maxsize=2, timer=clock)

    for keyword in ("one", "two", "three"):
        await detect_niche(keyword, CONFIG, cache=cache)

    assert len(cache) == 2


async def test_empty_domain_list_is_not_cached(monkeypatch, clock):
    calls = []
    monkeypatch.setattr(niche, "generate_text", fake_llm(["nothing useful", "akc.org"], calls))
    cache = make_lookup_cache(timer=clock)

    assert await find_authority_domains("Canine Nutrition", CONFIG, cache=cache) == []
    assert await find_authority_domains("Canine Nutrition", CONFIG, cache=cache) == ["akc.org"]
    assert await find_authority_domains("canine nutrition", CONFIG, cache=cache) == ["akc.org"]
    assert len(calls) == 2


async def test_get_domain_whitelist_node(ctx, monkeypatch, clock):
    calls = []
    monkeypatch.setattr(niche, "generate_text", fake_llm(["Canine Nutrition", "akc.org\nnih.gov"], calls))
    monkeypatch.setattr(niche, "_niche_cache", make_lookup_cache(timer=clock))
    monkeypatch.setattr(niche, "_domain_cache", make_lookup_cache(timer=clock))

    result = await get_domain_whitelist(ctx, GetDomainWhitelistInput(keyword="best puppy food"))

    assert result.status == "success"
    assert result.niche == "Canine Nutrition"
    assert result.domains == UNIVERSAL_AUTHORITIES + ["akc.org"]
    assert "best puppy food" in calls[0]
    assert "Canine Nutrition" in calls[1]
