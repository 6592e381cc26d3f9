"""
Niche detection and authority-domain discovery.

Used to build the whitelist of trusted domains for external source
search. Both lookups are cached in memory: keyword -> niche and
niche -> domains. The caches are bounded (size + TTL) because workers
are long-lived; keys are low-cardinality so hit rates stay high.
"""
import re
import time
from typing import Callable, List, Optional
import structlog
from cachetools import TTLCache

from .llm import generate_text, _get_llm_config
from .prompts import AUTHORITY_DOMAINS_PROMPT, DETECT_NICHE_PROMPT
from .schemas import GetDomainWhitelistInput, GetDomainWhitelistOutput

logger = structlog.get_logger()

DEFAULT_NICHE = "General Knowledge"

# Always-safe domains merged into every whitelist
UNIVERSAL_AUTHORITIES = [
    "wikipedia.org",
    ".gov",
    "nih.gov",
    "cdc.gov",
    "nasa.gov",
    "ed.gov",
]

MAX_NICHE_DOMAINS = 10
LOOKUP_CACHE_MAXSIZE = 256
LOOKUP_CACHE_TTL_SECONDS = 24 * 60 * 60

_BULLET_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s*")
_SCHEME_RE = re.compile(r"^https?://")


def make_lookup_cache(
    maxsize: int = LOOKUP_CACHE_MAXSIZE,
    ttl: float = LOOKUP_CACHE_TTL_SECONDS,
    timer: Callable[[], float] = time.monotonic,
) -> TTLCache:
    return TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)


_niche_cache = make_lookup_cache()
_domain_cache = make_lookup_cache()


def parse_domain_list(text: str) -> List[str]:
    """Clean an LLM domain list: strip bullets and schemes, dedupe, cap."""
    domains = []
    for line in text.splitlines():
        line = _BULLET_RE.sub("", line.strip().lower())
        line = _SCHEME_RE.sub("", line).rstrip("/")
        if "." in line and " " not in line and line not in domains:
            domains.append(line)
    return domains[:MAX_NICHE_DOMAINS]


async def detect_niche(keyword: str, config: dict, cache: Optional[TTLCache] = None) -> str:
    """Granular sub-niche for a keyword, e.g. "best puppy food" -> "Canine Nutrition"."""
    cache = _niche_cache if cache is None else cache
    cache_key = keyword.strip().lower()

    if cache_key in cache:
        logger.debug("niche_cache_hit", keyword=keyword)
        return cache[cache_key]

    try:
        response = await generate_text(DETECT_NICHE_PROMPT.format(keyword=keyword), config, max_tokens=50)
        niche = re.sub(r'[".]', "", (response or "").strip())
        if not niche:
            raise ValueError("Empty niche response")
    except Exception as e:
        logger.warning("niche_detection_failed", keyword=keyword, error=str(e)[:300])
        return DEFAULT_NICHE

    cache[cache_key] = niche
    return niche


async def find_authority_domains(niche: str, config: dict, cache: Optional[TTLCache] = None) -> List[str]:
    """Authoritative domains for a niche. Empty results are not cached."""
    cache = _domain_cache if cache is None else cache
    cache_key = niche.strip().lower()

    if cache_key in cache:
        return cache[cache_key]

    try:
        response = await generate_text(AUTHORITY_DOMAINS_PROMPT.format(niche=niche), config, max_tokens=500)
    except Exception as e:
        logger.warning("authority_lookup_failed", niche=niche, error=str(e)[:300])
        return []

    domains = parse_domain_list(response or "")
    if domains:
        cache[cache_key] = domains
    return domains


async def get_domain_whitelist(
    ctx,
    params: GetDomainWhitelistInput,
) -> GetDomainWhitelistOutput:
    """Universal authorities merged with the keyword's niche authorities."""
    config = _get_llm_config(ctx, params.llm_config)

    ctx.report_input({
        "keyword": params.keyword,
        "provider": config["provider"],
        "model": config["model"],
    })

    niche = await detect_niche(params.keyword, config)
    niche_domains = await find_authority_domains(niche, config)
    whitelist = list(dict.fromkeys(UNIVERSAL_AUTHORITIES + niche_domains))

    logger.info("domain_whitelist_built", niche=niche, niche_domains=len(niche_domains))

    ctx.report_output({
        "niche": niche,
        "domains": whitelist,
        "status": "success",
    })

    return GetDomainWhitelistOutput(niche=niche, domains=whitelist, status="success")
