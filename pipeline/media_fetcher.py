"""
Media fetching with ordered provider fallback.

Images: providers are tried in configured order. Each provider's
candidates are scanned in its own ranking order and the first one that
passes relevance verification wins. Providers without a credential are
skipped silently; provider errors are logged and the next provider is
tried. Running out of providers means "no image", never an error.

Videos: one provider (YouTube), first result, no relevance verification.
"""
import re
from typing import List, Optional
import structlog

from shared.media_clients import (
    ImageCandidate,
    ImageSearchClient,
    PexelsClient,
    PixabayClient,
    UnsplashClient,
    VideoResult,
    YouTubeClient,
)
from .schemas import FetchMediaInput, FetchMediaOutput, MediaConfig, ProviderSettings

logger = structlog.get_logger()

STOP_WORDS = frozenset([
    "a", "an", "the", "in", "on", "at", "for", "to", "of", "with",
    "by", "and", "or", "is", "are", "was", "were",
])

IMAGE_CLIENTS = {
    "unsplash": UnsplashClient,
    "pexels": PexelsClient,
    "pixabay": PixabayClient,
}

# Secret holding each provider's credential
PROVIDER_SECRETS = {
    "unsplash": "UNSPLASH_ACCESS_KEY",
    "pexels": "PEXELS_API_KEY",
    "pixabay": "PIXABAY_API_KEY",
    "youtube": "YOUTUBE_API_KEY",
}


# =============================================================================
# RELEVANCE VERIFICATION
# =============================================================================

def meaningful_tokens(query: str) -> List[str]:
    """Lowercased query words, minus stop words and words of 2 chars or fewer."""
    return [
        w for w in re.split(r"[^a-z0-9]", query.lower())
        if len(w) > 2 and w not in STOP_WORDS
    ]


def verify_image_relevance(query: str, candidate: ImageCandidate) -> bool:
    """
    Check that at least one meaningful query word shows up in the
    candidate's tags (exact match) or description (substring).

    A query with no meaningful words passes.
    """
    words = meaningful_tokens(query)
    if not words:
        return True

    description = (candidate.description or "").lower()
    tags = [t.lower() for t in candidate.tags or []]

    for word in words:
        if word in tags or word in description:
            return True

    logger.info(
        "image_verification_failed",
        query=query,
        provider=candidate.provider,
        tags=tags[:5],
        description=description[:50],
    )
    return False


# =============================================================================
# CONFIG + CLIENTS
# =============================================================================

def _get_media_config(ctx, media_config: Optional[MediaConfig] = None) -> MediaConfig:
    """
    Resolve media provider config.

    Resolution order:
    1. Node params (explicit MediaConfig)
    2. Secrets: <PROVIDER> credential + <PROVIDER>_ENABLED toggle,
       IMAGE_PROVIDER_ORDER, VERIFY_IMAGES
    """
    if isinstance(media_config, dict):
        media_config = MediaConfig.model_validate(media_config)
    if media_config:
        return media_config

    def provider(name: str) -> ProviderSettings:
        enabled = (ctx.get_secret(f"{name.upper()}_ENABLED") or "true").lower() not in ("false", "0", "no")
        return ProviderSettings(enabled=enabled, credential=ctx.get_secret(PROVIDER_SECRETS[name]))

    overrides = {}
    order = ctx.get_secret("IMAGE_PROVIDER_ORDER")
    if order:
        overrides["image_provider_order"] = order
    verify = ctx.get_secret("VERIFY_IMAGES")
    if verify:
        overrides["verify_images"] = verify.lower() not in ("false", "0", "no")

    return MediaConfig(
        unsplash=provider("unsplash"),
        pexels=provider("pexels"),
        pixabay=provider("pixabay"),
        youtube=provider("youtube"),
        **overrides,
    )


def build_image_clients(config: MediaConfig, transport=None) -> List[ImageSearchClient]:
    """Instantiate enabled image clients in configured order."""
    clients = []
    for name in config.image_provider_order:
        client_cls = IMAGE_CLIENTS.get(name)
        settings = getattr(config, name, None)
        if client_cls is None or settings is None:
            logger.warning("unknown_image_provider", provider=name)
            continue
        if not settings.enabled:
            continue
        clients.append(client_cls(
            settings.credential,
            rate_limit_retry_delay=config.rate_limit_retry_delay,
            rate_limit_max_retries=config.rate_limit_max_retries,
            transport=transport,
        ))
    return clients


def build_video_client(config: MediaConfig, transport=None) -> Optional[YouTubeClient]:
    if not config.youtube.enabled:
        return None
    return YouTubeClient(
        config.youtube.credential,
        rate_limit_retry_delay=config.rate_limit_retry_delay,
        rate_limit_max_retries=config.rate_limit_max_retries,
        transport=transport,
    )


# =============================================================================
# FETCHING
# =============================================================================

async def find_best_image(
    term: str,
    clients: List[ImageSearchClient],
    verify: bool = True,
) -> Optional[ImageCandidate]:
    """Return the first verified candidate across providers, or None."""
    for client in clients:
        if not client.is_configured:
            continue

        try:
            candidates = await client.search(term)
        except Exception as e:
            logger.warning("image_provider_failed", provider=client.name, term=term, error=str(e)[:300])
            continue

        for candidate in candidates:
            if not verify or verify_image_relevance(term, candidate):
                logger.info("image_found", provider=client.name, term=term)
                return candidate

        logger.info("image_provider_no_match", provider=client.name, term=term, candidates=len(candidates))

    logger.info("image_search_exhausted", term=term)
    return None


async def find_video(term: str, client: Optional[YouTubeClient]) -> Optional[VideoResult]:
    """Return the first video for the term, or None. No relevance check."""
    if client is None or not client.is_configured:
        return None

    try:
        videos = await client.search(term, max_results=1)
    except Exception as e:
        logger.warning("video_provider_failed", provider=client.name, term=term, error=str(e)[:300])
        return None

    if not videos:
        logger.info("video_not_found", term=term)
        return None
    return videos[0]


def render_image_markup(term: str, url: str) -> str:
    return f"\n\n![{term}]({url})\n\n"


def render_video_markup(video: VideoResult) -> str:
    """Linked thumbnail card plus caption."""
    return (
        f"\n\n[![Watch: {video.title}]({video.thumbnail_url})]({video.video_url})\n"
        f"*Watch: {video.title}*\n\n"
    )


async def fetch_media(
    ctx,
    params: FetchMediaInput,
) -> FetchMediaOutput:
    """Resolve one search term to media markup for a single slot."""
    config = _get_media_config(ctx, params.media_config)

    ctx.report_input({
        "term": params.term,
        "kind": params.kind,
        "image_provider_order": config.image_provider_order,
        "verify_images": config.verify_images,
    })

    url = None
    markup = None

    if params.kind == "video":
        client = build_video_client(config)
        try:
            video = await find_video(params.term, client)
        finally:
            if client:
                await client.close()
        if video:
            url = video.video_url
            markup = render_video_markup(video)
    else:
        clients = build_image_clients(config)
        try:
            image = await find_best_image(params.term, clients, verify=config.verify_images)
        finally:
            for client in clients:
                await client.close()
        if image:
            url = image.url
            markup = render_image_markup(params.term, image.url)

    status = "success" if url else "not_found"

    ctx.report_output({
        "term": params.term,
        "url": url,
        "status": status,
    })

    return FetchMediaOutput(term=params.term, url=url, markup=markup, status=status)
