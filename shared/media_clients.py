"""
Media search clients for stock image and video providers.

Every image client implements the same contract:

    await client.search(term) -> List[ImageCandidate]

Candidates come back in the provider's native ranking order with the
metadata (tags + free-text description) that relevance verification needs.
Choosing between candidates and falling back between providers is the
caller's job.

Rate limiting: a 429 response is retried after a fixed delay, up to a
capped number of attempts. After that the HTTP error propagates so the
caller can move on to the next provider.
"""
import asyncio
import httpx
import structlog
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = structlog.get_logger()

# Candidates requested per image search
CANDIDATES_PER_SEARCH = 5

# Unsplash raw URLs accept imgix params; 1200x630 webp suits blog bodies and social cards
UNSPLASH_IMAGE_PARAMS = "w=1200&h=630&fit=crop&q=75&fm=webp"


@dataclass
class ImageCandidate:
    """An image search hit with the metadata used for relevance checks."""
    url: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    provider: Optional[str] = None


@dataclass
class VideoResult:
    """A video search hit."""
    video_id: str
    title: str
    thumbnail_url: str
    video_url: str
    description: str = ""


class MediaClient:
    """
    Base class for provider clients.

    Holds one lazily created httpx client and implements the fixed-delay
    retry on 429 shared by every provider.
    """

    name = "media"

    def __init__(
        self,
        credential: Optional[str],
        timeout: int = 30,
        rate_limit_retry_delay: float = 2.0,
        rate_limit_max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            credential: Provider API key / access key
            timeout: Request timeout in seconds
            rate_limit_retry_delay: Seconds to wait after a 429
            rate_limit_max_retries: Retries after the first 429 before giving up
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.credential = credential
        self.timeout = timeout
        self.rate_limit_retry_delay = rate_limit_retry_delay
        self.rate_limit_max_retries = rate_limit_max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.credential)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _require_credential(self) -> str:
        if not self.credential:
            raise ValueError(f"{self.name} credential not set")
        return self.credential

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """GET a JSON document, retrying 429s after a fixed delay."""
        client = await self._get_client()

        for attempt in range(self.rate_limit_max_retries + 1):
            response = await client.get(url, params=params, headers=headers)

            if response.status_code == 429 and attempt < self.rate_limit_max_retries:
                logger.warning(
                    "media_rate_limited_retrying",
                    provider=self.name,
                    attempt=attempt + 1,
                    max_retries=self.rate_limit_max_retries,
                    wait_time=self.rate_limit_retry_delay,
                )
                await asyncio.sleep(self.rate_limit_retry_delay)
                continue

            response.raise_for_status()
            return response.json()

        # Should never reach here, but just in case
        raise RuntimeError(f"{self.name} request failed after all retries")


class ImageSearchClient(MediaClient):
    """Contract shared by all image providers."""

    async def search(self, term: str) -> List[ImageCandidate]:
        raise NotImplementedError


class UnsplashClient(ImageSearchClient):
    """Unsplash search API. Docs: https://unsplash.com/documentation#search-photos"""

    name = "unsplash"
    SEARCH_URL = "https://api.unsplash.com/search/photos"

    async def search(self, term: str) -> List[ImageCandidate]:
        access_key = self._require_credential()
        data = await self._get_json(
            self.SEARCH_URL,
            params={
                "query": term,
                "per_page": CANDIDATES_PER_SEARCH,
                "orientation": "landscape",
            },
            headers={"Authorization": f"Client-ID {access_key}"},
        )

        candidates = []
        for result in data.get("results") or []:
            raw_url = (result.get("urls") or {}).get("raw")
            if not raw_url:
                continue
            description = " ".join(
                part for part in (result.get("alt_description"), result.get("description")) if part
            )
            tags = [t.get("title", "") for t in result.get("tags") or [] if isinstance(t, dict)]
            candidates.append(ImageCandidate(
                url=f"{raw_url}?{UNSPLASH_IMAGE_PARAMS}",
                description=description,
                tags=[t for t in tags if t],
                provider=self.name,
            ))

        logger.debug("unsplash_searched", term=term, count=len(candidates))
        return candidates


class PexelsClient(ImageSearchClient):
    """
    Pexels search API. Docs: https://www.pexels.com/api/documentation/#photos-search

    Search results carry no tags, only the alt text.
    """

    name = "pexels"
    SEARCH_URL = "https://api.pexels.com/v1/search"

    async def search(self, term: str) -> List[ImageCandidate]:
        api_key = self._require_credential()
        data = await self._get_json(
            self.SEARCH_URL,
            params={
                "query": term,
                "per_page": CANDIDATES_PER_SEARCH,
                "orientation": "landscape",
            },
            headers={"Authorization": api_key},
        )

        candidates = []
        for photo in data.get("photos") or []:
            src = photo.get("src") or {}
            url = src.get("large2x") or src.get("original")
            if not url:
                continue
            candidates.append(ImageCandidate(
                url=url,
                description=photo.get("alt") or "",
                tags=[],
                provider=self.name,
            ))

        logger.debug("pexels_searched", term=term, count=len(candidates))
        return candidates


class PixabayClient(ImageSearchClient):
    """
    Pixabay search API. Docs: https://pixabay.com/api/docs/

    Hits carry a comma-separated tag string and no description.
    """

    name = "pixabay"
    SEARCH_URL = "https://pixabay.com/api/"

    async def search(self, term: str) -> List[ImageCandidate]:
        api_key = self._require_credential()
        data = await self._get_json(
            self.SEARCH_URL,
            params={
                "key": api_key,
                "q": term,
                "image_type": "photo",
                "orientation": "horizontal",
                "per_page": CANDIDATES_PER_SEARCH,
            },
        )

        candidates = []
        for hit in data.get("hits") or []:
            url = hit.get("largeImageURL")
            if not url:
                continue
            tags = [t.strip() for t in (hit.get("tags") or "").split(",") if t.strip()]
            candidates.append(ImageCandidate(
                url=url,
                description="",
                tags=tags,
                provider=self.name,
            ))

        logger.debug("pixabay_searched", term=term, count=len(candidates))
        return candidates


class YouTubeClient(MediaClient):
    """YouTube Data API v3 search. Docs: https://developers.google.com/youtube/v3/docs/search/list"""

    name = "youtube"
    SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
    WATCH_URL = "https://www.youtube.com/watch?v="

    async def search(self, term: str, max_results: int = 1) -> List[VideoResult]:
        api_key = self._require_credential()
        data = await self._get_json(
            self.SEARCH_URL,
            params={
                "part": "snippet",
                "q": term,
                "type": "video",
                "maxResults": max_results,
                "key": api_key,
            },
        )

        videos = []
        for item in data.get("items") or []:
            video_id = (item.get("id") or {}).get("videoId")
            if not video_id:
                continue
            snippet = item.get("snippet") or {}
            thumbnails = snippet.get("thumbnails") or {}
            thumbnail = thumbnails.get("high") or thumbnails.get("default") or {}
            videos.append(VideoResult(
                video_id=video_id,
                title=snippet.get("title", ""),
                description=snippet.get("description", ""),
                thumbnail_url=thumbnail.get("url", ""),
                video_url=f"{self.WATCH_URL}{video_id}",
            ))

        logger.debug("youtube_searched", term=term, count=len(videos))
        return videos
