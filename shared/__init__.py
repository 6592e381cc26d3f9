"""
Shared utilities across pipeline nodes.
"""
from .context import NodeContext
from .media_clients import (
    ImageCandidate,
    VideoResult,
    UnsplashClient,
    PexelsClient,
    PixabayClient,
    YouTubeClient,
)

__all__ = [
    "NodeContext",
    "ImageCandidate",
    "VideoResult",
    "UnsplashClient",
    "PexelsClient",
    "PixabayClient",
    "YouTubeClient",
]
