"""
Pydantic schemas for pipeline node inputs and outputs.

These provide type safety and validation for all node functions. Every
node takes `(ctx, params: <Name>Input)` and returns a `<Name>Output`
carrying a `status` field.
"""
from typing import List, Optional, Dict, Literal
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


MediaKind = Literal["image", "video"]
LinkDensity = Literal["low", "medium", "high"]


# =============================================================================
# LLM MODEL REGISTRY
# =============================================================================
# Maps user-friendly model names to provider + API model ID
# Format: "Display Name" -> (provider, model_id)

LLM_MODEL_REGISTRY: Dict[str, tuple] = {
    # Google Gemini
    "Gemini 2.5 Pro": ("gemini", "gemini-2.5-pro"),
    "Gemini 2.5 Flash": ("gemini", "gemini-2.5-flash"),
    "Gemini 2.5 Flash Lite": ("gemini", "gemini-2.5-flash-lite"),  # Too imprecise for snippet copying
    "Gemini Flash Latest": ("gemini", "gemini-flash-latest"),

    # Groq
    "Llama 3.3 70B (Groq)": ("groq", "llama-3.3-70b-versatile"),
    "Llama 3.1 8B (Groq)": ("groq", "llama-3.1-8b-instant"),

    # Anthropic Claude
    "Claude Sonnet 4": ("anthropic", "claude-sonnet-4-20250514"),
    "Claude 3.5 Haiku": ("anthropic", "claude-3-5-haiku-20241022"),

    # OpenAI
    "GPT-4.1": ("openai", "gpt-4.1"),
    "GPT-4o": ("openai", "gpt-4o"),
    "GPT-4o Mini": ("openai", "gpt-4o-mini"),

    # Local (Ollama)
    "Llama 3.1 (Local)": ("ollama", "llama3.1"),
    "Qwen 2.5 (Local)": ("ollama", "qwen2.5"),
}


def resolve_model(model_name: Optional[str]) -> tuple:
    """
    Resolve a model name to (provider, model_id).

    Args:
        model_name: User-friendly model name (e.g., "Gemini 2.5 Flash")

    Returns:
        Tuple of (provider, model_id) or (None, None) if not found
    """
    if not model_name:
        return (None, None)
    return LLM_MODEL_REGISTRY.get(model_name, (None, None))


# =============================================================================
# LLM CONFIGURATION (Shared across all LLM nodes)
# =============================================================================

class LLMConfig(BaseModel):
    """
    LLM configuration that can be passed to any LLM node.

    Resolution order (first non-None wins):
    1. Node params (this object)
    2. Environment variables (LLM_PROVIDER / LLM_MODEL)
    3. Defaults (Gemini Flash)

    The fallback model is tried once when the primary provider raises.

    Example:
        llm_config:
          model: "Gemini 2.5 Flash"
          fallback_model: "Llama 3.3 70B (Groq)"
          temperature: 0.2
    """
    model: Optional[str] = Field(
        default=None,
        description="Model to use (e.g., 'Gemini 2.5 Flash', 'GPT-4o')"
    )
    fallback_model: Optional[str] = Field(
        default=None,
        description="Model tried when the primary provider fails"
    )
    temperature: Optional[float] = Field(
        default=None,
        ge=0,
        le=2,
        description="Temperature for LLM sampling (0=deterministic, 1=default, 2=max creativity)"
    )


# =============================================================================
# MEDIA PROVIDER CONFIGURATION
# =============================================================================

class ProviderSettings(BaseModel):
    """Enable flag and credential for a single media provider."""
    enabled: bool = True
    credential: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.credential)


class MediaConfig(BaseModel):
    """
    Media provider configuration.

    Image providers are tried in `image_provider_order`; providers that are
    disabled or have no credential are skipped.
    """
    unsplash: ProviderSettings = Field(default_factory=ProviderSettings)
    pexels: ProviderSettings = Field(default_factory=ProviderSettings)
    pixabay: ProviderSettings = Field(default_factory=ProviderSettings)
    youtube: ProviderSettings = Field(default_factory=ProviderSettings)
    image_provider_order: List[str] = Field(
        default_factory=lambda: ["unsplash", "pexels", "pixabay"],
        description="Order in which image providers are tried"
    )
    verify_images: bool = Field(default=True, description="Run relevance verification on image candidates")
    rate_limit_retry_delay: float = Field(default=2.0, ge=0, description="Seconds to wait after a 429")
    rate_limit_max_retries: int = Field(default=3, ge=0)

    @field_validator('image_provider_order', mode='before')
    @classmethod
    def coerce_order(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [p.strip().lower() for p in v.split(",") if p.strip()]
        return v


# =============================================================================
# MEDIA SLOT PLANNER SCHEMAS
# =============================================================================

class MediaSlot(BaseModel):
    """A section selected to receive media."""
    index: int
    heading: str
    kind: MediaKind


class PlanMediaSlotsInput(BaseModel):
    """Input for plan_media_slots node."""
    markdown: str = ""
    include_images: bool = True
    include_videos: bool = False


class PlanMediaSlotsOutput(BaseModel):
    """Output from plan_media_slots node."""
    slots: List[MediaSlot] = Field(default_factory=list)
    section_count: int = 0
    status: str = "success"


# =============================================================================
# MEDIA TERM SCHEMAS
# =============================================================================

class GenerateMediaTermsInput(BaseModel):
    """Input for generate_media_terms node."""
    headings: List[str] = Field(default_factory=list)
    keyword: str = Field(default="", description="Main article keyword, used as context")
    kind: MediaKind = "image"
    llm_config: Optional[LLMConfig] = Field(default=None, description="Override LLM provider/model")


class GenerateMediaTermsOutput(BaseModel):
    """Output from generate_media_terms node."""
    terms: Dict[str, str] = Field(default_factory=dict, description="Heading -> visual search phrase")
    status: str = "success"


# =============================================================================
# MEDIA FETCH SCHEMAS
# =============================================================================

class FetchMediaInput(BaseModel):
    """Input for fetch_media node."""
    term: str
    kind: MediaKind = "image"
    media_config: Optional[MediaConfig] = Field(default=None, description="Override provider config")


class FetchMediaOutput(BaseModel):
    """Output from fetch_media node."""
    term: str = ""
    url: Optional[str] = None
    markup: Optional[str] = None
    status: str = "success"


# =============================================================================
# ENRICHMENT SCHEMAS
# =============================================================================

class EnrichContentInput(BaseModel):
    """Input for enrich_content node."""
    markdown: str = ""
    keyword: str = Field(default="", description="Main keyword, context for search terms")
    include_images: bool = True
    include_videos: bool = False
    media_config: Optional[MediaConfig] = Field(default=None, description="Override provider config")
    llm_config: Optional[LLMConfig] = Field(default=None, description="Override LLM provider/model")


class EnrichContentOutput(BaseModel):
    """Output from enrich_content node."""
    markdown: str = ""
    slots: List[MediaSlot] = Field(default_factory=list)
    media_count: int = 0
    status: str = "success"


# =============================================================================
# INTERNAL LINKING SCHEMAS
# =============================================================================

class LinkableArticle(BaseModel):
    """Snapshot of a previously published article that can be linked to."""
    id: str
    title: str
    slug: str
    excerpt: str = ""
    focus_keyword: str = ""
    published_at: Optional[datetime] = None
    relevance_score: int = 0

    @field_validator('excerpt', 'focus_keyword', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or ""


class FindLinkableArticlesInput(BaseModel):
    """Input for find_linkable_articles node."""
    project_id: str
    current_keyword: str = ""
    current_excerpt: str = ""
    cluster_id: Optional[str] = None
    limit: int = Field(default=10, ge=1)
    exclude_article_id: Optional[str] = Field(default=None, description="Article being written, never a link target")


class FindLinkableArticlesOutput(BaseModel):
    """Output from find_linkable_articles node."""
    articles: List[LinkableArticle] = Field(default_factory=list)
    count: int = 0
    status: str = "success"


class LinkPlanEntry(BaseModel):
    """A proposed link insertion. Fields stay optional; the applier rejects incomplete entries."""
    target_article_slug: Optional[str] = None
    original_snippet: Optional[str] = None
    rewritten_snippet: Optional[str] = None


class GenerateLinkPlanInput(BaseModel):
    """Input for generate_link_plan node."""
    markdown: str = ""
    candidates: List[LinkableArticle] = Field(default_factory=list)
    density: LinkDensity = "medium"
    seed: Optional[int] = Field(default=None, description="Seed for the link count pick")
    llm_config: Optional[LLMConfig] = Field(default=None, description="Override LLM provider/model")

    @field_validator('density', mode='before')
    @classmethod
    def normalize_density(cls, v):
        """Unknown densities fall back to medium."""
        if isinstance(v, str) and v.lower() in ("low", "medium", "high"):
            return v.lower()
        return "medium"


class GenerateLinkPlanOutput(BaseModel):
    """Output from generate_link_plan node."""
    entries: List[LinkPlanEntry] = Field(default_factory=list)
    target_link_count: int = 0
    status: str = "success"


class RejectedLink(BaseModel):
    """A plan entry the applier refused, with the reason."""
    entry: LinkPlanEntry
    reason: str


class LinkApplicationResult(BaseModel):
    """Result of applying a link plan to markdown."""
    markdown: str
    applied: List[LinkPlanEntry] = Field(default_factory=list)
    rejected: List[RejectedLink] = Field(default_factory=list)
    status: str = "success"

    @property
    def applied_slugs(self) -> List[str]:
        return [e.target_article_slug for e in self.applied]


class InsertInternalLinksInput(BaseModel):
    """Input for insert_internal_links node."""
    markdown: str = ""
    project_id: str
    keyword: str = ""
    excerpt: str = ""
    cluster_id: Optional[str] = None
    density: LinkDensity = "medium"
    candidates_limit: int = Field(default=10, ge=1)
    exclude_article_id: Optional[str] = None
    seed: Optional[int] = None
    llm_config: Optional[LLMConfig] = Field(default=None, description="Override LLM provider/model")


class InsertInternalLinksOutput(BaseModel):
    """Output from insert_internal_links node."""
    markdown: str = ""
    candidates_count: int = 0
    proposed_count: int = 0
    applied_count: int = 0
    applied_slugs: List[str] = Field(default_factory=list)
    status: str = "success"


# =============================================================================
# JOB SCHEMAS
# =============================================================================

class ProcessArticleInput(BaseModel):
    """Input for process_article node (one content-generation job)."""
    markdown: str
    keyword: str = ""
    excerpt: str = ""
    project_id: Optional[str] = Field(default=None, description="Required for internal linking")
    article_id: Optional[str] = None
    cluster_id: Optional[str] = None
    include_images: bool = True
    include_videos: bool = False
    include_internal_links: bool = True
    link_density: LinkDensity = "medium"
    seed: Optional[int] = None
    media_config: Optional[MediaConfig] = None
    llm_config: Optional[LLMConfig] = None


class ProcessArticleOutput(BaseModel):
    """Output from process_article node."""
    markdown: str = ""
    media_count: int = 0
    links_applied: int = 0
    enrichment_status: str = "skipped"
    linking_status: str = "skipped"
    status: str = "success"


# =============================================================================
# NICHE / AUTHORITY DOMAIN SCHEMAS
# =============================================================================

class GetDomainWhitelistInput(BaseModel):
    """Input for get_domain_whitelist node."""
    keyword: str
    llm_config: Optional[LLMConfig] = Field(default=None, description="Override LLM provider/model")


class GetDomainWhitelistOutput(BaseModel):
    """Output from get_domain_whitelist node."""
    niche: str = ""
    domains: List[str] = Field(default_factory=list)
    status: str = "success"
