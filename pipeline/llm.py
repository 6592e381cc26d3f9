"""
LLM access layer for the content pipeline.

- call_llm_validated: JSON-mode call validated against a Pydantic model,
  retried with the validation error appended when the model gets it wrong
- generate_text: plain text call
- _get_llm_config: params -> secrets -> defaults resolution

Providers (OpenAI, Anthropic, Gemini, Groq, Ollama) share one contract:
prompt in, text out. When a fallback model is configured it is tried once
if the primary provider raises.
"""
import os
import re
import json
import asyncio
import hashlib
import structlog
import httpx

from pathlib import Path
from typing import Optional, TypeVar, Type, Any, Dict
from pydantic import BaseModel, ValidationError

from .schemas import LLMConfig, resolve_model

logger = structlog.get_logger()

# Type variable for generic Pydantic model validation
T = TypeVar("T", bound=BaseModel)

DEFAULT_PROVIDER = "gemini"
DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"

# Fixed delay between retries when a provider answers 429
RATE_LIMIT_RETRY_DELAY = 10.0
RATE_LIMIT_MAX_RETRIES = 3


# =============================================================================
# DEV CACHE (for speeding up development iteration)
# =============================================================================
# Enable with LLM_DEV_CACHE=true in .env
# Clear all: rm -rf /tmp/autotent_llm_cache/

LLM_DEV_CACHE_DIR = Path("/tmp/autotent_llm_cache")


def _is_dev_cache_enabled() -> bool:
    """Check if LLM dev cache is enabled via env var."""
    return os.environ.get("LLM_DEV_CACHE", "").lower() in ("true", "1", "yes")


def _get_cache_key(node_name: str, data: Any) -> str:
    """Generate a cache key from node name and input data."""
    data_str = json.dumps(data, sort_keys=True, default=str)
    hash_val = hashlib.sha256(data_str.encode()).hexdigest()[:16]
    return f"{node_name}_{hash_val}"


def _get_cached_response(node_name: str, data: Any) -> Optional[dict]:
    """Get cached LLM response if exists and dev cache is enabled."""
    if not _is_dev_cache_enabled():
        return None

    cache_key = _get_cache_key(node_name, data)
    cache_file = LLM_DEV_CACHE_DIR / f"{cache_key}.json"

    if cache_file.exists():
        try:
            with open(cache_file, "r") as f:
                cached = json.load(f)
                logger.info("llm_dev_cache_hit", node=node_name, cache_key=cache_key)
                return cached
        except Exception as e:
            logger.warning("llm_dev_cache_read_error", error=str(e))

    return None


def _save_to_cache(node_name: str, data: Any, response: dict) -> None:
    """Save LLM response to dev cache."""
    if not _is_dev_cache_enabled():
        return

    try:
        LLM_DEV_CACHE_DIR.mkdir(parents=True, exist_ok=True)
        cache_key = _get_cache_key(node_name, data)
        cache_file = LLM_DEV_CACHE_DIR / f"{cache_key}.json"

        with open(cache_file, "w") as f:
            json.dump(response, f, indent=2, default=str)

        logger.info("llm_dev_cache_saved", node=node_name, cache_key=cache_key)
    except Exception as e:
        logger.warning("llm_dev_cache_write_error", error=str(e))


# =============================================================================
# PYDANTIC-VALIDATED LLM CALLS
# =============================================================================

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _strip_code_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper some models add despite JSON mode."""
    return _CODE_FENCE_RE.sub("", text.strip())


async def call_llm_validated(
    prompt: str,
    config: dict,
    response_model: Type[T],
    max_tokens: int = 2000,
    max_retries: int = 2,
) -> T:
    """
    Call LLM with Pydantic validation and retry on validation failure.

    If LLM returns invalid JSON or JSON that doesn't match the schema,
    we retry with the validation error appended to the prompt so LLM
    can correct itself.

    Args:
        prompt: The prompt to send to LLM
        config: LLM configuration dict (provider, model, keys, fallback)
        response_model: Pydantic model class to validate response against
        max_tokens: Max tokens for LLM response
        max_retries: Number of retries on validation failure (default 2)

    Returns:
        Validated Pydantic model instance

    Raises:
        RuntimeError: If all retries exhausted or LLM call fails
    """
    model_name = config.get("model", "unknown")
    cache_key_data = {"prompt": prompt, "model": model_name}
    cached = _get_cached_response("llm", cache_key_data)
    if cached:
        try:
            return response_model.model_validate(cached)
        except ValidationError as e:
            logger.warning("llm_dev_cache_schema_mismatch", error=str(e)[:200])

    current_prompt = prompt
    last_error = None
    pydantic_schema = response_model.model_json_schema()

    for attempt in range(max_retries + 1):
        response = await generate_text(
            current_prompt,
            config,
            max_tokens=max_tokens,
            json_mode=True,
            response_schema=pydantic_schema,
        )

        try:
            validated = response_model.model_validate_json(_strip_code_fences(response or ""))
            if attempt > 0:
                logger.info("llm_validation_retry_succeeded", attempt=attempt + 1)
            _save_to_cache("llm", cache_key_data, validated.model_dump())
            return validated

        except ValidationError as e:
            last_error = e

            if attempt < max_retries:
                logger.warning(
                    "llm_validation_failed_retrying",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    error=str(e)[:500],
                )
                current_prompt = f"""{prompt}

IMPORTANT: Your previous response was invalid. Please fix the following validation errors and try again:

{e.json()}

Respond with valid JSON that matches the expected schema."""
            else:
                logger.error(
                    "llm_validation_failed_exhausted",
                    attempts=max_retries + 1,
                    error=str(e)[:500],
                    response_preview=response[:500] if response else "EMPTY",
                )
                raise RuntimeError(
                    f"LLM response validation failed after {max_retries + 1} attempts: {e}"
                ) from e

    # Should not reach here, but just in case
    raise RuntimeError(f"LLM validation failed: {last_error}")


def _get_llm_config(ctx, llm_config: Optional[LLMConfig] = None) -> dict:
    """
    Get LLM configuration with cascading priority.

    Resolution order (first non-None wins):
    1. Node params (llm_config.model - user-friendly name like "Gemini 2.5 Flash")
    2. Secrets (LLM_PROVIDER + LLM_MODEL, LLM_FALLBACK_PROVIDER + LLM_FALLBACK_MODEL)
    3. Defaults (gemini-2.5-flash, falling back to Groq when GROQ_API_KEY is set)

    Args:
        ctx: Execution context with access to secrets
        llm_config: Optional override from node params (can be dict or LLMConfig)

    Returns:
        dict with provider, model, temperature, API keys and optional fallback dict
    """
    if isinstance(llm_config, dict):
        llm_config = LLMConfig.model_validate(llm_config)

    provider, model = (None, None)
    fallback_provider, fallback_model = (None, None)
    temperature = None

    if llm_config:
        provider, model = resolve_model(llm_config.model)
        fallback_provider, fallback_model = resolve_model(llm_config.fallback_model)
        temperature = llm_config.temperature

    if not provider:
        provider = ctx.get_secret("LLM_PROVIDER") or DEFAULT_PROVIDER
        model = ctx.get_secret("LLM_MODEL") or DEFAULT_MODEL

    if not fallback_provider:
        fallback_provider = ctx.get_secret("LLM_FALLBACK_PROVIDER")
        fallback_model = ctx.get_secret("LLM_FALLBACK_MODEL")
        if not fallback_provider and ctx.get_secret("GROQ_API_KEY") and provider != "groq":
            fallback_provider = "groq"
        if fallback_provider == "groq" and not fallback_model:
            fallback_model = DEFAULT_GROQ_MODEL

    keys = {
        "ollama_host": ctx.get_secret("OLLAMA_HOST") or "http://localhost:11434",
        "openai_api_key": ctx.get_secret("OPENAI_API_KEY"),
        "anthropic_api_key": ctx.get_secret("ANTHROPIC_API_KEY"),
        "google_api_key": ctx.get_secret("GOOGLE_API_KEY"),
        "groq_api_key": ctx.get_secret("GROQ_API_KEY"),
    }

    fallback = None
    if fallback_provider and fallback_model and (fallback_provider, fallback_model) != (provider, model):
        fallback = {
            "provider": fallback_provider,
            "model": fallback_model,
            "temperature": temperature,
            **keys,
        }

    return {
        "provider": provider,
        "model": model,
        "temperature": temperature,  # None means use provider default
        **keys,
        "fallback": fallback,
    }


# =============================================================================
# PROVIDER CALLS
# =============================================================================

async def generate_text(
    prompt: str,
    config: dict,
    max_tokens: int = 2000,
    json_mode: bool = False,
    response_schema: Optional[dict] = None,
) -> str:
    """
    Call the configured provider, then the fallback provider if the first raises.

    Raises the fallback's error (or the primary's when no fallback is set).
    """
    try:
        return await _call_llm(prompt, config, max_tokens, json_mode, response_schema)
    except Exception as e:
        fallback = config.get("fallback")
        if not fallback:
            raise
        logger.warning(
            "llm_primary_failed_using_fallback",
            provider=config["provider"],
            model=config.get("model"),
            fallback_provider=fallback["provider"],
            fallback_model=fallback["model"],
            error=str(e)[:300],
        )
        return await _call_llm(prompt, fallback, max_tokens, json_mode, response_schema)


async def _call_llm(
    prompt: str,
    config: dict,
    max_tokens: int = 2000,
    json_mode: bool = False,
    response_schema: Optional[dict] = None,
) -> str:
    """Dispatch to the configured LLM provider."""
    provider = config["provider"]
    temperature = config.get("temperature")

    if provider == "openai":
        return await _call_openai(prompt, config, max_tokens, json_mode, temperature)
    elif provider == "anthropic":
        return await _call_anthropic(prompt, config, max_tokens, temperature)
    elif provider == "gemini":
        return await _call_gemini(prompt, config, max_tokens, json_mode, response_schema, temperature)
    elif provider == "groq":
        return await _call_groq(prompt, config, max_tokens, json_mode, temperature)
    elif provider == "ollama":
        return await _call_ollama(prompt, config, max_tokens, json_mode, temperature)
    else:
        raise ValueError(f"Unknown LLM provider: {provider}")


async def _post_with_rate_limit_retry(
    provider: str,
    url: str,
    headers: Dict[str, str],
    request_body: dict,
    timeout: int = 120,
) -> dict:
    """POST JSON, retrying 429s after a fixed delay. Returns the decoded response."""
    for attempt in range(RATE_LIMIT_MAX_RETRIES + 1):
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, headers=headers, json=request_body)

            if response.status_code == 429 and attempt < RATE_LIMIT_MAX_RETRIES:
                logger.warning(
                    "llm_rate_limited_retrying",
                    provider=provider,
                    attempt=attempt + 1,
                    max_retries=RATE_LIMIT_MAX_RETRIES,
                    wait_time=RATE_LIMIT_RETRY_DELAY,
                )
                await asyncio.sleep(RATE_LIMIT_RETRY_DELAY)
                continue

            response.raise_for_status()
            return response.json()

    # Should never reach here, but just in case
    raise RuntimeError(f"{provider} call failed after all retries")


async def _call_openai(prompt: str, config: dict, max_tokens: int, json_mode: bool, temperature: Optional[float] = None) -> str:
    """Call OpenAI API."""
    api_key = config["openai_api_key"]
    if not api_key:
        raise ValueError("OPENAI_API_KEY not set")

    request_body = {
        "model": config["model"],
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
    }
    if json_mode:
        request_body["response_format"] = {"type": "json_object"}
    if temperature is not None:
        request_body["temperature"] = temperature

    data = await _post_with_rate_limit_retry(
        "openai",
        "https://api.openai.com/v1/chat/completions",
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        request_body=request_body,
    )
    return data["choices"][0]["message"]["content"]


async def _call_groq(prompt: str, config: dict, max_tokens: int, json_mode: bool, temperature: Optional[float] = None) -> str:
    """Call Groq's OpenAI-compatible chat endpoint."""
    api_key = config["groq_api_key"]
    if not api_key:
        raise ValueError("GROQ_API_KEY not set")

    system = "Respond only with valid JSON." if json_mode else "You are a helpful assistant."
    request_body = {
        "model": config["model"],
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        "max_tokens": max_tokens,
        "temperature": 0.7 if temperature is None else temperature,
    }
    if json_mode:
        request_body["response_format"] = {"type": "json_object"}

    data = await _post_with_rate_limit_retry(
        "groq",
        "https://api.groq.com/openai/v1/chat/completions",
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        request_body=request_body,
    )
    content = data["choices"][0]["message"].get("content")
    if not content:
        raise ValueError("No content generated from Groq")
    return content


async def _call_anthropic(prompt: str, config: dict, max_tokens: int, temperature: Optional[float] = None) -> str:
    """Call Anthropic API."""
    api_key = config["anthropic_api_key"]
    if not api_key:
        raise ValueError("ANTHROPIC_API_KEY not set")

    request_body = {
        "model": config["model"],
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    if temperature is not None:
        request_body["temperature"] = temperature

    data = await _post_with_rate_limit_retry(
        "anthropic",
        "https://api.anthropic.com/v1/messages",
        headers={
            "x-api-key": api_key,
            "Content-Type": "application/json",
            "anthropic-version": "2023-06-01",
        },
        request_body=request_body,
    )
    return data["content"][0]["text"]


async def _call_ollama(prompt: str, config: dict, max_tokens: int, json_mode: bool = False, temperature: Optional[float] = None) -> str:
    """Call Ollama API using the chat endpoint."""
    ollama_host = config["ollama_host"]
    model = config["model"]

    logger.info("calling_ollama", host=ollama_host, model=model, prompt_len=len(prompt), json_mode=json_mode)

    request_body = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "stream": False,
        "options": {
            "num_predict": max_tokens,
        },
    }
    if temperature is not None:
        request_body["options"]["temperature"] = temperature
    if json_mode:
        request_body["format"] = "json"

    async with httpx.AsyncClient(timeout=300) as client:
        response = await client.post(f"{ollama_host}/api/chat", json=request_body)
        response.raise_for_status()
        data = response.json()

    content = data.get("message", {}).get("content", "")
    if not content:
        logger.error("ollama_empty_response", full_response=data)
    return content


def _convert_pydantic_schema_to_gemini(pydantic_schema: dict) -> dict | None:
    """
    Convert a Pydantic JSON schema to Gemini's responseSchema format.

    Gemini expects a simplified schema without $defs, additionalProperties,
    a root title or $schema. Returns None if the schema contains features
    that can't be converted (e.g. Dict[str, T]).

    See: https://ai.google.dev/gemini-api/docs/structured-output
    """
    has_unsupported_features = False

    def simplify_schema(schema: dict, defs: dict = None) -> dict:
        nonlocal has_unsupported_features

        if defs is None:
            defs = schema.get("$defs", {})

        # Inline "#/$defs/Name" references
        if "$ref" in schema:
            ref_path = schema["$ref"]
            if ref_path.startswith("#/$defs/"):
                def_name = ref_path[8:]
                if def_name in defs:
                    return simplify_schema(defs[def_name], defs)
            return {"type": "object"}

        # Optional[X] comes through as anyOf [X, null]
        if "anyOf" in schema:
            non_null = [s for s in schema["anyOf"] if s.get("type") != "null"]
            if len(non_null) == 1:
                result = simplify_schema(non_null[0], defs)
                result["nullable"] = True
                return result
            has_unsupported_features = True
            return {"type": "object"}

        if "additionalProperties" in schema and schema["additionalProperties"] is not False:
            has_unsupported_features = True
            return {"type": "object"}

        result = {}
        for key in ("type", "description", "enum"):
            if key in schema:
                result[key] = schema[key]

        if "properties" in schema:
            result["properties"] = {
                k: simplify_schema(v, defs)
                for k, v in schema["properties"].items()
            }
        if "required" in schema:
            result["required"] = schema["required"]
        if "items" in schema:
            result["items"] = simplify_schema(schema["items"], defs)

        return result

    simplified = simplify_schema(pydantic_schema)

    if has_unsupported_features:
        return None

    return simplified


async def _call_gemini(
    prompt: str,
    config: dict,
    max_tokens: int,
    json_mode: bool = False,
    response_schema: Optional[dict] = None,
    temperature: Optional[float] = None,
) -> str:
    """
    Call Google Gemini API.

    API docs: https://ai.google.dev/gemini-api/docs/text-generation
    """
    api_key = config["google_api_key"]
    if not api_key:
        raise ValueError("GOOGLE_API_KEY not set")

    model = config["model"]

    # Thinking tokens count against maxOutputTokens on 2.5 models
    is_thinking_model = "2.5" in model or "thinking" in model.lower()
    effective_max_tokens = max(max_tokens * 4, 8000) if is_thinking_model else max_tokens

    if temperature is not None:
        effective_temperature = temperature
    else:
        effective_temperature = 0.2 if json_mode else 0.7

    logger.info(
        "calling_gemini",
        model=model,
        prompt_len=len(prompt),
        json_mode=json_mode,
        max_tokens_effective=effective_max_tokens,
        temperature=effective_temperature,
    )

    request_body = {
        "contents": [
            {
                "parts": [{"text": prompt}]
            }
        ],
        "generationConfig": {
            "maxOutputTokens": effective_max_tokens,
            "temperature": effective_temperature,
        },
    }

    if json_mode:
        request_body["generationConfig"]["responseMimeType"] = "application/json"
        if response_schema:
            gemini_schema = _convert_pydantic_schema_to_gemini(response_schema)
            if gemini_schema:
                request_body["generationConfig"]["responseSchema"] = gemini_schema
            else:
                logger.info("gemini_skipping_response_schema", reason="schema contains unsupported features")

    data = await _post_with_rate_limit_retry(
        "gemini",
        f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        headers={
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        },
        request_body=request_body,
    )

    # Response: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
    try:
        content = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError) as e:
        logger.error("gemini_parse_error", error=str(e), full_response=data)
        raise ValueError(f"Failed to parse Gemini response: {data}") from e

    logger.info("gemini_response", content_len=len(content), content_preview=content[:200] if content else "EMPTY")
    return content
