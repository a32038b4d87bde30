"""
Classification capability client (LiteLLM router, OpenAI primary / Gemini fallback).

The moderation services describe what they want in a prompt and expect a JSON
object back. Everything that can go wrong on the way (no keys configured,
provider error, timeout, non-JSON or non-object reply) is raised as
ExternalServiceUnavailable so callers can apply their fail-open policy in one
place.
"""

from __future__ import annotations
import json
import os
import threading
from typing import Any, Dict, Optional, Tuple

from flask import current_app, has_app_context

from roadway.utils.errors import ExternalServiceUnavailable

# Last provider failure, kept for `flask moderation-check` diagnostics
AI_LAST_ERROR: Optional[str] = None

# One Router per process; rebuilt only after _clear_router_cache()
_ROUTER_CACHE: Optional[object] = None
_router_lock = threading.Lock()

DEFAULT_TIMEOUT_SECONDS = 8.0
DEFAULT_MAX_RETRIES = 1

PRIMARY_MODEL = "primary-gpt"
FALLBACK_MODEL = "fallback-gemini"
MAX_REPLY_TOKENS = 400


def _clear_router_cache():
    """Forget the cached Router (tests, rotated keys)."""
    global _ROUTER_CACHE
    _ROUTER_CACHE = None


def _config_value(name: str, default: Any = None) -> Any:
    if has_app_context():
        return current_app.config.get(name, default)
    return default


def _api_keys() -> Tuple[Optional[str], Optional[str]]:
    openai_key = os.getenv("OPENAI_API_KEY") or _config_value("OPENAI_API_KEY")
    gemini_key = os.getenv("GEMINI_API_KEY") or _config_value("GEMINI_API_KEY")
    return openai_key or None, gemini_key or None


def _deployment(name: str, model: str, api_key: str) -> Dict[str, Any]:
    # temperature 0: the same post should get the same verdict
    return {
        "model_name": name,
        "litellm_params": {
            "model": model,
            "api_key": api_key,
            "temperature": 0,
            "max_tokens": MAX_REPLY_TOKENS,
        },
    }


def _get_litellm_router():
    """
    Build (once) the LiteLLM Router behind complete_json.

    OpenAI is the primary deployment and Gemini the fallback; whichever key is
    missing is simply left out. Per-call timeout and retry count come from
    MODERATION_TIMEOUT_SECONDS / MODERATION_MAX_RETRIES.

    Returns:
        (router, None) or (None, error message)
    """
    global _ROUTER_CACHE

    if _ROUTER_CACHE is not None:
        return _ROUTER_CACHE, None

    # The gate asks from two worker threads at once; build only one Router
    with _router_lock:
        if _ROUTER_CACHE is not None:
            return _ROUTER_CACHE, None
        return _build_router()


def _build_router():
    global _ROUTER_CACHE

    openai_key, gemini_key = _api_keys()
    if not (openai_key or gemini_key):
        return None, "No classifier provider configured (set OPENAI_API_KEY or GEMINI_API_KEY)"

    deployments = []
    if openai_key:
        deployments.append(_deployment(PRIMARY_MODEL, "gpt-4o-mini", openai_key))
    if gemini_key:
        deployments.append(_deployment(FALLBACK_MODEL, "gemini/gemini-flash-latest", gemini_key))
    fallbacks = [{PRIMARY_MODEL: [FALLBACK_MODEL]}] if openai_key and gemini_key else None

    try:
        from litellm import Router

        _ROUTER_CACHE = Router(
            model_list=deployments,
            fallbacks=fallbacks,
            num_retries=int(_config_value("MODERATION_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
            timeout=float(_config_value("MODERATION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
        )
    except Exception as e:
        return None, f"Could not build LiteLLM router: {e}"
    return _ROUTER_CACHE, None


def _strip_code_fence(text: str) -> str:
    """Models sometimes wrap JSON in a markdown code block; keep only the inside."""
    if not text.startswith("```"):
        return text
    json_lines = []
    in_code_block = False
    for line in text.split("\n"):
        if line.startswith("```"):
            in_code_block = not in_code_block
            continue
        if in_code_block:
            json_lines.append(line)
    return "\n".join(json_lines)


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse a model reply into a JSON object.

    Raises:
        ExternalServiceUnavailable: reply is empty, not JSON, or not an object
    """
    cleaned = _strip_code_fence((text or "").strip()).strip()
    if not cleaned:
        raise ExternalServiceUnavailable("Empty response from AI providers")
    try:
        parsed = json.loads(cleaned)
    except (ValueError, TypeError) as e:
        raise ExternalServiceUnavailable(f"Unparseable AI response: {e}")
    if not isinstance(parsed, dict):
        raise ExternalServiceUnavailable("AI response was not a JSON object")
    return parsed


def complete_json(system_prompt: str, user_prompt: str, max_tokens: int = 300) -> Dict[str, Any]:
    """
    Ask the classification capability for a JSON object.

    Args:
        system_prompt: Instructions, including the exact JSON shape wanted
        user_prompt: The content under review
        max_tokens: Reply budget

    Returns:
        Parsed JSON object (shape NOT yet validated; callers must check it)

    Raises:
        ExternalServiceUnavailable: on any provider, timeout or parse failure
    """
    global AI_LAST_ERROR
    AI_LAST_ERROR = None

    router, err = _get_litellm_router()
    if router is None:
        AI_LAST_ERROR = err
        raise ExternalServiceUnavailable(err)

    openai_key, _ = _api_keys()
    model = PRIMARY_MODEL if openai_key else FALLBACK_MODEL
    timeout = float(_config_value("MODERATION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))

    try:
        resp = router.completion(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        text = resp.choices[0].message.content or ""
    except Exception as e:
        AI_LAST_ERROR = str(e)[:300]
        raise ExternalServiceUnavailable(AI_LAST_ERROR)

    try:
        return parse_json_object(text)
    except ExternalServiceUnavailable as e:
        AI_LAST_ERROR = str(e)[:300]
        raise
