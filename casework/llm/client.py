"""
Provider-agnostic LLM client (JSON mode).

Contract: `generate_json(prompt, schema=...) -> (obj, err_code)`; exactly one
is non-None and the call never raises.

Env:
- LLM_PROVIDER: "anthropic" (default) or "vertexai"
  - anthropic: Claude via `langchain_anthropic` (needs ANTHROPIC_API_KEY)
  - vertexai: Gemini via `langchain_google_vertexai` (needs GOOGLE_CLOUD_PROJECT,
    GOOGLE_CLOUD_LOCATION and Application Default Credentials)
- LLM_MODEL, LLM_TEMPERATURE, LLM_MAX_OUTPUT_TOKENS, LLM_TIMEOUT_SECONDS
- LLM_MOCK=1: deterministic stub, no external calls
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from casework.config import _env_bool

logger = logging.getLogger(__name__)

_DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-20250514",
    "vertexai": "gemini-2.5-flash",
}

SchemaT = TypeVar("SchemaT")


def _provider() -> str:
    p = (os.getenv("LLM_PROVIDER") or "").strip().lower() or "anthropic"
    if p in ("vertex", "gcp_vertexai"):
        return "vertexai"
    return p


def _extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Best-effort extraction when a model wraps JSON in fences or prose."""
    if not text:
        return None
    t = text.strip()
    if t.startswith("```"):
        t = re.sub(r"^```[a-zA-Z]*\s*", "", t)
        t = re.sub(r"\s*```$", "", t).strip()

    decoder = json.JSONDecoder()
    idx = t.find("{")
    while idx != -1:
        try:
            obj, _ = decoder.raw_decode(t, idx)
        except ValueError:
            idx = t.find("{", idx + 1)
            continue
        if isinstance(obj, dict):
            return obj
        idx = t.find("{", idx + 1)
    return None


def _mock_response() -> Dict[str, Any]:
    return {
        "reply": "LLM_MOCK enabled: no external call was made.",
        "tool_calls": [],
    }


@dataclass(frozen=True)
class LLMConfig:
    provider: str
    model: str
    temperature: float
    max_output_tokens: int
    timeout: int = 120


def _load_config() -> LLMConfig:
    provider = _provider()
    model = (os.getenv("LLM_MODEL") or "").strip() or _DEFAULT_MODELS.get(provider, "")
    try:
        temperature = float((os.getenv("LLM_TEMPERATURE") or "").strip() or "0.3")
    except ValueError:
        temperature = 0.3
    try:
        max_output_tokens = int((os.getenv("LLM_MAX_OUTPUT_TOKENS") or "").strip() or "2048")
    except ValueError:
        max_output_tokens = 2048
    try:
        timeout = int((os.getenv("LLM_TIMEOUT_SECONDS") or "").strip() or "120")
    except ValueError:
        timeout = 120

    return LLMConfig(
        provider=provider,
        model=model,
        temperature=max(0.0, min(temperature, 1.0)),
        max_output_tokens=max(64, min(max_output_tokens, 8192)),
        timeout=max(5, min(timeout, 300)),
    )


def _classify_error(e: Exception, *, model: str) -> str:
    msg = str(e or "").replace("\n", " ").strip()
    up = msg.upper()

    if isinstance(e, TimeoutError) or "TIMEOUT" in up or "TIMED OUT" in up or "408" in msg:
        return "timeout"
    if "DEADLINE_EXCEEDED" in up:
        return "deadline_exceeded"
    if "PERMISSION_DENIED" in up or "403" in msg:
        return "permission_denied"
    if "UNAUTHENTICATED" in up or "401" in msg:
        return "unauthenticated"
    if "404" in msg or "NOT FOUND" in up:
        return f"model_not_found:{model}"
    if "429" in msg or "OVERLOADED" in up or ("RATE" in up and "LIMIT" in up):
        return "rate_limited"
    if "MAX_TOKENS" in up or "CONTEXT LENGTH" in up:
        return "max_tokens_truncated"
    return f"llm_error:{type(e).__name__}"


def _get_llm_instance(cfg: LLMConfig) -> Tuple[Any, Optional[str]]:
    """
    Return (chat_model, err_code). Exactly one is None.
    """
    if cfg.provider == "anthropic":
        api_key = (os.getenv("ANTHROPIC_API_KEY") or "").strip()
        if not api_key:
            return None, "missing_api_key"
        try:
            from langchain_anthropic import ChatAnthropic  # type: ignore[import-not-found]
        except ImportError:
            return None, "sdk_import_failed:langchain_anthropic"
        llm = ChatAnthropic(
            model=cfg.model,
            temperature=cfg.temperature,
            max_tokens=cfg.max_output_tokens,
            anthropic_api_key=api_key,
            timeout=cfg.timeout,
        )
        return llm, None

    if cfg.provider == "vertexai":
        project = (os.getenv("GOOGLE_CLOUD_PROJECT") or "").strip()
        location = (os.getenv("GOOGLE_CLOUD_LOCATION") or "").strip()
        if not project:
            return None, "missing_gcp_project"
        if not location:
            return None, "missing_gcp_location"
        try:
            from langchain_google_vertexai import ChatVertexAI  # type: ignore[import-not-found]
        except ImportError:
            return None, "sdk_import_failed:langchain_google_vertexai"
        llm = ChatVertexAI(
            model=cfg.model,
            temperature=cfg.temperature,
            max_output_tokens=cfg.max_output_tokens,
            project=project,
            location=location,
            timeout=cfg.timeout,
        )
        return llm, None

    return None, "provider_not_configured"


def generate_json(
    prompt: str, *, schema: Optional[Type[SchemaT]] = None
) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """
    Provider-agnostic JSON call.

    With `schema` (a pydantic model) the provider's structured output mode is
    used and the parsed object is returned as a plain dict.
    """
    if _env_bool("LLM_MOCK", False):
        if schema is not None:
            try:
                obj0 = getattr(schema, "model_validate")({})
                dump = obj0.model_dump(mode="json")
                return dump if isinstance(dump, dict) else {}, None
            except Exception:
                return _mock_response(), None
        return _mock_response(), None

    cfg = _load_config()
    llm, err = _get_llm_instance(cfg)
    if err:
        return None, err

    try:
        if schema is not None:
            out = llm.with_structured_output(schema).invoke(prompt)
            if hasattr(out, "model_dump"):
                d = out.model_dump(mode="json")
                return (d, None) if isinstance(d, dict) else (None, "schema_dump_failed")
            if isinstance(out, dict):
                return out, None
            return None, "schema_output_unexpected"

        msg = llm.invoke(prompt)
        obj = _extract_json_object(str(getattr(msg, "content", "") or ""))
        return (obj, None) if obj is not None else (None, "json_parse_failed")
    except Exception as e:
        code = _classify_error(e, model=cfg.model)
        logger.warning("LLM call failed: %s", code)
        return None, code
