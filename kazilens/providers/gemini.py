from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional, Union

from kazilens.config import Config
from kazilens.errors import ProviderError, RateLimited

logger = logging.getLogger(__name__)

Contents = Union[str, List[Dict[str, Any]]]


def _as_contents(contents: Contents) -> List[Dict[str, Any]]:
    if isinstance(contents, str):
        return [{"role": "user", "parts": [{"text": contents}]}]
    return contents


def extract_text(data: Dict[str, Any]) -> str:
    try:
        cand0 = (data.get("candidates") or [])[0]
        parts = ((cand0.get("content") or {}).get("parts") or [])
        return "".join([p.get("text", "") for p in parts if isinstance(p, dict)])
    except (IndexError, AttributeError):
        return ""


async def generate_content(
    contents: Contents,
    *,
    model: str,
    system_instruction: Optional[str] = None,
    response_schema: Optional[Dict[str, Any]] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Uses the Gemini Developer API generateContent endpoint and returns the response text.
    Passing response_schema switches the call to JSON mode.

    Raises RateLimited on 429 so callers can back off, ProviderError otherwise.
    """
    api_key = (Config.get_gemini_key() or "").strip()
    if not api_key:
        raise ProviderError("GEMINI_API_KEY is not set. Add it to .env to enable the AI features.")

    base_url = Config.GEMINI_BASE_URL.rstrip("/")

    # Gemini REST: POST /v1beta/models/{model}:generateContent
    url = f"{base_url}/v1beta/models/{model}:generateContent"

    body: Dict[str, Any] = {"contents": _as_contents(contents)}
    if system_instruction:
        body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
    if response_schema is not None:
        body["generationConfig"] = {
            "responseMimeType": "application/json",
            "responseSchema": response_schema,
        }
    if tools:
        body["tools"] = tools

    headers = {
        "Content-Type": "application/json",
        # Recommended auth header for Gemini Developer API
        "x-goog-api-key": api_key,
    }

    try:
        async with httpx.AsyncClient(timeout=Config.GEMINI_TIMEOUT_SECONDS, transport=transport) as client:
            r = await client.post(url, json=body, headers=headers)
    except httpx.HTTPError as e:
        raise ProviderError(f"Network connection failed: {e}") from e

    if r.status_code == 429:
        raise RateLimited(f"429 from {model}: {r.text[:200]}")
    try:
        r.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ProviderError(f"HTTP {r.status_code} from {model}: {r.text[:200]}") from e

    text = extract_text(r.json())
    logger.debug("generateContent %s -> %d chars", model, len(text))
    return text
