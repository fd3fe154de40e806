import re
from typing import Any, Dict, List

import requests

from matchmaker.models.ai_settings import ModelTier, SafetySetting
from matchmaker.utils.exceptions import ExternalServiceError

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


def gemini_generate(
    prompt: str,
    tier: ModelTier,
    api_key: str,
    safety_settings: List[SafetySetting],
    base_url: str = "https://generativelanguage.googleapis.com/v1beta",
    timeout: int = 120,
) -> str:
    """Single generateContent call against one model tier; returns the text."""
    url = f"{base_url.rstrip('/')}/models/{tier.model_name}:generateContent"
    resp = requests.post(
        url,
        params={"key": api_key},
        json={
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": tier.generation.to_api(),
            "safetySettings": [s.to_api() for s in safety_settings],
        },
        timeout=timeout,
    )
    resp.raise_for_status()
    return extract_text(resp.json(), tier.model_name)


def extract_text(payload: Dict[str, Any], model_name: str = None) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        block_reason = (payload.get("promptFeedback") or {}).get("blockReason")
        raise ExternalServiceError(
            f"Model returned no candidates (blockReason={block_reason})",
            service_name=model_name,
        )
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    if not text:
        raise ExternalServiceError(
            f"Model returned an empty response (finishReason={candidates[0].get('finishReason')})",
            service_name=model_name,
        )
    return text


def strip_code_fences(s: str) -> str:
    """Models often wrap JSON in ```json fences; return the inner text."""
    m = _FENCE.match(s or "")
    return m.group(1) if m else (s or "").strip()
