"""
LLM client - single Gemini call with an explicit API key.

The recommendation engine owns retries and key rotation; this module makes
exactly one call with the credential it is given and classifies failures
into FailureKind so the key pool can update that credential's health.
"""

import logging
from typing import Dict

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from storefront.agents.recommendation.prompts import INTENT_SYSTEM_PROMPT
from storefront.config import settings
from storefront.services.api_key_pool import Credential
from storefront.utils.exceptions import FailureKind, UpstreamCallError

logger = logging.getLogger(__name__)

# One SDK client per key, created lazily
_gemini_clients: Dict[str, genai.Client] = {}


def _get_gemini_client(secret: str) -> genai.Client:
    client = _gemini_clients.get(secret)
    if client is None:
        client = genai.Client(api_key=secret)
        _gemini_clients[secret] = client
    return client


def classify_status(status_code: int | None) -> FailureKind:
    """Map an upstream HTTP status to a credential failure kind."""
    if status_code == 429:
        return FailureKind.RATE_LIMITED
    if status_code in (401, 403):
        return FailureKind.AUTH_ERROR
    return FailureKind.UNKNOWN


def _extract_text(response: types.GenerateContentResponse) -> str | None:
    # response.text can be None even when parts carry text
    if response.candidates:
        candidate = response.candidates[0]
        if candidate.content and candidate.content.parts:
            for part in candidate.content.parts:
                if getattr(part, "text", None):
                    return part.text
    return response.text


async def complete(prompt: str, credential: Credential) -> str:
    """
    Send one prompt to Gemini using the given credential.

    Args:
        prompt: Full user prompt (intent instructions + shopper query)
        credential: Key dispensed by the ApiKeyPool

    Returns:
        Raw response text (expected to be JSON, parsed by the caller)

    Raises:
        UpstreamCallError: On any API error or empty response. `kind` tells
            the pool whether the key was rate-limited, rejected or just unlucky.
    """
    client = _get_gemini_client(credential.secret)

    config = types.GenerateContentConfig(
        system_instruction=INTENT_SYSTEM_PROMPT,
        temperature=0.2,  # Near-deterministic intent extraction
        max_output_tokens=1024,
        response_mime_type="application/json",
    )

    try:
        response = await client.aio.models.generate_content(
            model=settings.GEMINI_MODEL,
            contents=prompt,
            config=config,
        )
    except genai_errors.APIError as e:
        kind = classify_status(e.code)
        logger.warning(f"Gemini call failed with key {credential.index}: status={e.code}, kind={kind.value}")
        raise UpstreamCallError(
            f"Gemini API error ({e.code})", kind=kind, upstream_status=e.code
        ) from e

    text = _extract_text(response)
    if not text:
        logger.warning(f"Empty response from Gemini with key {credential.index}")
        raise UpstreamCallError("No response text from Gemini")

    return text
