"""
Tests for the single-call Gemini client.

genai.Client is patched, so no network call is made.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import errors as genai_errors

from storefront.services import llm_client
from storefront.services.api_key_pool import Credential
from storefront.utils.exceptions import FailureKind, UpstreamCallError


@pytest.fixture(autouse=True)
def clear_client_cache():
    llm_client._gemini_clients.clear()
    yield
    llm_client._gemini_clients.clear()


def _mock_genai_client(generate_content):
    client = MagicMock()
    client.aio.models.generate_content = generate_content
    return client


def _text_response(text):
    part = MagicMock()
    part.text = text
    response = MagicMock()
    response.candidates = [MagicMock()]
    response.candidates[0].content.parts = [part]
    response.text = text
    return response


@pytest.mark.parametrize("status_code, expected", [
    (429, FailureKind.RATE_LIMITED),
    (401, FailureKind.AUTH_ERROR),
    (403, FailureKind.AUTH_ERROR),
    (500, FailureKind.UNKNOWN),
    (503, FailureKind.UNKNOWN),
    (None, FailureKind.UNKNOWN),
])
def test_classify_status(status_code, expected):
    assert llm_client.classify_status(status_code) == expected


@pytest.mark.asyncio
async def test_complete_returns_text_and_uses_credential_secret():
    generate = AsyncMock(return_value=_text_response('{"category": "audio"}'))
    credential = Credential(index=1, secret="secret-key-0001")

    with patch.object(llm_client.genai, "Client", return_value=_mock_genai_client(generate)) as client_cls:
        text = await llm_client.complete("find earbuds", credential)

    assert text == '{"category": "audio"}'
    client_cls.assert_called_once_with(api_key="secret-key-0001")
    kwargs = generate.await_args.kwargs
    assert kwargs["contents"] == "find earbuds"
    assert kwargs["config"].response_mime_type == "application/json"


@pytest.mark.asyncio
async def test_complete_reuses_client_per_key():
    generate = AsyncMock(return_value=_text_response("{}"))
    credential = Credential(index=0, secret="secret-key-0001")

    with patch.object(llm_client.genai, "Client", return_value=_mock_genai_client(generate)) as client_cls:
        await llm_client.complete("one", credential)
        await llm_client.complete("two", credential)

    assert client_cls.call_count == 1


@pytest.mark.asyncio
async def test_complete_maps_rate_limit_error():
    error = genai_errors.APIError(429, {"error": {"message": "quota exceeded", "status": "RESOURCE_EXHAUSTED"}})
    generate = AsyncMock(side_effect=error)
    credential = Credential(index=0, secret="secret-key-0001")

    with patch.object(llm_client.genai, "Client", return_value=_mock_genai_client(generate)):
        with pytest.raises(UpstreamCallError) as exc_info:
            await llm_client.complete("find earbuds", credential)

    assert exc_info.value.kind == FailureKind.RATE_LIMITED
    assert exc_info.value.upstream_status == 429


@pytest.mark.asyncio
async def test_complete_maps_auth_error():
    error = genai_errors.APIError(403, {"error": {"message": "API key not valid", "status": "PERMISSION_DENIED"}})
    generate = AsyncMock(side_effect=error)
    credential = Credential(index=0, secret="secret-key-0001")

    with patch.object(llm_client.genai, "Client", return_value=_mock_genai_client(generate)):
        with pytest.raises(UpstreamCallError) as exc_info:
            await llm_client.complete("find earbuds", credential)

    assert exc_info.value.kind == FailureKind.AUTH_ERROR


@pytest.mark.asyncio
async def test_complete_rejects_empty_response():
    response = MagicMock()
    response.candidates = []
    response.text = None
    generate = AsyncMock(return_value=response)
    credential = Credential(index=0, secret="secret-key-0001")

    with patch.object(llm_client.genai, "Client", return_value=_mock_genai_client(generate)):
        with pytest.raises(UpstreamCallError) as exc_info:
            await llm_client.complete("find earbuds", credential)

    assert exc_info.value.kind == FailureKind.UNKNOWN
