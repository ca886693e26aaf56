"""
Tests for API key loading from the environment.
"""

from storefront.config import _load_api_keys


def test_comma_separated_keys_come_first(monkeypatch):
    for n in range(3, 11):
        monkeypatch.delenv(f"GEMINI_API_KEY_{n}", raising=False)
    monkeypatch.setenv("GEMINI_API_KEYS", "key-a, key-b ,,")
    monkeypatch.setenv("GEMINI_API_KEY_1", "key-c")
    monkeypatch.setenv("GEMINI_API_KEY_2", "key-a")

    assert _load_api_keys() == ["key-a", "key-b", "key-c"]


def test_numbered_keys_only(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEYS", raising=False)
    for n in range(1, 11):
        monkeypatch.delenv(f"GEMINI_API_KEY_{n}", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY_1", "first")
    monkeypatch.setenv("GEMINI_API_KEY_3", "third")

    assert _load_api_keys() == ["first", "third"]


def test_no_keys(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEYS", raising=False)
    for n in range(1, 11):
        monkeypatch.delenv(f"GEMINI_API_KEY_{n}", raising=False)

    assert _load_api_keys() == []
