"""
Tests for the Gemini API key pool.

Covers:
- Round-robin dispensing and rotation on failure
- Rate-limit backoff (exponential, capped) and cooldown expiry
- Sticky auth failures and reset()
- Health snapshots (masking, no side effects)
"""

import pytest

from storefront.services.api_key_pool import ApiKeyPool, build_api_key_pool, mask_key
from storefront.utils.exceptions import (
    ConfigurationError,
    FailureKind,
    NoHealthyCredentialError,
    UpstreamUnavailableError,
)


# =============================================================================
# INITIALIZATION
# =============================================================================

def test_empty_key_list_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        ApiKeyPool([])


def test_blank_keys_are_ignored():
    pool = ApiKeyPool(["", "   ", "real-key-123456"])
    assert len(pool) == 1
    assert pool.get_next_credential().secret == "real-key-123456"


def test_only_blank_keys_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        ApiKeyPool(["", "  "])


def test_build_api_key_pool_returns_none_without_keys(monkeypatch):
    from storefront.services import api_key_pool as module

    monkeypatch.setattr(module.settings, "GEMINI_API_KEYS", [])
    assert build_api_key_pool() is None


def test_build_api_key_pool_uses_configured_keys(monkeypatch):
    from storefront.services import api_key_pool as module

    monkeypatch.setattr(module.settings, "GEMINI_API_KEYS", ["first-key-0001", "second-key-0002"])
    pool = build_api_key_pool()
    assert pool is not None
    assert len(pool) == 2


# =============================================================================
# DISPENSING
# =============================================================================

def test_active_key_is_reused_while_healthy(key_pool):
    first = key_pool.get_next_credential()
    key_pool.report_success(first.index)
    second = key_pool.get_next_credential()

    assert first.index == 0
    assert second.index == 0


def test_rate_limited_key_is_skipped(key_pool):
    credential = key_pool.get_next_credential()
    key_pool.report_failure(credential.index, FailureKind.RATE_LIMITED)

    assert key_pool.get_next_credential().index == 1


def test_all_but_one_rate_limited_dispenses_the_remaining_key(key_pool):
    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    key_pool.report_failure(1, FailureKind.RATE_LIMITED)

    assert key_pool.get_next_credential().index == 2


def test_rotation_wraps_around_from_active_index(key_pool):
    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    assert key_pool.get_next_credential().index == 1

    key_pool.report_failure(1, FailureKind.RATE_LIMITED)
    key_pool.report_failure(2, FailureKind.RATE_LIMITED)

    with pytest.raises(NoHealthyCredentialError):
        key_pool.get_next_credential()


def test_no_healthy_credential_is_upstream_unavailable(key_pool):
    for index in range(3):
        key_pool.report_failure(index, FailureKind.AUTH_ERROR)

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        key_pool.get_next_credential()

    assert exc_info.value.details["total_keys"] == 3


def test_key_over_failure_ceiling_is_skipped(clock):
    pool = ApiKeyPool(["key-one-000001", "key-two-000002"], clock=clock, unknown_failure_cooldown=0)
    for _ in range(3):
        pool.report_failure(0, FailureKind.UNKNOWN)

    assert pool.get_next_credential().index == 1


# =============================================================================
# COOLDOWNS
# =============================================================================

def test_backoff_is_exponential_and_capped(key_pool):
    assert key_pool.backoff(1) == 60
    assert key_pool.backoff(2) == 120
    assert key_pool.backoff(3) == 240
    assert key_pool.backoff(4) == 480
    assert key_pool.backoff(5) == 900
    assert key_pool.backoff(500) == 900


def test_rate_limit_cooldown_expires(key_pool, clock):
    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    key_pool.report_failure(1, FailureKind.RATE_LIMITED)
    key_pool.report_failure(2, FailureKind.RATE_LIMITED)

    with pytest.raises(NoHealthyCredentialError):
        key_pool.get_next_credential()

    clock.advance(61)
    credential = key_pool.get_next_credential()
    assert credential.index == 0


def test_unknown_failure_uses_fixed_cooldown(key_pool):
    key_pool.report_failure(0, FailureKind.UNKNOWN)
    key_pool.report_failure(0, FailureKind.UNKNOWN)

    snapshot = key_pool.get_health_status()
    assert snapshot.keys[0].cooldown_remaining == 30
    assert snapshot.keys[0].rate_limited is False


def test_cooldown_only_extends(key_pool):
    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    assert key_pool.get_health_status().keys[0].cooldown_remaining == 120

    # A shorter cooldown reported afterwards does not shorten it
    key_pool.report_failure(0, FailureKind.UNKNOWN)
    assert key_pool.get_health_status().keys[0].cooldown_remaining == 120


def test_expired_key_is_recovered_when_nothing_else_is_healthy(clock):
    pool = ApiKeyPool(["only-key-000001"], clock=clock)
    for _ in range(3):
        pool.report_failure(0, FailureKind.RATE_LIMITED)

    with pytest.raises(NoHealthyCredentialError):
        pool.get_next_credential()

    clock.advance(241)
    credential = pool.get_next_credential()
    assert credential.index == 0
    assert credential.consecutive_failures == 0
    assert credential.rate_limited is False


def test_snapshot_counts_expired_key_over_ceiling_as_healthy(clock):
    pool = ApiKeyPool(["only-key-000001"], clock=clock)
    for _ in range(3):
        pool.report_failure(0, FailureKind.RATE_LIMITED)

    assert pool.get_health_status().healthy_keys == 0

    clock.advance(241)
    snapshot = pool.get_health_status()

    # The snapshot agrees with what get_next_credential will dispense
    assert snapshot.healthy_keys == 1
    assert snapshot.keys[0].is_healthy is True
    assert snapshot.keys[0].cooldown_remaining == 0
    assert pool.get_next_credential().index == 0


def test_snapshot_never_counts_auth_failed_key_as_healthy(clock):
    pool = ApiKeyPool(["only-key-000001"], clock=clock, unknown_failure_cooldown=30)
    pool.report_failure(0, FailureKind.UNKNOWN)
    pool.report_failure(0, FailureKind.AUTH_ERROR)
    clock.advance(31)

    assert pool.get_health_status().keys[0].is_healthy is False
    with pytest.raises(NoHealthyCredentialError):
        pool.get_next_credential()


def test_success_clears_failure_state(key_pool, clock):
    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    clock.advance(61)
    credential = key_pool.get_next_credential()
    key_pool.report_success(credential.index)

    key = key_pool.get_health_status().keys[credential.index]
    assert key.is_healthy is True
    assert key.rate_limited is False
    assert key.cooldown_remaining is None
    assert key.call_count == 1


# =============================================================================
# AUTH FAILURES + RESET
# =============================================================================

def test_auth_error_is_sticky(key_pool, clock):
    key_pool.report_failure(0, FailureKind.AUTH_ERROR)
    clock.advance(100_000)

    assert key_pool.get_next_credential().index == 1
    assert key_pool.get_health_status().keys[0].is_healthy is False


def test_auth_error_is_not_healed_by_success_elsewhere(key_pool):
    key_pool.report_failure(0, FailureKind.AUTH_ERROR)
    key_pool.report_success(1)

    assert key_pool.get_health_status().keys[0].is_healthy is False


def test_reset_restores_every_key(key_pool):
    key_pool.report_failure(0, FailureKind.AUTH_ERROR)
    key_pool.report_failure(1, FailureKind.RATE_LIMITED)
    key_pool.report_success(2)

    key_pool.reset()
    snapshot = key_pool.get_health_status()

    assert snapshot.healthy_keys == 3
    assert snapshot.active_key_index == 0
    assert snapshot.last_rotation is None
    assert all(key.call_count == 0 for key in snapshot.keys)
    assert all(key.cooldown_remaining is None for key in snapshot.keys)


def test_report_for_unknown_index_raises(key_pool):
    with pytest.raises(IndexError):
        key_pool.report_success(7)


# =============================================================================
# HEALTH SNAPSHOT
# =============================================================================

def test_mask_key():
    assert mask_key("abcdefghijklmnop") == "abcd****mnop"
    assert mask_key("short") == "****"
    assert mask_key("12345678") == "****"


def test_snapshot_never_exposes_secrets(key_pool):
    snapshot = key_pool.get_health_status()

    for key in snapshot.keys:
        assert "****" in key.masked_key
    assert snapshot.keys[0].masked_key == "key-****0001"


def test_snapshot_does_not_change_state(key_pool, clock):
    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    clock.advance(30)

    first = key_pool.get_health_status()
    second = key_pool.get_health_status()

    assert first == second
    assert first.keys[0].cooldown_remaining == 30
    assert first.keys[0].is_healthy is False


def test_snapshot_records_rotation(key_pool, clock):
    assert key_pool.get_health_status().last_rotation is None

    key_pool.report_failure(0, FailureKind.RATE_LIMITED)
    key_pool.get_next_credential()
    snapshot = key_pool.get_health_status()

    assert snapshot.active_key_index == 1
    assert snapshot.keys[1].is_active is True
    assert snapshot.last_rotation is not None
    assert snapshot.last_rotation.timestamp() == pytest.approx(clock.now)
