"""Unit tests for auth/revocation.py -- atomic add-if-absent and pruning."""

import threading

from auth.revocation import InMemoryRevocationRegistry


def test_revoke_if_absent_only_first_caller_wins(registry, clock):
    assert registry.revoke_if_absent("jti-1", clock() + 60) is True
    assert registry.revoke_if_absent("jti-1", clock() + 60) is False
    assert registry.is_revoked("jti-1")
    assert not registry.is_revoked("jti-2")


def test_concurrent_revoke_if_absent_single_winner():
    registry = InMemoryRevocationRegistry()
    barrier = threading.Barrier(16)
    results: list[bool] = []
    lock = threading.Lock()

    def _attempt() -> None:
        barrier.wait()
        won = registry.revoke_if_absent("shared", 2**31)
        with lock:
            results.append(won)

    threads = [threading.Thread(target=_attempt) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert results.count(True) == 1
    assert len(registry) == 1


def test_prune_drops_only_expired_entries(registry, clock):
    registry.revoke_if_absent("short", clock() + 10)
    registry.revoke_if_absent("long", clock() + 1000)

    assert registry.prune() == 0
    clock.advance(10)
    assert registry.prune() == 1
    assert not registry.is_revoked("short")
    assert registry.is_revoked("long")


def test_prune_accepts_explicit_time(registry, clock):
    registry.revoke_if_absent("a", clock() + 5)
    assert registry.prune(now=clock() + 5) == 1
    assert len(registry) == 0


def test_pruned_expired_token_still_rejected(token_service, registry, clock):
    """Dropping an entry never resurrects its token: expiry is checked first."""
    token = token_service.issue("u-1", "ada", "STUDENT").access_token
    token_service.revoke(token)
    clock.advance(token_service.lifetime_seconds)
    assert registry.prune() == 1
    assert not token_service.validate(token)
