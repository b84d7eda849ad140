from __future__ import annotations

import threading

import pytest

from secretshare.errors import DuplicateUsername
from secretshare.store.memory_store import MemoryUserStore


def test_find_or_create_creates_once_with_only_provider_id() -> None:
    store = MemoryUserStore()
    user, created = store.find_or_create("google_id", "g-123")
    assert created is True
    assert user.google_id == "g-123"
    assert user.facebook_id is None
    assert user.username is None
    assert user.password_hash is None and user.salt is None
    assert user.secret is None

    again, created_again = store.find_or_create("google_id", "g-123")
    assert created_again is False
    assert again.id == user.id


def test_same_id_for_different_providers_are_distinct_users() -> None:
    store = MemoryUserStore()
    g, _ = store.find_or_create("google_id", "42")
    f, _ = store.find_or_create("facebook_id", "42")
    assert g.id != f.id


def test_find_or_create_rejects_unknown_field() -> None:
    with pytest.raises(ValueError):
        MemoryUserStore().find_or_create("username", "alice")


def test_concurrent_find_or_create_yields_one_record() -> None:
    store = MemoryUserStore()
    results = []

    def worker() -> None:
        results.append(store.find_or_create("facebook_id", "fb-1"))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({u.id for u, _ in results}) == 1
    assert sum(1 for _, created in results if created) == 1


def test_duplicate_local_username() -> None:
    store = MemoryUserStore()
    store.create_local_user("alice", "h", "s")
    with pytest.raises(DuplicateUsername):
        store.create_local_user("alice", "h2", "s2")
    assert store.get_by_username("alice").password_hash == "h"


def test_secrets_listing_and_isolated_overwrite() -> None:
    store = MemoryUserStore()
    a = store.create_local_user("a", "h", "s")
    b = store.create_local_user("b", "h", "s")
    c, _ = store.find_or_create("google_id", "g")
    assert store.list_with_secrets() == []

    assert store.set_secret(a.id, "first") is True
    assert store.set_secret(c.id, "google secret") is True
    assert store.set_secret(a.id, "second") is True

    listed = store.list_with_secrets()
    assert {u.id for u in listed} == {a.id, c.id}
    assert store.get_by_id(a.id).secret == "second"
    assert store.get_by_id(b.id).secret is None
    assert store.get_by_id(c.id).secret == "google secret"


def test_set_secret_for_unknown_user() -> None:
    assert MemoryUserStore().set_secret("missing", "x") is False


def test_returned_users_are_copies() -> None:
    store = MemoryUserStore()
    u = store.create_local_user("a", "h", "s")
    u.secret = "mutated outside"
    assert store.get_by_id(u.id).secret is None
