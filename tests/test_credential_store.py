"""Unit tests for auth/store.py -- CredentialStore.

Covers:
- create() normalizes username/email and enforces uniqueness (case-insensitive)
- find_by_identifier() matches username or email
- hash_and_set_password() replaces the hash and nothing else
- compare_and_set_refresh_token() only swaps on an exact match
- concurrent compare-and-set: exactly one winner
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from auth.models import User
from auth.passwords import hash_password
from auth.store import CredentialStore, DuplicateUserError


def _new_user(username="Alice", email="Alice@X.com", password="pw123") -> User:
    return User(
        fullname="Alice Doe",
        username=username,
        email=email,
        hashed_password=hash_password(password),
        avatar_url="https://media.test/a.png",
    )


@pytest.fixture
def alice(store: CredentialStore) -> User:
    return store.create(_new_user())


class TestCreate:
    def test_assigns_id_and_normalizes(self, alice: User) -> None:
        assert alice.id and len(alice.id) == 32
        assert alice.username == "alice"
        assert alice.email == "alice@x.com"
        assert alice.refresh_token is None
        assert alice.created_at and alice.updated_at

    def test_duplicate_username_case_insensitive(self, store: CredentialStore, alice: User) -> None:
        with pytest.raises(DuplicateUserError):
            store.create(_new_user(username="ALICE", email="other@x.com"))
        assert store.count_users() == 1

    def test_duplicate_email(self, store: CredentialStore, alice: User) -> None:
        with pytest.raises(DuplicateUserError):
            store.create(_new_user(username="bob", email="alice@x.com"))
        assert store.count_users() == 1

    def test_username_cannot_take_an_existing_email(self, store: CredentialStore, alice: User) -> None:
        with pytest.raises(DuplicateUserError):
            store.create(_new_user(username="Alice@x.com", email="mallory@x.com"))
        assert store.count_users() == 1

    def test_email_cannot_take_an_existing_username(self, store: CredentialStore) -> None:
        squatter = store.create(_new_user(username="victim@x.com", email="mallory@x.com"))
        with pytest.raises(DuplicateUserError):
            store.create(_new_user(username="victim", email="VICTIM@x.com"))
        assert store.count_users() == 1
        assert store.find_by_identifier("victim@x.com").id == squatter.id

    def test_password_not_stored_in_plaintext(self, store: CredentialStore, alice: User) -> None:
        assert alice.hashed_password != "pw123"
        assert store.verify_password(alice, "pw123")


class TestLookup:
    @pytest.mark.parametrize("identifier", ["alice", "ALICE", "alice@x.com", " Alice@X.com "])
    def test_find_by_identifier(self, store: CredentialStore, alice: User, identifier: str) -> None:
        found = store.find_by_identifier(identifier)
        assert found is not None
        assert found.id == alice.id

    def test_unknown_identifier(self, store: CredentialStore, alice: User) -> None:
        assert store.find_by_identifier("mallory") is None
        assert store.find_by_identifier("   ") is None

    def test_find_by_id(self, store: CredentialStore, alice: User) -> None:
        assert store.find_by_id(alice.id).username == "alice"
        assert store.find_by_id("missing") is None

    def test_exists(self, store: CredentialStore, alice: User) -> None:
        assert store.exists("alice", "new@x.com")
        assert store.exists("new", "ALICE@x.com")
        assert not store.exists("new", "new@x.com")

    def test_exists_crosses_columns(self, store: CredentialStore, alice: User) -> None:
        assert store.exists("alice@x.com", "new@x.com")
        assert store.exists("new", "alice")


class TestPassword:
    def test_hash_and_set_password(self, store: CredentialStore, alice: User) -> None:
        store.set_refresh_token(alice.id, "slot-value")
        assert store.hash_and_set_password(alice.id, "new-secret")

        updated = store.find_by_id(alice.id)
        assert store.verify_password(updated, "new-secret")
        assert not store.verify_password(updated, "pw123")
        assert updated.refresh_token == "slot-value"
        assert updated.username == alice.username

    def test_unknown_user(self, store: CredentialStore) -> None:
        assert store.hash_and_set_password("missing", "x") is False


class TestSessionSlot:
    def test_compare_and_set_from_empty(self, store: CredentialStore, alice: User) -> None:
        assert store.compare_and_set_refresh_token(alice.id, None, "t1")
        assert store.find_by_id(alice.id).refresh_token == "t1"

    def test_compare_and_set_mismatch_leaves_slot(self, store: CredentialStore, alice: User) -> None:
        store.set_refresh_token(alice.id, "t1")
        assert not store.compare_and_set_refresh_token(alice.id, "stale", "t2")
        assert store.find_by_id(alice.id).refresh_token == "t1"

    def test_rotation_chain(self, store: CredentialStore, alice: User) -> None:
        store.set_refresh_token(alice.id, "t1")
        assert store.compare_and_set_refresh_token(alice.id, "t1", "t2")
        assert not store.compare_and_set_refresh_token(alice.id, "t1", "t3")
        assert store.find_by_id(alice.id).refresh_token == "t2"

    def test_clear_is_idempotent_and_blocks_cas(self, store: CredentialStore, alice: User) -> None:
        store.set_refresh_token(alice.id, "t1")
        store.clear_refresh_token(alice.id)
        store.clear_refresh_token(alice.id)
        assert store.find_by_id(alice.id).refresh_token is None
        assert not store.compare_and_set_refresh_token(alice.id, "t1", "t2")

    def test_unknown_user(self, store: CredentialStore) -> None:
        assert not store.compare_and_set_refresh_token("missing", None, "t1")


def test_concurrent_compare_and_set_has_one_winner(tmp_path: Path) -> None:
    """Eight threads race to rotate the same slot; the database lets exactly one through."""
    file_store = CredentialStore(f"sqlite:///{tmp_path / 'race.db'}")
    try:
        user = file_store.create(_new_user())
        file_store.set_refresh_token(user.id, "shared")

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda i: file_store.compare_and_set_refresh_token(user.id, "shared", f"next-{i}"),
                    range(8),
                )
            )

        assert results.count(True) == 1
        winner = results.index(True)
        assert file_store.find_by_id(user.id).refresh_token == f"next-{winner}"
    finally:
        file_store.close()
