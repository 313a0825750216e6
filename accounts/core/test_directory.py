"""
Tests for listing users and resolving the current user
"""
import asyncio

import pytest

from accounts.core.directory import UserDirectory
from accounts.core.registration import RegistrationFlow
from accounts.core.subjects import RegisterRequest
from accounts.core.tokens import TokenIssuer
from accounts.errors import InvalidTokenError


@pytest.fixture
def directory(store, issuer):
    return UserDirectory(store, issuer)


@pytest.fixture
def users(store, hasher, issuer, events):
    flow = RegistrationFlow(store, hasher, issuer, events)
    return [
        asyncio.run(flow.register(RegisterRequest(name=name, email=f"{name}@x.com", password="pw")))
        for name in ("alice", "bob", "carol")
    ]


class TestUserDirectory:

    def test_list_users_clears_tokens(self, directory, users):
        listed = asyncio.run(directory.list_users())
        assert [u.name for u in listed] == ["alice", "bob", "carol"]
        assert all(u.token == "" for u in listed)

    def test_list_users_leaves_stored_tokens(self, directory, users, store):
        asyncio.run(directory.list_users())
        assert all(row.token for row in store.rows.values())

    def test_list_users_empty(self, directory):
        assert asyncio.run(directory.list_users()) == []

    def test_current_user(self, directory, users):
        user = asyncio.run(directory.current_user(users[1].token))
        assert user.name == "bob"
        assert user.token == users[1].token

    def test_current_user_unknown_name(self, directory, issuer, users):
        with pytest.raises(InvalidTokenError):
            asyncio.run(directory.current_user(issuer.issue("mallory", "m@x.com")))

    def test_current_user_email_mismatch(self, directory, issuer, users):
        with pytest.raises(InvalidTokenError):
            asyncio.run(directory.current_user(issuer.issue("alice", "other@x.com")))

    def test_current_user_forged_token(self, directory, users):
        forged = TokenIssuer("another-secret-that-is-long-enough!!").issue("alice", "alice@x.com")
        with pytest.raises(InvalidTokenError):
            asyncio.run(directory.current_user(forged))
