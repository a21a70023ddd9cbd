"""
Tests for the auth data model: Credentials, AuthToken, User and the
token lifecycle predicates.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from trainingpeaks.auth.models import (
    AuthToken,
    Credentials,
    User,
    create_auth_token,
    get_remaining_validity_time,
    has_refresh_capability,
    is_token_expired,
    is_token_valid,
    refresh_auth_token,
    should_refresh_token,
)
from trainingpeaks.errors import ValidationError

from conftest import NOW


# ====================================================================
# Credentials
# ====================================================================

class TestCredentials:

    def test_empty_username_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Credentials("", "x")
        assert exc_info.value.field == "username"

    def test_whitespace_password_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Credentials("athlete", "   ")
        assert exc_info.value.field == "password"

    def test_username_length_limit(self):
        Credentials("a" * 100, "pw")
        with pytest.raises(ValidationError) as exc_info:
            Credentials("a" * 101, "pw")
        assert exc_info.value.field == "username"

    def test_username_is_stripped(self):
        assert Credentials("  athlete ", "pw").username == "athlete"

    def test_password_hidden_from_repr(self):
        assert "hunter2" not in repr(Credentials("athlete", "hunter2"))


# ====================================================================
# AuthToken construction
# ====================================================================

class TestAuthToken:

    def test_naive_expiry_treated_as_utc(self):
        token = AuthToken("abc", "Bearer", datetime(2024, 6, 1, 13, 0, 0))
        assert token.expires_at.tzinfo == timezone.utc

    def test_empty_access_token_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            AuthToken("", "Bearer", NOW)
        assert exc_info.value.field == "access_token"

    def test_non_datetime_expiry_rejected(self):
        with pytest.raises(ValidationError):
            AuthToken("abc", "Bearer", "tomorrow")

    def test_authorization_header(self):
        assert AuthToken("abc", "Bearer", NOW).authorization_header == "Bearer abc"

    def test_create_computes_expiry_locally(self):
        token = create_auth_token("abc", timedelta(hours=23), now=NOW)
        assert token.expires_at == NOW + timedelta(hours=23)
        assert token.token_type == "Bearer"
        assert token.refresh_token is None

    def test_token_is_immutable(self):
        token = create_auth_token("abc", timedelta(hours=1), now=NOW)
        with pytest.raises(FrozenInstanceError):
            token.access_token = "other"


# ====================================================================
# Lifecycle predicates
# ====================================================================

class TestLifecycle:

    @pytest.mark.parametrize("offset", [
        timedelta(hours=-1), timedelta(seconds=-1), timedelta(0),
        timedelta(seconds=1), timedelta(hours=5),
    ])
    def test_valid_and_expired_are_complementary(self, offset):
        token = AuthToken("abc", "Bearer", NOW + offset)
        assert is_token_valid(token, NOW) != is_token_expired(token, NOW)

    def test_expired_at_exact_instant(self):
        token = AuthToken("abc", "Bearer", NOW)
        assert is_token_expired(token, NOW)

    def test_should_refresh_inside_window(self):
        token = AuthToken("abc", "Bearer", NOW + timedelta(minutes=4))
        assert should_refresh_token(token, NOW)

    def test_should_not_refresh_outside_window(self):
        token = AuthToken("abc", "Bearer", NOW + timedelta(hours=1))
        assert not should_refresh_token(token, NOW)

    def test_custom_refresh_window(self):
        token = AuthToken("abc", "Bearer", NOW + timedelta(minutes=20))
        assert should_refresh_token(token, NOW, refresh_window=timedelta(minutes=30))

    def test_remaining_validity_never_negative(self):
        expired = AuthToken("abc", "Bearer", NOW - timedelta(hours=1))
        live = AuthToken("abc", "Bearer", NOW + timedelta(minutes=10))
        assert get_remaining_validity_time(expired, NOW) == timedelta(0)
        assert get_remaining_validity_time(live, NOW) == timedelta(minutes=10)

    def test_refresh_capability(self):
        assert has_refresh_capability(AuthToken("abc", "Bearer", NOW, "r"))
        assert not has_refresh_capability(AuthToken("abc", "Bearer", NOW))


# ====================================================================
# refresh_auth_token
# ====================================================================

class TestRefreshAuthToken:

    def test_keeps_old_refresh_token_when_none_supplied(self):
        old = AuthToken("a1", "Bearer", NOW, refresh_token="r1")
        new = refresh_auth_token(old, "a2", NOW + timedelta(hours=1))
        assert new.access_token == "a2"
        assert new.refresh_token == "r1"
        assert new.token_type == "Bearer"

    def test_replaces_refresh_token_when_supplied(self):
        old = AuthToken("a1", "Bearer", NOW, refresh_token="r1")
        new = refresh_auth_token(old, "a2", NOW + timedelta(hours=1), "r2")
        assert new.refresh_token == "r2"

    def test_original_token_unchanged(self):
        old = AuthToken("a1", "Bearer", NOW, refresh_token="r1")
        refresh_auth_token(old, "a2", NOW + timedelta(hours=1), "r2")
        assert old.access_token == "a1"
        assert old.refresh_token == "r1"
        assert old.expires_at == NOW


# ====================================================================
# User
# ====================================================================

class TestUser:

    def test_valid_user(self):
        user = User(id="42", name="Jane Doe", username="jane",
                    avatar="https://cdn.example.com/a.png", preferences={"units": "metric"})
        assert user.id == "42"

    @pytest.mark.parametrize("field_name, kwargs", [
        ("id", {"id": "", "name": "Jane", "username": "jane"}),
        ("name", {"id": "1", "name": " ", "username": "jane"}),
        ("name", {"id": "1", "name": "x" * 101, "username": "jane"}),
        ("avatar", {"id": "1", "name": "Jane", "username": "jane", "avatar": "not a url"}),
    ])
    def test_invalid_fields(self, field_name, kwargs):
        with pytest.raises(ValidationError) as exc_info:
            User(**kwargs)
        assert exc_info.value.field == field_name

    def test_with_updates_returns_copy(self):
        user = User(id="1", name="Jane", username="jane")
        renamed = user.with_updates(name="Janet")
        assert renamed.name == "Janet"
        assert user.name == "Jane"

    def test_with_updates_validates(self):
        user = User(id="1", name="Jane", username="jane")
        with pytest.raises(ValidationError):
            user.with_updates(avatar="ftp:/broken")
