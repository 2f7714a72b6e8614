from datetime import timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from commons import ApiError
from src.auth.tokens import (
    AuthenticatedUser,
    get_current_user,
    require_non_anonymous,
    user_from_claims,
    verify_token,
)


def test_claims_map_onto_user():
    user = user_from_claims({"uid": "abc", "email": "a@b.c", "name": "Ada"})

    assert user == AuthenticatedUser(uid="abc", email="a@b.c", name="Ada", is_anonymous=False)


def test_sub_is_used_when_uid_missing():
    assert user_from_claims({"sub": "from-sub"}).uid == "from-sub"


def test_anonymous_provider_is_flagged():
    user = user_from_claims({"sub": "guest", "firebase": {"sign_in_provider": "anonymous"}})

    assert user.is_anonymous is True


def test_claims_without_subject_yield_no_user():
    assert user_from_claims({"email": "a@b.c"}) is None


def test_valid_token_round_trips(auth_token_factory):
    user = verify_token(auth_token_factory(uid="user-9", email="nine@example.com"))

    assert user.uid == "user-9"
    assert user.email == "nine@example.com"


def test_expired_token_is_rejected(auth_token_factory):
    token = auth_token_factory(expires_delta=timedelta(seconds=-10))

    with pytest.raises(ApiError) as exc:
        verify_token(token)

    assert exc.value.status_code == 403
    assert exc.value.code == "INVALID_TOKEN"


def test_garbage_token_is_rejected():
    with pytest.raises(ApiError) as exc:
        verify_token("not-a-jwt")

    assert exc.value.code == "INVALID_TOKEN"


async def test_missing_credentials_are_unauthorized():
    with pytest.raises(ApiError) as exc:
        await get_current_user(None)

    assert exc.value.status_code == 401
    assert exc.value.code == "MISSING_TOKEN"


async def test_bearer_credentials_resolve_user(auth_token_factory):
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=auth_token_factory())

    user = await get_current_user(credentials)

    assert user.uid == "user-123"


async def test_anonymous_users_are_refused_where_required():
    with pytest.raises(ApiError) as exc:
        await require_non_anonymous(AuthenticatedUser(uid="guest", is_anonymous=True))

    assert exc.value.status_code == 403
    assert exc.value.code == "ANONYMOUS_NOT_ALLOWED"


async def test_signed_in_users_pass_through():
    user = AuthenticatedUser(uid="abc")

    assert await require_non_anonymous(user) is user
