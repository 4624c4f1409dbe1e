"""Tests for credential encoding and local validation."""
import dataclasses

import pytest

from atlas_client.credentials import (
    AnonymousCredentials,
    Credentials,
    EmailPasswordCredentials,
    FunctionCredentials,
)
from atlas_client.errors import InvalidCredentials


def test_anonymous_encodes_empty_payload():
    c = Credentials.anonymous()
    assert c.provider == "anon-user"
    assert c.encode() == {}


def test_email_password_uses_username_on_the_wire():
    c = Credentials.email_password("a@b.com", "pw")
    assert c.provider == "local-userpass"
    assert c.encode() == {"username": "a@b.com", "password": "pw"}


def test_api_key_and_jwt_payloads():
    assert Credentials.api_key("k-123").encode() == {"key": "k-123"}
    assert Credentials.api_key("k-123").provider == "api-key"
    assert Credentials.jwt("eyJ.x.y").encode() == {"token": "eyJ.x.y"}
    assert Credentials.jwt("eyJ.x.y").provider == "custom-token"


def test_function_payload_is_passed_through_and_copied():
    payload = {"username": "bob", "pin": 1234}
    c = Credentials.function(payload)
    payload["pin"] = 0
    assert c.provider == "custom-function"
    assert c.encode() == {"username": "bob", "pin": 1234}


@pytest.mark.parametrize(
    "factory",
    [
        lambda: Credentials.email_password("", "pw"),
        lambda: Credentials.email_password("a@b.com", ""),
        lambda: Credentials.email_password("   ", "pw"),
        lambda: Credentials.api_key(""),
        lambda: Credentials.jwt(""),
        lambda: Credentials.function(["not", "a", "mapping"]),
    ],
)
def test_invalid_input_rejected_locally(factory):
    with pytest.raises(InvalidCredentials):
        factory()


def test_credentials_are_immutable():
    c = Credentials.email_password("a@b.com", "pw")
    with pytest.raises(dataclasses.FrozenInstanceError):
        c.email = "other@b.com"


def test_secrets_not_in_repr():
    assert "hunter2" not in repr(Credentials.email_password("a@b.com", "hunter2"))
    assert "secret-key" not in repr(Credentials.api_key("secret-key"))


def test_equality_drives_login_dedup():
    assert Credentials.email_password("a@b.com", "pw") == EmailPasswordCredentials("a@b.com", "pw")
    assert Credentials.email_password("a@b.com", "pw") != Credentials.email_password("a@b.com", "other")
    assert Credentials.anonymous() == AnonymousCredentials()
    assert Credentials.function({"u": 1}) == FunctionCredentials({"u": 1})
    assert hash(Credentials.function({"u": 1})) == hash(FunctionCredentials({"u": 1}))
