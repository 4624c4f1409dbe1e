"""
App Services client auth API (/api/client/v2.0): location, provider login, session refresh/logout, profile.
"""
import logging
from typing import Any

import jwt
from fastapi import APIRouter, Body, Request

from atlas_dev_server.config import APP_ID, BASE_URL, CUSTOM_JWT_AUDIENCE, ENABLED_PROVIDERS
from atlas_dev_server.state import STATE, DevUser, new_object_id, verify_password
from atlas_dev_server.tokens import (
    AppServicesError,
    bearer_token,
    decode_access_token,
    get_secret,
    invalid_session,
    issue_access_token,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/client/v2.0")


def _check_app(app_id: str) -> None:
    if app_id != APP_ID:
        raise AppServicesError(404, f"cannot find app using Client App ID '{app_id}'", "AppNotFound")


@router.get("/app/{app_id}/location")
def location(app_id: str):
    _check_app(app_id)
    return {
        "deployment_model": "GLOBAL",
        "location": "US-VA",
        "hostname": BASE_URL,
        "ws_hostname": BASE_URL.replace("http", "ws", 1),
    }


def _authenticate(provider: str, body: dict[str, Any]) -> DevUser:
    """Resolve the user for one provider login. Raises AppServicesError(401) on bad credentials."""
    if provider == "anon-user":
        return STATE.user_for_identity("anon-user", new_object_id())

    if provider == "local-userpass":
        username = body.get("username")
        password = body.get("password")
        hashed = STATE.passwords.get(username) if isinstance(username, str) else None
        if not hashed or not isinstance(password, str) or not verify_password(password, hashed):
            raise AppServicesError(401, "invalid username/password", "InvalidPassword")
        return STATE.user_for_identity("local-userpass", username)

    if provider == "api-key":
        user_id = STATE.api_keys.get(body.get("key") or "")
        if user_id is None or user_id not in STATE.users:
            raise AppServicesError(401, "invalid API key", "InvalidPassword")
        return STATE.users[user_id]

    if provider == "custom-token":
        try:
            claims = jwt.decode(
                body.get("token") or "",
                get_secret(),
                algorithms=["HS256"],
                audience=CUSTOM_JWT_AUDIENCE,
            )
        except jwt.InvalidTokenError as e:
            logger.debug("Custom JWT rejected: %s", e)
            raise AppServicesError(401, "authentication via 'custom-token' is unsupported or token invalid", "AuthError")
        if not claims.get("sub"):
            raise AppServicesError(401, "custom JWT missing sub claim", "AuthError")
        data = {k: claims[k] for k in ("name", "email") if k in claims}
        return STATE.user_for_identity("custom-token", str(claims["sub"]), data)

    if provider == "custom-function":
        username = body.get("username")
        if not isinstance(username, str) or not username:
            raise AppServicesError(401, "authentication function rejected the payload", "AuthError")
        return STATE.user_for_identity("custom-function", username)

    raise AppServicesError(404, f"auth provider '{provider}' not found", "AuthProviderNotFound")


@router.post("/app/{app_id}/auth/providers/{provider}/login")
def login(app_id: str, provider: str, body: dict[str, Any] | None = Body(default=None)):
    """
    Log in with a provider. Returns access_token, refresh_token, user_id, device_id.
    Device id comes from options.device.deviceId when the client already has one.
    """
    _check_app(app_id)
    STATE.count("login")
    body = dict(body or {})
    if provider not in ENABLED_PROVIDERS:
        raise AppServicesError(404, f"auth provider '{provider}' not found", "AuthProviderNotFound")
    options = body.pop("options", None) or {}
    device = options.get("device") if isinstance(options, dict) else None
    device_id = (device or {}).get("deviceId") or new_object_id()

    user = _authenticate(provider, body)
    refresh_token = STATE.issue_refresh_token(user.id, device_id)
    logger.info("login ok provider=%s user_id=%s", provider, user.id)
    return {
        "access_token": issue_access_token(user.id, device_id),
        "refresh_token": refresh_token,
        "user_id": user.id,
        "device_id": device_id,
    }


@router.post("/auth/session")
def refresh_session(request: Request):
    """New access token for the bearer refresh token. The refresh token itself is not rotated."""
    STATE.count("refresh")
    record = STATE.valid_refresh_token(bearer_token(request))
    if record is None:
        raise invalid_session("refresh token invalid or revoked")
    return {"access_token": issue_access_token(record.user_id, record.device_id)}


@router.delete("/auth/session", status_code=204)
def delete_session(request: Request):
    """Revoke the bearer refresh token. Unknown tokens are accepted (idempotent logout)."""
    STATE.count("logout")
    record = STATE.refresh_tokens.get(bearer_token(request))
    if record is not None:
        record.revoked = True
        logger.debug("Revoked refresh token for user_id=%s", record.user_id)
    return None


@router.get("/auth/profile")
def profile(request: Request):
    STATE.count("profile")
    claims = decode_access_token(bearer_token(request))
    user = STATE.users.get(claims["sub"])
    if user is None:
        raise invalid_session("user not found")
    return user.profile()
