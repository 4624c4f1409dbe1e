"""
Access tokens (HS256 JWTs) and the App Services error shape shared by all routes.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Request
from fastapi.responses import JSONResponse

from atlas_dev_server.config import ACCESS_TOKEN_EXPIRES, APP_ID, BASE_URL, JWT_SECRET

logger = logging.getLogger(__name__)

_secret = JWT_SECRET or secrets.token_urlsafe(32)

ERROR_LINK = f"{BASE_URL}/logs"


class AppServicesError(Exception):
    """Rendered as {"error", "error_code", "link"} like the hosted service."""

    def __init__(self, status_code: int, error: str, error_code: str):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.error_code = error_code


async def app_services_error_handler(request: Request, exc: AppServicesError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "error_code": exc.error_code, "link": ERROR_LINK},
    )


def invalid_session(reason: str) -> AppServicesError:
    return AppServicesError(401, f"invalid session: {reason}", "InvalidSession")


def get_secret() -> str:
    return _secret


def issue_access_token(user_id: str, device_id: str, expires_in: int = ACCESS_TOKEN_EXPIRES) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "aud": APP_ID,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "typ": "access",
        "device_id": device_id,
    }
    return jwt.encode(payload, _secret, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """Verify signature, audience and expiry. Raises AppServicesError(401 InvalidSession) on any failure."""
    try:
        payload = jwt.decode(token, _secret, algorithms=["HS256"], audience=APP_ID)
    except jwt.ExpiredSignatureError:
        raise invalid_session("access token expired")
    except jwt.InvalidTokenError as e:
        logger.debug("Access token invalid: %s", e)
        raise invalid_session("access token invalid")
    if payload.get("typ") != "access":
        raise invalid_session("not an access token")
    return payload


def bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        raise invalid_session("missing bearer token")
    return value.strip()
