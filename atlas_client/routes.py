"""
Request builders for the App Services client API (/api/client/v2.0).
Pure functions: URL + headers + JSON body, no I/O.
"""
import platform
from typing import Any

from atlas_client.config import SDK_NAME, SDK_VERSION
from atlas_client.transport import HttpRequest

CLIENT_API = "/api/client/v2.0"


def app_route(base_url: str, app_id: str) -> str:
    return f"{base_url}{CLIENT_API}/app/{app_id}"


def location_request(base_url: str, app_id: str) -> HttpRequest:
    """GET the app's deployment location: {deployment_model, location, hostname, ws_hostname}."""
    return HttpRequest(method="GET", url=f"{app_route(base_url, app_id)}/location")


def device_info(device_id: str | None = None) -> dict[str, Any]:
    device = {
        "sdk": SDK_NAME,
        "sdkVersion": SDK_VERSION,
        "platform": "python",
        "platformVersion": platform.python_version(),
    }
    if device_id:
        device["deviceId"] = device_id
    return device


def login_request(
    base_url: str,
    app_id: str,
    provider: str,
    payload: dict[str, Any],
    *,
    device_id: str | None = None,
) -> HttpRequest:
    """POST credentials to /auth/providers/<provider>/login. Response: access_token, refresh_token, user_id, device_id."""
    body = dict(payload)
    body["options"] = {"device": device_info(device_id)}
    return HttpRequest(
        method="POST",
        url=f"{app_route(base_url, app_id)}/auth/providers/{provider}/login",
        json=body,
    )


def profile_request(base_url: str, access_token: str | None = None) -> HttpRequest:
    """Identities and custom data of the token's user. Without access_token, the pipeline attaches one."""
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    return HttpRequest(method="GET", url=f"{base_url}{CLIENT_API}/auth/profile", headers=headers)


def refresh_request(base_url: str, refresh_token: str) -> HttpRequest:
    """New access token for a refresh token. The refresh token is the bearer credential here."""
    return HttpRequest(
        method="POST",
        url=f"{base_url}{CLIENT_API}/auth/session",
        headers={"Authorization": f"Bearer {refresh_token}"},
    )


def logout_request(base_url: str, refresh_token: str) -> HttpRequest:
    """Invalidate the refresh token server-side."""
    return HttpRequest(
        method="DELETE",
        url=f"{base_url}{CLIENT_API}/auth/session",
        headers={"Authorization": f"Bearer {refresh_token}"},
    )
