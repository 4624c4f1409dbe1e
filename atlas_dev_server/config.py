"""
Dev server configuration. Stand-in for App Services auth + Data API on localhost.
No secrets in this file; dev credentials come from env.
"""
import os

# Public base URL of this server (returned by the location endpoint)
BASE_URL = os.environ.get("DEV_BASE_URL", "http://127.0.0.1:9090").rstrip("/")

# The only app id this server answers for
APP_ID = os.environ.get("DEV_APP_ID", "dev-app-abcde")

# HS256 secret for access tokens and for verifying custom-token (custom JWT) logins.
# Empty = random per process (tokens do not survive a restart, which is fine for dev).
JWT_SECRET = os.environ.get("DEV_JWT_SECRET", "")

# Access token lifetime (seconds). Short so refresh paths get exercised.
ACCESS_TOKEN_EXPIRES = int(os.environ.get("DEV_ACCESS_TOKEN_EXPIRES", "1800"))

# Audience expected in custom-token JWTs
CUSTOM_JWT_AUDIENCE = os.environ.get("DEV_CUSTOM_JWT_AUDIENCE", APP_ID)

# Optional seed email/password user and server API key (no defaults)
SEED_USER = os.environ.get("DEV_SEED_USER")
SEED_PASSWORD = os.environ.get("DEV_SEED_PASSWORD")
SEED_API_KEY = os.environ.get("DEV_API_KEY")

# Providers enabled on this app
ENABLED_PROVIDERS = {"anon-user", "local-userpass", "api-key", "custom-function", "custom-token"}
