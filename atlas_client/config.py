"""
Client configuration. Defaults target the hosted App Services cloud; override with env for dev servers.
No secrets in this file; credentials are passed to App.login().
"""
import os

# App Services base URL (auth + profile endpoints live under /api/client/v2.0)
BASE_URL = os.environ.get("ATLAS_BASE_URL", "https://services.cloud.mongodb.com").rstrip("/")

# Data API base URL. Empty = derived from app id, region and version (see data_api.data_api_url)
DATA_API_URL = os.environ.get("ATLAS_DATA_API_URL", "").strip().rstrip("/") or None

# <region>.<cloud> for regionally deployed apps (e.g. "eu-west-1.aws"); empty when deployed globally
DATA_API_REGION = os.environ.get("ATLAS_DATA_API_REGION", "").strip() or None

# Data API version segment in the endpoint path
DATA_API_VERSION = os.environ.get("ATLAS_DATA_API_VERSION", "v1")

# Linked data source name (the cluster service name in App Services)
DATA_SOURCE = os.environ.get("ATLAS_DATA_SOURCE", "mongodb-atlas")

# Per-request network timeout (seconds); applies to login, refresh and Data API calls alike
HTTP_TIMEOUT = float(os.environ.get("ATLAS_HTTP_TIMEOUT", "10.0"))

# Refresh proactively when the access token expires within this many seconds
REFRESH_BUFFER_SECONDS = int(os.environ.get("ATLAS_REFRESH_BUFFER_SECONDS", "10"))

# SQLStorage default location (persisted session survives process restarts)
SESSION_DATABASE_URL = os.environ.get("ATLAS_SESSION_DATABASE_URL", "sqlite:///./atlas_sessions.db")

# Reported to the backend in login options.device
SDK_NAME = "atlas-app-client"
SDK_VERSION = "0.1.0"
