"""
Dev server: local stand-in for App Services client auth and the Data API.
Point atlas_client at it with ATLAS_BASE_URL / ATLAS_DATA_API_URL. Port 9090.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from atlas_dev_server.auth_routes import router as auth_router
from atlas_dev_server.data_routes import router as data_router
from atlas_dev_server.state import seed_from_env
from atlas_dev_server.tokens import AppServicesError, app_services_error_handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed user/API key from env on startup."""
    seed_from_env()
    yield


app = FastAPI(title="Atlas Dev Server", version="0.1.0", lifespan=lifespan)
app.add_exception_handler(AppServicesError, app_services_error_handler)
app.include_router(auth_router, tags=["auth"])
app.include_router(data_router, tags=["data"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "atlas_dev_server"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "atlas_dev_server.main:app",
        host="127.0.0.1",
        port=9090,
        reload=True,
    )
