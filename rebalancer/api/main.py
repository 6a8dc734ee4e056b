"""FastAPI application for the rebalance planner.

The service is stateless: each request carries its own config, snapshot and
quotes, so plans can be reviewed or reproduced without chain access.
"""

import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rebalancer import __version__
from rebalancer.api.endpoints import router

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("REBALANCER_HOST", "127.0.0.1")
PORT = int(os.environ.get("REBALANCER_PORT", "8000"))
DEBUG = os.environ.get("REBALANCER_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (2 MB)
MAX_REQUEST_SIZE = 2 * 1024 * 1024

app = FastAPI(
    title="Vault Rebalance Planner",
    description="Allocation and swap planning for a multi-strategy yield vault",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok"}


def run() -> None:
    """Run the planner API server.

    Configuration via environment variables:
    - REBALANCER_HOST: Host to bind to (default: 127.0.0.1)
    - REBALANCER_PORT: Port to bind to (default: 8000)
    - REBALANCER_DEBUG: Enable debug/reload mode (default: false)
    """
    uvicorn.run(
        "rebalancer.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
