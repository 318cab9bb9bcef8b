#!/usr/bin/env python3
"""FastAPI server entry point for the ContentOps backend."""

import uvicorn

from config.config import get_settings

if __name__ == "__main__":
    import argparse

    settings = get_settings()

    parser = argparse.ArgumentParser(description="ContentOps FastAPI Server")
    parser.add_argument("--host", default=settings.HOST, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    uvicorn.run(
        "server.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
