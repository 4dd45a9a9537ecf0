#!/usr/bin/env python3
"""Run the API server."""
import uvicorn

from memox.api.dependencies import get_config

if __name__ == "__main__":
    config = get_config()
    uvicorn.run(
        "memox.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=True,
    )
