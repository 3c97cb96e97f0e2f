#!/usr/bin/env python3
"""
Start the NodeFlow API server.

Usage:
    python run.py
    HOST=127.0.0.1 PORT=8080 RELOAD=false python run.py
"""

import uvicorn
import os


def main():
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "true").lower() == "true"

    print(f"NodeFlow listening on http://{host}:{port} (docs at /docs)")

    uvicorn.run(
        "nodeflow.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
