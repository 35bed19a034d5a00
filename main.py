"""
main.py: Server launcher and entry point.

Run this file to start the Bedwise placement API:

    python main.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import uvicorn

from bedwise.utils.config import get_settings


HOST = "127.0.0.1"
PORT = 8000


def main() -> None:
    """Start the placement API server."""
    settings = get_settings()
    print("=" * 60)
    print(f"  {settings.app_name} v{settings.app_version}")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print(f"  Database : {settings.database_path}")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
