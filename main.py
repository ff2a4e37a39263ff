#!/usr/bin/env python3
"""
GridPortal -- serve the web application with uvicorn.

Usage:
  python main.py
  python main.py --host 127.0.0.1
  python main.py --reload

The listen port comes from PORT (default 3000). All other settings are read
from the environment or .env by core.config -- see that module for the list.

Proxy headers are honoured for the addresses uvicorn trusts by default
(127.0.0.1), so behind a local reverse proxy the login throttle and the audit
log see the real client address.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the GridPortal web server.")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: all interfaces)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=settings.port,
        reload=args.reload,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
