#!/usr/bin/env python3
"""
msid-api -- Microsoft sign-in backend with bearer credentials.

Usage:
  python main.py
  python main.py --port 9000
  python main.py --host 0.0.0.0 --reload

Environment variables (see core/config.py for the full list):
  JWT_SECRET               Signing secret, at least 32 characters. Required unless DEBUG=true.
  MICROSOFT_CLIENT_ID      Entra application (client) id.
  MICROSOFT_CLIENT_SECRET  Entra client secret.
  MICROSOFT_TENANT_ID      Tenant id or "common".
  APP_URL                  Frontend base URL for the post-login redirect.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="msid-api",
        description="Run the msid-api HTTP server.",
    )
    parser.add_argument(
        "--host", default=settings.host or "127.0.0.1", help="Bind address (default: HOST or 127.0.0.1)"
    )
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port (default: PORT or 8080)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
