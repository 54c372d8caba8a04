#!/usr/bin/env python3
"""
wwwbase -- Multi-user web application with one-time session tokens.

Usage:
  python main.py
  python main.py --port 9000
  python main.py --host 0.0.0.0 --log-level warning
  python main.py --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY      Signs the session cookie. Required unless DEBUG=true.
  DEBUG           true = development mode (auto-generated SECRET_KEY).
  DATABASE_URL    SQLAlchemy URL, default sqlite:///wwwbase.db next to this file.
  ADMIN_PASSWORD  Password of the bootstrap "admin" account, used when it is created.
"""

import argparse

import uvicorn

DEFAULT_PORT = 8080


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="wwwbase",
        description="Run the wwwbase web server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DEBUG=true python main.py --reload
  SECRET_KEY=... python main.py --host 0.0.0.0 --port 80
        """,
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"TCP port to listen on (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default="info",
        metavar="LEVEL",
        help="Uvicorn log level: critical, error, warning, info (default) or debug",
    )
    args = parser.parse_args()

    # Tokens live in process memory: a single worker keeps every session valid.
    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
        workers=1,
    )


if __name__ == "__main__":
    main()
