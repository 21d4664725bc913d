#!/usr/bin/env python3
"""
Product Catalog API -- command-line entry point.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py create-admin --name "Ada Admin" --email ada@example.com --password 'S3cretpass'

Environment variables (see core/config.py for the full list):
  JWT_SECRET     Token signing key, at least 32 characters. Required unless APP_ENV=development.
  DATABASE_URL   SQLAlchemy URL of the store (default: sqlite catalog.db beside this file).
  PORT           Listen port for `serve` when --port is not given (default: 3000).
"""

import argparse
import sys


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from core.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def _create_admin(args: argparse.Namespace) -> int:
    """Create or promote an admin account. Admins cannot self-register over HTTP."""
    from pydantic import ValidationError

    from api.models import RegisterRequest
    from auth.credentials import CredentialStore
    from auth.store import UserStore
    from core.config import get_settings

    settings = get_settings()
    try:
        body = RegisterRequest(name=args.name, email=args.email, password=args.password)
    except ValidationError as exc:
        print("  [!] Validation failed")
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"])
            print(f"      {field}: {err['msg']}")
        return 1

    users = UserStore(settings.database_url)
    try:
        user = CredentialStore(users, settings.bcrypt_rounds).ensure_admin(body.name, body.email, body.password)
    finally:
        users.close()
    print(f"  Admin ready: {user.email} (id {user.id})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="catalog-api",
        description="Product catalog REST API with JWT auth and live change notifications.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  APP_ENV=development python main.py serve --port 8000
  python main.py create-admin --name Admin --email admin@example.com --password 'Adm1npass'
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP and WebSocket server")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT or 3000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(handler=_serve)

    admin = sub.add_parser("create-admin", help="Create an admin account, or promote an existing one")
    admin.add_argument("--name", required=True, help="Display name, 2 to 50 characters")
    admin.add_argument("--email", required=True, help="Login email")
    admin.add_argument("--password", required=True, help="Password (needs upper, lower and a digit)")
    admin.set_defaults(handler=_create_admin)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
