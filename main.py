#!/usr/bin/env python3
"""
Portal login service - OAuth authorization-code login for the portal frontend.
"""

import argparse
import logging
import os
import sys

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "info").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)

#
# NOTE: Keep portal imports lazy (inside functions) so `--apply-schema` does not pull in the web stack.
#


def run_apply_schema() -> int:
    """Create the users/roles schema if missing. Returns a process exit code."""
    from portal.storage.config import load_database_config
    from portal.storage.schema import apply_schema

    dsn = load_database_config().dsn
    if not dsn:
        print("Postgres DSN not configured (POSTGRES_DSN or POSTGRES_HOST/DB/USER/PASSWORD)", file=sys.stderr)
        return 2
    apply_schema(dsn)
    print("users/roles schema is in place")
    return 0


def login_with_code(code: str) -> int:
    """
    Dev helper: run the login pipeline for one authorization code and print the outcome as JSON.
    """
    import json

    from portal.auth.config import load_auth_config
    from portal.auth.login import build_login_orchestrator
    from portal.auth.util import Deadline
    from portal.storage.user_store import get_user_store

    cfg = load_auth_config()
    orchestrator = build_login_orchestrator(cfg, get_user_store())
    outcome = orchestrator.login(code, deadline=Deadline(cfg.login_timeout_seconds or None))
    if outcome.failure is not None:
        f = outcome.failure
        print(json.dumps({"ok": False, "stage": f.stage, "kind": f.kind, "error": f.reason_code}, indent=2))
        return 1
    r = outcome.result
    print(
        json.dumps(
            {"ok": True, "user": r.user.to_public_dict(), "permissions": list(r.permissions), "token": r.token},
            indent=2,
            sort_keys=False,
        )
    )
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Portal OAuth login service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the login API
  python main.py --serve --port 8080

  # Create the users/roles tables
  python main.py --apply-schema

  # Exercise the pipeline with a code obtained from the provider
  python main.py --login-code abc123
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the login HTTP API")
    parser.add_argument("--apply-schema", action="store_true", help="Create the Postgres users/roles schema and exit")
    parser.add_argument("--login-code", metavar="CODE", help="Run one login for an authorization code (dev helper)")
    parser.add_argument("--host", default="0.0.0.0", help="API bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="API listen port (default: 8080)")

    args = parser.parse_args()

    try:
        if args.apply_schema:
            sys.exit(run_apply_schema())

        if args.login_code:
            sys.exit(login_with_code(args.login_code))

        if args.serve:
            from portal.api.server import run as run_server

            run_server(host=args.host, port=args.port)
            return

        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
