#!/usr/bin/env python3
"""
SecretShare - anonymous secret sharing behind local and federated login.
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

logger = logging.getLogger("secretshare")


def init_db() -> int:
    """Create the Postgres schema (users table) and exit."""
    from secretshare.config import load_app_config
    from secretshare.store.postgres_store import init_db as init_postgres

    cfg = load_app_config()
    if not cfg.postgres_dsn:
        print("Postgres not configured (set POSTGRES_DSN or POSTGRES_* env vars).", file=sys.stderr)
        return 2
    init_postgres(cfg.postgres_dsn)
    logger.info("Users table is ready")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SecretShare web server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve on the default port (3000)
  python main.py --serve

  # Create the Postgres users table
  POSTGRES_DSN=postgresql://... python main.py --init-db
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the web server")
    parser.add_argument("--init-db", action="store_true", help="Create the Postgres schema and exit")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Server listen port (default: 3000)")

    args = parser.parse_args()

    if args.init_db:
        return init_db()

    if args.serve:
        from secretshare.api.app import run

        run(host=args.host, port=args.port)
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
