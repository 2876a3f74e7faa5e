"""
Management commands
- init-db: create the users, orders and sessions tables
- create-seller: add a seller account (sellers cannot self-register by default)
- purge-sessions: delete expired login sessions (run periodically, e.g. from cron)

Usage:
  python -m orderdrop.manage init-db --database-url sqlite:///./orderdrop.db
  python -m orderdrop.manage create-seller --username alice --password s3cret
  python -m orderdrop.manage purge-sessions
"""
import argparse
import sys

from . import config, errors, services
from .db import init_db, make_engine, make_session_factory
from .sessions import DatabaseSessionStore


def _session_factory(database_url: str):
    engine = make_engine(database_url)
    init_db(engine)
    return make_session_factory(engine)


def create_seller(database_url: str, username: str, password: str):
    factory = _session_factory(database_url)
    with factory() as db:
        return services.register_user(db, username.strip(), password, is_seller=True)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="orderdrop.manage")
    parser.add_argument("--database-url", default=config.get_settings().database_url,
                        help="SQLAlchemy database URL (defaults to DATABASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create tables")
    seller = sub.add_parser("create-seller", help="Create a seller account")
    seller.add_argument("--username", required=True)
    seller.add_argument("--password", required=True)
    sub.add_parser("purge-sessions", help="Delete expired login sessions")
    args = parser.parse_args(argv)

    if args.command == "init-db":
        _session_factory(args.database_url)
        print(f"Tables ready in {args.database_url}")
        return 0

    if args.command == "purge-sessions":
        purged = DatabaseSessionStore(_session_factory(args.database_url)).purge_expired()
        print(f"Purged {purged} expired sessions")
        return 0

    if not args.username.strip() or not args.password:
        print("username and password must not be empty", file=sys.stderr)
        return 2
    try:
        user = create_seller(args.database_url, args.username, args.password)
    except errors.Conflict as e:
        print(e.message, file=sys.stderr)
        return 1
    print(f"Created seller {user.username} (id={user.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
