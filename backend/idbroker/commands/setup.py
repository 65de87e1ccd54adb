#!/usr/bin/env python
# backend/idbroker/commands/setup.py
"""
Setup commands for the identity broker.

Usage:
    python -m idbroker.commands.setup init
    python -m idbroker.commands.setup create-admin --email a@example.com --username admin --name "Admin"
    python -m idbroker.commands.setup create-client --name "Wiki" --redirect-uri https://wiki.example.com/cb
    python -m idbroker.commands.setup login-link --username admin
"""

import argparse
import logging
import sys
from typing import List, Optional

from sqlalchemy.orm import Session

from idbroker.core.config import settings
from idbroker.core.exceptions import (
    DomainException,
    UniqueConstraintViolation,
    api_error_from_unique_violation,
)
from idbroker.core.keys import get_key_ring
from idbroker.core.tokens import TokenCodec
from idbroker.database import SessionLocal, init_db
from idbroker.models.client import ClientApplication
from idbroker.models.user import User
from idbroker.repositories.client_repository import ClientRepository
from idbroker.repositories.user_repository import UserRepository
from idbroker.services.registration_service import RegistrationLink, RegistrationService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class SetupCommand:
    """Setup command handler."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.user_repository = UserRepository(db)
        self.client_repository = ClientRepository(db)

    def _registration_service(self) -> RegistrationService:
        return RegistrationService(self.db, TokenCodec(get_key_ring()))

    def init(self) -> None:
        """Create missing tables and key files."""
        init_db()
        key_ring = get_key_ring()
        logger.info(f"Keys ready in {settings.keys_dir} (current OIDC kid {key_ring.current_kid})")

    def create_admin(self, email: str, username: str, name: str) -> RegistrationLink:
        try:
            with self.user_repository.transaction():
                user = self.user_repository.create(
                    email=email, username=username, name=name, is_admin=True
                )
        except UniqueConstraintViolation as exc:
            raise api_error_from_unique_violation(exc) from exc
        logger.info(f"Created admin user {user.id} ({user.username})")
        return self._registration_service().mint_link(user)

    def create_client(
        self,
        name: str,
        redirect_uris: List[str],
        description: Optional[str] = None,
        implicit: bool = False,
        default_allowed: bool = False,
    ) -> ClientApplication:
        with self.client_repository.transaction():
            client = self.client_repository.create(
                app_name=name,
                app_description=description,
                redirect_uris=redirect_uris,
                allow_implicit_flow=implicit,
                default_allowed=default_allowed,
            )
        logger.info(f"Created client {client.client_id} ({client.app_name})")
        return client

    def login_link(self, username: str) -> Optional[RegistrationLink]:
        user: Optional[User] = self.user_repository.get_by_username(username)
        if user is None:
            return None
        return self._registration_service().mint_link(user)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Identity broker setup commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create tables and generate missing keys")

    admin_parser = subparsers.add_parser("create-admin", help="Create an administrator")
    admin_parser.add_argument("--email", required=True)
    admin_parser.add_argument("--username", required=True)
    admin_parser.add_argument("--name", required=True)

    client_parser = subparsers.add_parser("create-client", help="Register a client application")
    client_parser.add_argument("--name", required=True)
    client_parser.add_argument("--description")
    client_parser.add_argument(
        "--redirect-uri", dest="redirect_uris", action="append", required=True
    )
    client_parser.add_argument("--implicit", action="store_true", help="Allow implicit flow")
    client_parser.add_argument(
        "--default-allowed", action="store_true", help="Allow every user unless overridden"
    )

    link_parser = subparsers.add_parser(
        "login-link", help="Print a passkey registration link for an existing user"
    )
    link_parser.add_argument("--username", required=True)

    args = parser.parse_args(argv)

    db = SessionLocal()
    cmd = SetupCommand(db)
    try:
        if args.command == "init":
            cmd.init()
        elif args.command == "create-admin":
            link = cmd.create_admin(args.email, args.username, args.name)
            print(f"Registration link (valid 24h):\n{link.url}")
        elif args.command == "create-client":
            client = cmd.create_client(
                args.name,
                args.redirect_uris,
                description=args.description,
                implicit=args.implicit,
                default_allowed=args.default_allowed,
            )
            print(f"client_id:     {client.client_id}")
            print(f"client_secret: {client.client_secret}")
        elif args.command == "login-link":
            link = cmd.login_link(args.username)
            if link is None:
                print(f"No user named {args.username!r}", file=sys.stderr)
                return 1
            print(f"Registration link (valid 24h):\n{link.url}")
    except DomainException as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
