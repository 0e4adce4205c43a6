"""Administrative commands.

Usage:
    python -m src.cli purge-expired-tokens
    python -m src.cli promote admin@example.com
    python -m src.cli demote admin@example.com
    python -m src.cli revoke-tokens user@example.com
    python -m src.cli generate-keys --out ./keys

Environment Variables:
    DATABASE_URL: database to operate on (defaults to the local SQLite file)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.base.auth.keys import generate_key_pair
from src.base.auth.passwords import PasswordHasher
from src.base.config.database import close_db, init_db
from src.base.config.logging_config import LoggingConfig
from src.base.config.settings import AuthSettings
from src.domain.repositories.refresh_token_store import RefreshTokenStore
from src.domain.repositories.user_repository import UserRepository
from src.domain.services.revocation_service import RevocationService
from src.domain.services.user_service import UserService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli", description="Administrative commands."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("purge-expired-tokens", help="Delete refresh tokens past expiry")

    for name, help_text in (
        ("promote", "Grant ROLE_ADMIN to a user"),
        ("demote", "Withdraw ROLE_ADMIN from a user"),
        ("revoke-tokens", "Delete every refresh token of a user"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("email")

    keys = sub.add_parser("generate-keys", help="Write a new RSA key pair as PEM files")
    keys.add_argument("--out", type=Path, default=Path("keys"))
    keys.add_argument("--key-size", type=int, default=2048)
    return parser


def write_key_pair(out: Path, key_size: int) -> tuple[Path, Path]:
    out.mkdir(parents=True, exist_ok=True)
    pair = generate_key_pair(key_size)
    private_path = out / "private.pem"
    public_path = out / "public.pem"
    private_path.write_text(pair.private_pem, encoding="utf-8")
    private_path.chmod(0o600)
    public_path.write_text(pair.public_pem, encoding="utf-8")
    return private_path, public_path


async def run_command(
    args: argparse.Namespace, session_factory: async_sessionmaker[AsyncSession]
) -> int:
    """Execute a database command. Returns the process exit code."""
    users = UserRepository()
    revocation = RevocationService(RefreshTokenStore())

    async with session_factory() as session:
        if args.command == "purge-expired-tokens":
            count = await revocation.purge_expired(session)
            print(f"Deleted {count} expired refresh token(s)")
            return 0

        if args.command in ("promote", "demote"):
            # Role changes never hash passwords; the default cost is irrelevant here.
            service = UserService(AuthSettings(), users, PasswordHasher(), revocation)
            user = await service.set_admin(
                session, args.email, admin=args.command == "promote"
            )
            if user is None:
                print(f"User {args.email} not found", file=sys.stderr)
                return 1
            print(f"{user.email} roles: {', '.join(user.role_labels)}")
            return 0

        if args.command == "revoke-tokens":
            user = await users.get_by_email(session, args.email)
            if user is None:
                print(f"User {args.email} not found", file=sys.stderr)
                return 1
            count = await revocation.revoke_all(session, user.id)
            print(f"Revoked {count} refresh token(s) of {user.email}")
            return 0

    raise ValueError(f"Unknown command: {args.command}")


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "generate-keys":
        private_path, public_path = write_key_pair(args.out, args.key_size)
        print(f"Wrote {private_path} and {public_path}")
        return 0

    engine, session_factory = await init_db()
    try:
        return await run_command(args, session_factory)
    finally:
        await close_db(engine)


if __name__ == "__main__":
    load_dotenv()
    LoggingConfig.setup_logging(logging.WARNING)
    sys.exit(asyncio.run(main()))
