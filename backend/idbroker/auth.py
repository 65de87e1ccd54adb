"""
Refresh-secret hashing.

Refresh secrets are hashed with argon2 before they touch the database. Hashing is
deliberately slow, so the async helpers push it onto a dedicated, bounded thread
pool; awaiting callers suspend without tying up the event loop or the default
executor used for database work.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
import logging

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from .core.config import settings

logger = logging.getLogger(__name__)

refresh_context = CryptContext(schemes=["argon2"], deprecated="auto")

_refresh_hash_executor = ThreadPoolExecutor(
    max_workers=settings.refresh_hash_workers, thread_name_prefix="argon2_"
)


def hash_refresh_secret(secret: str) -> str:
    return str(refresh_context.hash(secret))


def verify_refresh_secret(secret: str, hashed: str) -> bool:
    """
    Verify a raw refresh secret against its stored hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bool(refresh_context.verify(secret, hashed))
    except (UnknownHashError, ValueError) as e:
        logger.error(f"Stored refresh hash could not be verified: {str(e)}")
        return False


async def hash_refresh_secret_async(secret: str) -> str:
    """Non-blocking hashing on the refresh-hash thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_refresh_hash_executor, hash_refresh_secret, secret)


async def verify_refresh_secret_async(secret: str, hashed: str) -> bool:
    """Non-blocking verification on the refresh-hash thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        _refresh_hash_executor, verify_refresh_secret, secret, hashed
    )
