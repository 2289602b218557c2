from __future__ import annotations
import asyncio

import bcrypt

# Bcrypt limit is 72 bytes; truncate to avoid errors
BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt with a fixed cost; hashing runs in the default executor so the loop stays free."""

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds

    def hash_sync(self, password: str) -> str:
        pwd_bytes = password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]
        return bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_sync(self, password: str, hashed: str) -> bool:
        pwd_bytes = password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]
        try:
            return bcrypt.checkpw(pwd_bytes, hashed.encode("utf-8"))
        except ValueError:
            # malformed hash in storage
            return False

    async def hash(self, password: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.hash_sync, password)

    async def verify(self, password: str, hashed: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.verify_sync, password, hashed)
