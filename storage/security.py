"""Password hashing and token minting for the in-memory backend."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
import uuid
from typing import Any, Dict, Optional

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 60000
SALT_BYTES = 16
TOKEN_TTL_SECONDS = 7 * 24 * 3600


def hash_password(password: str, iterations: int = ITERATIONS) -> str:
    salt = os.urandom(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=32)
    return "$".join(
        [
            ALGORITHM,
            str(iterations),
            base64.b64encode(salt).decode("utf-8"),
            base64.b64encode(digest).decode("utf-8"),
        ]
    )


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iter_str, salt_b64, hash_b64 = encoded.split("$")
        if algorithm != ALGORITHM:
            return False
        iterations = int(iter_str)
        salt = base64.b64decode(salt_b64.encode("utf-8"))
        stored = base64.b64decode(hash_b64.encode("utf-8"))
    except ValueError:
        return False
    new_digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=len(stored))
    return hmac.compare_digest(new_digest, stored)


def _b64url(data: Dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def issue_token(user_id: str, *, ttl: int = TOKEN_TTL_SECONDS, now: Optional[float] = None) -> str:
    """
    An unsigned JWT-shaped token carrying ``sub`` and ``exp``.

    The signature segment is a random nonce; the store looks tokens up rather
    than verifying them.
    """
    issued = int(time.time() if now is None else now)
    header = _b64url({"alg": "none", "typ": "JWT"})
    payload = _b64url({"sub": user_id, "iat": issued, "exp": issued + ttl})
    return f"{header}.{payload}.{uuid.uuid4().hex}"
