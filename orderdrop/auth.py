import time
from typing import Optional

import jwt
from passlib.context import CryptContext

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


def create_session_token(session_id: str, user_id: int, secret: str, expires_in: int) -> str:
    """Sign the cookie value that points at a server-side session."""
    now = int(time.time())
    payload = {"sid": session_id, "sub": str(user_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_session_token(token: str, secret: str) -> Optional[dict]:
    """Return the token claims, or None for a tampered or expired token."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None
    if not payload.get("sid") or not payload.get("sub"):
        return None
    return payload


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
