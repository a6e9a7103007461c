"""Хеширование паролей и JWT для веб-авторизации."""
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt

from salon_pos.config import settings


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def create_access_token(
    subject: int,
    role: str,
    name: str,
    login: str,
    branch_id: Optional[int] = None,
) -> str:
    now = datetime.utcnow()
    expire = now + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        # PyJWT требует строковый sub
        "sub": str(subject),
        "role": role,
        "name": name,
        "login": login,
        "branch_id": branch_id,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.PyJWTError:
        return None
