import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_SECRET_KEY
from ..schemas.auth import TokenData


ALGORITHM = "HS256"
PASSWORD_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

# Use pure-Python pbkdf2_sha256 to avoid bcrypt backend issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def generate_password(length: int = 8) -> str:
    """Random alphanumeric password handed out once at registration or reset."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[TokenData]:
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[ALGORITHM])
        subject: str = payload.get("sub")
        if subject is None:
            return None
        return TokenData(
            subject=subject,
            role=payload.get("role"),
            center_id=payload.get("center_id"),
        )
    except JWTError:
        return None
