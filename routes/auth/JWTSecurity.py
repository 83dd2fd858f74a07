# routes/auth/JWTSecurity.py

from datetime import timedelta
from jose import jwt, JWTError

from config import JWT_SECRET_KEY, ACCESS_TOKEN_EXPIRE_MINUTES, logger
from utils.time_and_ids import now_utc

# JWT configuration
ALGORITHM = "HS256"


def create_access_token(data: dict, expires_delta: timedelta = None):
    """
    Generates an access token with an expiration time.
    """
    to_encode = data.copy()
    expire = now_utc() + (expires_delta if expires_delta else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "token_type": "access"})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str):
    """
    Verifies an access JWT and returns its payload, or None when invalid.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[ALGORITHM])
        if payload.get("token_type") != "access":
            raise JWTError("Invalid token type")
        if not payload.get("sub"):
            raise JWTError("Invalid token payload: missing user ID")
        return payload
    except JWTError as e:
        logger.error(f"Token verification failed: {str(e)}")
        return None
