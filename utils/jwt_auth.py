from fastapi import Depends, HTTPException, status
from fastapi.security.api_key import APIKeyHeader
from jose import JWTError, jwt
import os
from utils.logger_factory import new_logger

SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
if not SECRET_KEY:
    raise RuntimeError("JWT_SECRET_KEY environment variable must be set for JWT authentication.")

ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


def _credentials_exception():
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_user_token(api_key: str) -> dict:
    """
    Decode a ``Bearer`` authorization header into ``{"user_id": int}``.

    Raises a 401 HTTPException for malformed headers, bad signatures and
    tokens whose subject is not a numeric user id.
    """
    log = new_logger("decode_user_token")
    if not api_key.startswith("Bearer "):
        log.error("Authorization header malformed or missing 'Bearer '")
        raise _credentials_exception()
    token = api_key[len("Bearer "):]
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        log.error(f"JWT decoding failed: {str(e)}")
        raise _credentials_exception()

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        log.error(f"Invalid JWT: subject is not a user id. Payload: {payload}")
        raise _credentials_exception()
    return {"user_id": user_id}


def get_current_user(api_key: str = Depends(api_key_header)):
    if not api_key:
        new_logger("get_current_user").warning("Authorization header missing.")
        raise _credentials_exception()
    return decode_user_token(api_key)


def get_optional_user(api_key: str = Depends(api_key_header)):
    """Like get_current_user, but anonymous callers resolve to None instead of 401."""
    if not api_key:
        return None
    return decode_user_token(api_key)
