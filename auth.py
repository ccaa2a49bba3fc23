from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request

from config import Settings
from models import TokenClaims

ALGORITHM = "HS256"


# Errors surfaced to clients as {"error": message}
class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class BadRequest(ApiError):
    status_code = 400

class Unauthorized(ApiError):
    status_code = 401

class Forbidden(ApiError):
    status_code = 403

class Conflict(ApiError):
    status_code = 409

class ServerError(ApiError):
    status_code = 500

    def __init__(self, message: str = "Server error"):
        super().__init__(message)


# bcrypt only looks at the first 72 bytes; newer releases raise instead of truncating
BCRYPT_MAX_BYTES = 72

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]

def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_token(user_id: int, user_type: str, secret: str, ttl_days: int = 7) -> str:
    """Sign a bearer token carrying {id, user_type}"""
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "user_type": user_type,
        "iat": now,
        "exp": now + timedelta(days=ttl_days),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)

def decode_token(token: str, secret: str) -> TokenClaims:
    """Verify signature and expiry. Raises jwt.InvalidTokenError on failure."""
    payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    return TokenClaims(id=payload["id"], user_type=payload["user_type"])

def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an 'Authorization: Bearer <token>' header"""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def authenticate_token(request: Request, settings: Settings = Depends(get_settings)) -> TokenClaims:
    """Dependency guarding protected routes; returns the decoded claims"""
    token = bearer_token(request.headers.get("authorization"))
    if not token:
        print(f"[AUTH] Missing bearer token on {request.url.path}")
        raise Unauthorized("Access token required")

    try:
        claims = decode_token(token, settings.jwt_secret)
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        print(f"[AUTH] Token rejected on {request.url.path}: {e}")
        raise Forbidden("Invalid or expired token")

    request.state.user = claims
    return claims
