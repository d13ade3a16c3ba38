# schooldesk/core/security.py

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from schooldesk.core.config import get_token_expires_delta, settings
from schooldesk.core.errors import TokenError
from schooldesk.core.logging import logger
from schooldesk.schemas.auth import CallerIdentity
from schooldesk.schemas.enums import UserRole

ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__default_rounds=settings.BCRYPT_ROUNDS
)


def get_password_hash(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {str(e)}")
        return False


def compare_secrets(provided: Optional[str], expected: Optional[str]) -> bool:
    """Timing-safe comparison; never matches when either side is empty"""
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def sanitize_token(token_or_msg: str) -> str:
    """Remove JWTs from strings before they reach the logs"""
    if not token_or_msg:
        return token_or_msg
    return re.sub(r'eyJ[\w-]*\.[\w-]*\.[\w-]*', '[REDACTED_TOKEN]', str(token_or_msg))


def create_access_token(
    user_id: int,
    role: UserRole,
    tenant_id: Optional[int] = None,
    school_id: Optional[int] = None,
    impersonated_by: Optional[int] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed session token for a staff or super admin account"""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = get_token_expires_delta(impersonation=impersonated_by is not None)

    to_encode: Dict[str, Any] = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "tenant_id": tenant_id,
        "school_id": school_id,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + expires_delta,
        "iss": settings.TOKEN_ISSUER,
        "jti": secrets.token_urlsafe(16),
    }
    if impersonated_by is not None:
        to_encode["impersonated_by"] = impersonated_by

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: Optional[str]) -> CallerIdentity:
    """
    Verify a bearer token and turn it into a caller identity.

    Raises:
        TokenError: NO_TOKEN when the token is missing, INVALID_TOKEN when it is
            malformed, expired, forged or carries an unknown role.
    """
    if not token:
        raise TokenError.missing()

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            issuer=settings.TOKEN_ISSUER,
            options={"require_exp": True, "require_sub": True}
        )
    except ExpiredSignatureError:
        logger.warning("Token has expired")
        raise TokenError()
    except JWTError as e:
        logger.warning(f"Token validation failed: {sanitize_token(str(e))}")
        raise TokenError()

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        logger.warning("Rejected token with unexpected type")
        raise TokenError()

    try:
        return CallerIdentity(
            subject_id=int(payload["sub"]),
            role=payload.get("role"),
            tenant_id=payload.get("tenant_id"),
            school_id=payload.get("school_id"),
            impersonated_by=payload.get("impersonated_by"),
            token_id=payload.get("jti"),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        )
    except (KeyError, ValueError, TypeError, PydanticValidationError) as e:
        logger.warning(f"Token claims rejected: {str(e)}")
        raise TokenError()


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token part of an 'Authorization: Bearer <token>' header"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None
