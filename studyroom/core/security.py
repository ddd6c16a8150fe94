import logging
import re
import uuid
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from studyroom.core.config import JWT_SECRET_KEY, JWT_ALGORITHM
from studyroom.core.exceptions import AuthenticationError, ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

# Salted, adaptive one-way hash for student PINs
pin_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

PIN_PATTERN = re.compile(r"^\d{4,6}$")


def validate_pin_format(pin: str) -> str:
    if not isinstance(pin, str) or not PIN_PATTERN.match(pin):
        raise ValidationError("PIN must be 4-6 digits")
    return pin


def hash_pin(pin: str) -> str:
    return pin_context.hash(validate_pin_format(pin))


def verify_pin(pin: str, pin_hash: str) -> bool:
    if not pin or not pin_hash:
        return False
    try:
        return pin_context.verify(pin, pin_hash)
    except ValueError:
        # Unrecognized or corrupted hash
        logger.warning("Stored PIN hash could not be parsed")
        return False


def generate_link_token() -> str:
    """Opaque scope token for an attendance check link"""
    return str(uuid.uuid4())


def decode_admin_token(token: str) -> Dict[str, Any]:
    """
    Verify an administrator bearer token.

    Tokens are issued by the external identity provider and must carry a
    ``tenant_id`` claim.
    """
    if not JWT_SECRET_KEY:
        raise ConfigurationError("JWT_SECRET_KEY", "JWT secret is not configured")

    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Admin token has expired")
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        logger.warning("Invalid admin token provided")
        raise AuthenticationError("Invalid token")

    if payload.get("type", "access_token") != "access_token":
        raise AuthenticationError("Invalid token type")

    if payload.get("tenant_id") is None:
        raise AuthenticationError("Token has no tenant scope")

    return payload
