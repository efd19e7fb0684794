"""API authentication using bearer API keys"""
import os
import hmac
import logging
from fastapi import HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from src.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_api_keys() -> list[str]:
    """Load API keys from the API_KEYS environment variable (comma-separated)"""
    api_keys_str = os.getenv("API_KEYS", "")
    return [key.strip() for key in api_keys_str.split(",") if key.strip()]


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """
    Verify the API key from the Authorization header

    Returns:
        The verified API key

    Raises:
        HTTPException: 503 when no keys are configured
        AuthenticationError: key not recognised (401)
    """
    api_key = credentials.credentials
    valid_keys = get_api_keys()

    if not valid_keys:
        logger.error("No API keys configured - rejecting all requests")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API authentication not configured"
        )

    if not any(hmac.compare_digest(api_key, key) for key in valid_keys):
        raise AuthenticationError(
            message="Invalid API key",
            operation="verify_api_key",
            context={"key_prefix": api_key[:4]}
        )

    return api_key
