"""FastAPI dependencies for admin authentication."""

from typing import Annotated

from fastapi import Header, HTTPException

from restaurant_order_service.auth.api_key_validator import APIKeyValidator


def get_api_key_from_header(
    x_api_key: Annotated[str | None, Header()] = None,
    validator: APIKeyValidator | None = None,
) -> str:
    """Extract and validate the admin key from the X-API-Key header.

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI)
        validator: Validator holding the accepted admin keys

    Returns:
        str: The validated API key

    Raises:
        HTTPException: 401 if the key is missing, 403 if it is not accepted
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    if validator is not None and not validator.validate(x_api_key):
        raise HTTPException(status_code=403, detail="Admin key required")

    return x_api_key
