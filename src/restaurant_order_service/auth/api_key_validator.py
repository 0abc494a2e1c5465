"""API key validation for the admin endpoints.

Admin operations such as sequence reconciliation are guarded by a shared
key sent in the X-API-Key header. Keys come from configuration.
"""

import hmac


class APIKeyValidator:
    """Validates admin API keys against a configured set of keys."""

    def __init__(self, api_keys: list[str]) -> None:
        """Initialize validator with the accepted admin keys.

        Args:
            api_keys: Accepted API key strings; blank entries are ignored

        Raises:
            ValueError: If no usable key is provided
        """
        keys = [key for key in api_keys if key]
        if not keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = frozenset(keys)

    def validate(self, api_key: str) -> bool:
        """Check a presented key.

        Comparison is exact (case and whitespace sensitive) and runs in
        constant time per configured key.

        Args:
            api_key: The key from the request header

        Returns:
            bool: True if the key is accepted
        """
        if not api_key:
            return False
        presented = api_key.encode()
        return any(hmac.compare_digest(presented, key.encode()) for key in self.api_keys)
