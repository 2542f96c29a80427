import hmac
from typing import List, Optional

BEARER_PREFIX = "Bearer "


class ApiKeyValidator:
    """Checks Bearer API keys for the cache server. Without keys, only a public server lets requests in."""

    def __init__(self, api_keys: Optional[List[str]] = None, is_public: bool = False):
        self.api_keys = [key for key in (api_keys or []) if key]
        self.is_public = is_public

    def validate(self, api_key: Optional[str]) -> bool:
        if self.is_public:
            return True

        if not api_key:
            return False

        # Compare against every key so timing does not reveal which one matched
        matched = False
        for valid_key in self.api_keys:
            if self._timing_safe_compare(api_key, valid_key):
                matched = True

        return matched

    def validate_authorization(self, authorization: Optional[str]) -> bool:
        """Validate an ``Authorization: Bearer <APIKEY>`` header value."""
        if self.is_public:
            return True

        if not authorization or not authorization.startswith(BEARER_PREFIX):
            return False

        return self.validate(authorization[len(BEARER_PREFIX):].strip())

    def _timing_safe_compare(self, a: str, b: str) -> bool:
        return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))
