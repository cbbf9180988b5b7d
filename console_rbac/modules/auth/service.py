import hashlib
import logging
import time
from supabase import Client
from fastapi import HTTPException
from typing import Dict, Any

logger = logging.getLogger(__name__)

# sha256(token) -> (user_data, expiry); bounds Supabase Auth round trips per request burst
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


class AuthService:
    """Verifies bearer tokens against Supabase Auth. Token issuance stays with Supabase."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Return {id, email} for a valid token. Cached for a short TTL, keyed by the token hash."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        cached = _AUTH_USER_CACHE.get(cache_key)
        if cached is not None:
            user_data, expiry = cached
            if now < expiry:
                return user_data
            _AUTH_USER_CACHE.pop(cache_key, None)

        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.debug(f"Token verification failed: {e}")
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        if not user_response or not user_response.user:
            raise HTTPException(status_code=401, detail="Invalid or expired token")

        user = user_response.user
        user_data = {"id": user.id, "email": user.email}
        if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
            _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
        return user_data
