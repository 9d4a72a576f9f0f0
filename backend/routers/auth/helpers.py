from supabase import Client
from config import get_supabase_client, JWT_SECRET_KEY, JWT_ALGORITHM
from utils.errors import Unauthorized
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import jwt
import logging

logger = logging.getLogger(__name__)


@dataclass
class TokenUser:
    id: str
    email: Optional[str]
    role: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)


class AuthHelpers:
    """Helper functions for authentication operations"""

    def __init__(self):
        self._supabase = None

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase_client()
        return self._supabase

    def verify_token(self, token: str, secret: Optional[str] = None) -> TokenUser:
        """
        Verify a Supabase access token locally without calling the Supabase API
        """
        signing_key = secret or JWT_SECRET_KEY
        if not signing_key:
            logger.error("JWT_SECRET_KEY is not configured")
            raise Unauthorized("Token verification failed")

        try:
            payload = jwt.decode(
                token,
                signing_key,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_signature": True,
                    "verify_aud": False
                }
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token expired")
            raise Unauthorized("Token expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            raise Unauthorized("Invalid token")

        user_id = payload.get("sub")
        if not user_id:
            raise Unauthorized("Invalid token: missing user ID")

        user_metadata = payload.get("user_metadata") or {}
        return TokenUser(
            id=user_id,
            email=payload.get("email"),
            role=user_metadata.get("role"),
            payload=payload
        )

    async def refresh_token(self, refresh_token: str):
        """Refresh access token using refresh token"""
        try:
            auth_response = self.supabase.auth.refresh_session(refresh_token)
        except Exception as e:
            logger.error(f"Token refresh error: {str(e)}")
            raise Unauthorized("Invalid refresh token")

        if auth_response.session is None:
            raise Unauthorized("Invalid refresh token")

        return auth_response.session

auth_helpers = AuthHelpers()
