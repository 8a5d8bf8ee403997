# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Supabase JWT.

    EduFiliova users have two identifiers:
    - id: the auth UUID (JWT "sub")
    - public_id: the short text ID used across the product, e.g. "HJOR2AC54I"
      (carried in the token's app_metadata / user_metadata as "user_id")

    Either may appear in URLs and frames, so ownership checks accept both.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    public_id: Optional[str] = None

    def matches(self, user_id: str) -> bool:
        """True if user_id names this principal."""
        return user_id == self.id or (self.public_id is not None and user_id == self.public_id)


class TokenPayload(BaseModel):
    """
    Decoded JWT token payload from Supabase.

    Supabase tokens include standard JWT claims plus custom claims.
    """
    sub: str  # User ID
    email: Optional[str] = None
    aud: str  # Audience (should be "authenticated")
    exp: int  # Expiration timestamp
    iat: int  # Issued at timestamp
    app_metadata: dict = {}
    user_metadata: dict = {}

    @property
    def public_id(self) -> Optional[str]:
        return self.app_metadata.get("user_id") or self.user_metadata.get("user_id")
