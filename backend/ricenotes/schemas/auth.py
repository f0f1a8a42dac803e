"""
Rice Notes Backend — Authentication Schemas
=============================================

What:  Response models for the /api/auth routes.
"""

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    """Identity carried by the caller's session token (GET /api/auth/me)."""
    email: str = Field(description="Institutional email address")
    name: str = Field(default="", description="Display name from Google")
    picture: str = Field(default="", description="Avatar URL from Google")
