from __future__ import annotations

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict


class AuthenticatedUser(BaseModel):
    """
    Normalized authenticated identity extracted from a validated JWT.

    Membership checks match on ``email``; ``sub`` is kept for logging.
    """

    sub: str = Field(..., description="Subject identifier (user id)")
    username: Optional[str] = Field(None, description="Human-readable username")
    email: Optional[str] = None

    issuer: Optional[str] = None
    audiences: list[str] = Field(default_factory=list)

    claims: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )
