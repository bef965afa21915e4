"""
User models consumed by notification fan-out.

Account management is handled elsewhere; the monitoring core only needs
roles, activity and contact details to address notifications.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

_PHONE_PATTERN = re.compile(r"^[0-9+\-]+$")


class UserRole(str, Enum):
    """
    User roles.

    Attributes:
        ADMIN: System administrator (receives manager notifications).
        MANAGER: Plant manager.
        OPERATOR: Shop-floor operator.
    """

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    OPERATOR = "OPERATOR"


class User(BaseModel):
    """A notification recipient."""

    model_config = {"frozen": True, "extra": "forbid"}

    id: int = Field(..., description="User identifier")
    username: str = Field(..., description="Login name", min_length=1)
    role: UserRole = Field(..., description="Role")
    email: Optional[str] = Field(default=None, description="Email address")
    phone: Optional[str] = Field(default=None, description="Phone number")
    is_active: bool = Field(default=True, description="Whether the account is active")

    @property
    def has_valid_email(self) -> bool:
        """Check if the email is usable."""
        return bool(self.email and self.email.strip() and "@" in self.email)

    @property
    def has_valid_phone(self) -> bool:
        """Check if the phone number is usable."""
        return bool(self.phone and self.phone.strip() and _PHONE_PATTERN.match(self.phone))

    @property
    def is_manager(self) -> bool:
        """MANAGER and ADMIN both receive manager notifications."""
        return self.role in (UserRole.MANAGER, UserRole.ADMIN)
