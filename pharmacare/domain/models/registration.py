from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class RegistrationProfile:
    """Identity fields supplied by a visitor when creating an account."""

    email: str
    first_name: str
    last_name: str
    role: Optional[str] = None
