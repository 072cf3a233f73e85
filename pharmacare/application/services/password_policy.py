"""Password strength rules shared by registration and password reset."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

MIN_LENGTH = 8

RULE_MIN_LENGTH = "min_length"
RULE_UPPERCASE = "uppercase"
RULE_SPECIAL_CHARACTER = "special_character"

RULE_DESCRIPTIONS = {
    RULE_MIN_LENGTH: f"at least {MIN_LENGTH} characters",
    RULE_UPPERCASE: "at least one uppercase letter",
    RULE_SPECIAL_CHARACTER: "at least one character that is not a letter or digit",
}


@dataclass(slots=True)
class PasswordPolicyResult:
    violations: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.violations

    def describe(self) -> str:
        """Human readable sentence listing every violated rule."""
        if self.is_valid:
            return ""
        parts = [RULE_DESCRIPTIONS[rule] for rule in self.violations]
        return "Password must contain " + ", ".join(parts) + "."


def check_password(password: str) -> PasswordPolicyResult:
    """Evaluate ``password`` against every rule and report the violated ones."""
    violations: List[str] = []
    if len(password) < MIN_LENGTH:
        violations.append(RULE_MIN_LENGTH)
    if not any(char.isupper() for char in password):
        violations.append(RULE_UPPERCASE)
    if not any(not char.isalnum() for char in password):
        violations.append(RULE_SPECIAL_CHARACTER)
    return PasswordPolicyResult(violations)
