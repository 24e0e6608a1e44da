"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError


@dataclass(slots=True)
class AccountForm:
    """Values collected by a creation form before submission."""

    name: str
    username: str
    password: str
    confirm_password: str

    def validate(self) -> None:
        """Raise ``ValidationError`` when a field is empty or the passwords differ."""
        if not self.name or not self.username or not self.password:
            raise ValidationError("Please fill in all fields")
        if self.password != self.confirm_password:
            raise ValidationError("Passwords do not match")
