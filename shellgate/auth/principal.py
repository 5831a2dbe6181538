"""
ShellGate - Principal
The authenticated caller as handed over by the identity layer
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Verified user inside one organization, immutable for a session"""

    user_id: str
    org_id: str
    name: str = "Unknown"
    email: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"
