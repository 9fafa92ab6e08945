from __future__ import annotations

from dataclasses import dataclass

EMPLOYEE = "employee"
MANAGER = "manager"
TEAM_LEAD = "team_lead"
SUPER_ADMIN = "super_admin"

ROLES = frozenset({EMPLOYEE, MANAGER, TEAM_LEAD, SUPER_ADMIN})

# Alternative spellings the backend uses for the highest-privilege role.
ROLE_ALIASES = {
    "superadmin": SUPER_ADMIN,
    "super-admin": SUPER_ADMIN,
    "admin": SUPER_ADMIN,
    "supervisor": SUPER_ADMIN,
    "teamlead": TEAM_LEAD,
    "team-lead": TEAM_LEAD,
}


def normalize_role(value: object) -> str:
    role = str(value or "").strip().lower()
    role = ROLE_ALIASES.get(role, role)
    if role not in ROLES:
        raise ValueError(f"Unknown role: {value!r}")
    return role


@dataclass(frozen=True)
class Identity:
    """The viewer a dashboard session belongs to. Immutable for the session."""

    id: int
    role: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", int(self.id))
        object.__setattr__(self, "role", normalize_role(self.role))

    @property
    def is_employee(self) -> bool:
        return self.role == EMPLOYEE

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN
