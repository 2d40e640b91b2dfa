from __future__ import annotations

from dataclasses import dataclass

STAFF_ROLES = frozenset({"admin", "instructor"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity taken from a verified bearer token.

    Tokens are issued by the auth service; this service only verifies
    them.  For students the token subject *is* the student id used as the
    ledger key, so a student can only ever write their own progress.
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)

    def is_staff(self) -> bool:
        return self.has_any_role(STAFF_ROLES)
