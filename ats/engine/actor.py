"""Who is performing an engine operation."""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("candidate", "recruiter", "company", "admin", "system")


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str
    company_id: str | None = None

    @classmethod
    def system(cls) -> Actor:
        return cls(user_id="system", role="system")
