from __future__ import annotations

from dataclasses import dataclass

from merenda.app.db.models.core_types import Role
from merenda.services.errors import Forbidden


@dataclass(frozen=True)
class Actor:
    """Utilisateur authentifié, fourni par le contexte d'identité externe."""

    id: int
    username: str
    role: Role
    school_id: int | None = None

    @property
    def is_school_scoped(self) -> bool:
        return self.role == Role.school


def ensure_school_access(actor: Actor, school_id: int) -> None:
    if actor.is_school_scoped and actor.school_id != school_id:
        raise Forbidden(
            f"User {actor.username} cannot act on school {school_id}",
            school_id=school_id,
        )


def ensure_central(actor: Actor, action: str) -> None:
    if actor.is_school_scoped:
        raise Forbidden(f"School users cannot {action}", action=action)
