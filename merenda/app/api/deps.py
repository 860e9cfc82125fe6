from __future__ import annotations

from typing import Generator

from fastapi import Header, HTTPException

from merenda.app.db.models.core_types import Role
from merenda.app.db.session import SessionLocal
from merenda.services.access import Actor


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(
    user_id: int | None = Header(default=None, alias="X-User-Id"),
    username: str | None = Header(default=None, alias="X-Username"),
    role: str | None = Header(default=None, alias="X-User-Role"),
    actor_school_id: int | None = Header(default=None, alias="X-School-Id"),
) -> Actor:
    """
    L'authentification est faite en amont (gateway): on ne lit que
    l'identité déjà vérifiée, transmise en headers.
    """
    if not user_id or not username or not role:
        raise HTTPException(status_code=401, detail="Missing identity headers")
    try:
        parsed_role = Role(role)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role {role!r}")
    if parsed_role == Role.school and not actor_school_id:
        raise HTTPException(status_code=401, detail="School users must carry X-School-Id")
    return Actor(id=user_id, username=username, role=parsed_role, school_id=actor_school_id)
