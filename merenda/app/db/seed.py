from __future__ import annotations

import logging
import os

from sqlalchemy import select

from merenda.app.db.session import SessionLocal
from merenda.app.db.models.models_v1 import School, User
from merenda.app.db.models.core_types import Role
from merenda.app.logging_config import configure_logging

logger = logging.getLogger("merenda.seed")


def run_seed():
    db = SessionLocal()
    try:
        # 1) Ecole de démonstration
        school = db.scalar(select(School).where(School.name == "Escola Municipal Central"))
        if not school:
            school = School(name="Escola Municipal Central", address=None, responsible=None)
            db.add(school)
            db.commit()

        # 2) Admin initial; le hash est produit par le service d'identité externe
        username = os.getenv("ADMIN_INITIAL_USERNAME", "admin")
        user = db.scalar(select(User).where(User.username == username))
        if not user:
            user = User(
                username=username,
                password_hash=os.getenv("ADMIN_INITIAL_PASSWORD_HASH", "!"),
                role=Role.admin,
            )
            db.add(user)
            db.commit()

        logger.info("SEED OK: school=%s, user=%s", school.name, username)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
