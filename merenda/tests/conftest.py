import os

# avant tout import merenda.*: la session par défaut ne doit pas viser Postgres
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from merenda.app.api.deps import get_db
from merenda.app.db.base import Base
from merenda.app.db.models import models_v1  # noqa: F401
from merenda.app.db.models.core_types import Role
from merenda.app.db.models.models_v1 import Product, School, User
from merenda.app.main import create_app
from merenda.services.access import Actor


@pytest.fixture(scope="function")
def engine():
    """
    Base SQLite en mémoire, neuve pour chaque test.

    Les services committent eux-mêmes (frontière transactionnelle),
    on repart donc d'un schéma vide plutôt que d'un rollback englobant.
    """
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _fk_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------- Master data ----------
@pytest.fixture
def make_school(db_session):
    def _make(name="Escola Municipal A"):
        school = School(name=name, address="Rua 1", responsible="Diretora")
        db_session.add(school)
        db_session.commit()
        return school

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(name="Arroz", quantity="100", unit="kg", category="graos", alert_threshold="10"):
        product = Product(
            name=name,
            unit=unit,
            category=category,
            quantity=Decimal(quantity),
            alert_threshold=Decimal(alert_threshold),
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def make_user(db_session):
    def _make(username, role=Role.admin, school_id=None):
        user = User(username=username, password_hash="!", role=role, school_id=school_id)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def school(make_school):
    return make_school()


@pytest.fixture
def admin(make_user) -> Actor:
    user = make_user("admin")
    return Actor(id=user.id, username=user.username, role=Role.admin)


@pytest.fixture
def school_actor(make_user, school) -> Actor:
    user = make_user("escola-a", role=Role.school, school_id=school.id)
    return Actor(id=user.id, username=user.username, role=Role.school, school_id=school.id)


# ---------- HTTP ----------
@pytest.fixture
def client(session_factory):
    app = create_app()

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c


@pytest.fixture
def headers():
    """Headers d'identité tels que posés par la gateway."""

    def _for(actor: Actor) -> dict:
        h = {
            "X-User-Id": str(actor.id),
            "X-Username": actor.username,
            "X-User-Role": actor.role.value,
        }
        if actor.school_id is not None:
            h["X-School-Id"] = str(actor.school_id)
        return h

    return _for
