from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from merenda.app.api.deps import get_db
from merenda.app.api.errors import problem, status_for
from merenda.app.db.models.core_types import NotificationType
from merenda.app.db.models.models_v1 import Notification
from merenda.app.schemas.transfer import LineCreate
from merenda.services.errors import (
    AlreadyResolved,
    Forbidden,
    InsufficientSchoolStock,
    InsufficientStock,
    InvalidInput,
    InvalidPayload,
    NothingToConfirm,
    ProductNotFound,
    StorageFailure,
)


@pytest.mark.parametrize(
    "exc, status",
    [
        (InvalidInput("bad"), 400),
        (InsufficientStock(1, "Arroz", Decimal("1"), Decimal("2")), 400),
        (InsufficientSchoolStock(1, 1, "Arroz", Decimal("1"), Decimal("2")), 400),
        (Forbidden("no"), 403),
        (ProductNotFound(1), 404),
        (NothingToConfirm("none"), 404),
        (AlreadyResolved("done"), 409),
        (InvalidPayload("corrupt"), 500),
        (StorageFailure(), 500),
    ],
)
def test_status_mapping(exc, status):
    assert status_for(exc) == status


def test_storage_failure_hides_details():
    body = problem(StorageFailure("psycopg.errors.DeadlockDetected: ..."))
    assert body["error_code"] == "storage_failure"
    assert "psycopg" not in body["message"]
    assert body["context"] == {}


def test_missing_identity_headers(client):
    assert client.get("/v1/stock").status_code == 401


def test_school_role_needs_school_header(client):
    r = client.get("/v1/stock", headers={"X-User-Id": "1", "X-Username": "x", "X-User-Role": "escola"})
    assert r.status_code == 401


def test_end_to_end_flow(client, headers, school, admin, school_actor, make_product):
    """
    GIVEN
    - P1 = 100 en stock central

    THEN
    - envoi 30 (201) -> confirmation par l'école -> retrait 20 -> solde 10
    - demande de retour 4 -> approbation -> stock central 74
    - seconde approbation -> 409
    """
    p1 = make_product(quantity="100")
    central = headers(admin)
    escola = headers(school_actor)

    # ---------- Envoi ----------
    r = client.post(
        "/v1/transfers",
        json={"school_id": school.id, "items": [{"product_id": p1.id, "quantity": 30}]},
        headers=central,
    )
    assert r.status_code == 201, r.text
    tid = r.json()["id"]

    r = client.get(f"/v1/stock/{p1.id}/check", params={"quantity": 70}, headers=central)
    assert r.status_code == 200
    assert Decimal(r.json()["available"]) == Decimal("70")

    r = client.get(f"/v1/transfers/pending/by-school/{school.id}", headers=escola)
    assert [t["id"] for t in r.json()] == [tid]
    assert r.json()[0]["sender_username"] == "admin"

    # ---------- Réception ----------
    r = client.post("/v1/transfers/confirm-receipt", json={"transfer_ids": [tid]}, headers=escola)
    assert r.status_code == 200
    assert r.json() == {"confirmed": 1}

    r = client.post("/v1/transfers/confirm-receipt", json={"transfer_ids": [tid]}, headers=escola)
    assert r.status_code == 404
    assert r.json()["error_code"] == "nothing_to_confirm"

    # ---------- Retrait ----------
    r = client.post(
        f"/v1/schools/{school.id}/withdrawals",
        json={"items": [{"product_id": p1.id, "quantity": 20}]},
        headers=escola,
    )
    assert r.status_code == 201

    r = client.get(f"/v1/schools/{school.id}/stock", headers=escola)
    [row] = r.json()
    assert Decimal(row["available"]) == Decimal("10")

    r = client.get(f"/v1/schools/{school.id}/withdrawals", headers=escola)
    assert r.json()[0]["username"] == school_actor.username

    # ---------- Retour ----------
    r = client.post(
        f"/v1/schools/{school.id}/returns",
        json={"items": [{"product_id": p1.id, "quantity": 4}]},
        headers=escola,
    )
    assert r.status_code == 201
    nid = r.json()["notification_id"]

    r = client.post("/v1/notifications/confirm-return", json={"notification_id": nid}, headers=escola)
    assert r.status_code == 403

    r = client.post("/v1/notifications/confirm-return", json={"notification_id": nid}, headers=central)
    assert r.status_code == 200
    assert r.json() == {"ok": True, "restocked_items": 1}

    r = client.post("/v1/notifications/confirm-return", json={"notification_id": nid}, headers=central)
    assert r.status_code == 409

    r = client.get("/v1/stock", headers=central)
    assert Decimal(r.json()[0]["quantity"]) == Decimal("74")

    r = client.get("/v1/history/products", headers=central)
    assert [h["action"] for h in r.json()["items"]] == ["REABASTECIMENTO", "ENVIO"]


def test_insufficient_stock_body(client, headers, school, admin, make_product):
    p1 = make_product(quantity="70")

    r = client.post(
        "/v1/transfers",
        json={"school_id": school.id, "items": [{"product_id": p1.id, "quantity": 1000}]},
        headers=headers(admin),
    )

    assert r.status_code == 400
    body = r.json()
    assert body["error_code"] == "insufficient_stock"
    assert body["context"]["available"] == 70
    assert body["context"]["requested"] == 1000


def test_school_user_cannot_read_other_school(client, headers, make_school, school_actor):
    other = make_school(name="Escola B")
    r = client.get(f"/v1/schools/{other.id}/stock", headers=headers(school_actor))
    assert r.status_code == 403


def test_corrupt_return_is_server_error(client, headers, db_session, school, admin):
    n = Notification(
        message="x",
        type=NotificationType.devolucao.value,
        read=False,
        context_data="[{",
        school_id=school.id,
    )
    db_session.add(n)
    db_session.commit()

    r = client.post("/v1/notifications/confirm-return", json={"notification_id": n.id}, headers=headers(admin))

    assert r.status_code == 500
    assert r.json()["error_code"] == "invalid_payload"


def test_notifications_page_shape(client, headers, db_session, admin):
    db_session.add(Notification(message="alerta", type=NotificationType.alerta.value, read=False))
    db_session.commit()

    r = client.get("/v1/notifications", params={"limit": 5}, headers=headers(admin))

    assert r.status_code == 200
    body = r.json()
    assert body["total_unread_count"] == 1
    assert body["pagination"]["items_per_page"] == 5
    nid = body["data"][0]["id"]

    assert client.put(f"/v1/notifications/{nid}/read", headers=headers(admin)).status_code == 200


def test_unknown_transfer_is_404(client, headers, admin):
    r = client.get("/v1/transfers/9999", headers=headers(admin))

    assert r.status_code == 404
    assert r.json() == {
        "error_code": "transfer_not_found",
        "message": "Transfer 9999 not found",
        "context": {"transfer_id": 9999},
    }


def test_health(client):
    assert client.get("/v1/health").json() == {"status": "ok"}


def test_module_app_serves_school_scoped_routes(session_factory, headers, school, school_actor):
    """
    GIVEN
    - l'app importée telle que servie (merenda.app.main:app)

    THEN
    - les routes /schools/{school_id}/... coexistent avec le header X-School-Id
    """
    from merenda.app.main import app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as c:
            r = c.get(f"/v1/schools/{school.id}/stock", headers=headers(school_actor))
            assert r.status_code == 200
            assert r.json() == []

            r = c.get(f"/v1/transfers/pending/by-school/{school.id}", headers=headers(school_actor))
            assert r.status_code == 200
    finally:
        app.dependency_overrides.clear()


@pytest.mark.parametrize("quantity", ["0.0004", "1.2345"])
def test_line_rejects_quantity_finer_than_storage(quantity):
    with pytest.raises(ValidationError):
        LineCreate(product_id=1, quantity=quantity)


def test_line_accepts_three_decimals():
    assert LineCreate(product_id=1, quantity="0.125").quantity == Decimal("0.125")


def test_transfer_with_sub_scale_quantity_is_422(client, headers, school, admin, make_product):
    p = make_product(quantity="1")

    r = client.post(
        "/v1/transfers",
        json={"school_id": school.id, "items": [{"product_id": p.id, "quantity": 0.0004}]},
        headers=headers(admin),
    )

    assert r.status_code == 422
