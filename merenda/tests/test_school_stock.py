from decimal import Decimal

import pytest

from merenda.app.db.models.core_types import NotificationType, StockStatus
from merenda.app.db.models.models_v1 import Notification
from merenda.services.errors import SchoolNotFound
from merenda.services.notifications import request_return
from merenda.services.school_stock import consolidated_stock, school_stock_status
from merenda.services.stock_guard import consolidated_balances
from merenda.services.transfers import confirm_receipt, send_transfer
from merenda.services.withdrawals import record_withdrawal


def _deliver(db, admin, school_id, product_id, qty):
    tid = send_transfer(db, actor=admin, school_id=school_id, items=[{"product_id": product_id, "quantity": qty}])
    confirm_receipt(db, actor=admin, transfer_ids=[tid])
    return tid


def test_consolidated_stock_rows(db_session, school, admin, make_product):
    """
    GIVEN
    - Arroz: 30 reçus, 20 retirés, 4 rendus
    - Feijao: 5 reçus
    - Sal: envoi non confirmé

    THEN
    - lignes triées par nom, Sal absent (rien de reçu)
    """
    rice = make_product(name="Arroz", quantity="100")
    beans = make_product(name="Feijao", quantity="100")
    salt = make_product(name="Sal", quantity="100")

    # ---------- ARRANGE ----------
    _deliver(db_session, admin, school.id, rice.id, 30)
    _deliver(db_session, admin, school.id, beans.id, 5)
    send_transfer(db_session, actor=admin, school_id=school.id, items=[{"product_id": salt.id, "quantity": 1}])
    record_withdrawal(db_session, actor=admin, school_id=school.id, items=[{"product_id": rice.id, "quantity": 20}])
    request_return(db_session, actor=admin, school_id=school.id, items=[{"product_id": rice.id, "quantity": 4}])

    # ---------- ACT ----------
    rows = consolidated_stock(db_session, school.id)

    # ---------- ASSERT ----------
    assert [r["name"] for r in rows] == ["Arroz", "Feijao"]
    assert rows[0]["received"] == Decimal("30")
    assert rows[0]["withdrawn"] == Decimal("20")
    assert rows[0]["returned"] == Decimal("4")
    assert rows[0]["available"] == Decimal("6")
    assert rows[1]["available"] == Decimal("5")


def test_consolidated_stock_skips_corrupt_return_payloads(db_session, school, admin, make_product):
    p = make_product()
    _deliver(db_session, admin, school.id, p.id, 10)
    db_session.add(
        Notification(
            message="corrompue",
            type=NotificationType.devolucao.value,
            read=False,
            context_data="{not json",
            school_id=school.id,
        )
    )
    db_session.commit()

    assert consolidated_balances(db_session, school.id)[p.id].available == Decimal("10")


def test_consolidated_stock_unknown_school(db_session):
    with pytest.raises(SchoolNotFound):
        consolidated_stock(db_session, 31337)


def test_school_stock_status(db_session, make_school, admin, make_product):
    """
    GIVEN
    - A: 30 reçus puis 20 retirés (10 <= 50% du pic) -> baixo
    - B: aucun mouvement -> ok
    - C: 10 reçus puis 10 retirés -> zerado
    - D: 10 reçus puis 2 retirés -> ok
    """
    a = make_school(name="A")
    b = make_school(name="B")
    c = make_school(name="C")
    d = make_school(name="D")
    p = make_product(quantity="1000")

    _deliver(db_session, admin, a.id, p.id, 30)
    record_withdrawal(db_session, actor=admin, school_id=a.id, items=[{"product_id": p.id, "quantity": 20}])
    _deliver(db_session, admin, c.id, p.id, 10)
    record_withdrawal(db_session, actor=admin, school_id=c.id, items=[{"product_id": p.id, "quantity": 10}])
    _deliver(db_session, admin, d.id, p.id, 10)
    record_withdrawal(db_session, actor=admin, school_id=d.id, items=[{"product_id": p.id, "quantity": 2}])

    status = {row["name"]: row["stock_status"] for row in school_stock_status(db_session)}

    assert status == {
        "A": StockStatus.baixo,
        "B": StockStatus.ok,
        "C": StockStatus.zerado,
        "D": StockStatus.ok,
    }


def test_school_stock_status_ratio_override(db_session, school, admin, make_product):
    p = make_product()
    _deliver(db_session, admin, school.id, p.id, 10)
    record_withdrawal(db_session, actor=admin, school_id=school.id, items=[{"product_id": p.id, "quantity": 2}])

    [row] = school_stock_status(db_session, ratio=Decimal("0.9"))

    assert row["stock_status"] == StockStatus.baixo
