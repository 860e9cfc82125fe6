import pytest

from merenda.app.db.models.core_types import HistoryAction
from merenda.app.db.models.models_v1 import Product
from merenda.services.errors import InvalidInput
from merenda.services.history import list_history, product_history, record_product_action


def test_snapshots_survive_rename_and_delete(db_session, admin, make_product):
    """
    GIVEN
    - une entrée d'historique écrite sous le nom "Arroz"
    - le produit est ensuite renommé puis supprimé

    THEN
    - l'entrée garde le nom et l'utilisateur d'origine
    """
    p = make_product(name="Arroz")
    record_product_action(db_session, p, HistoryAction.criacao, "cadastro", admin)
    db_session.commit()
    product_id = p.id

    p.name = "Arroz integral"
    db_session.commit()
    db_session.delete(db_session.get(Product, product_id))
    db_session.commit()

    [entry] = product_history(db_session, product_id)
    assert entry.product_name_snapshot == "Arroz"
    assert entry.username_snapshot == "admin"
    assert entry.action == "CRIACAO"


def test_record_does_not_commit(db_session, admin, make_product):
    p = make_product()
    record_product_action(db_session, p, HistoryAction.edicao, None, admin)
    db_session.rollback()

    assert product_history(db_session, p.id) == []


def test_list_history_paginates_newest_first(db_session, admin, make_product):
    p = make_product()
    for i in range(5):
        record_product_action(db_session, p, HistoryAction.edicao, f"edit {i}", admin)
        db_session.commit()

    rows, pagination = list_history(db_session, page=2, limit=2)

    assert [r.detail for r in rows] == ["edit 2", "edit 1"]
    assert pagination == {"current_page": 2, "total_pages": 3, "total_items": 5, "items_per_page": 2}


def test_list_history_rejects_bad_limit(db_session):
    with pytest.raises(InvalidInput):
        list_history(db_session, page=1, limit=0)


def test_list_history_default_page_size_follows_settings(db_session, admin, make_product, monkeypatch):
    from merenda.app.config import settings

    monkeypatch.setattr(settings, "page_size", 3)
    p = make_product()
    for i in range(4):
        record_product_action(db_session, p, HistoryAction.edicao, f"edit {i}", admin)
    db_session.commit()

    rows, pagination = list_history(db_session)

    assert len(rows) == 3
    assert pagination["items_per_page"] == 3
    assert pagination["total_pages"] == 2
