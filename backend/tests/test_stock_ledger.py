"""
Stock ledger tests.

Every stock change is a movement row plus a Product.stock update in the same
transaction; movements are append-only apart from their reason.
"""

import pytest

from invenbill.extensions import db
from invenbill.models import Product, StockMovement
from invenbill.services import stock_service
from invenbill.validation import MAX_QUANTITY, ConflictError, NotFoundError, ValidationError


def test_sale_movement_updates_product_and_snapshots(db_session, make_product):
    product = make_product(name="Widget", stock=50)

    movement = stock_service.record_stock_movement(
        product_id=product.id,
        movement_type="sale",
        quantity_change=-15,
        stock_before=50,
    )

    assert movement.stock_before == 50
    assert movement.stock_after == 35
    assert movement.quantity_change == -15
    assert movement.product_name == "Widget"
    assert movement.product_sku == product.sku
    assert db.session.get(Product, product.id).stock == 35


def test_stale_stock_before_is_a_conflict(db_session, make_product):
    product = make_product(stock=50)
    stock_service.record_stock_movement(product_id=product.id, movement_type="sale", quantity_change=-5)

    with pytest.raises(ConflictError):
        stock_service.record_stock_movement(
            product_id=product.id,
            movement_type="sale",
            quantity_change=-15,
            stock_before=50,
        )
    assert db.session.get(Product, product.id).stock == 45


def test_stock_cannot_go_negative(db_session, make_product):
    product = make_product(stock=3)
    before = StockMovement.query.count()

    with pytest.raises(ValidationError):
        stock_service.record_stock_movement(product_id=product.id, movement_type="sale", quantity_change=-4)

    assert db.session.get(Product, product.id).stock == 3
    assert StockMovement.query.count() == before


def test_failure_after_insert_leaves_no_trace(db_session, make_product, monkeypatch):
    product = make_product(stock=20)
    before = StockMovement.query.count()

    def fail(*args, **kwargs):
        raise RuntimeError("disk full")

    # Runs after the movement row and the stock update are flushed
    monkeypatch.setattr(stock_service.logger, "debug", fail)

    with pytest.raises(RuntimeError):
        stock_service.record_stock_movement(product_id=product.id, movement_type="sale", quantity_change=-5)

    assert StockMovement.query.count() == before
    assert db.session.get(Product, product.id).stock == 20


def test_stock_cannot_exceed_the_column_range(db_session, make_product):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        stock_service.record_stock_movement(product_id=product.id, movement_type="purchase", quantity_change=10**15)
    with pytest.raises(ValidationError):
        stock_service.record_stock_movement(product_id=product.id, movement_type="purchase", quantity_change=MAX_QUANTITY)
    assert db.session.get(Product, product.id).stock == 10


def test_inconsistent_stock_after_is_rejected(db_session, make_product):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        stock_service.record_stock_movement(
            product_id=product.id,
            movement_type="return",
            quantity_change=2,
            stock_after=13,
        )


@pytest.mark.parametrize("change", [0, 1.5, "3", True])
def test_quantity_change_must_be_a_nonzero_integer(db_session, make_product, change):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        stock_service.record_stock_movement(product_id=product.id, movement_type="adjustment", quantity_change=change)


def test_unknown_movement_type_rejected(db_session, make_product):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        stock_service.record_stock_movement(product_id=product.id, movement_type="theft", quantity_change=-1)


def test_unknown_product_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        stock_service.record_stock_movement(product_id=999, movement_type="purchase", quantity_change=5)


def test_product_stock_matches_last_movement(db_session, make_product):
    product = make_product(stock=20)
    for change in (-5, 10, -25):
        stock_service.record_stock_movement(product_id=product.id, movement_type="adjustment", quantity_change=change)

    last = stock_service.list_stock_movements(product_id=product.id, limit=1)[0]
    assert last.stock_after == 0
    assert db.session.get(Product, product.id).stock == 0


def test_status_follows_stock(db_session, make_product):
    product = make_product(stock=2)
    stock_service.record_stock_movement(product_id=product.id, movement_type="sale", quantity_change=-2)
    assert db.session.get(Product, product.id).status == "out_of_stock"

    stock_service.record_stock_movement(product_id=product.id, movement_type="purchase", quantity_change=4)
    refreshed = db.session.get(Product, product.id)
    assert refreshed.status == "active"
    assert refreshed.last_restocked_at is not None


def test_inactive_products_stay_inactive(db_session, make_product):
    product = make_product(stock=5, status="inactive")
    stock_service.record_stock_movement(product_id=product.id, movement_type="sale", quantity_change=-5)
    assert db.session.get(Product, product.id).status == "inactive"


def test_adjust_stock_sets_absolute_value(db_session, make_product):
    product = make_product(stock=50)
    movement = stock_service.adjust_stock(product_id=product.id, new_stock=42, reason="Cycle count")

    assert movement.movement_type == "adjustment"
    assert movement.quantity_change == -8
    assert movement.reason == "Cycle count"
    assert db.session.get(Product, product.id).stock == 42


def test_adjust_stock_to_same_value_is_rejected(db_session, make_product):
    product = make_product(stock=7)
    with pytest.raises(ValidationError):
        stock_service.adjust_stock(product_id=product.id, new_stock=7)


def test_adjust_stock_of_unknown_product_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        stock_service.adjust_stock(product_id=9999, new_stock=4, current_stock=4)


def test_adjust_stock_with_stale_view_is_a_conflict(db_session, make_product):
    product = make_product(stock=7)
    with pytest.raises(ConflictError):
        stock_service.adjust_stock(product_id=product.id, new_stock=3, current_stock=9)


def test_only_reason_is_editable(db_session, make_product):
    product = make_product(stock=10)
    movement = stock_service.record_stock_movement(
        product_id=product.id, movement_type="sale", quantity_change=-1, reason="Walk-in",
    )

    updated = stock_service.update_stock_movement_reason(movement.id, {"reason": "Walk-in sale"})
    assert updated.reason == "Walk-in sale"

    with pytest.raises(ValidationError, match="immutable"):
        stock_service.update_stock_movement_reason(movement.id, {"quantity_change": -2})
    assert db.session.get(StockMovement, movement.id).quantity_change == -1


def test_list_filters_by_type(db_session, make_product):
    product = make_product(stock=10)
    stock_service.record_stock_movement(product_id=product.id, movement_type="sale", quantity_change=-1)
    stock_service.record_stock_movement(product_id=product.id, movement_type="return", quantity_change=1)

    sales = stock_service.list_stock_movements(product_id=product.id, movement_type="sale")
    assert [m.movement_type for m in sales] == ["sale"]
