"""
HTTP API tests: caller identification, role checks and the domain error
to status code mapping.
"""

import pytest

from conftest import auth_headers


def test_health_is_public(client, db_session):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"]["status"] == "healthy"


def test_missing_user_header_is_401(client, db_session):
    resp = client.get("/api/products")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Authentication required"


def test_unknown_user_is_401(client, db_session):
    resp = client.get("/api/products", headers={"X-User-Id": "9999"})
    assert resp.status_code == 401


def test_inactive_user_is_401(client, db_session, staff):
    staff.is_active = False
    db_session.commit()
    resp = client.get("/api/products", headers=auth_headers(staff))
    assert resp.status_code == 401


def test_reports_require_manager_or_admin(client, db_session, staff, admin):
    resp = client.get("/api/reports/inventory-summary", headers=auth_headers(staff))
    assert resp.status_code == 403
    assert resp.get_json()["required_roles"] == ["admin", "manager"]

    resp = client.get("/api/reports/inventory-summary", headers=auth_headers(admin))
    assert resp.status_code == 200


def test_profile_admin_routes(client, db_session, staff, admin):
    resp = client.get("/api/profiles", headers=auth_headers(staff))
    assert resp.status_code == 403

    resp = client.get(f"/api/profiles/{admin.id}", headers=auth_headers(staff))
    assert resp.status_code == 403

    resp = client.get(f"/api/profiles/{staff.id}", headers=auth_headers(staff))
    assert resp.status_code == 200


def test_self_service_cannot_change_role(client, db_session, staff):
    resp = client.put("/api/profiles/me", json={"role": "admin"}, headers=auth_headers(staff))
    assert resp.status_code == 400

    resp = client.put("/api/profiles/me", json={"first_name": "Sam"}, headers=auth_headers(staff))
    assert resp.status_code == 200
    assert resp.get_json()["first_name"] == "Sam"


def test_product_create_and_adjust(client, db_session, staff):
    headers = auth_headers(staff)
    resp = client.post(
        "/api/products",
        json={"sku": "BOLT-1", "name": "Bolt", "price": "0.25", "stock": 100},
        headers=headers,
    )
    assert resp.status_code == 201
    product = resp.get_json()
    assert product["stock"] == 100

    resp = client.post(
        f"/api/products/{product['id']}/adjust-stock",
        json={"new_stock": 90, "current_stock": 100, "reason": "Damaged"},
        headers=headers,
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["movement"]["quantity_change"] == -10
    assert body["product"]["stock"] == 90

    # stale view of the stock
    resp = client.post(
        f"/api/products/{product['id']}/adjust-stock",
        json={"new_stock": 80, "current_stock": 100},
        headers=headers,
    )
    assert resp.status_code == 409


def test_duplicate_sku_is_409(client, db_session, staff):
    headers = auth_headers(staff)
    client.post("/api/products", json={"sku": "DUP", "name": "One"}, headers=headers)
    resp = client.post("/api/products", json={"sku": "DUP", "name": "Two"}, headers=headers)
    assert resp.status_code == 409


def test_stock_movement_endpoints(client, db_session, staff, make_product):
    product = make_product(stock=10)
    headers = auth_headers(staff)

    resp = client.post(
        "/api/stock-movements",
        json={"product_id": product.id, "movement_type": "sale", "quantity_change": -20},
        headers=headers,
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/stock-movements",
        json={"product_id": product.id, "movement_type": "sale", "quantity_change": -2},
        headers=headers,
    )
    assert resp.status_code == 201
    movement = resp.get_json()
    assert movement["created_by"] == staff.id

    resp = client.patch(
        f"/api/stock-movements/{movement['id']}",
        json={"stock_after": 0},
        headers=headers,
    )
    assert resp.status_code == 400


def test_invoice_lifecycle_over_http(client, db_session, staff, make_customer):
    customer = make_customer()
    headers = auth_headers(staff)

    resp = client.post(
        "/api/invoices",
        json={
            "customer_id": customer.id,
            "tax_rate": "8",
            "items": [
                {"product_name": "A", "quantity": 2, "unit_price": "10.00"},
                {"product_name": "B", "quantity": 1, "unit_price": "5.00"},
            ],
        },
        headers=headers,
    )
    assert resp.status_code == 201
    invoice = resp.get_json()
    assert invoice["invoice_number"] == "INV-001"
    assert invoice["total_amount"] == "27.00"

    resp = client.get("/api/sequences/invoice/next", headers=headers)
    assert resp.get_json()["next_number"] == "INV-002"

    resp = client.post(f"/api/invoices/{invoice['id']}/status", json={"status": "paid"}, headers=headers)
    assert resp.status_code == 200

    resp = client.get(f"/api/customers/{customer.id}", headers=headers)
    assert resp.get_json()["total_spent"] == "27.00"

    resp = client.delete(f"/api/invoices/{invoice['id']}", headers=headers)
    assert resp.status_code == 200
    resp = client.get(f"/api/invoices/{invoice['id']}", headers=headers)
    assert resp.status_code == 404


def test_validation_errors_are_400(client, db_session, staff, make_customer):
    customer = make_customer()
    headers = auth_headers(staff)

    resp = client.post("/api/invoices", json={"customer_id": customer.id, "bogus": 1}, headers=headers)
    assert resp.status_code == 400

    resp = client.post("/api/invoices", json={"customer_id": customer.id, "status": "PAID"}, headers=headers)
    assert resp.status_code == 400

    resp = client.post("/api/invoices", json={"customer_id": 999}, headers=headers)
    assert resp.status_code == 404


def test_unknown_sequence_family_is_400(client, db_session, staff):
    resp = client.get("/api/sequences/quote/next", headers=auth_headers(staff))
    assert resp.status_code == 400


def test_financial_summary_requires_dates(client, db_session, admin):
    resp = client.get("/api/reports/financial-summary", headers=auth_headers(admin))
    assert resp.status_code == 400

    resp = client.get(
        "/api/reports/financial-summary?start_date=2026-01-01&end_date=2026-01-31",
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    assert resp.get_json()["net_profit"] == "0.00"


def test_invoice_round_trips_through_fetch(client, db_session, staff, make_customer):
    customer = make_customer()
    headers = auth_headers(staff)
    submitted = [
        {"product_name": "Zinc plate", "quantity": 3, "unit_price": "4.10"},
        {"product_name": "Anchor", "quantity": 1, "unit_price": "19.99"},
        {"product_name": "Mesh", "quantity": 12, "unit_price": "0.25"},
    ]

    resp = client.post(
        "/api/invoices",
        json={"customer_id": customer.id, "tax_rate": "8.25", "items": submitted},
        headers=headers,
    )
    assert resp.status_code == 201
    created = resp.get_json()

    resp = client.get(f"/api/invoices/{created['id']}", headers=headers)
    assert resp.status_code == 200
    fetched = resp.get_json()

    # 12.30 + 19.99 + 3.00 = 35.29; tax 8.25% = 2.911425 -> 2.91
    assert fetched["subtotal"] == "35.29"
    assert fetched["tax_rate"] == "8.25"
    assert fetched["tax_amount"] == "2.91"
    assert fetched["total_amount"] == "38.20"
    assert [
        (i["product_name"], i["quantity"], i["unit_price"], i["total_price"]) for i in fetched["items"]
    ] == [
        ("Zinc plate", 3, "4.10", "12.30"),
        ("Anchor", 1, "19.99", "19.99"),
        ("Mesh", 12, "0.25", "3.00"),
    ]
    assert fetched["items"] == created["items"]


@pytest.mark.parametrize("item", [
    {"product_name": "A", "quantity": 1, "unit_price": "1e30"},
    {"product_name": "A", "quantity": 10**15, "unit_price": "99999.99"},
    {"product_name": "A", "quantity": 100_000, "unit_price": "9999999.99"},
])
def test_oversized_amounts_are_400(client, db_session, staff, make_customer, item):
    customer = make_customer()
    resp = client.post(
        "/api/invoices",
        json={"customer_id": customer.id, "items": [item]},
        headers=auth_headers(staff),
    )
    assert resp.status_code == 400
    assert "too large" in resp.get_json()["error"]


def test_oversized_tax_rate_is_400(client, db_session, staff, make_customer):
    customer = make_customer()
    resp = client.post(
        "/api/invoices",
        json={"customer_id": customer.id, "tax_rate": "1e30"},
        headers=auth_headers(staff),
    )
    assert resp.status_code == 400


def test_tax_summary_over_http(client, db_session, staff, admin):
    url = "/api/reports/tax-summary?start_date=2026-01-01&end_date=2026-01-31"
    assert client.get(url, headers=auth_headers(staff)).status_code == 403

    resp = client.get(url, headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.get_json()["tax_collected"] == "0.00"

    resp = client.get("/api/reports/tax-summary", headers=auth_headers(admin))
    assert resp.status_code == 400
