from invenbill.cli import customers_group, profiles_group, sequences_group
from invenbill.models import Profile
from invenbill.services import invoice_service


def test_profiles_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(profiles_group, ["create", "--email", "Owner@Example.test", "--role", "admin"])
    assert result.exit_code == 0, result.output
    assert Profile.query.filter_by(email="owner@example.test").one().role == "admin"

    result = runner.invoke(profiles_group, ["list"])
    assert "owner@example.test" in result.output


def test_profiles_create_duplicate_fails(app, db_session, admin):
    runner = app.test_cli_runner()
    result = runner.invoke(profiles_group, ["create", "--email", admin.email])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_sequences_show(app, db_session, make_customer):
    invoice_service.create_invoice({"customer_id": make_customer().id})
    result = app.test_cli_runner().invoke(sequences_group, ["show"])
    assert result.exit_code == 0
    assert "INV-002" in result.output
    assert "PO-000001" in result.output


def test_customers_recompute_totals(app, db_session, make_customer):
    make_customer()
    result = app.test_cli_runner().invoke(customers_group, ["recompute-totals"])
    assert result.exit_code == 0
    assert "Recomputed totals for 1 customers" in result.output
