# Overview: Pytest coverage for the seed and ledger CLI commands.

from smartmart.models import Customer, Unit
from smartmart.cli import DEFAULT_UNITS


def test_seed_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["seed", "init"])
    second = runner.invoke(args=["seed", "init"])

    assert first.exit_code == 0
    assert second.exit_code == 0
    assert "Units created: 0" in second.output
    assert db_session.query(Customer).filter_by(name="Cash").count() == 1
    assert db_session.query(Unit).count() == len(DEFAULT_UNITS)


def test_ledger_verify_passes_for_consistent_ledger(app, db_session, make_product):
    make_product("CLI-1", opening_qty=3)
    make_product("CLI-2")

    result = app.test_cli_runner().invoke(args=["ledger", "verify"])

    assert result.exit_code == 0
    assert "PASS CLI-1: 1 entries" in result.output
    assert "Checked 2 products, 0 inconsistent" in result.output
