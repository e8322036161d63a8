from datetime import datetime

from bazpos.services import ledger_store
from bazpos.services.auth_service import validate_admin_password
from bazpos.services.ledger_store import SALES
from bazpos.services.shift_service import close_shift


class TestSystemCommands:
    def test_init_creates_config_once(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init", "--password", "s3cret"])
        assert result.exit_code == 0, result.output
        assert "Admin password set" in result.output

        config = ledger_store.get_config()
        assert config["categories"] == []
        assert config["expenses"] == {"rent": {"amount": 0, "paidStatus": {}}}
        assert validate_admin_password("s3cret")

        ledger_store.merge_config({"categories": ["Shirts"]})
        db_session.commit()
        again = runner.invoke(args=["system", "init", "--password", "other"])

        assert again.exit_code == 0, again.output
        assert "Config already complete" in again.output
        assert ledger_store.get_config()["categories"] == ["Shirts"]
        assert validate_admin_password("s3cret")

    def test_set_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "set-password", "--password", "fresh1"])

        assert result.exit_code == 0, result.output
        assert validate_admin_password("fresh1")

    def test_set_password_too_short(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "set-password", "--password", "x"])

        assert result.exit_code != 0
        assert "at least" in result.output


class TestInspectionCommands:
    def test_stock_show(self, app, db_session, make_product):
        make_product("P1", name="Tee", quantities={"Red": {"M": 2}, "Blue": {"S": 1}})

        result = app.test_cli_runner().invoke(args=["stock", "show", "P1"])

        assert result.exit_code == 0, result.output
        assert "Tee" in result.output
        assert "TOTAL" in result.output
        assert result.output.rstrip().endswith("3")

    def test_stock_show_missing(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["stock", "show", "ghost"])

        assert result.exit_code != 0
        assert "not found" in result.output

    def test_shifts_list_and_preview(self, app, db_session, seed):
        runner = app.test_cli_runner()
        assert "No shifts closed yet" in runner.invoke(args=["shifts", "list"]).output

        seed(SALES, {"id": "S1", "createdAt": "2024-03-05T10:00:00Z", "totalAmount": 50})
        preview = runner.invoke(args=["shifts", "preview"])
        assert preview.exit_code == 0, preview.output
        assert "50.00" in preview.output

        shift = close_shift("mona", 50, now=datetime(2024, 3, 5, 12, 0))
        listing = runner.invoke(args=["shifts", "list"])
        assert shift["id"] in listing.output
        assert "exact" in listing.output
