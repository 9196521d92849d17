# Overview: Pytest coverage for the marketplace Flask CLI group.

from marketplace.services import ledger_service


class TestMarketplaceCli:
    def test_settings_set_and_show(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["marketplace", "settings", "set", "--pst", "0.07", "--gst", "0.05"])
        assert result.exit_code == 0, result.output
        result = runner.invoke(args=["marketplace", "settings", "show"])
        assert "PST: 0.07" in result.output
        assert "GST: 0.05" in result.output

    def test_settings_set_rejects_negative(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["marketplace", "settings", "set", "--gst", "-1"])
        assert result.exit_code != 0
        assert "gst_rate" in result.output

    def test_report(self, app, make_item, make_session):
        item = make_item(name="Sticker pack", cost=100, price=300)
        session = make_session(name="Zine fest", items=[item])
        ledger_service.record_transaction(session.id, [{"item_id": item.id, "quantity": 2}])
        result = app.test_cli_runner().invoke(args=["marketplace", "report", str(session.id)])
        assert result.exit_code == 0, result.output
        assert "Zine fest" in result.output
        assert "Actual revenue:    6.00" in result.output
        assert "Sticker pack x2" in result.output

    def test_report_unknown_session(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["marketplace", "report", "999"])
        assert result.exit_code != 0
