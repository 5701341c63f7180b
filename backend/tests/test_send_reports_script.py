"""
FSM Reports — Manual send script tests (store and dispatcher swapped for fakes)
"""

from scripts import send_reports
from tests.fakes import FakeDispatcher, FakeReportStore, make_salesman, make_tenant, make_visit, run_async


class _Client:
    closed = False

    def close(self):
        self.closed = True


def _wire(monkeypatch):
    store = FakeReportStore(
        tenants=[make_tenant()],
        salesmen=[make_salesman("s-1", "Asha"), make_salesman("a-1", "Meera", is_admin=True)],
        visits=[make_visit("s-1", "personal", 1500)],
    )
    dispatcher = FakeDispatcher()
    client = _Client()
    monkeypatch.setattr(send_reports, "MongoReportStore", lambda db: store)
    monkeypatch.setattr(send_reports.WhatsAppDispatcher, "from_config", classmethod(lambda cls: dispatcher))
    monkeypatch.setattr(send_reports, "client", client)
    return store, dispatcher, client


class TestArguments:

    def test_repeatable_options(self):
        args = send_reports.build_parser().parse_args([
            "--tenant", "t-1", "--tenant", "t-2", "--to", "+91 95376 53927", "--dry-run",
        ])
        assert args.tenant_ids == ["t-1", "t-2"]
        assert args.recipients == ["+91 95376 53927"]
        assert args.dry_run is True
        assert args.force is False
        assert args.start is None


class TestRun:

    def test_daily_dry_run_prints_previews(self, monkeypatch, freeze_clock, capsys):
        freeze_clock("2025-12-05T13:30:00")
        store, dispatcher, client = _wire(monkeypatch)
        args = send_reports.build_parser().parse_args(["--dry-run"])

        assert run_async(send_reports.run(args)) == 0
        out = capsys.readouterr().out
        assert "REPORT RUN (dry-run)" in out
        assert "Hello *Asha*," in out
        assert dispatcher.sent == []
        assert client.closed is True

    def test_period_run_to_test_number(self, monkeypatch, freeze_clock):
        freeze_clock("2025-12-08T06:00:00")
        store, dispatcher, client = _wire(monkeypatch)
        args = send_reports.build_parser().parse_args([
            "--start", "2025-12-01", "--end", "2025-12-07", "--to", "+91 95376 53927",
        ])

        assert run_async(send_reports.run(args)) == 0
        assert len(dispatcher.sent) == 2
        assert {phone for phone, _ in dispatcher.sent} == {"+91 95376 53927"}
        assert store.send_log == []

    def test_enumeration_failure_exit_code(self, monkeypatch, freeze_clock):
        freeze_clock("2025-12-05T13:30:00")
        store, dispatcher, client = _wire(monkeypatch)
        store.tenants_error = RuntimeError("db down")
        assert run_async(send_reports.run(send_reports.build_parser().parse_args([]))) == 2
