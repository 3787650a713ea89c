"""
Accounting tests.

Verifies:
- Manual journal entries must balance and have valid lines
- Expenses post debit Operating Expenses / credit Cash and Banks, reposted on edit and removed on delete
- Account deletion is refused once lines reference the account
- Reports are derived from journal lines and the balance sheet balances
"""

import pytest

from efectivio.models import Account, Expense, JournalEntry
from efectivio.services import accounting_service
from efectivio.services.numbering_service import next_document_number


@pytest.fixture
def chart(db_session):
    accounts = accounting_service.ensure_default_chart()
    db_session.commit()
    return accounts


def _line(code, debit=0, credit=0):
    return {"account_code": code, "debit": debit, "credit": credit}


def test_sequences_are_per_document_type(db_session):
    assert next_document_number(document_type="quote", prefix="QT") == "QT-000001"
    assert next_document_number(document_type="quote", prefix="QT") == "QT-000002"
    assert next_document_number(document_type="journal_entry", prefix="JE") == "JE-000001"
    db_session.commit()
    assert next_document_number(document_type="quote", prefix="QT") == "QT-000003"
    db_session.rollback()


class TestJournalEntries:
    def test_balanced_entry(self, client, staff_headers, chart):
        resp = client.post(
            "/api/journal-entries",
            json={
                "entry": {"date": "2026-01-31", "reference": "Aportación"},
                "lines": [_line("1000", debit="1000.00"), _line("3000", credit="1000.00")],
            },
            headers=staff_headers,
        )
        assert resp.status_code == 201, resp.json
        assert resp.json["entry_number"] == "JE-000001"
        assert resp.json["total_debit"] == "1000.00"
        assert resp.json["total_credit"] == "1000.00"
        assert resp.json["source_type"] == "manual"
        assert len(resp.json["lines"]) == 2

    def test_unbalanced_entry_rejected(self, client, staff_headers, chart, db_session):
        resp = client.post(
            "/api/journal-entries",
            json={"entry": {}, "lines": [_line("1000", debit=100), _line("3000", credit=90)]},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert "unbalanced" in resp.json["error"]
        assert db_session.query(JournalEntry).count() == 0

    def test_one_cent_difference_accepted(self, client, staff_headers, chart):
        resp = client.post(
            "/api/journal-entries",
            json={"entry": {}, "lines": [_line("1000", debit="100.01"), _line("3000", credit="100.00")]},
            headers=staff_headers,
        )
        assert resp.status_code == 201

    @pytest.mark.parametrize("lines", [
        [_line("1000", debit=100)],
        [_line("1000", debit=100, credit=100), _line("3000", credit=100)],
        [_line("1000", debit=-5), _line("3000", credit=-5)],
        [_line("9999", debit=100), _line("3000", credit=100)],
        [{"debit": 100}, _line("3000", credit=100)],
    ])
    def test_invalid_lines_rejected(self, client, staff_headers, chart, lines):
        resp = client.post("/api/journal-entries", json={"entry": {}, "lines": lines}, headers=staff_headers)
        assert resp.status_code == 400

    def test_update_replaces_lines(self, client, staff_headers, chart):
        created = client.post(
            "/api/journal-entries",
            json={"entry": {}, "lines": [_line("1000", debit=50), _line("3000", credit=50)]},
            headers=staff_headers,
        ).json
        resp = client.put(
            f"/api/journal-entries/{created['id']}",
            json={"entry": {"description": "Corregido"}, "lines": [_line("1000", debit=75), _line("3000", credit=75)]},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert resp.json["description"] == "Corregido"
        assert resp.json["total_debit"] == "75.00"

        bad = client.put(
            f"/api/journal-entries/{created['id']}",
            json={"lines": [_line("1000", debit=75), _line("3000", credit=70)]},
            headers=staff_headers,
        )
        assert bad.status_code == 400


class TestAccounts:
    def test_create_and_duplicate_code(self, client, staff_headers, chart):
        body = {"code": "6100", "name": "Publicidad", "type": "expense"}
        assert client.post("/api/accounts", json=body, headers=staff_headers).status_code == 201
        assert client.post("/api/accounts", json=body, headers=staff_headers).status_code == 409

    def test_invalid_type_rejected(self, client, staff_headers, db_session):
        resp = client.post("/api/accounts", json={"code": "7000", "name": "X", "type": "magic"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_delete_refused_with_lines(self, client, staff_headers, chart):
        client.post(
            "/api/journal-entries",
            json={"entry": {}, "lines": [_line("1000", debit=10), _line("3000", credit=10)]},
            headers=staff_headers,
        )
        cash = chart["1000"]
        assert client.delete(f"/api/accounts/{cash.id}", headers=staff_headers).status_code == 409

        payable = chart["2000"]
        assert client.delete(f"/api/accounts/{payable.id}", headers=staff_headers).status_code == 204

    def test_parent_cycle_rejected(self, client, staff_headers, chart):
        parent = client.post("/api/accounts", json={"code": "1500", "name": "Activo fijo", "type": "asset"},
                             headers=staff_headers).json
        child = client.post("/api/accounts", json={"code": "1510", "name": "Equipo", "type": "asset",
                                                   "parent_id": parent["id"]}, headers=staff_headers).json
        resp = client.put(f"/api/accounts/{parent['id']}", json={"parent_id": child["id"]}, headers=staff_headers)
        assert resp.status_code == 400


class TestExpenses:
    def test_create_posts_journal(self, client, staff_headers, db_session):
        resp = client.post(
            "/api/expenses",
            json={"description": "Papelería", "amount": "100.00", "tax_amount": "16.00", "category": "office"},
            headers=staff_headers,
        )
        assert resp.status_code == 201, resp.json

        entry = db_session.query(JournalEntry).filter_by(source_type="expense", source_id=resp.json["id"]).one()
        postings = {line.account.code: (str(line.debit), str(line.credit)) for line in entry.lines}
        assert postings == {"5000": ("116.00", "0.00"), "1000": ("0.00", "116.00")}

    def test_update_amount_replaces_journal(self, client, staff_headers, db_session):
        created = client.post(
            "/api/expenses", json={"description": "Renta", "amount": "100.00"}, headers=staff_headers
        ).json
        resp = client.put(f"/api/expenses/{created['id']}", json={"amount": "900.00"}, headers=staff_headers)
        assert resp.status_code == 200, resp.json

        entry = db_session.query(JournalEntry).filter_by(source_type="expense", source_id=created["id"]).one()
        postings = {line.account.code: (str(line.debit), str(line.credit)) for line in entry.lines}
        assert postings == {"5000": ("900.00", "0.00"), "1000": ("0.00", "900.00")}

        statement = client.get("/api/reports/income-statement", headers=staff_headers).json
        assert statement["total_expenses"] == "900.00"

    def test_status_edit_keeps_journal(self, client, staff_headers, db_session):
        created = client.post(
            "/api/expenses", json={"description": "Renta", "amount": "100.00"}, headers=staff_headers
        ).json
        before = db_session.query(JournalEntry).filter_by(source_id=created["id"]).one().entry_number
        client.put(f"/api/expenses/{created['id']}", json={"status": "paid"}, headers=staff_headers)

        db_session.expire_all()
        assert db_session.query(JournalEntry).filter_by(source_id=created["id"]).one().entry_number == before

    def test_delete_removes_journal(self, client, staff_headers, db_session):
        created = client.post(
            "/api/expenses", json={"description": "Renta", "amount": "100.00"}, headers=staff_headers
        ).json
        assert client.delete(f"/api/expenses/{created['id']}", headers=staff_headers).status_code == 204
        assert db_session.query(JournalEntry).filter_by(source_type="expense").count() == 0

        report = client.get("/api/reports/balance-sheet", headers=staff_headers).json
        assert report["total_assets"] == "0.00"
        assert report["is_balanced"] is True

    @pytest.mark.parametrize("payload", [
        {"amount": "10.00"},
        {"description": "Sin monto"},
        {"description": "Negativo", "amount": "-5"},
        {"description": "Cero", "amount": 0},
        {"description": "Categoría", "amount": 5, "category": "yachts"},
    ])
    def test_invalid_expense_rejected(self, client, staff_headers, db_session, payload):
        resp = client.post("/api/expenses", json=payload, headers=staff_headers)
        assert resp.status_code == 400
        assert db_session.query(Expense).count() == 0
        assert db_session.query(JournalEntry).count() == 0


class TestReports:
    def _seed(self, client, headers, acme):
        client.post(
            "/api/journal-entries",
            json={"entry": {}, "lines": [_line("1000", debit=1000), _line("3000", credit=1000)]},
            headers=headers,
        )
        client.post(
            "/api/invoices",
            json={"invoice": {"client_id": acme.id}, "items": [
                {"description": "Consultoría", "quantity": 3, "unit_price": 100, "tax_rate": 14},
            ]},
            headers=headers,
        )
        client.post(
            "/api/expenses",
            json={"description": "Internet", "amount": "100.00", "tax_amount": "16.00"},
            headers=headers,
        )

    def test_balance_sheet_balances(self, client, staff_headers, acme, chart):
        self._seed(client, staff_headers, acme)
        resp = client.get("/api/reports/balance-sheet", headers=staff_headers)
        assert resp.status_code == 200
        report = resp.json
        # cash 1000 - 116, receivable 342
        assert report["total_assets"] == "1226.00"
        assert report["retained_earnings"] == "226.00"
        assert report["total_equity"] == "1226.00"
        assert report["total_liabilities"] == "0.00"
        assert report["is_balanced"] is True
        assert {row["code"]: row["balance"] for row in report["assets"]} == {"1000": "884.00", "1100": "342.00"}

    def test_balance_sheet_as_of_excludes_later_entries(self, client, staff_headers, acme, chart):
        self._seed(client, staff_headers, acme)
        resp = client.get("/api/reports/balance-sheet?as_of=2000-01-01", headers=staff_headers)
        assert resp.json["total_assets"] == "0.00"
        assert resp.json["is_balanced"] is True

    def test_income_statement(self, client, staff_headers, acme, chart):
        self._seed(client, staff_headers, acme)
        resp = client.get("/api/reports/income-statement", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["total_revenue"] == "342.00"
        assert resp.json["total_expenses"] == "116.00"
        assert resp.json["net_income"] == "226.00"

    def test_bad_dates_rejected(self, client, staff_headers, db_session):
        assert client.get("/api/reports/balance-sheet?as_of=yesterday", headers=staff_headers).status_code == 400
        resp = client.get("/api/reports/income-statement?start=2026-05-01&end=2026-04-01", headers=staff_headers)
        assert resp.status_code == 400

    def test_empty_ledger(self, client, staff_headers, db_session):
        report = client.get("/api/reports/balance-sheet", headers=staff_headers).json
        assert report["assets"] == []
        assert report["is_balanced"] is True
        assert db_session.query(Account).count() == 0
