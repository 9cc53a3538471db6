"""Tests for the JSON API and its error mapping."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from expense_tracker import service


def _create(client, payload: dict, **overrides) -> dict:
    response = client.post("/api/expenses", json={**payload, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:
    def test_root(self, client) -> None:
        assert client.get("/").json()["status"] == "ok"

    def test_health(self, client) -> None:
        assert client.get("/health").json() == {"status": "healthy"}


class TestCreate:
    def test_create_returns_201_with_camel_case_view(self, client, expense_payload) -> None:
        response = client.post("/api/expenses", json=expense_payload)

        assert response.status_code == 201
        data = response.json()
        assert isinstance(data["id"], int)
        assert data["name"] == "Lunch"
        assert Decimal(str(data["amount"])) == Decimal("12.50")
        assert data["transactionDate"] == "2024-03-01T12:30:00"
        assert data["category"] == "Food"
        assert data["description"] == "Team lunch"
        assert data["tag"] == "work"
        assert data["enteredDate"] == data["updatedAt"]

    def test_caller_cannot_set_server_fields(self, client, expense_payload) -> None:
        data = _create(client, expense_payload, id=999, enteredDate="2000-01-01T00:00:00")

        assert data["id"] != 999
        assert data["enteredDate"] != "2000-01-01T00:00:00"

    def test_missing_fields_reported_per_field(self, client) -> None:
        response = client.post("/api/expenses", json={"description": "only this"})

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == 400
        assert body["message"] == "Validation failed"
        assert body["path"] == "/api/expenses"
        assert body["errors"] == {
            "transactionDate": "Transaction date is required",
            "name": "Name is required",
            "amount": "Amount is required",
            "category": "Category is required",
        }

    def test_whitespace_name_is_a_field_error(self, client, expense_payload) -> None:
        response = client.post("/api/expenses", json={**expense_payload, "name": "   "})

        assert response.status_code == 400
        assert response.json()["errors"] == {"name": "Name is required"}

    def test_future_date_is_a_field_error(self, client, expense_payload) -> None:
        future = (datetime.now() + timedelta(days=2)).isoformat()

        response = client.post("/api/expenses", json={**expense_payload, "transactionDate": future})

        assert response.status_code == 400
        assert response.json()["errors"]["transactionDate"] == "Transaction date cannot be in the future"

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount(self, client, expense_payload, amount) -> None:
        response = client.post("/api/expenses", json={**expense_payload, "amount": amount})

        assert response.status_code == 400
        assert "amount" in response.json()["errors"]

    def test_amount_above_column_limit_is_a_field_error(self, client, expense_payload) -> None:
        response = client.post("/api/expenses", json={**expense_payload, "amount": "123456789012345678.99"})

        assert response.status_code == 400
        assert response.json()["errors"] == {"amount": "Amount must not exceed 99999999.99"}
        assert client.get("/api/expenses").json() == []

    def test_largest_amount_round_trips(self, client, expense_payload) -> None:
        created = _create(client, expense_payload, amount="99999999.99")

        fetched = client.get(f"/api/expenses/{created['id']}").json()

        assert Decimal(str(fetched["amount"])) == Decimal("99999999.99")

    def test_three_decimal_amount_is_a_business_error(self, client, expense_payload) -> None:
        response = client.post("/api/expenses", json={**expense_payload, "amount": "10.005"})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Amount cannot have more than 2 decimal places"
        assert "errors" not in body
        assert client.get("/api/expenses").json() == []


class TestReadUpdateDelete:
    def test_get_by_id(self, client, expense_payload) -> None:
        created = _create(client, expense_payload)

        response = client.get(f"/api/expenses/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing_returns_404(self, client) -> None:
        response = client.get("/api/expenses/999")

        assert response.status_code == 404
        body = response.json()
        assert body["message"] == "Expense not found with id: 999"
        assert body["path"] == "/api/expenses/999"

    def test_non_integer_id_returns_400(self, client) -> None:
        response = client.get("/api/expenses/abc")

        assert response.status_code == 400
        assert "expense_id" in response.json()["errors"]

    def test_update_replaces_fields(self, client, expense_payload) -> None:
        created = _create(client, expense_payload)
        replacement = {
            "transactionDate": "2024-04-02T09:00:00",
            "name": "Dinner",
            "amount": "40.00",
            "category": "Restaurants",
        }

        response = client.put(f"/api/expenses/{created['id']}", json=replacement)

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Dinner"
        assert data["description"] is None
        assert data["tag"] is None
        assert data["enteredDate"] == created["enteredDate"]
        assert data["updatedAt"] >= created["updatedAt"]
        assert client.get(f"/api/expenses/{created['id']}").json() == data

    def test_update_missing_returns_404(self, client, expense_payload) -> None:
        response = client.put("/api/expenses/42", json=expense_payload)

        assert response.status_code == 404

    def test_update_business_error_returns_400(self, client, expense_payload) -> None:
        created = _create(client, expense_payload)

        response = client.put(f"/api/expenses/{created['id']}", json={**expense_payload, "amount": "3.141"})

        assert response.status_code == 400
        assert client.get(f"/api/expenses/{created['id']}").json()["amount"] == created["amount"]

    def test_delete_then_delete_again(self, client, expense_payload) -> None:
        created = _create(client, expense_payload)

        first = client.delete(f"/api/expenses/{created['id']}")
        second = client.delete(f"/api/expenses/{created['id']}")

        assert first.status_code == 204
        assert second.status_code == 404
        assert second.json()["message"] == f"Expense not found with id: {created['id']}"


class TestQueries:
    @pytest.fixture
    def seeded(self, client, expense_payload) -> None:
        _create(client, expense_payload, name="Coffee", amount="10.00", category="Food",
                transactionDate="2024-01-01T00:00:00")
        _create(client, expense_payload, name="Cake", amount="5.50", category="Food",
                transactionDate="2024-01-10T00:00:00")
        _create(client, expense_payload, name="Train", amount="20.00", category="Transport",
                transactionDate="2024-01-20T00:00:00")

    def test_list_all(self, client, seeded) -> None:
        names = [e["name"] for e in client.get("/api/expenses").json()]

        assert names == ["Coffee", "Cake", "Train"]

    def test_search_beats_category(self, client, seeded) -> None:
        response = client.get("/api/expenses", params={"search": "TRAIN", "category": "Food"})

        assert [e["name"] for e in response.json()] == ["Train"]

    def test_category_filter(self, client, seeded) -> None:
        response = client.get("/api/expenses", params={"category": "Food"})

        assert [e["name"] for e in response.json()] == ["Coffee", "Cake"]

    def test_empty_params_list_all(self, client, seeded) -> None:
        response = client.get("/api/expenses", params={"search": "", "category": ""})

        assert len(response.json()) == 3

    def test_range_is_inclusive(self, client, seeded) -> None:
        response = client.get(
            "/api/expenses/range",
            params={"startDate": "2024-01-01T00:00:00", "endDate": "2024-01-10T00:00:00"},
        )

        assert response.status_code == 200
        assert [e["name"] for e in response.json()] == ["Coffee", "Cake"]

    def test_range_requires_both_dates(self, client, seeded) -> None:
        response = client.get("/api/expenses/range", params={"startDate": "not-a-date"})

        assert response.status_code == 400
        assert set(response.json()["errors"]) == {"startDate", "endDate"}

    def test_above_is_strict(self, client, seeded) -> None:
        response = client.get("/api/expenses/above", params={"amount": "10.00"})

        assert [e["name"] for e in response.json()] == ["Train"]

    def test_summary(self, client, seeded) -> None:
        rows = {r["category"]: r for r in client.get("/api/expenses/summary").json()}

        assert set(rows) == {"Food", "Transport"}
        assert Decimal(str(rows["Food"]["totalAmount"])) == Decimal("15.50")
        assert rows["Food"]["count"] == 2
        assert Decimal(str(rows["Transport"]["totalAmount"])) == Decimal("20.00")


class TestUnexpectedErrors:
    def test_unexpected_error_hides_details(self, client, monkeypatch) -> None:
        def explode(db):
            raise RuntimeError("connection string with secrets")

        monkeypatch.setattr(service, "get_all_expenses", explode)

        response = client.get("/api/expenses")

        assert response.status_code == 500
        assert response.json()["message"] == "An unexpected error occurred"
        assert "secrets" not in response.text

    def test_unexpected_error_is_logged_with_request(self, client, monkeypatch) -> None:
        def explode(db):
            raise RuntimeError("boom")

        monkeypatch.setattr(service, "get_all_expenses", explode)

        with capture_logs() as logs:
            client.get("/api/expenses")

        entry = next(e for e in logs if e["event"] == "unexpected_error")
        assert entry["log_level"] == "error"
        assert entry["error_type"] == "RuntimeError"
        assert entry["path"] == "/api/expenses"
        assert entry["method"] == "GET"


class TestRequestLogging:
    def test_completed_requests_logged_at_info(self, client) -> None:
        with capture_logs() as logs:
            client.get("/health")

        entry = next(e for e in logs if e["event"] == "request_completed")
        assert entry["log_level"] == "info"
        assert entry["status_code"] == 200
