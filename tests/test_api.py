"""Tests for the Flask HTTP surface."""

import pytest

from main import create_app
from teacher_pay.models import AttendanceSide

ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Roles": "ADMIN"}
TEACHER_HEADERS = {"X-User-Id": "t1", "X-User-Roles": "TEACHER"}


@pytest.fixture
def client(service):
    app = create_app(service)
    app.config["TESTING"] = True
    return app.test_client()


class TestInfoRoutes:
    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_api_info(self, client):
        body = client.get("/api").get_json()
        assert body["status"] == "ok"
        assert "endpoints" in body

    def test_not_found(self, client):
        assert client.get("/unknown").status_code == 404


class TestPaymentRoutes:
    def test_teacher_payments(self, client, store, make_class):
        for day in ["2025-03-01", "2025-03-15", "2025-03-31"]:
            store.add_class_record(make_class(teacher_id="t1", day=day))

        response = client.get("/payments/teachers?start=2025-03-01&end=2025-03-31")

        assert response.status_code == 200
        teacher = response.get_json()["teachers"][0]
        assert teacher["total_payment"] == 36.0
        assert teacher["total_classes"] == 3
        assert teacher["total_hours"] == 3.0
        assert teacher["average_per_class"] == 12.0
        assert teacher["classes"][0]["day"] == "2025-03-31"

    def test_summary_defaults_to_current_month(self, client, store, make_class):
        store.add_class_record(make_class(teacher_id="t2"))

        body = client.get("/payments/summary").get_json()

        assert body["period"] == {"start": "2025-03-01", "end": "2025-03-31"}
        assert body["total_payment"] == 10.0

    def test_bad_dates(self, client):
        response = client.get("/payments/summary?start=2025-03-31&end=2025-03-01")
        assert response.status_code == 400
        assert response.get_json()["status"] == "validation_failed"

    def test_report(self, client, store, make_class):
        store.add_class_record(make_class(class_id="k1", attendance={AttendanceSide.TEACHER}))

        body = client.get("/payments/report").get_json()

        assert body["teachers"] == []
        assert body["excluded_classes"][0]["reason"] == "missing_student_attendance"

    def test_set_payable_requires_admin(self, client, store, make_class):
        store.add_class_record(make_class(class_id="k1"))

        response = client.post("/classes/k1/payable", json={"is_payable": False}, headers=TEACHER_HEADERS)

        assert response.status_code == 403
        assert store.get_class_record("k1").is_payable is True

    def test_set_payable(self, client, store, make_class):
        store.add_class_record(make_class(class_id="k1"))

        response = client.post("/classes/k1/payable", json={"is_payable": False}, headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert store.get_class_record("k1").is_payable is False

    def test_set_payable_unknown_class(self, client):
        response = client.post("/classes/nope/payable", json={"is_payable": True}, headers=ADMIN_HEADERS)
        assert response.status_code == 404

    def test_period_lookup(self, client):
        body = client.get("/periods/lookup?date=2025-02-14").get_json()
        assert body["period_id"] == "feb"
        assert client.get("/periods/lookup?date=2026-01-01").status_code == 404


class TestIncentiveRoutes:
    def test_manual_incentive_and_mark_paid(self, client):
        created = client.post("/incentives", headers=ADMIN_HEADERS, json={
            "teacher_id": "t1", "period_id": "mar", "type": "MANUAL", "percentage": 10, "base_amount": 250,
        })
        assert created.status_code == 201
        incentive = created.get_json()["incentive"]
        assert incentive["bonus_amount"] == 25.0

        paid = client.post("/incentives/mark-paid", headers=ADMIN_HEADERS, json={"incentive_ids": [incentive["id"]]})
        assert paid.get_json()["count"] == 1

        again = client.post("/incentives/mark-paid", headers=ADMIN_HEADERS, json={"incentive_ids": [incentive["id"]]})
        assert again.get_json()["count"] == 0

        listed = client.get("/teachers/t1/incentives").get_json()["incentives"]
        assert listed[0]["paid"] is True

    def test_invalid_manual_incentive(self, client):
        response = client.post("/incentives", headers=ADMIN_HEADERS, json={
            "teacher_id": "t1", "period_id": "mar", "percentage": 120, "base_amount": 10,
        })
        assert response.status_code == 400

    @pytest.mark.parametrize("field, value", [("percentage", "NaN"), ("base_amount", "Infinity")])
    def test_non_finite_numbers_rejected(self, client, field, value):
        payload = {"teacher_id": "t1", "period_id": "mar", "percentage": 10, "base_amount": 100}
        payload[field] = value

        response = client.post("/incentives", headers=ADMIN_HEADERS, json=payload)

        assert response.status_code == 400
        assert response.get_json()["status"] == "validation_failed"
        assert client.get("/teachers/t1/incentives").get_json()["incentives"] == []

    def test_retention_run(self, client, store, make_class):
        store.add_class_record(make_class(teacher_id="t2", student_id="a", day="2025-02-03"))
        store.add_class_record(make_class(teacher_id="t2", student_id="a", day="2025-03-03"))

        response = client.post("/incentives/retention", headers=ADMIN_HEADERS, json={"period_id": "mar"})

        assert response.status_code == 200
        assert response.get_json()["count"] == 1

    def test_retention_requires_period_id(self, client):
        response = client.post("/incentives/retention", headers=ADMIN_HEADERS, json={})
        assert response.status_code == 400


class TestConfirmationRoutes:
    PAYLOAD = {"teacher_id": "t1", "amount": 36, "period_start": "2025-03-01", "period_end": "2025-03-31"}

    def test_create_then_duplicate(self, client):
        first = client.post("/confirmations", headers=ADMIN_HEADERS, json=self.PAYLOAD)
        assert first.status_code == 201
        confirmation_id = first.get_json()["confirmation"]["id"]

        second = client.post("/confirmations", headers=ADMIN_HEADERS, json=self.PAYLOAD)
        assert second.status_code == 409
        assert second.get_json()["confirmation"]["id"] == confirmation_id

    def test_non_finite_amount_rejected(self, client):
        response = client.post("/confirmations", headers=ADMIN_HEADERS, json={**self.PAYLOAD, "amount": "NaN"})

        assert response.status_code == 400
        assert client.get("/confirmations").get_json()["confirmations"] == []

    def test_exists(self, client):
        query = "/confirmations/exists?teacher_id=t1&start=2025-03-01&end=2025-03-31"
        assert client.get(query).get_json() == {"exists": False}

        client.post("/confirmations", headers=ADMIN_HEADERS, json=self.PAYLOAD)
        assert client.get(query).get_json()["exists"] is True

    def test_status_update_and_stats(self, client):
        created = client.post("/confirmations", headers=ADMIN_HEADERS, json=self.PAYLOAD).get_json()
        confirmation_id = created["confirmation"]["id"]

        response = client.post(f"/confirmations/{confirmation_id}/status", headers=ADMIN_HEADERS,
                               json={"status": "APPROVED"})
        assert response.get_json()["confirmation"]["status"] == "APPROVED"

        again = client.post(f"/confirmations/{confirmation_id}/status", headers=ADMIN_HEADERS,
                            json={"status": "REJECTED"})
        assert again.status_code == 400

        stats = client.get("/confirmations/stats").get_json()
        assert stats["approved"] == 1
        assert stats["total_amount_approved"] == 36.0

    def test_get_and_history(self, client):
        created = client.post("/confirmations", headers=ADMIN_HEADERS, json=self.PAYLOAD).get_json()
        confirmation_id = created["confirmation"]["id"]

        assert client.get(f"/confirmations/{confirmation_id}").get_json()["amount"] == 36.0
        assert client.get("/confirmations/missing").status_code == 404
        assert len(client.get("/teachers/t1/confirmations").get_json()["confirmations"]) == 1
        assert len(client.get("/confirmations?status=PENDING").get_json()["confirmations"]) == 1

    def test_create_requires_admin(self, client):
        response = client.post("/confirmations", headers=TEACHER_HEADERS, json=self.PAYLOAD)
        assert response.status_code == 403
