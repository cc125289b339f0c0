"""
HTTP API tests.

Tests cover:
- Actor header handling (missing -> 401, wrong role/inactive -> 403)
- Fine issue, view, dispute, resolve, void and pay endpoints
- Gateway callback authentication and idempotency
- Provision, identity and report endpoints
"""

import pytest
from sqlalchemy import text

from fineledger.models import (
    FINE_STATUS_PENDING,
    FINE_STATUS_PAID,
    FINE_STATUS_DISPUTED,
    FINE_STATUS_VOID,
)
from fineledger.services import fine_service, identity_service, reporting_service

from conftest import SPEEDING_CENTS, actor_headers, gateway_headers


def _issue_body(driver, **overrides):
    body = {
        "driver_id": driver.id,
        "provision_code": "SPEEDING",
        "vehicle_number": "WP CAB-1234",
        "location": "Galle Road, Colombo 03",
    }
    body.update(overrides)
    return body


# =============================================================================
# ACTOR HEADER
# =============================================================================

class TestActorHeader:

    def test_health(self, client, db_session, fine_factory):
        fine_factory(FINE_STATUS_PAID)
        fine_factory(FINE_STATUS_VOID)

        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["database"]["details"]["payments"] == 1
        assert data["ledger"]["details"] == {"paid_without_payment": 0, "payment_without_paid": 0}

    def test_health_reports_inconsistent_ledger(self, client, db_session, pending_fine):
        db_session.execute(
            text("UPDATE fines SET status = 'PAID' WHERE id = :id"), {"id": pending_fine.id}
        )
        db_session.commit()

        data = client.get("/api/health").get_json()
        assert data["status"] == "degraded"
        assert data["ledger"]["details"]["paid_without_payment"] == 1

    def test_missing_header(self, client, db_session, speeding, driver):
        response = client.post("/api/fines", json=_issue_body(driver))
        assert response.status_code == 401

    def test_malformed_header(self, client, db_session, speeding, driver):
        response = client.post("/api/fines", json=_issue_body(driver), headers={"X-Identity-Id": "abc"})
        assert response.status_code == 401

    def test_unknown_actor(self, client, db_session, speeding, driver):
        response = client.post("/api/fines", json=_issue_body(driver), headers={"X-Identity-Id": "9999"})
        assert response.status_code == 403

    def test_wrong_role(self, client, db_session, speeding, driver):
        response = client.post("/api/fines", json=_issue_body(driver), headers=actor_headers(driver))
        assert response.status_code == 403
        assert response.get_json()["code"] == "INVALID_ACTOR"

    def test_inactive_actor(self, client, db_session, speeding, officer, driver):
        identity_service.deactivate(officer.id)
        response = client.post("/api/fines", json=_issue_body(driver), headers=actor_headers(officer))
        assert response.status_code == 403
        assert response.get_json()["code"] == "INACTIVE"


# =============================================================================
# FINES
# =============================================================================

class TestFineRoutes:

    def test_issue(self, client, db_session, speeding, officer, driver):
        response = client.post("/api/fines", json=_issue_body(driver), headers=actor_headers(officer))

        assert response.status_code == 201
        fine = response.get_json()["fine"]
        assert fine["status"] == FINE_STATUS_PENDING
        assert fine["amount_cents"] == SPEEDING_CENTS
        assert fine["amount"] == "5000.00"
        assert fine["officer_id"] == officer.id

    def test_issue_missing_fields(self, client, db_session, speeding, officer, driver):
        response = client.post("/api/fines", json={"driver_id": driver.id}, headers=actor_headers(officer))
        assert response.status_code == 400

    def test_issue_driver_id_must_be_int(self, client, db_session, speeding, officer, driver):
        body = _issue_body(driver, driver_id=str(driver.id))
        response = client.post("/api/fines", json=body, headers=actor_headers(officer))
        assert response.status_code == 400

    def test_issue_unknown_provision(self, client, db_session, speeding, officer, driver):
        body = _issue_body(driver, provision_code="NOPE")
        response = client.post("/api/fines", json=body, headers=actor_headers(officer))
        assert response.status_code == 404
        assert response.get_json()["code"] == "UNKNOWN_PROVISION"

    def test_view_permissions(self, client, db_session, pending_fine, driver, other_driver, officer,
                              other_officer, official):
        url = f"/api/fines/{pending_fine.reference_number}"

        assert client.get(url, headers=actor_headers(driver)).status_code == 200
        assert client.get(url, headers=actor_headers(officer)).status_code == 200
        assert client.get(url, headers=actor_headers(official)).status_code == 200
        assert client.get(url, headers=actor_headers(other_driver)).status_code == 403
        assert client.get(url, headers=actor_headers(other_officer)).status_code == 403

    def test_view_unknown(self, client, db_session, driver):
        response = client.get("/api/fines/TF-1999-000001", headers=actor_headers(driver))
        assert response.status_code == 404

    def test_dispute_and_resolve(self, client, db_session, pending_fine, driver, admin):
        ref = pending_fine.reference_number

        response = client.post(f"/api/fines/{ref}/dispute", json={"reason": "Wrong plate"},
                               headers=actor_headers(driver))
        assert response.status_code == 200
        assert response.get_json()["fine"]["status"] == FINE_STATUS_DISPUTED

        again = client.post(f"/api/fines/{ref}/dispute", headers=actor_headers(driver))
        assert again.status_code == 409
        assert again.get_json()["code"] == "ALREADY_DISPUTED"

        resolved = client.post(f"/api/fines/{ref}/resolve", json={"outcome": "REOPEN"},
                               headers=actor_headers(admin))
        assert resolved.status_code == 200
        assert resolved.get_json()["fine"]["status"] == FINE_STATUS_PENDING

    def test_resolve_requires_admin(self, client, db_session, fine_factory, driver):
        fine = fine_factory(FINE_STATUS_DISPUTED)
        response = client.post(f"/api/fines/{fine.reference_number}/resolve", json={"outcome": "VOID"},
                               headers=actor_headers(driver))
        assert response.status_code == 403

    def test_void(self, client, db_session, pending_fine, admin):
        ref = pending_fine.reference_number

        missing_reason = client.post(f"/api/fines/{ref}/void", json={}, headers=actor_headers(admin))
        assert missing_reason.status_code == 400

        response = client.post(f"/api/fines/{ref}/void", json={"reason": "Duplicate"}, headers=actor_headers(admin))
        assert response.status_code == 200
        assert response.get_json()["fine"]["status"] == FINE_STATUS_VOID

        settled = client.post(f"/api/fines/{ref}/void", json={"reason": "Again"}, headers=actor_headers(admin))
        assert settled.status_code == 409
        assert settled.get_json()["code"] == "ALREADY_SETTLED"

    def test_events(self, client, db_session, fine_factory, admin, driver):
        fine = fine_factory(FINE_STATUS_PAID)
        url = f"/api/fines/{fine.reference_number}/events"

        response = client.get(url, headers=actor_headers(admin))
        assert response.status_code == 200
        events = response.get_json()["events"]
        assert [e["to_status"] for e in events] == [FINE_STATUS_PENDING, FINE_STATUS_PAID]

        assert client.get(url, headers=actor_headers(driver)).status_code == 403


# =============================================================================
# PAYMENTS
# =============================================================================

class TestPaymentRoutes:

    def test_driver_pays(self, client, db_session, gateway, pending_fine, driver):
        ref = pending_fine.reference_number
        response = client.post(f"/api/fines/{ref}/pay", json={"method": "card"}, headers=actor_headers(driver))

        assert response.status_code == 201
        data = response.get_json()
        assert data["fine"]["status"] == FINE_STATUS_PAID
        assert data["payment"]["confirmation_id"].startswith("SBX-")
        assert data["payment"]["reference_number"] == ref

        view = client.get(f"/api/fines/{ref}", headers=actor_headers(driver)).get_json()
        assert view["payment"]["id"] == data["payment"]["id"]

    def test_declined(self, client, db_session, gateway, pending_fine, driver):
        gateway.decline_references.add(pending_fine.reference_number)

        response = client.post(f"/api/fines/{pending_fine.reference_number}/pay", headers=actor_headers(driver))
        assert response.status_code == 502
        assert response.get_json()["code"] == "GATEWAY_ERROR"

    def test_other_driver_cannot_pay(self, client, db_session, gateway, pending_fine, other_driver):
        response = client.post(f"/api/fines/{pending_fine.reference_number}/pay",
                               headers=actor_headers(other_driver))
        assert response.status_code == 403
        assert gateway.charges == []

    def test_callback_requires_token(self, client, db_session, pending_fine):
        body = {"amount_cents": SPEEDING_CENTS, "confirmation_id": "abc123"}
        url = f"/api/fines/{pending_fine.reference_number}/payments"

        assert client.post(url, json=body).status_code == 401
        assert client.post(url, json=body, headers=gateway_headers("wrong")).status_code == 401

    def test_callback_is_idempotent(self, client, db_session, pending_fine):
        body = {"amount_cents": SPEEDING_CENTS, "method": "CARD", "confirmation_id": "abc123"}
        url = f"/api/fines/{pending_fine.reference_number}/payments"

        first = client.post(url, json=body, headers=gateway_headers())
        second = client.post(url, json=body, headers=gateway_headers())

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.get_json()["payment"]["id"] == second.get_json()["payment"]["id"]
        assert first.get_json()["payment"]["recorded_by_id"] is None

    def test_callback_amount_mismatch(self, client, db_session, pending_fine):
        body = {"amount_cents": SPEEDING_CENTS - 1, "confirmation_id": "abc123"}
        response = client.post(f"/api/fines/{pending_fine.reference_number}/payments", json=body,
                               headers=gateway_headers())
        assert response.status_code == 422
        assert response.get_json()["code"] == "AMOUNT_MISMATCH"

    def test_callback_rejects_float_amount(self, client, db_session, pending_fine):
        body = {"amount_cents": 5000.5, "confirmation_id": "abc123"}
        response = client.post(f"/api/fines/{pending_fine.reference_number}/payments", json=body,
                               headers=gateway_headers())
        assert response.status_code == 400


# =============================================================================
# PROVISIONS AND IDENTITIES
# =============================================================================

class TestCatalogRoutes:

    def test_upsert_with_decimal_amount(self, client, db_session, admin):
        response = client.put("/api/provisions/parking",
                              json={"description": "Illegal parking", "amount": "1500.50"},
                              headers=actor_headers(admin))
        assert response.status_code == 200
        provision = response.get_json()["provision"]
        assert provision["code"] == "PARKING"
        assert provision["amount_cents"] == 150_050

    @pytest.mark.parametrize("amount", ["Infinity", "-Infinity", "NaN", "sNaN"])
    def test_upsert_rejects_non_finite_amount(self, client, db_session, admin, amount):
        response = client.put("/api/provisions/PARKING",
                              json={"description": "Illegal parking", "amount": amount},
                              headers=actor_headers(admin))
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_upsert_requires_admin(self, client, db_session, officer):
        response = client.put("/api/provisions/PARKING",
                              json={"description": "Illegal parking", "amount_cents": 1000},
                              headers=actor_headers(officer))
        assert response.status_code == 403

    def test_list_and_deactivate(self, client, db_session, speeding, admin, officer):
        listed = client.get("/api/provisions", headers=actor_headers(officer)).get_json()
        assert [p["code"] for p in listed["provisions"]] == ["SPEEDING"]

        response = client.delete("/api/provisions/SPEEDING", headers=actor_headers(admin))
        assert response.status_code == 200
        assert response.get_json()["provision"]["is_active"] is False

        listed = client.get("/api/provisions", headers=actor_headers(officer)).get_json()
        assert listed["provisions"] == []

    def test_register_identity(self, client, db_session, admin):
        body = {
            "role": "DRIVER",
            "external_id": "B0101010",
            "name": "New Driver",
            "contact": "new@example.com",
            "password": "Password123!",
        }
        response = client.post("/api/identities", json=body, headers=actor_headers(admin))
        assert response.status_code == 201
        assert "credential_hash" not in response.get_json()["identity"]

        duplicate = client.post("/api/identities", json=body, headers=actor_headers(admin))
        assert duplicate.status_code == 409

    def test_identity_self_view(self, client, db_session, driver, other_driver):
        assert client.get(f"/api/identities/{driver.id}", headers=actor_headers(driver)).status_code == 200
        assert client.get(f"/api/identities/{driver.id}", headers=actor_headers(other_driver)).status_code == 403

    def test_deactivate_identity(self, client, db_session, admin, officer):
        response = client.post(f"/api/identities/{officer.id}/deactivate", headers=actor_headers(admin))
        assert response.status_code == 200
        assert response.get_json()["identity"]["is_active"] is False
        assert response.get_json()["identity"]["deactivated_by_id"] == admin.id

    def test_verify_credential(self, client, db_session, officer):
        ok = client.post("/api/identities/verify", json={"external_id": "BADGE-1042", "password": "Password123!"})
        assert ok.status_code == 200
        assert ok.get_json()["identity"]["id"] == officer.id

        bad = client.post("/api/identities/verify", json={"external_id": "BADGE-1042", "password": "nope"})
        assert bad.status_code == 401

        missing = client.post("/api/identities/verify", json={})
        assert missing.status_code == 400


# =============================================================================
# REPORTS
# =============================================================================

class TestReportRoutes:

    def test_driver_report_own_only(self, client, db_session, fine_factory, driver, other_driver):
        fine_factory()
        response = client.get(f"/api/reports/drivers/{driver.id}", headers=actor_headers(driver))
        assert response.status_code == 200
        data = response.get_json()
        assert len(data["fines"]) == 1
        assert data["balance"]["outstanding_cents"] == SPEEDING_CENTS

        other = client.get(f"/api/reports/drivers/{driver.id}", headers=actor_headers(other_driver))
        assert other.status_code == 403

    def test_officer_report(self, client, db_session, fine_factory, officer, other_officer, admin):
        fine_factory()
        assert client.get(f"/api/reports/officers/{officer.id}", headers=actor_headers(officer)).status_code == 200
        assert client.get(f"/api/reports/officers/{officer.id}",
                          headers=actor_headers(other_officer)).status_code == 403
        assert client.get(f"/api/reports/officers/{officer.id}", headers=actor_headers(admin)).status_code == 200

    def test_status_and_timeline(self, client, db_session, fine_factory, official, driver):
        fine_factory(FINE_STATUS_PAID)

        status = client.get("/api/reports/status", headers=actor_headers(official))
        assert status.status_code == 200
        assert status.get_json()["by_status"][FINE_STATUS_PAID]["count"] == 1

        timeline = client.get("/api/reports/timeline?group_by=month", headers=actor_headers(official))
        assert timeline.status_code == 200
        assert timeline.get_json()["rows"][0]["paid_count"] == 1

        bad = client.get("/api/reports/timeline?group_by=decade", headers=actor_headers(official))
        assert bad.status_code == 400

        assert client.get("/api/reports/status", headers=actor_headers(driver)).status_code == 403


class TestUnexpectedFailures:

    @staticmethod
    def _explode(*args, **kwargs):
        raise RuntimeError("database went away")

    def test_fine_view_logs_and_returns_500(self, client, db_session, monkeypatch, caplog, pending_fine, driver):
        monkeypatch.setattr(fine_service, "get_fine", self._explode)

        with caplog.at_level("ERROR"):
            response = client.get(f"/api/fines/{pending_fine.reference_number}", headers=actor_headers(driver))

        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error"}
        assert "Failed to load fine" in caplog.text

    def test_fine_events_logs_and_returns_500(self, client, db_session, monkeypatch, caplog, pending_fine, admin):
        monkeypatch.setattr(fine_service, "get_fine_events", self._explode)

        with caplog.at_level("ERROR"):
            response = client.get(f"/api/fines/{pending_fine.reference_number}/events",
                                  headers=actor_headers(admin))

        assert response.status_code == 500
        assert "Failed to load events" in caplog.text

    def test_status_report_logs_and_returns_500(self, client, db_session, monkeypatch, caplog, official):
        monkeypatch.setattr(reporting_service, "fines_by_status", self._explode)

        with caplog.at_level("ERROR"):
            response = client.get("/api/reports/status", headers=actor_headers(official))

        assert response.status_code == 500
        assert "Failed to build status report" in caplog.text
