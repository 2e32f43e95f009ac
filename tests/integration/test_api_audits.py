"""HTTP tests for schedules, audit start and closed-audit protection."""

from datetime import datetime, timedelta

import pytest

from auditflow.db.models import AuditSession

from tests.factories import create_audit_session, create_schedule, create_user


pytestmark = pytest.mark.integration


@pytest.fixture()
def schedule(db_session, org, auditor):
    schedule = create_schedule(db_session, company=org["company"], site=org["site"], assigned_user=auditor)
    db_session.commit()
    return schedule


@pytest.fixture()
def closed_session(db_session, org, schedule):
    session = create_audit_session(db_session, schedule=schedule, site=org["site"], workflow_status="completed")
    db_session.commit()
    return session


class TestSchedules:

    def test_create_schedule(self, client, auth_headers, manager, org, auditor):
        start = datetime(2026, 3, 1, 8, 0)
        response = client.post(
            "/api/schedules",
            json={
                "title": "Spring hygiene audit",
                "start_date": start.isoformat(),
                "end_date": (start + timedelta(days=2)).isoformat(),
                "company_id": str(org["company"].id),
                "site_id": str(org["site"].id),
                "assigned_user_id": str(auditor.id),
            },
            headers=auth_headers(manager),
        )
        assert response.status_code == 201
        assert response.json()["assigned_user_id"] == str(auditor.id)

    def test_end_before_start_is_422(self, client, auth_headers, manager, org):
        response = client.post(
            "/api/schedules",
            json={
                "title": "Backwards",
                "start_date": "2026-03-05T00:00:00",
                "end_date": "2026-03-01T00:00:00",
                "company_id": str(org["company"].id),
            },
            headers=auth_headers(manager),
        )
        assert response.status_code == 422

    def test_site_from_other_company(self, client, auth_headers, manager, org):
        response = client.post(
            "/api/schedules",
            json={
                "title": "Mismatch",
                "start_date": "2026-03-01T00:00:00",
                "end_date": "2026-03-02T00:00:00",
                "company_id": str(org["company"].id),
                "site_id": str(org["other_site"].id),
            },
            headers=auth_headers(manager),
        )
        assert response.status_code == 400

    def test_assigned_to_me(self, client, auth_headers, auditor, schedule, db_session, org):
        create_schedule(db_session, company=org["company"], site=org["site"])
        db_session.commit()

        response = client.get("/api/schedules", params={"assigned_to_me": True}, headers=auth_headers(auditor))
        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [str(schedule.id)]


class TestStartAudit:

    def test_lead_auditor_starts(self, client, auth_headers, auditor, schedule):
        response = client.post(f"/api/schedules/{schedule.id}/start", json={}, headers=auth_headers(auditor))
        assert response.status_code == 201
        data = response.json()
        assert data["workflow_status"] == "in-progress"
        assert data["schedule_id"] == str(schedule.id)

    def test_other_auditor_forbidden(self, client, auth_headers, schedule, db_session, org):
        other = create_user(db_session, role="auditor", site=org["site"])
        db_session.commit()
        response = client.post(f"/api/schedules/{schedule.id}/start", json={}, headers=auth_headers(other))
        assert response.status_code == 403
        assert response.json()["detail"] == "Only the assigned lead auditor can start this audit."

    def test_unassigned_schedule(self, client, auth_headers, auditor, db_session, org):
        schedule = create_schedule(db_session, company=org["company"], site=org["site"])
        db_session.commit()
        response = client.post(f"/api/schedules/{schedule.id}/start", json={}, headers=auth_headers(auditor))
        assert response.status_code == 403
        assert response.json()["error"] == "schedule_unassigned"

    def test_admin_override(self, client, auth_headers, db_session, org):
        sysadmin = create_user(db_session, role="sysadmin", scope_level="system")
        schedule = create_schedule(db_session, company=org["company"], site=org["site"])
        db_session.commit()
        response = client.post(f"/api/schedules/{schedule.id}/start", json={}, headers=auth_headers(sysadmin))
        assert response.status_code == 201

    def test_second_start_conflicts(self, client, auth_headers, auditor, schedule):
        headers = auth_headers(auditor)
        assert client.post(f"/api/schedules/{schedule.id}/start", json={}, headers=headers).status_code == 201
        response = client.post(f"/api/schedules/{schedule.id}/start", json={}, headers=headers)
        assert response.status_code == 409

    def test_unknown_schedule(self, client, auth_headers, auditor):
        response = client.post(
            "/api/schedules/00000000-0000-0000-0000-000000000003/start", json={}, headers=auth_headers(auditor)
        )
        assert response.status_code == 404

    def test_site_required(self, client, auth_headers, auditor, db_session, org):
        schedule = create_schedule(db_session, company=org["company"], assigned_user=auditor)
        db_session.commit()
        response = client.post(f"/api/schedules/{schedule.id}/start", json={}, headers=auth_headers(auditor))
        assert response.status_code == 400
        assert response.json()["detail"] == "A site is required to start this audit"

    def test_site_outside_schedule_company(self, client, auth_headers, auditor, schedule, db_session, org):
        response = client.post(
            f"/api/schedules/{schedule.id}/start",
            json={"site_id": str(org["foreign_site"].id)},
            headers=auth_headers(auditor),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Site does not belong to the schedule's company"
        assert db_session.query(AuditSession).filter(AuditSession.schedule_id == schedule.id).count() == 0


class TestClosedAudit:

    def test_patch_open_session(self, client, auth_headers, auditor, schedule, db_session, org):
        session = create_audit_session(db_session, schedule=schedule, site=org["site"])
        db_session.commit()
        response = client.patch(
            f"/api/audit-sessions/{session.id}", json={"title": "Day one"}, headers=auth_headers(auditor)
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Day one"

    @pytest.mark.parametrize("method", ["put", "patch"])
    def test_update_closed_session_blocked(self, client, auth_headers, auditor, closed_session, method):
        response = getattr(client, method)(
            f"/api/audit-sessions/{closed_session.id}", json={"title": "Late edit"}, headers=auth_headers(auditor)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "audit_closed"

    def test_delete_closed_session_blocked(self, client, auth_headers, manager, closed_session):
        response = client.delete(f"/api/audit-sessions/{closed_session.id}", headers=auth_headers(manager))
        assert response.status_code == 403
        assert response.json()["error"] == "audit_closed"

    def test_locked_session_blocked(self, client, auth_headers, auditor, schedule, db_session, org):
        session = create_audit_session(db_session, schedule=schedule, site=org["site"], is_locked=True)
        db_session.commit()
        response = client.patch(
            f"/api/audit-sessions/{session.id}", json={"title": "x"}, headers=auth_headers(auditor)
        )
        assert response.status_code == 403

    def test_read_closed_session_allowed(self, client, auth_headers, auditor, closed_session):
        response = client.get(f"/api/audit-sessions/{closed_session.id}", headers=auth_headers(auditor))
        assert response.status_code == 200
        assert response.json()["workflow_status"] == "completed"

    def test_compliance_officer_override(self, client, auth_headers, closed_session, db_session, org):
        officer = create_user(db_session, role="complianceOfficer", scope_level="company", company=org["company"])
        db_session.commit()
        response = client.patch(
            f"/api/audit-sessions/{closed_session.id}",
            json={"title": "Corrected"},
            headers=auth_headers(officer),
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Corrected"

    def test_admin_deletes_closed_session(self, client, auth_headers, admin_user, closed_session, db_session):
        response = client.delete(f"/api/audit-sessions/{closed_session.id}", headers=auth_headers(admin_user))
        assert response.status_code == 204
        db_session.expire_all()
        assert db_session.get(AuditSession, closed_session.id) is None

    def test_complete_locks_session(self, client, auth_headers, auditor, schedule, db_session, org):
        session = create_audit_session(db_session, schedule=schedule, site=org["site"])
        db_session.commit()
        headers = auth_headers(auditor)

        response = client.post(f"/api/audit-sessions/{session.id}/complete", headers=headers)
        assert response.status_code == 200
        assert response.json()["is_locked"] is True
        assert response.json()["end_date"] is not None

        response = client.post(f"/api/audit-sessions/{session.id}/complete", headers=headers)
        assert response.status_code == 409

        response = client.patch(f"/api/audit-sessions/{session.id}", json={"title": "x"}, headers=headers)
        assert response.status_code == 403

    def test_session_outside_scope_is_404(self, client, auth_headers, auditor, db_session, org):
        foreign_schedule = create_schedule(db_session, company=org["foreign_company"], site=org["foreign_site"])
        session = create_audit_session(db_session, schedule=foreign_schedule, site=org["foreign_site"])
        db_session.commit()
        response = client.get(f"/api/audit-sessions/{session.id}", headers=auth_headers(auditor))
        assert response.status_code == 404

    @pytest.mark.parametrize("method", ["patch", "delete"])
    def test_closed_session_outside_scope_is_404(self, client, auth_headers, manager, db_session, org, method):
        foreign_schedule = create_schedule(db_session, company=org["foreign_company"], site=org["foreign_site"])
        session = create_audit_session(
            db_session, schedule=foreign_schedule, site=org["foreign_site"], workflow_status="completed"
        )
        db_session.commit()
        kwargs = {"json": {"title": "x"}} if method == "patch" else {}
        response = getattr(client, method)(
            f"/api/audit-sessions/{session.id}", headers=auth_headers(manager), **kwargs
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Audit session not found"
