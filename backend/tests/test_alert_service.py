"""
Tests para alertas operativas: creacion, ciclo de vida y listado.
"""

import pytest

from db import crud
from models.results import ResultCode
from models.status import AlertStatus
from services.alert_service import create_alert, list_alerts, update_alert_status
from services.alert_state_machine import can_transition
from services.auth import AuthContext
from services.fleet_registry import FleetRegistry


def _alert(**overrides):
    payload = {
        "type": "vehicle_breakdown",
        "severity": "high",
        "title": "Engine failure",
        "description": "Bus stopped on Av. Paulista",
        "entity_type": "vehicle",
        "entity_id": "vehicle-1",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def raise_alert(db_session, admin_auth, clock):
    def _raise(auth=None, fleet=None, **overrides):
        clock.advance(minutes=1)
        return create_alert(db_session, _alert(**overrides), auth or admin_auth, fleet=fleet, clock=clock)

    return _raise


class TestAlertTransitions:

    @pytest.mark.parametrize("current,target,allowed", [
        (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED, True),
        (AlertStatus.ACTIVE, AlertStatus.RESOLVED, True),
        (AlertStatus.ACTIVE, AlertStatus.DISMISSED, True),
        (AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, True),
        (AlertStatus.ACKNOWLEDGED, AlertStatus.ACTIVE, False),
        (AlertStatus.RESOLVED, AlertStatus.ACTIVE, False),
        (AlertStatus.DISMISSED, AlertStatus.ACKNOWLEDGED, False),
    ])
    def test_table(self, current, target, allowed):
        assert can_transition(current, target) is allowed


class TestCreateAlert:

    def test_created_active_with_audit(self, db_session, raise_alert):
        result = raise_alert(metadata={"odometer": 120345})
        assert result.success
        assert result["alert"]["status"] == "active"
        assert result["alert"]["metadata"] == {"odometer": 120345}
        assert result["alert"]["created_by"] == "admin-1"

        audit = crud.get_audit_logs(db_session, "alert", result["alert_id"])
        assert [entry.action for entry in audit] == ["alert_created"]

    def test_duplicate_open_alert_is_rejected(self, raise_alert):
        first = raise_alert()
        second = raise_alert()
        assert second.code == ResultCode.DUPLICATE_ALERT
        assert second["existing_alert_id"] == first["alert_id"]

    def test_critical_bypasses_duplicate_check(self, raise_alert):
        assert raise_alert().success
        assert raise_alert(severity="critical").success

    def test_duplicate_check_is_per_entity(self, raise_alert):
        assert raise_alert(entity_id="vehicle-1").success
        assert raise_alert(entity_id="vehicle-2").success

    def test_resolved_alert_no_longer_blocks(self, db_session, admin_auth, raise_alert):
        first = raise_alert()
        update_alert_status(db_session, first["alert_id"], {"status": "resolved"}, admin_auth)
        assert raise_alert().success

    def test_entity_fields_go_together(self, raise_alert):
        result = raise_alert(entity_id=None)
        assert result.code == ResultCode.VALIDATION_ERROR

    def test_unknown_route_entity(self, raise_alert):
        result = raise_alert(type="route_delay", entity_type="route", entity_id="missing")
        assert result.code == ResultCode.NOT_FOUND

    def test_route_entity(self, raise_alert, scheduled_route):
        assert raise_alert(type="route_delay", entity_type="route", entity_id=scheduled_route).success

    def test_passenger_entity_must_be_on_a_route(self, raise_alert, scheduled_route):
        assert raise_alert(type="passenger_issue", entity_type="passenger", entity_id="passenger-1").success
        result = raise_alert(type="passenger_issue", entity_type="passenger", entity_id="stranger")
        assert result.code == ResultCode.NOT_FOUND

    def test_passenger_of_other_company(self, raise_alert, scheduled_route):
        other = AuthContext.for_role("admin-2", "company-2", "admin")
        result = raise_alert(auth=other, type="passenger_issue", entity_type="passenger", entity_id="passenger-1")
        assert result.code == ResultCode.NOT_FOUND

    def test_vehicle_checked_against_registry(self, raise_alert, tmp_path):
        fleet = FleetRegistry(tmp_path / "fleet.json")
        fleet.register_vehicle({"id": "vehicle-1", "company_id": "company-1"})
        assert raise_alert(fleet=fleet).success
        assert raise_alert(fleet=fleet, entity_id="ghost").code == ResultCode.NOT_FOUND

    def test_driver_limited_to_operational_types(self, raise_alert, driver_auth):
        assert raise_alert(auth=driver_auth, type="emergency", severity="critical").success
        result = raise_alert(auth=driver_auth, type="billing_discrepancy")
        assert result.code == ResultCode.FORBIDDEN

    def test_missing_title(self, raise_alert):
        result = raise_alert(title="")
        assert result.code == ResultCode.VALIDATION_ERROR
        assert result["errors"][0]["field"] == "title"

    def test_unknown_severity(self, raise_alert):
        assert raise_alert(severity="urgent").code == ResultCode.VALIDATION_ERROR


class TestUpdateAlertStatus:

    def test_acknowledge_then_resolve(self, db_session, admin_auth, raise_alert, clock):
        alert_id = raise_alert()["alert_id"]

        ack = update_alert_status(db_session, alert_id, {"status": "acknowledged"}, admin_auth, clock=clock)
        assert ack.success
        assert ack["previous_status"] == "active"

        done = update_alert_status(
            db_session, alert_id,
            {"status": "resolved", "resolution": "Replaced alternator", "resolved_by": "mechanic-7"},
            admin_auth, clock=clock,
        )
        assert done.success

        db_session.expire_all()
        alert = crud.get_alert(db_session, alert_id)
        assert alert.status == "resolved"
        assert alert.acknowledged_by == "admin-1"
        assert alert.acknowledged_at == clock.now
        assert alert.resolved_by == "mechanic-7"
        assert alert.resolution == "Replaced alternator"

        actions = [e.action for e in crud.get_audit_logs(db_session, "alert", alert_id)]
        assert actions == ["alert_created", "alert_status_updated", "alert_status_updated"]

    def test_dismiss_records_reason(self, db_session, admin_auth, raise_alert):
        alert_id = raise_alert()["alert_id"]
        assert update_alert_status(
            db_session, alert_id, {"status": "dismissed", "resolution": "False alarm"}, admin_auth,
        ).success

        db_session.expire_all()
        alert = crud.get_alert(db_session, alert_id)
        assert alert.dismissed_by == "admin-1"
        assert alert.dismissal_reason == "False alarm"

    def test_terminal_states(self, db_session, admin_auth, raise_alert):
        alert_id = raise_alert()["alert_id"]
        update_alert_status(db_session, alert_id, {"status": "resolved"}, admin_auth)
        result = update_alert_status(db_session, alert_id, {"status": "acknowledged"}, admin_auth)
        assert result.code == ResultCode.INVALID_TRANSITION
        assert "resolved -> acknowledged" in result.message

    def test_driver_cannot_update(self, db_session, driver_auth, raise_alert):
        alert_id = raise_alert()["alert_id"]
        result = update_alert_status(db_session, alert_id, {"status": "acknowledged"}, driver_auth)
        assert result.code == ResultCode.FORBIDDEN

    def test_other_company_cannot_see_alert(self, db_session, raise_alert):
        alert_id = raise_alert()["alert_id"]
        other = AuthContext.for_role("admin-2", "company-2", "admin")
        result = update_alert_status(db_session, alert_id, {"status": "acknowledged"}, other)
        assert result.code == ResultCode.NOT_FOUND

    def test_malformed_alert_id(self, db_session, admin_auth):
        result = update_alert_status(db_session, "not-a-uuid", {"status": "acknowledged"}, admin_auth)
        assert result.code == ResultCode.NOT_FOUND

    def test_invalid_status_value(self, db_session, admin_auth, raise_alert):
        alert_id = raise_alert()["alert_id"]
        result = update_alert_status(db_session, alert_id, {"status": "closed"}, admin_auth)
        assert result.code == ResultCode.VALIDATION_ERROR


class TestListAlerts:

    @pytest.fixture
    def five_alerts(self, raise_alert):
        ids = []
        for i, severity in enumerate(["low", "medium", "high", "high", "critical"]):
            ids.append(raise_alert(severity=severity, entity_id=f"vehicle-{i}")["alert_id"])
        return ids

    def test_pagination_newest_first(self, db_session, admin_auth, five_alerts):
        page = list_alerts(db_session, {"limit": 2}, admin_auth)
        assert page.success
        assert [a["id"] for a in page["alerts"]] == [five_alerts[4], five_alerts[3]]
        assert page["pagination"] == {"total": 5, "limit": 2, "offset": 0, "has_more": True}

        last = list_alerts(db_session, {"limit": 2, "offset": 4}, admin_auth)
        assert [a["id"] for a in last["alerts"]] == [five_alerts[0]]
        assert last["pagination"]["has_more"] is False

    def test_filters(self, db_session, admin_auth, five_alerts):
        high = list_alerts(db_session, {"severity": ["high", "critical"]}, admin_auth)
        assert high["pagination"]["total"] == 3

        update_alert_status(db_session, five_alerts[0], {"status": "acknowledged"}, admin_auth)
        acknowledged = list_alerts(db_session, {"status": ["acknowledged"]}, admin_auth)
        assert [a["id"] for a in acknowledged["alerts"]] == [five_alerts[0]]

        by_entity = list_alerts(db_session, {"entity_type": "vehicle", "entity_id": "vehicle-2"}, admin_auth)
        assert [a["id"] for a in by_entity["alerts"]] == [five_alerts[2]]

    def test_statistics_cover_every_bucket(self, db_session, admin_auth, five_alerts):
        update_alert_status(db_session, five_alerts[1], {"status": "dismissed"}, admin_auth)
        stats = list_alerts(db_session, {"severity": ["low"]}, admin_auth)["statistics"]
        assert stats["total"] == 5
        assert stats["active"] == 4
        assert stats["dismissed"] == 1
        assert stats["acknowledged"] == 0
        assert stats["resolved"] == 0
        assert stats["high"] == 2
        assert stats["critical"] == 1

    def test_empty_company(self, db_session):
        other = AuthContext.for_role("admin-2", "company-2", "admin")
        result = list_alerts(db_session, None, other)
        assert result["alerts"] == []
        assert result["statistics"]["total"] == 0
        assert result["statistics"]["critical"] == 0
        assert result["pagination"]["has_more"] is False

    def test_default_limit_from_config(self, db_session, admin_auth, five_alerts, monkeypatch):
        from services import alert_service

        monkeypatch.setattr(alert_service.config, "ALERTS_DEFAULT_LIMIT", 3)
        result = list_alerts(db_session, {}, admin_auth)
        assert len(result["alerts"]) == 3
        assert result["pagination"]["limit"] == 3
