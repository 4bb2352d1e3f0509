"""
Admin configuration endpoints: service areas, integrations, policies and
business hours, plus their public read paths.
"""
import pytest
from sqlalchemy import select

from conftest import one_way_payload, pickup_time
from stableride.models.admin import AuditLog
from stableride.models.integration import Integration

STRIP_SQUARE = {
    "type": "Polygon",
    "coordinates": [[
        [-115.20, 36.08], [-115.14, 36.08], [-115.14, 36.14], [-115.20, 36.14], [-115.20, 36.08],
    ]],
}


@pytest.mark.asyncio
class TestServiceAreas:
    async def test_crud_and_audit(self, client, admin_headers, session_factory):
        resp = await client.post("/api/admin/service-areas", headers=admin_headers, json={
            "name": "Strip",
            "polygon": STRIP_SQUARE,
            "surcharge_amount": "5.00",
        })
        assert resp.status_code == 201, resp.text
        area = resp.json()

        resp = await client.put(
            f"/api/admin/service-areas/{area['id']}", headers=admin_headers, json={"surcharge_percentage": "15"},
        )
        assert resp.json()["surcharge_percentage"] == 15.0
        assert resp.json()["surcharge_amount"] == 5.0

        resp = await client.patch(f"/api/admin/service-areas/{area['id']}/toggle", headers=admin_headers)
        assert resp.json()["is_active"] is False
        active = (await client.get("/api/admin/service-areas/active", headers=admin_headers)).json()
        assert active == []

        resp = await client.delete(f"/api/admin/service-areas/{area['id']}", headers=admin_headers)
        assert resp.status_code == 204
        resp = await client.get(f"/api/admin/service-areas/{area['id']}", headers=admin_headers)
        assert resp.status_code == 404

        async with session_factory() as db:
            actions = (await db.execute(
                select(AuditLog.action).where(AuditLog.resource_id == area["id"])
            )).scalars().all()
        assert sorted(actions) == ["create", "delete", "toggle", "update"]

    async def test_open_ring_rejected(self, client, admin_headers):
        polygon = {"type": "Polygon", "coordinates": [[[-115.2, 36.08], [-115.14, 36.08], [-115.14, 36.14]]]}
        resp = await client.post("/api/admin/service-areas", headers=admin_headers, json={
            "name": "Broken", "polygon": polygon,
        })
        assert resp.status_code == 400

    async def test_non_numeric_positions_rejected(self, client, admin_headers):
        polygon = {"type": "Polygon", "coordinates": [[["a", "b"], ["c", "d"], ["e", "f"], ["a", "b"]]]}
        resp = await client.post("/api/admin/service-areas", headers=admin_headers, json={
            "name": "Garbage", "polygon": polygon,
        })
        assert resp.status_code == 400

        quote = await client.post("/api/quotes", json=one_way_payload())
        assert quote.status_code == 200

    async def test_needs_a_shape(self, client, admin_headers):
        resp = await client.post("/api/admin/service-areas", headers=admin_headers, json={"name": "Nowhere"})
        assert resp.status_code == 400

    async def test_overview_reports_overlaps(self, client, admin_headers):
        ids = []
        for name, lng in (("Strip", -115.17), ("Downtown", -115.15)):
            resp = await client.post("/api/admin/service-areas", headers=admin_headers, json={
                "name": name, "center": {"lat": 36.12, "lng": lng}, "radius_km": 3,
            })
            ids.append(resp.json()["id"])
        await client.post("/api/admin/service-areas", headers=admin_headers, json={
            "name": "Reno", "center": {"lat": 39.53, "lng": -119.81}, "radius_km": 3, "surcharge_amount": "4",
        })

        overview = (await client.get("/api/admin/service-areas/overview", headers=admin_headers)).json()
        assert overview["total"] == 3
        assert overview["with_surcharge"] == 1
        assert len(overview["overlapping"]) == 1
        assert set(overview["overlapping"][0]) == set(ids)

    async def test_export_geojson(self, client, admin_headers):
        await client.post("/api/admin/service-areas", headers=admin_headers, json={
            "name": "Strip", "polygon": STRIP_SQUARE,
        })
        resp = await client.get("/api/admin/service-areas/export", headers=admin_headers)
        body = resp.json()
        assert body["type"] == "FeatureCollection"
        assert body["features"][0]["geometry"]["type"] == "Polygon"
        assert body["features"][0]["properties"]["name"] == "Strip"

        resp = await client.get("/api/admin/service-areas/export", params={"format": "kml"}, headers=admin_headers)
        assert resp.status_code == 400

    async def test_public_availability_check(self, client, admin_headers):
        await client.post("/api/admin/service-areas", headers=admin_headers, json={
            "name": "Strip", "polygon": STRIP_SQUARE, "surcharge_amount": "5", "surcharge_percentage": "10",
        })
        inside = (await client.post(
            "/api/locations/check-availability", json={"lat": 36.11, "lng": -115.17, "amount": "100"},
        )).json()
        assert inside["available"] is True
        assert inside["areas"][0]["name"] == "Strip"
        assert inside["surcharge"] == 15.0

        outside = (await client.post("/api/locations/check-availability", json={"lat": 40.0, "lng": -100.0})).json()
        assert outside["available"] is False
        assert outside["surcharge_amount"] == 0

    async def test_customer_service_cannot_configure(self, client, make_admin):
        _, headers = await make_admin("CUSTOMER_SERVICE")
        resp = await client.get("/api/admin/service-areas", headers=headers)
        assert resp.status_code == 403

    async def test_finance_can_read_not_write(self, client, make_admin):
        _, headers = await make_admin("FINANCE_MANAGER")
        assert (await client.get("/api/admin/service-areas", headers=headers)).status_code == 200
        resp = await client.post("/api/admin/service-areas", headers=headers, json={
            "name": "Strip", "polygon": STRIP_SQUARE,
        })
        assert resp.status_code == 403


@pytest.mark.asyncio
class TestIntegrations:
    TWILIO = {"account_sid": "AC0000001", "auth_token": "tok_abcdef987654", "from_number": "+17025550199"}

    async def test_secrets_are_masked(self, client, admin_headers, session_factory):
        resp = await client.post("/api/admin/integrations", headers=admin_headers, json={
            "name": "SMS", "provider": "twilio", "config": self.TWILIO,
        })
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["config"]["auth_token"] == "****7654"
        assert body["config"]["account_sid"] == "AC0000001"
        assert body["is_active"] is False
        async with session_factory() as db:
            stored = (await db.execute(select(Integration))).scalar_one()
        assert "tok_abcdef987654" not in stored.encrypted_config

    async def test_masked_values_are_kept_on_update(self, client, admin_headers):
        created = (await client.post("/api/admin/integrations", headers=admin_headers, json={
            "name": "SMS", "provider": "twilio", "config": self.TWILIO,
        })).json()
        config = {**created["config"], "from_number": "+17025550123"}
        resp = await client.put(
            f"/api/admin/integrations/{created['id']}", headers=admin_headers, json={"config": config},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["config"]["from_number"] == "+17025550123"
        assert resp.json()["config"]["auth_token"] == "****7654"

    async def test_missing_keys(self, client, admin_headers):
        resp = await client.post("/api/admin/integrations", headers=admin_headers, json={
            "name": "Mail", "provider": "sendgrid", "config": {"api_key": "SG.x"},
        })
        assert resp.status_code == 400
        assert "from_email" in resp.json()["detail"]

    async def test_connection_test_and_toggle(self, client, admin_headers):
        created = (await client.post("/api/admin/integrations", headers=admin_headers, json={
            "name": "SMS", "provider": "twilio", "config": self.TWILIO,
        })).json()
        result = (await client.post(f"/api/admin/integrations/{created['id']}/test", headers=admin_headers)).json()
        assert result["success"] is True

        toggled = (await client.patch(f"/api/admin/integrations/{created['id']}/toggle", headers=admin_headers)).json()
        assert toggled["is_active"] is True
        assert toggled["last_test_status"] == "success"

        overview = (await client.get("/api/admin/integrations/overview", headers=admin_headers)).json()
        assert overview == {"total": 1, "active": 1, "by_provider": {"twilio": 1}}


@pytest.mark.asyncio
class TestPolicies:
    async def create(self, client, headers, **extra):
        payload = {"key": "terms", "title": "Terms of Service", "category": "terms_of_service", "content": "v1 text"}
        payload.update(extra)
        return await client.post("/api/admin/policies", headers=headers, json=payload)

    async def test_versioning_and_publishing(self, client, admin_headers):
        policy = (await self.create(client, admin_headers)).json()
        assert policy["version"] == "1.0.0"
        assert policy["is_published"] is False

        assert (await client.get("/api/policies/terms")).status_code == 404

        resp = await client.put(
            f"/api/admin/policies/{policy['id']}", headers=admin_headers,
            json={"content": "v2 text", "change_summary": "Clarified cancellations"},
        )
        assert resp.json()["version"] == "1.1.0"

        resp = await client.put(
            f"/api/admin/policies/{policy['id']}", headers=admin_headers, json={"content": "v3", "version": "1.0.5"},
        )
        assert resp.status_code == 400

        history = (await client.get(f"/api/admin/policies/{policy['id']}/history", headers=admin_headers)).json()
        assert [v["version"] for v in history] == ["1.1.0", "1.0.0"]

        await client.post(f"/api/admin/policies/{policy['id']}/publish", headers=admin_headers)
        public = (await client.get("/api/policies/terms")).json()
        assert public["content"] == "v2 text"
        assert public["version"] == "1.1.0"

        await client.post(f"/api/admin/policies/{policy['id']}/unpublish", headers=admin_headers)
        assert (await client.get("/api/policies/terms")).status_code == 404

    async def test_title_change_keeps_version(self, client, admin_headers):
        policy = (await self.create(client, admin_headers)).json()
        resp = await client.put(f"/api/admin/policies/{policy['id']}", headers=admin_headers, json={"title": "Terms"})
        assert resp.json()["version"] == "1.0.0"

    async def test_duplicate_key(self, client, admin_headers):
        await self.create(client, admin_headers)
        resp = await self.create(client, admin_headers)
        assert resp.status_code == 400

    async def test_customer_service_can_read_only(self, client, admin_headers, make_admin):
        await self.create(client, admin_headers)
        _, headers = await make_admin("CUSTOMER_SERVICE")
        assert (await client.get("/api/admin/policies", headers=headers)).status_code == 200
        assert (await self.create(client, headers, key="privacy")).status_code == 403


@pytest.mark.asyncio
class TestBusinessHours:
    async def test_defaults_created_on_first_read(self, client, admin_headers):
        days = (await client.get("/api/admin/business-hours", headers=admin_headers)).json()
        assert [d["day_of_week"] for d in days] == list(range(7))
        assert all(d["open_time"] == "00:00" and d["close_time"] == "23:59" for d in days)

    async def test_closed_weekday(self, client, admin_headers):
        resp = await client.put("/api/admin/business-hours/0", headers=admin_headers, json={"is_closed": True})
        assert resp.status_code == 200
        status = (await client.get(
            "/api/business-hours/status", params={"at": "2026-03-08T12:00:00+00:00"},
        )).json()
        assert status["is_open"] is False
        assert status["message"] == "Closed on Sunday"

    async def test_bulk_update_validates_window(self, client, admin_headers):
        resp = await client.put("/api/admin/business-hours", headers=admin_headers, json={
            "days": [{"day_of_week": 1, "open_time": "18:00", "close_time": "08:00"}],
        })
        assert resp.status_code == 400

    async def test_holiday_closure(self, client, admin_headers):
        resp = await client.post("/api/admin/business-hours/holidays", headers=admin_headers, json={
            "name": "Christmas", "date": "2026-12-25", "is_closed": True,
        })
        assert resp.status_code == 201, resp.text
        status = (await client.get(
            "/api/business-hours/status", params={"at": "2026-12-25T10:00:00+00:00"},
        )).json()
        assert status["is_open"] is False
        assert status["message"] == "Closed for Christmas"
        assert status["holiday"] == "Christmas"

        again = await client.post("/api/admin/business-hours/holidays", headers=admin_headers, json={
            "name": "Xmas", "date": "2026-12-25", "is_closed": True,
        })
        assert again.status_code == 400

    async def test_holiday_surcharge_in_quote(self, client, admin_headers):
        scheduled = pickup_time(days=10)
        await client.post("/api/admin/business-hours/holidays", headers=admin_headers, json={
            "name": "Festival", "date": scheduled.date().isoformat(), "surcharge_percentage": "10",
        })
        body = (await client.post("/api/quotes", json=one_way_payload(scheduled))).json()
        assert [s["type"] for s in body["fare"]["surcharges"]] == ["holiday"]
        # 35.00 fare + 10% = 38.50, plus 8.375% tax
        assert body["fare"]["subtotal"] == 38.5
        assert body["fare"]["total"] == 41.72
