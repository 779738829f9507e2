"""HTTP tests for the public and admin endpoints."""

from datetime import datetime, time, timedelta

import pytest

from fastapi.testclient import TestClient

from salon.config import settings
from salon.models.generated import Holidays, StaffMenus, SystemSettings as DBSystemSetting
from salon.services.system_settings import SystemSettings


def book_payload(salon, day, hhmm="11:00", **extra):
    payload = {
        "store_id": salon.store.id,
        "menu_id": salon.menu.id,
        "date": day.isoformat(),
        "time": hhmm,
        "customer_name": "Hanako Sato",
        "customer_email": "Hanako@Example.com",
        "customer_phone": "090-1234-5678",
    }
    payload.update(extra)
    return payload


class TestHealth:

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "redis": True}


class TestCatalogue:

    def test_list_stores(self, client: TestClient, salon):
        response = client.get("/stores")
        assert response.status_code == 200
        data = response.json()
        assert [s["name"] for s in data] == ["Shibuya"]
        assert len(data[0]["business_hours"]) == 7
        assert data[0]["business_hours"][0]["day_of_week"] == 0

    def test_store_menus(self, client: TestClient, salon):
        response = client.get(f"/stores/{salon.store.id}/menus")
        assert response.status_code == 200
        menu = response.json()[0]
        assert menu["price"] == 6000
        assert menu["price_with_tax"] == 6600

    def test_store_staff(self, client: TestClient, salon):
        response = client.get(f"/stores/{salon.store.id}/staff")
        assert [s["name"] for s in response.json()] == ["Aki", "Ben"]

    def test_staff_filtered_by_menu(self, client: TestClient, salon, db_session):
        url = f"/stores/{salon.store.id}/staff?menu_id={salon.menu.id}"
        assert len(client.get(url).json()) == 2  # no links: everyone

        db_session.add(StaffMenus(staff_id=salon.ben.id, menu_id=salon.menu.id))
        db_session.commit()
        assert [s["name"] for s in client.get(url).json()] == ["Ben"]

    def test_unknown_store(self, client: TestClient):
        assert client.get("/stores/999/menus").status_code == 404


class TestAvailabilityEndpoints:

    def test_day_availability(self, client: TestClient, salon, booking_day):
        response = client.get(
            "/availability",
            params={"store_id": salon.store.id, "menu_id": salon.menu.id, "date": booking_day.isoformat()},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["slot_step_minutes"] == 30
        first = data["slots"][0]
        assert first == {"time": "10:00", "available": True, "free_staff_ids": [salon.aki.id, salon.ben.id]}

    def test_unknown_menu(self, client: TestClient, salon, booking_day):
        response = client.get(
            "/availability",
            params={"store_id": salon.store.id, "menu_id": 999, "date": booking_day.isoformat()},
        )
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_calendar(self, client: TestClient, salon, booking_day, db_session, fake_redis):
        db_session.add(Holidays(store_id=salon.store.id, date=booking_day))
        db_session.commit()

        response = client.get(
            "/availability/calendar",
            params={
                "store_id": salon.store.id,
                "start_date": (booking_day - timedelta(days=1)).isoformat(),
                "end_date": booking_day.isoformat(),
            },
        )
        assert response.status_code == 200
        days = response.json()["days"]
        assert days[0] == {
            "date": (booking_day - timedelta(days=1)).isoformat(),
            "is_open": True,
            "open_time": "10:00",
            "close_time": "19:00",
        }
        assert days[1]["is_open"] is False
        fake_redis.mget.assert_called_once()

    def test_calendar_past_booking_range(self, client: TestClient, salon, fake_redis):
        far = SystemSettings().now().date() + timedelta(days=200)
        response = client.get(
            "/availability/calendar",
            params={"store_id": salon.store.id, "start_date": far.isoformat()},
        )
        assert response.status_code == 200
        assert response.json()["days"] == []
        fake_redis.mget.assert_not_called()

    def test_invalidate(self, client: TestClient, salon, fake_redis):
        response = client.post(f"/availability/invalidate?store_id={salon.store.id}")
        assert response.status_code == 200
        assert response.json()["dates"] == "all"
        fake_redis.scan_iter.assert_called_once_with(match=f"slots:day:{salon.store.id}:*")


class TestPublicReservations:

    def test_book_and_cancel(self, client: TestClient, salon, booking_day, fake_redis):
        response = client.post("/reservations", json=book_payload(salon, booking_day))
        assert response.status_code == 201
        data = response.json()
        assert data["final_price"] == 6600
        assert data["reservation"]["customer_email"] == "hanako@example.com"
        assert data["reservation"]["staff_id"] == salon.aki.id
        assert "cancel_token" not in data["reservation"]

        token = data["cancel_token"]
        reservation_id = data["reservation"]["id"]

        lookup = client.get("/reservations/by-token", params={"token": token})
        assert lookup.status_code == 200
        assert lookup.json()["id"] == reservation_id

        response = client.post(f"/reservations/{reservation_id}/cancel", json={"token": token})
        assert response.status_code == 200
        assert response.json() == {"id": reservation_id, "status": "cancelled"}

        again = client.post(f"/reservations/{reservation_id}/cancel", json={"token": token})
        assert again.status_code == 409
        assert again.json()["error"] == "already_cancelled"

    def test_cancel_with_wrong_token(self, client: TestClient, salon, booking_day):
        data = client.post("/reservations", json=book_payload(salon, booking_day)).json()
        response = client.post(
            f"/reservations/{data['reservation']['id']}/cancel", json={"token": "wrong"}
        )
        assert response.status_code == 403

    def test_cancel_past_deadline(self, client: TestClient, salon, db_session, make_reservation):
        soon = SystemSettings().now().replace(second=0, microsecond=0) + timedelta(hours=2)
        r = make_reservation(soon)
        response = client.post(f"/reservations/{r.id}/cancel", json={"token": r.cancel_token})
        assert response.status_code == 400
        assert response.json()["error"] == "deadline_passed"

    def test_slot_taken(self, client: TestClient, salon, booking_day):
        payload = book_payload(salon, booking_day, staff_id=salon.aki.id)
        assert client.post("/reservations", json=payload).status_code == 201
        response = client.post("/reservations", json=payload)
        assert response.status_code == 409
        assert response.json()["error"] == "slot_unavailable"

    def test_validation_errors(self, client: TestClient, salon, booking_day):
        assert client.post("/reservations", json=book_payload(salon, booking_day, "11am")).status_code == 422
        bad_email = book_payload(salon, booking_day, customer_email="not-an-email")
        assert client.post("/reservations", json=bad_email).status_code == 422

    def test_unknown_token(self, client: TestClient):
        assert client.get("/reservations/by-token", params={"token": "nope"}).status_code == 404


class TestAdminReservations:

    def admin_payload(self, salon, day, **extra):
        payload = {
            "store_id": salon.store.id,
            "menu_id": salon.menu.id,
            "start_time": f"{day.isoformat()}T11:10:00",
            "customer_name": "Walk In",
            "customer_email": "walkin@example.com",
            "customer_phone": "03-1111-2222",
        }
        payload.update(extra)
        return payload

    def test_admin_create_defaults_to_phone(self, client: TestClient, salon, booking_day):
        response = client.post("/admin/reservations", json=self.admin_payload(salon, booking_day))
        assert response.status_code == 201
        reservation = response.json()["reservation"]
        assert reservation["channel"] == "phone"
        assert reservation["end_time"] == f"{booking_day.isoformat()}T12:10:00"

    def test_admin_rejects_offset_datetimes(self, client: TestClient, salon, booking_day):
        payload = self.admin_payload(salon, booking_day, start_time=f"{booking_day.isoformat()}T11:10:00+09:00")
        assert client.post("/admin/reservations", json=payload).status_code == 422

    def test_patch_and_detail(self, client: TestClient, salon, booking_day):
        created = client.post("/admin/reservations", json=self.admin_payload(salon, booking_day)).json()
        reservation_id = created["reservation"]["id"]

        response = client.patch(f"/admin/reservations/{reservation_id}", json={"status": "visited"})
        assert response.status_code == 200
        assert response.json()["status"] == "visited"

        detail = client.get(f"/admin/reservations/{reservation_id}").json()
        assert [log["action"] for log in detail["audit_logs"]] == ["status_changed", "created"]
        assert detail["audit_logs"][0]["performed_by"] == "admin"

    def test_delete_not_allowed(self, client: TestClient, salon, booking_day):
        created = client.post("/admin/reservations", json=self.admin_payload(salon, booking_day)).json()
        response = client.delete(f"/admin/reservations/{created['reservation']['id']}")
        assert response.status_code == 405

    def test_detail_not_found(self, client: TestClient):
        assert client.get("/admin/reservations/999").status_code == 404


class TestAdminReservationList:

    @pytest.fixture
    def booked(self, salon, booking_day, make_reservation):
        def start(offset_days, hour):
            return datetime.combine(booking_day + timedelta(days=offset_days), time(hour, 0))

        hanako = make_reservation(
            start(0, 11), staff=salon.aki,
            customer_name="Hanako Sato", customer_email="hanako@example.com", customer_phone="090-1234-5678",
        )
        taro = make_reservation(
            start(1, 11), staff=salon.ben, status="visited",
            customer_name="Taro Yamada", customer_email="taro@example.com", customer_phone="080-2222-3333",
        )
        ken = make_reservation(
            start(3, 15), staff=salon.aki, status="cancelled",
            customer_name="Ken Ito", customer_email="ken@example.com", customer_phone="070-9999-0000",
        )
        return hanako, taro, ken

    def ids(self, response):
        assert response.status_code == 200
        return [r["id"] for r in response.json()["reservations"]]

    def test_latest_start_first(self, client: TestClient, booked):
        hanako, taro, ken = booked
        response = client.get("/admin/reservations")
        assert self.ids(response) == [ken.id, taro.id, hanako.id]
        body = response.json()
        assert (body["page"], body["limit"], body["total"], body["total_pages"]) == (1, 20, 3, 1)

    def test_filters(self, client: TestClient, salon, booked):
        hanako, taro, ken = booked
        assert self.ids(client.get("/admin/reservations", params={"staff_id": salon.aki.id})) == [ken.id, hanako.id]
        assert self.ids(client.get("/admin/reservations", params={"status": "visited"})) == [taro.id]
        assert self.ids(client.get("/admin/reservations", params={"menu_id": salon.menu.id})) == [ken.id, taro.id, hanako.id]
        assert self.ids(client.get("/admin/reservations", params={"store_id": 999})) == []

    def test_date_range_inclusive(self, client: TestClient, booking_day, booked):
        hanako, taro, _ = booked
        params = {"date_from": booking_day.isoformat(), "date_to": (booking_day + timedelta(days=1)).isoformat()}
        assert self.ids(client.get("/admin/reservations", params=params)) == [taro.id, hanako.id]

    def test_search_name_email_phone(self, client: TestClient, booked):
        hanako, taro, ken = booked
        assert self.ids(client.get("/admin/reservations", params={"search": "taro"})) == [taro.id]
        assert self.ids(client.get("/admin/reservations", params={"search": "hanako@"})) == [hanako.id]
        assert self.ids(client.get("/admin/reservations", params={"search": "9999"})) == [ken.id]

    def test_pagination(self, client: TestClient, booked):
        hanako, _, _ = booked
        response = client.get("/admin/reservations", params={"page": 2, "limit": 2})
        assert self.ids(response) == [hanako.id]
        assert response.json()["total"] == 3
        assert response.json()["total_pages"] == 2

    def test_invalid_query(self, client: TestClient, booked):
        assert client.get("/admin/reservations", params={"status": "lost"}).status_code == 422
        assert client.get("/admin/reservations", params={"page": 0}).status_code == 422


class TestSettingsEndpoints:

    def test_defaults(self, client: TestClient):
        data = client.get("/admin/settings").json()
        assert data["cancel_deadline_hours"] == settings.cancel_deadline_hours
        assert data["reminder_enabled"] is True

    def test_update(self, client: TestClient, db_session):
        response = client.put("/admin/settings", json={"cancel_deadline_hours": 48, "reminder_enabled": False})
        assert response.status_code == 200
        assert response.json()["cancel_deadline_hours"] == 48

        row = db_session.query(DBSystemSetting).filter_by(key="reminder_enabled").one()
        assert row.value == "false"
        assert client.get("/admin/settings").json()["reminder_enabled"] is False

    def test_invalid_timezone(self, client: TestClient):
        assert client.put("/admin/settings", json={"timezone": "Mars/Olympus"}).status_code == 422


class TestInternalEndpoints:

    def test_reminders_open_without_secret(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", None)
        response = client.post("/internal/reminders/run")
        assert response.status_code == 200
        assert response.json() == {"sent": 0, "skipped": 0}

    def test_reminders_require_secret(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")
        assert client.post("/internal/reminders/run").status_code == 401
        assert client.post(
            "/internal/reminders/run", headers={"Authorization": "Bearer wrong"}
        ).status_code == 401
        assert client.post(
            "/internal/reminders/run", headers={"Authorization": "Bearer s3cret"}
        ).status_code == 200
