import pytest
from httpx import ASGITransport, AsyncClient

from salon_booking.main import app
from tests.fixtures.booking_fixtures import (
    MONDAY,
    add_rule,
    at,
    create_appointment,
    create_employee,
)

BASE = "/api/v1/availability"


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestRulesApi:
    @pytest.mark.asyncio
    async def test_rule_crud(self, client: AsyncClient, stylist):
        stylist_id = stylist.id

        created = await client.post(
            f"{BASE}/rules",
            json={
                "employee_id": stylist_id,
                "day_of_week": 2,
                "start_time": "10:00",
                "end_time": "18:00",
            },
        )
        assert created.status_code == 201
        rule_id = created.json()["id"]

        rules = (await client.get(f"{BASE}/rules/employee/{stylist_id}")).json()
        assert {rule["day_of_week"] for rule in rules} == {1, 2}

        updated = await client.put(f"{BASE}/rules/{rule_id}", json={"end_time": "14:00"})
        assert updated.status_code == 200
        assert updated.json()["end_time"] == "14:00"

        deleted = await client.delete(f"{BASE}/rules/{rule_id}")
        assert deleted.status_code == 204
        assert (await client.delete(f"{BASE}/rules/{rule_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_rules_are_rejected(self, client: AsyncClient, stylist):
        stylist_id = stylist.id
        rule_id = (await client.get(f"{BASE}/rules/employee/{stylist_id}")).json()[0]["id"]

        inverted = await client.post(
            f"{BASE}/rules",
            json={
                "employee_id": stylist_id,
                "day_of_week": 3,
                "start_time": "17:00",
                "end_time": "09:00",
            },
        )
        assert inverted.status_code == 422

        merged = await client.put(f"{BASE}/rules/{rule_id}", json={"start_time": "18:00"})
        assert merged.status_code == 400

    @pytest.mark.asyncio
    async def test_rule_for_unknown_employee(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/rules",
            json={
                "employee_id": 999,
                "day_of_week": 1,
                "start_time": "09:00",
                "end_time": "17:00",
            },
        )

        assert response.status_code == 404


class TestSlotsApi:
    @pytest.mark.asyncio
    async def test_slots_exclude_booked_time(
        self, client: AsyncClient, db, stylist, existing_client
    ):
        stylist_id = stylist.id
        await create_appointment(
            db, stylist, existing_client, at(MONDAY, "10:00"), at(MONDAY, "11:00")
        )

        response = await client.get(
            f"{BASE}/slots/employee/{stylist_id}",
            params={"date": MONDAY.isoformat(), "duration": 60},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["slot_duration_minutes"] == 60
        starts = [slot["start"][11:16] for slot in data["slots"]]
        assert starts == ["09:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00"]

    @pytest.mark.asyncio
    async def test_default_duration_and_timezone_param(self, client: AsyncClient, stylist):
        response = await client.get(
            f"{BASE}/slots/employee/{stylist.id}",
            params={"date": MONDAY.isoformat(), "timezone": "Europe/Paris"},
        )

        data = response.json()
        assert data["slot_duration_minutes"] == 15
        assert len(data["slots"]) == 32

    @pytest.mark.asyncio
    async def test_day_off_has_no_slots(self, client: AsyncClient, db, stylist):
        stylist_id = stylist.id
        await add_rule(db, stylist, 1, "00:00", "00:00", exception_date=MONDAY)

        slots = await client.get(
            f"{BASE}/slots/employee/{stylist_id}", params={"date": MONDAY.isoformat()}
        )
        hours = await client.get(
            f"{BASE}/working-hours/employee/{stylist_id}", params={"date": MONDAY.isoformat()}
        )

        assert slots.json()["slots"] == []
        assert hours.status_code == 200
        assert hours.json() is None

    @pytest.mark.asyncio
    async def test_working_hours(self, client: AsyncClient, stylist):
        response = await client.get(
            f"{BASE}/working-hours/employee/{stylist.id}", params={"date": MONDAY.isoformat()}
        )

        assert response.json() == {
            "start_time": "09:00",
            "end_time": "17:00",
            "is_exception": False,
        }

    @pytest.mark.asyncio
    async def test_non_positive_duration(self, client: AsyncClient, stylist):
        response = await client.get(
            f"{BASE}/slots/employee/{stylist.id}",
            params={"date": MONDAY.isoformat(), "duration": 0},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_employee_returns_404(self, client: AsyncClient):
        params = {"date": MONDAY.isoformat()}

        slots = await client.get(f"{BASE}/slots/employee/999", params=params)
        hours = await client.get(f"{BASE}/working-hours/employee/999", params=params)

        assert slots.status_code == 404
        assert hours.status_code == 404

    @pytest.mark.asyncio
    async def test_inactive_employee_is_not_bookable(self, client: AsyncClient, db):
        inactive = await create_employee(db, "away@salon.test", is_active=False)
        await add_rule(db, inactive, 1, "09:00", "17:00")
        params = {"date": MONDAY.isoformat()}

        slots = await client.get(f"{BASE}/slots/employee/{inactive.id}", params=params)
        hours = await client.get(f"{BASE}/working-hours/employee/{inactive.id}", params=params)

        assert slots.status_code == 200
        assert slots.json()["slots"] == []
        assert hours.json() is None
