"""
정산 API 테스트: httpx AsyncClient + ASGITransport
"""
from datetime import datetime
from io import BytesIO

import pytest
from openpyxl import load_workbook

from app.core.auth import create_access_token
from app.core.exceptions import ErrorCode
from app.db.models.trip import TripStatus


@pytest.fixture
async def january_trips(sample_driver, trip_factory):
    await trip_factory(sample_driver.id, datetime(2024, 1, 3, 8))
    await trip_factory(sample_driver.id, datetime(2024, 1, 4, 8))
    await trip_factory(sample_driver.id, datetime(2024, 1, 5, 8), status=TripStatus.ABSENCE)
    return sample_driver


async def _create(test_client, headers, driver_id, year_month="2024-01"):
    response = await test_client.post(
        "/api/settlements",
        json={"driver_id": driver_id, "year_month": year_month},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.integration
class TestSettlementCreateApi:
    async def test_create_returns_decimal_strings(self, test_client, dispatcher_headers, january_trips):
        body = await _create(test_client, dispatcher_headers, january_trips.id)

        assert body["status"] == "DRAFT"
        assert body["driver_name"] == january_trips.name
        assert body["total_trips"] == 3
        assert body["total_base_fare"] == "300000"
        assert body["total_deductions"] == "10000"
        assert body["final_amount"] == "290000"
        assert [item["amount"] for item in body["items"]] == ["100000", "100000", "100000", "-10000"]
        assert all(isinstance(item["amount"], str) for item in body["items"])

    async def test_duplicate_is_409(self, test_client, dispatcher_headers, january_trips):
        first = await _create(test_client, dispatcher_headers, january_trips.id)
        response = await test_client.post(
            "/api/settlements",
            json={"driver_id": january_trips.id, "year_month": "2024-01"},
            headers=dispatcher_headers,
        )
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == ErrorCode.DUPLICATE_SETTLEMENT.value
        assert error["details"]["settlement_id"] == first["id"]

    async def test_invalid_year_month_is_400(self, test_client, dispatcher_headers, sample_driver):
        response = await test_client.post(
            "/api/settlements",
            json={"driver_id": sample_driver.id, "year_month": "2024/01"},
            headers=dispatcher_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.INVALID_FORMAT.value

    async def test_missing_driver_id_is_400(self, test_client, dispatcher_headers):
        response = await test_client.post(
            "/api/settlements", json={"year_month": "2024-01"}, headers=dispatcher_headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.MISSING_PARAMETER.value

    async def test_unknown_driver_is_404(self, test_client, dispatcher_headers):
        response = await test_client.post(
            "/api/settlements",
            json={"driver_id": 9999, "year_month": "2024-01"},
            headers=dispatcher_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == ErrorCode.DRIVER_NOT_FOUND.value

    async def test_viewer_cannot_create(self, test_client, viewer_headers, sample_driver):
        response = await test_client.post(
            "/api/settlements",
            json={"driver_id": sample_driver.id, "year_month": "2024-01"},
            headers=viewer_headers,
        )
        assert response.status_code == 403

    async def test_invalid_token_is_401(self, test_client, sample_driver):
        response = await test_client.post(
            "/api/settlements",
            json={"driver_id": sample_driver.id, "year_month": "2024-01"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    async def test_inactive_user_is_403(self, test_client, user_factory, sample_driver):
        inactive = await user_factory(name="퇴사자", is_active=False)
        token = create_access_token(inactive.id, inactive.role.value)
        response = await test_client.get("/api/settlements", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403


@pytest.mark.integration
class TestSettlementPreviewApi:
    async def test_preview(self, test_client, viewer_headers, january_trips):
        response = await test_client.post(
            "/api/settlements/preview",
            json={"driver_id": january_trips.id, "year_month": "2024-01"},
            headers=viewer_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["final_amount"] == "290000"
        assert body["warnings"] == []
        assert body["can_confirm"] is True
        assert len(body["items"]) == 4

    async def test_preview_reports_confirmed(self, test_client, dispatcher_headers, january_trips):
        created = await _create(test_client, dispatcher_headers, january_trips.id)
        await test_client.post(f"/api/settlements/{created['id']}/confirm", headers=dispatcher_headers)

        response = await test_client.post(
            "/api/settlements/preview",
            json={"driver_id": january_trips.id, "year_month": "2024-01"},
            headers=dispatcher_headers,
        )
        body = response.json()
        assert body["can_confirm"] is False
        assert body["existing_settlement_id"] == created["id"]
        assert len(body["warnings"]) == 1


@pytest.mark.integration
class TestSettlementLifecycleApi:
    async def test_confirm_paid_flow(self, test_client, dispatcher_headers, dispatcher_user, january_trips):
        created = await _create(test_client, dispatcher_headers, january_trips.id)

        confirmed = await test_client.post(
            f"/api/settlements/{created['id']}/confirm",
            json={"remarks": "1월 확정"},
            headers=dispatcher_headers,
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "CONFIRMED"
        assert confirmed.json()["confirmed_by"] == dispatcher_user.id
        assert confirmed.json()["remarks"] == "1월 확정"

        paid = await test_client.post(f"/api/settlements/{created['id']}/paid", headers=dispatcher_headers)
        assert paid.status_code == 200
        assert paid.json()["status"] == "PAID"
        assert paid.json()["paid_at"] is not None

    async def test_confirm_without_body(self, test_client, dispatcher_headers, january_trips):
        created = await _create(test_client, dispatcher_headers, january_trips.id)
        response = await test_client.post(
            f"/api/settlements/{created['id']}/confirm", headers=dispatcher_headers
        )
        assert response.status_code == 200

    async def test_invalid_transition_is_409(self, test_client, dispatcher_headers, january_trips):
        created = await _create(test_client, dispatcher_headers, january_trips.id)
        response = await test_client.post(f"/api/settlements/{created['id']}/paid", headers=dispatcher_headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == ErrorCode.INVALID_STATE_TRANSITION.value

    async def test_update_and_delete_draft(self, test_client, dispatcher_headers, january_trips):
        created = await _create(test_client, dispatcher_headers, january_trips.id)

        patched = await test_client.patch(
            f"/api/settlements/{created['id']}",
            json={"remarks": "  비고  수정 "},
            headers=dispatcher_headers,
        )
        assert patched.status_code == 200
        assert patched.json()["remarks"] == "비고 수정"

        deleted = await test_client.delete(f"/api/settlements/{created['id']}", headers=dispatcher_headers)
        assert deleted.status_code == 204

        missing = await test_client.get(f"/api/settlements/{created['id']}", headers=dispatcher_headers)
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == ErrorCode.SETTLEMENT_NOT_FOUND.value

    async def test_locked_update_is_409(self, test_client, dispatcher_headers, january_trips):
        created = await _create(test_client, dispatcher_headers, january_trips.id)
        await test_client.post(f"/api/settlements/{created['id']}/confirm", headers=dispatcher_headers)

        response = await test_client.patch(
            f"/api/settlements/{created['id']}", json={"remarks": "x"}, headers=dispatcher_headers
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == ErrorCode.SETTLEMENT_LOCKED.value

    async def test_emergency_unlock_admin_only(
        self, test_client, dispatcher_headers, admin_headers, january_trips
    ):
        created = await _create(test_client, dispatcher_headers, january_trips.id)
        await test_client.post(f"/api/settlements/{created['id']}/confirm", headers=dispatcher_headers)

        denied = await test_client.post(
            f"/api/settlements/{created['id']}/emergency-unlock",
            json={"reason": "정정"},
            headers=dispatcher_headers,
        )
        assert denied.status_code == 403
        assert denied.json()["error"]["code"] == ErrorCode.FORBIDDEN.value

        still_confirmed = await test_client.get(
            f"/api/settlements/{created['id']}", headers=dispatcher_headers
        )
        assert still_confirmed.json()["status"] == "CONFIRMED"

        unlocked = await test_client.post(
            f"/api/settlements/{created['id']}/emergency-unlock",
            json={"reason": "정정"},
            headers=admin_headers,
        )
        assert unlocked.status_code == 200
        assert unlocked.json()["status"] == "DRAFT"
        assert unlocked.json()["confirmed_at"] is None

    async def test_emergency_unlock_requires_reason(
        self, test_client, dispatcher_headers, admin_headers, january_trips
    ):
        created = await _create(test_client, dispatcher_headers, january_trips.id)
        await test_client.post(f"/api/settlements/{created['id']}/confirm", headers=dispatcher_headers)

        response = await test_client.post(
            f"/api/settlements/{created['id']}/emergency-unlock", json={}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.MISSING_PARAMETER.value


@pytest.mark.integration
class TestSettlementListApi:
    async def test_list_and_filters(self, test_client, dispatcher_headers, driver_factory):
        first = await driver_factory(name="홍길동", phone="010-1111-2222")
        second = await driver_factory(name="이순신", phone="010-3333-4444")
        await _create(test_client, dispatcher_headers, first.id)
        await _create(test_client, dispatcher_headers, second.id)
        await _create(test_client, dispatcher_headers, first.id, "2024-02")

        response = await test_client.get(
            "/api/settlements", params={"year_month": "2024-01"}, headers=dispatcher_headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["items"][0]["items"] == []

        response = await test_client.get(
            "/api/settlements", params={"search": "3333"}, headers=dispatcher_headers
        )
        assert [s["driver_id"] for s in response.json()["items"]] == [second.id]

        response = await test_client.get(
            "/api/settlements", params={"status": "CONFIRMED"}, headers=dispatcher_headers
        )
        assert response.json()["total"] == 0

    async def test_bad_sort_key_rejected(self, test_client, dispatcher_headers):
        response = await test_client.get(
            "/api/settlements", params={"sort_by": "password"}, headers=dispatcher_headers
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "ERR_1001"
        assert error["details"]["errors"][0]["loc"] == ["query", "sort_by"]

    async def test_bulk(self, test_client, dispatcher_headers, january_trips, driver_factory):
        other = await driver_factory(name="기사2", phone="010-9999-0000")
        response = await test_client.post(
            "/api/settlements/bulk",
            json={"year_month": "2024-01", "driver_ids": [january_trips.id, other.id, 9999]},
            headers=dispatcher_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["created_count"] == 2
        assert len(body["failed"]) == 1
        assert body["failed"][0]["driver_id"] == 9999
        assert body["failed"][0]["code"] == ErrorCode.DRIVER_NOT_FOUND.value


@pytest.mark.integration
class TestSettlementExportApi:
    async def test_export_xlsx(self, test_client, dispatcher_headers, january_trips):
        await _create(test_client, dispatcher_headers, january_trips.id)

        response = await test_client.get(
            "/api/settlements/export", params={"year_month": "2024-01"}, headers=dispatcher_headers
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "filename*=UTF-8''" in response.headers["content-disposition"]

        workbook = load_workbook(BytesIO(response.content))
        assert workbook.sheetnames == ["정산요약", "정산항목"]

    async def test_export_empty_month_is_404(self, test_client, dispatcher_headers):
        response = await test_client.get(
            "/api/settlements/export", params={"year_month": "2024-01"}, headers=dispatcher_headers
        )
        assert response.status_code == 404


@pytest.mark.integration
async def test_health(test_client):
    response = await test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
