"""Integration tests for bill API endpoints"""

from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from httpx import AsyncClient

from splitbill.core.exceptions import PersistenceError
from splitbill.services.bill_service import BillService
from splitbill.services.redis_store import PENDING_MARKER


class TestCreateBill:
    """Test bill creation endpoint"""

    @pytest.mark.asyncio
    async def test_create_bill(self, client: AsyncClient, dinner_bill_data: dict):
        """Test creating a bill returns its identifiers"""
        response = await client.post("/api/v1/bills", json=dinner_bill_data)

        assert response.status_code == 201
        data = response.json()
        assert set(data) == {"id", "short_code", "creator_participant_id"}
        assert len(data["short_code"]) == 6

    @pytest.mark.asyncio
    async def test_created_bill_derived_fields(self, client: AsyncClient, dinner_bill: dict):
        """Test subtotal and tip amount are derived at creation"""
        assert Decimal(dinner_bill["subtotal"]) == Decimal("20.00")
        assert Decimal(dinner_bill["tax"]) == Decimal("2.00")
        assert Decimal(dinner_bill["tip_percent"]) == Decimal("20")
        assert Decimal(dinner_bill["tip_amount"]) == Decimal("4.40")
        assert dinner_bill["status"] == "active"

    @pytest.mark.asyncio
    async def test_creator_is_first_participant(self, client: AsyncClient, dinner_bill: dict):
        """Test the creator is stored as the only creator participant"""
        participants = dinner_bill["participants"]
        assert len(participants) == 1
        assert participants[0]["name"] == "Alex"
        assert participants[0]["is_creator"] is True
        assert participants[0]["id"] == dinner_bill["creator_participant_id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["name", "items", "creator_name"])
    async def test_create_missing_field(self, client: AsyncClient, dinner_bill_data: dict, missing: str):
        """Test required fields are validated before any write"""
        del dinner_bill_data[missing]

        response = await client.post("/api/v1/bills", json=dinner_bill_data)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_rejects_bad_items(self, client: AsyncClient, dinner_bill_data: dict):
        """Test zero quantity and empty item lists are rejected"""
        dinner_bill_data["items"][0]["quantity"] = 0
        assert (await client.post("/api/v1/bills", json=dinner_bill_data)).status_code == 422

        dinner_bill_data["items"] = []
        assert (await client.post("/api/v1/bills", json=dinner_bill_data)).status_code == 422

    @pytest.mark.asyncio
    async def test_create_with_idempotency_key(self, client: AsyncClient, dinner_bill_data: dict, cache_store: dict):
        """Test a repeated Idempotency-Key returns the first bill"""
        headers = {"Idempotency-Key": "create-dinner-1"}

        first = await client.post("/api/v1/bills", json=dinner_bill_data, headers=headers)
        second = await client.post("/api/v1/bills", json=dinner_bill_data, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.json() == second.json()
        assert "idempotency:bill:create-dinner-1" in cache_store

    @pytest.mark.asyncio
    async def test_key_in_progress_conflicts(
        self, client: AsyncClient, dinner_bill_data: dict, cache_store: dict, monkeypatch
    ):
        """Test a repeat arriving while the first request runs gets 409 and creates nothing"""
        cache_store["idempotency:bill:create-dinner-2"] = PENDING_MARKER
        create = AsyncMock()
        monkeypatch.setattr(BillService, "create_bill", create)

        response = await client.post(
            "/api/v1/bills", json=dinner_bill_data, headers={"Idempotency-Key": "create-dinner-2"}
        )

        assert response.status_code == 409
        create.assert_not_awaited()
        assert cache_store["idempotency:bill:create-dinner-2"] == PENDING_MARKER

    @pytest.mark.asyncio
    async def test_failed_create_releases_key(
        self, client: AsyncClient, dinner_bill_data: dict, cache_store: dict, monkeypatch
    ):
        """Test a failed creation frees the key for a retry"""
        monkeypatch.setattr(
            BillService, "create_bill", AsyncMock(side_effect=PersistenceError("Failed to create bill"))
        )

        response = await client.post(
            "/api/v1/bills", json=dinner_bill_data, headers={"Idempotency-Key": "create-dinner-3"}
        )

        assert response.status_code == 500
        assert "idempotency:bill:create-dinner-3" not in cache_store


class TestGetBill:
    """Test bill fetch endpoint"""

    @pytest.mark.asyncio
    async def test_get_by_short_code_any_case(self, client: AsyncClient, dinner_bill: dict):
        """Test lookup by short code ignores case"""
        response = await client.get(f"/api/v1/bills/{dinner_bill['short_code'].lower()}")

        assert response.status_code == 200
        assert response.json()["id"] == dinner_bill["id"]

    @pytest.mark.asyncio
    async def test_snapshot_contents(self, client: AsyncClient, dinner_bill: dict):
        """Test the snapshot lists items, participants and claims"""
        items = {i["name"]: i for i in dinner_bill["items"]}
        assert set(items) == {"Burger", "Fries"}
        assert Decimal(items["Fries"]["price"]) == Decimal("5.00")
        assert items["Fries"]["quantity"] == 2
        assert dinner_bill["claims"] == []

    @pytest.mark.asyncio
    async def test_get_unknown_bill(self, client: AsyncClient):
        """Test missing bills return 404"""
        assert (await client.get(f"/api/v1/bills/{uuid4()}")).status_code == 404
        assert (await client.get("/api/v1/bills/ZZZZZZ")).status_code == 404
        assert (await client.get("/api/v1/bills/nope")).status_code == 404


class TestUpdateBill:
    """Test bill update endpoint"""

    @pytest.mark.asyncio
    async def test_update_tip_recomputes_amount(self, client: AsyncClient, dinner_bill: dict, published_events: list):
        """Test changing tip_percent recomputes tip_amount"""
        response = await client.patch(f"/api/v1/bills/{dinner_bill['id']}", json={"tip_percent": 15})

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["tip_percent"]) == Decimal("15")
        assert Decimal(data["tip_amount"]) == Decimal("3.30")
        assert Decimal(data["subtotal"]) == Decimal("20.00")
        assert published_events[-1].table == "bills"

    @pytest.mark.asyncio
    async def test_settle_and_reopen(self, client: AsyncClient, dinner_bill: dict):
        """Test active -> settled -> active"""
        url = f"/api/v1/bills/{dinner_bill['id']}"

        settled = await client.patch(url, json={"status": "settled"})
        assert settled.status_code == 200
        assert settled.json()["status"] == "settled"

        reopened = await client.patch(url, json={"status": "active"})
        assert reopened.status_code == 200
        assert reopened.json()["status"] == "active"

    @pytest.mark.asyncio
    async def test_cannot_return_to_draft(self, client: AsyncClient, dinner_bill: dict):
        """Test moving back to draft is rejected"""
        response = await client.patch(f"/api/v1/bills/{dinner_bill['id']}", json={"status": "draft"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_empty_update(self, client: AsyncClient, dinner_bill: dict):
        """Test an update without fields is rejected"""
        response = await client.patch(f"/api/v1/bills/{dinner_bill['id']}", json={})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_unknown_bill(self, client: AsyncClient):
        """Test updating a missing bill"""
        response = await client.patch(f"/api/v1/bills/{uuid4()}", json={"tip_percent": 10})

        assert response.status_code == 404


class TestBillSplits:
    """Test the server-side split endpoint"""

    @pytest.mark.asyncio
    async def test_splits_without_claims(self, client: AsyncClient, dinner_bill: dict):
        """Test an unclaimed bill allocates nothing"""
        response = await client.get(f"/api/v1/bills/{dinner_bill['short_code']}/splits")

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["bill_total"]) == Decimal("26.40")
        assert Decimal(data["allocated_total"]) == Decimal("0")
        assert len(data["splits"]) == 1
        assert all(Decimal(i["remaining"]) == i["quantity"] for i in data["items"])

    @pytest.mark.asyncio
    async def test_splits_unknown_bill(self, client: AsyncClient):
        """Test splits for a missing bill"""
        assert (await client.get(f"/api/v1/bills/{uuid4()}/splits")).status_code == 404


class TestBillPrecision:
    """Test stored amounts agree with each other"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,value",
        [("price", "0.333"), ("tax", "1.005"), ("tip_percent", "12.125")],
    )
    async def test_amounts_finer_than_stored_are_rejected(
        self, client: AsyncClient, dinner_bill_data: dict, field: str, value: str
    ):
        """Test values the database would round are refused"""
        if field == "price":
            dinner_bill_data["items"][0]["price"] = value
        else:
            dinner_bill_data[field] = value

        response = await client.post("/api/v1/bills", json=dinner_bill_data)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_fully_claimed_bill_conserves_total(self, client: AsyncClient):
        """Test persisted splits add up to subtotal + tax + tip"""
        created = (await client.post("/api/v1/bills", json={
            "name": "Snacks",
            "items": [
                {"name": "Gum", "price": "0.33", "quantity": 3},
                {"name": "Soda", "price": "1.25", "quantity": 2},
            ],
            "tax": "0.19",
            "tip_percent": "17.55",
            "creator_name": "Alex",
        })).json()
        bill_id = created["id"]
        alex = created["creator_participant_id"]
        others = [
            (await client.post("/api/v1/participants", json={"bill_id": bill_id, "name": name})).json()["id"]
            for name in ("Jordan", "Sam")
        ]
        bill = (await client.get(f"/api/v1/bills/{bill_id}")).json()
        items = {i["name"]: i["id"] for i in bill["items"]}

        for participant, item, share in (
            (alex, "Gum", "2"),
            (others[0], "Gum", "1"),
            (others[0], "Soda", "1.5"),
            (others[1], "Soda", "0.5"),
        ):
            response = await client.post(
                "/api/v1/claims",
                json={"participant_id": participant, "item_id": items[item], "share": share},
            )
            assert response.status_code == 200

        bill = (await client.get(f"/api/v1/bills/{bill_id}")).json()
        subtotal, tax = Decimal(bill["subtotal"]), Decimal(bill["tax"])
        assert subtotal == sum(Decimal(i["price"]) * i["quantity"] for i in bill["items"])
        assert Decimal(bill["tip_amount"]) == (subtotal + tax) * Decimal(bill["tip_percent"]) / 100
        assert Decimal(bill["tip_amount"]) == Decimal("0.64584")

        splits = (await client.get(f"/api/v1/bills/{bill_id}/splits")).json()
        assert abs(Decimal(splits["allocated_total"]) - Decimal(splits["bill_total"])) < Decimal("0.000001")
