"""Shelves: creation, pallet placement, capacity and pickup SMS."""

import pytest
from httpx import AsyncClient

from mehustaja.events.bus import PALLET_UPDATED
from mehustaja.models.order import Order, OrderStatus
from mehustaja.models.shelf import ShelfStatus


async def _new_shelf(client: AsyncClient, location: str = "Cold room", capacity: int = 2, **extra) -> dict:
    resp = await client.post("/api/shelves/", json={"location": location, "capacity": capacity, **extra})
    assert resp.status_code == 201
    return resp.json()


async def _new_pallet(client: AsyncClient) -> dict:
    resp = await client.post("/api/pallets/", json={"location": "Hall A"})
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.api
@pytest.mark.asyncio
class TestShelves:

    async def test_names_generated_per_location(self, client: AsyncClient):
        first = await _new_shelf(client)
        second = await _new_shelf(client)
        other = await _new_shelf(client, location="Hall B")
        named = await _new_shelf(client, shelf_name="Top rack")

        assert first["name"] == "Cold room-S01"
        assert second["name"] == "Cold room-S02"
        assert other["name"] == "Hall B-S01"
        assert named["name"] == "Top rack"
        assert first["qr_code"] == f"SHELF_{first['id']}"

    async def test_assign_pallet_and_fill_shelf(self, client: AsyncClient, recorded_events):
        shelf = await _new_shelf(client, capacity=2)
        p1, p2, p3 = [await _new_pallet(client) for _ in range(3)]
        recorded_events.clear()

        resp = await client.post("/api/pallets/assign-shelf", json={
            "palletId": p1["qr_code"], "shelfId": shelf["qr_code"],
        })
        assert resp.status_code == 200
        assert resp.json()["shelf_status"] == ShelfStatus.OPEN

        resp = await client.post("/api/pallets/assign-shelf", json={
            "pallet_id": p2["id"], "shelf_id": shelf["id"],
        })
        assert resp.json()["shelf_status"] == ShelfStatus.FULL

        resp = await client.post("/api/pallets/assign-shelf", json={
            "pallet_id": p3["id"], "shelf_id": shelf["id"],
        })
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "SHELF_CAPACITY_EXCEEDED"
        assert [e.name for e in recorded_events] == [PALLET_UPDATED, PALLET_UPDATED]

        contents = (await client.get(f"/api/shelves/{shelf['qr_code']}/contents")).json()
        assert contents["shelf"]["holding"] == 2
        assert {p["id"] for p in contents["pallets"]} == {p1["id"], p2["id"]}

        listed = (await client.get("/api/shelves/")).json()
        assert listed[0]["holding"] == 2

    async def test_same_shelf_again_is_a_no_op(self, client: AsyncClient, recorded_events):
        shelf = await _new_shelf(client)
        pallet = await _new_pallet(client)
        payload = {"pallet_id": pallet["id"], "shelf_id": shelf["id"]}
        await client.post("/api/pallets/assign-shelf", json=payload)
        recorded_events.clear()

        resp = await client.post("/api/pallets/assign-shelf", json=payload)

        assert resp.status_code == 200
        assert resp.json()["message"] == "Pallet already on this shelf."
        assert recorded_events == []

    async def test_pallet_on_another_shelf(self, client: AsyncClient):
        first = await _new_shelf(client)
        second = await _new_shelf(client)
        pallet = await _new_pallet(client)
        await client.post("/api/pallets/assign-shelf", json={"pallet_id": pallet["id"], "shelf_id": first["id"]})

        resp = await client.post("/api/pallets/assign-shelf", json={
            "pallet_id": pallet["id"], "shelf_id": second["id"],
        })

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "PALLET_ALREADY_SHELVED"

    async def test_unknown_shelf(self, client: AsyncClient):
        pallet = await _new_pallet(client)
        resp = await client.post("/api/pallets/assign-shelf", json={
            "pallet_id": pallet["id"], "shelf_id": "SHELF_missing",
        })
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Shelf QR not found"

    async def test_ready_customers_texted_on_shelving(
        self, client: AsyncClient, pending_order, notifier, session_factory,
    ):
        shelf = await _new_shelf(client)
        pallet = await _new_pallet(client)
        await client.post("/api/assign-pallet", json={
            "pallet_id": pallet["id"],
            "crate_ids": [c.qr_code for c in pending_order.crates],
        })

        resp = await client.post("/api/pallets/assign-shelf", json={
            "pallet_id": pallet["id"], "shelf_id": shelf["id"], "sendSms": True,
        })

        assert resp.json()["sms_sent"] == 1
        assert notifier.sent == [(
            "+358401234567",
            "Hi Aino Virtanen, your juice order is ready for pickup. Welcome!",
        )]
        async with session_factory() as s:
            order = await s.get(Order, pending_order.id)
            assert order.status == OrderStatus.READY
            assert order.sms_sent_at is not None

    async def test_delete_only_when_empty(self, client: AsyncClient):
        shelf = await _new_shelf(client)
        pallet = await _new_pallet(client)
        await client.post("/api/pallets/assign-shelf", json={"pallet_id": pallet["id"], "shelf_id": shelf["id"]})

        resp = await client.delete(f"/api/shelves/{shelf['id']}")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "SHELF_NOT_EMPTY"

        empty = await _new_shelf(client)
        resp = await client.delete(f"/api/shelves/{empty['qr_code']}")
        assert resp.status_code == 204
        resp = await client.get(f"/api/shelves/{empty['id']}/contents")
        assert resp.status_code == 404

    async def test_deleting_shelved_pallet_reopens_full_shelf(
        self, client: AsyncClient, recorded_events,
    ):
        shelf = await _new_shelf(client, capacity=1)
        pallet = await _new_pallet(client)
        resp = await client.post("/api/pallets/assign-shelf", json={
            "pallet_id": pallet["id"], "shelf_id": shelf["id"],
        })
        assert resp.json()["shelf_status"] == ShelfStatus.FULL
        recorded_events.clear()

        resp = await client.delete(f"/api/pallets/{pallet['id']}")

        assert resp.status_code == 204
        [listed] = (await client.get("/api/shelves/")).json()
        assert listed["holding"] == 0
        assert listed["status"] == ShelfStatus.OPEN
        assert [e.name for e in recorded_events] == [PALLET_UPDATED]
