"""Pallet management endpoints."""

import pytest
from httpx import AsyncClient

from mehustaja.events.bus import PALLET_UPDATED


@pytest.mark.api
@pytest.mark.asyncio
class TestPallets:

    async def test_create_uses_default_capacity(self, client: AsyncClient, recorded_events):
        resp = await client.post("/api/pallets/", json={"location": "Hall A"})

        assert resp.status_code == 201
        body = resp.json()
        assert body["capacity"] == 8
        assert body["holding"] == 0
        assert body["status"] == "open"
        assert body["qr_code"] == f"PALLET_{body['id']}"
        assert [e.name for e in recorded_events] == [PALLET_UPDATED]

    async def test_create_requires_location(self, client: AsyncClient):
        resp = await client.post("/api/pallets/", json={})
        assert resp.status_code == 422

    async def test_list_with_holding_and_filters(self, client: AsyncClient, pending_order):
        a = (await client.post("/api/pallets/", json={"location": "Hall A"})).json()
        await client.post("/api/pallets/", json={"location": "Hall B"})
        await client.post("/api/assign-pallet", json={
            "pallet_id": a["id"], "crate_ids": [pending_order.crates[0].qr_code],
        })

        resp = await client.get("/api/pallets/", params={"location": "Hall A"})

        body = resp.json()
        assert body["total"] == 1
        assert body["items"][0]["holding"] == 1

        resp = await client.get("/api/pallets/")
        assert resp.json()["total"] == 2

    async def test_contents(self, client: AsyncClient, pending_order):
        pallet = (await client.post("/api/pallets/", json={"location": "Hall A"})).json()
        await client.post("/api/assign-pallet", json={
            "pallet_id": pallet["qr_code"],
            "crate_ids": [c.qr_code for c in pending_order.crates[:2]],
        })

        crates = (await client.get(f"/api/pallets/{pallet['qr_code']}/crates")).json()
        orders = (await client.get(f"/api/pallets/{pallet['id']}/orders")).json()
        summary = (await client.get(f"/api/pallets/{pallet['id']}")).json()

        assert [c["sequence"] for c in crates] == ["1/3", "2/3"]
        assert crates[0]["customer_name"] == "Aino Virtanen"
        assert orders == [{
            "order_id": pending_order.id,
            "customer_id": pending_order.customer_id,
            "customer_name": "Aino Virtanen",
            "phone": "+358401234567",
            "status": "pending",
            "total_pouches": 17,
            "crates_on_pallet": 2,
        }]
        assert summary["holding"] == 2

    async def test_qr_svg(self, client: AsyncClient):
        pallet = (await client.post("/api/pallets/", json={"location": "Hall A"})).json()
        resp = await client.get(f"/api/pallets/{pallet['id']}/qr")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")

    async def test_delete_only_when_empty(self, client: AsyncClient, pending_order):
        pallet = (await client.post("/api/pallets/", json={"location": "Hall A"})).json()
        await client.post("/api/assign-pallet", json={
            "pallet_id": pallet["id"], "crate_ids": [pending_order.crates[0].qr_code],
        })

        resp = await client.delete(f"/api/pallets/{pallet['id']}")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "PALLET_NOT_EMPTY"

        empty = (await client.post("/api/pallets/", json={"location": "Hall A"})).json()
        resp = await client.delete(f"/api/pallets/{empty['qr_code']}")
        assert resp.status_code == 204
        assert (await client.get(f"/api/pallets/{empty['id']}")).status_code == 404

    async def test_unknown_pallet(self, client: AsyncClient):
        resp = await client.get("/api/pallets/PALLET_missing/crates")
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
