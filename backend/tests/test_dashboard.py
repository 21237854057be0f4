"""Admin dashboard aggregates."""

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from mehustaja.models.order import Order, OrderStatus


@pytest.mark.api
@pytest.mark.asyncio
class TestDashboardSummary:

    async def test_empty_floor(self, client: AsyncClient):
        resp = await client.get("/api/dashboard/summary")

        assert resp.status_code == 200
        body = resp.json()
        assert body["orders_by_status"] == {
            "pending": 0, "processing": 0, "loading": 0, "ready-for-pickup": 0, "picked-up": 0,
        }
        assert body["active_orders"] == 0
        assert body["pallets"] == {"open": 0, "full": 0}

    async def test_counts_pipeline_pickups_and_fill(self, client: AsyncClient, order_factory):
        await order_factory(pouches=17, name="Aino Virtanen")
        collected = await order_factory(pouches=8, name="Matti", phone="+358501111111")
        binned = await order_factory(pouches=8, name="Liisa", phone="+358502222222")
        await client.post(f"/api/customers/{binned.customer_id}/delete")

        pallet = (await client.post("/api/pallets/", json={"location": "Hall A", "capacity": 1})).json()
        await client.post("/api/pallets/", json={"location": "Hall A"})
        await client.post("/api/assign-pallet", json={
            "pallet_id": pallet["id"], "crate_ids": [collected.crates[0].qr_code],
        })
        resp = await client.post(f"/api/orders/{collected.id}/pickup")
        assert resp.status_code == 200
        await client.post("/api/shelves/", json={"location": "Cold room"})

        body = (await client.get("/api/dashboard/summary")).json()

        assert body["orders_by_status"][OrderStatus.PENDING] == 1
        assert body["orders_by_status"][OrderStatus.PICKED_UP] == 1
        assert OrderStatus.DELETED not in body["orders_by_status"]
        assert body["active_orders"] == 1
        assert body["orders_created_today"] == 2
        assert body["orders_picked_up_today"] == 1
        assert body["customers_served_today"] == 1
        assert body["unpalletized_crates"] == 3
        assert body["pallets"] == {"open": 1, "full": 1}
        assert body["shelves"] == {"open": 1, "full": 0}


@pytest.mark.api
@pytest.mark.asyncio
class TestTodayMetrics:

    async def test_today_against_yesterday(self, client: AsyncClient, order_factory, db_session):
        await order_factory(pouches=17)
        await order_factory(pouches=7, name="Matti", phone="+358501111111")
        earlier = await order_factory(pouches=12, name="Liisa", phone="+358502222222")
        order = await db_session.get(Order, earlier.id)
        order.created_at = datetime.utcnow() - timedelta(days=1)
        order.weight_kg = 30.0
        await db_session.commit()

        resp = await client.get("/api/dashboard/today-metrics")

        assert resp.status_code == 200
        body = resp.json()
        assert body["today"] == {"orders": 2, "pouches": 24, "kg_taken_in": 0.0}
        assert body["yesterday"] == {"orders": 1, "pouches": 12, "kg_taken_in": 30.0}
        assert body["changes"] == {
            "orders_pct": 100.0, "pouches_pct": 100.0, "kg_taken_in_pct": -100.0,
        }

    async def test_no_history(self, client: AsyncClient):
        body = (await client.get("/api/dashboard/today-metrics")).json()

        assert body["today"]["orders"] == 0
        assert body["changes"]["pouches_pct"] == 0.0
