"""Order status workflow: processing guard, loading, pickup."""

import pytest
from httpx import AsyncClient

from mehustaja.events.bus import ORDER_PROCESSING, ORDER_STATUS_UPDATED
from mehustaja.models.order import Order, OrderStatus


async def _status(session_factory, order_id: str) -> str:
    async with session_factory() as s:
        return (await s.get(Order, order_id)).status


async def _set_status(session_factory, order_id: str, status: str) -> None:
    async with session_factory() as s:
        order = await s.get(Order, order_id)
        order.status = status
        await s.commit()


@pytest.mark.api
@pytest.mark.asyncio
class TestProcessing:

    async def test_marks_processing_once(self, client: AsyncClient, pending_order, recorded_events):
        first = await client.post(f"/api/orders/{pending_order.id}/processing")
        second = await client.post(f"/api/orders/{pending_order.id}/processing")

        assert first.status_code == 200
        assert first.json()["message"] == "Order marked as processing."
        assert first.json()["changed"] is True
        assert second.status_code == 200
        assert second.json()["message"] == "Order already processing."
        assert second.json()["changed"] is False
        assert [e.name for e in recorded_events] == [ORDER_PROCESSING]
        assert recorded_events[0].data == {"order_id": pending_order.id}

    async def test_guard_rejects_incomplete_crates(
        self, client: AsyncClient, pending_order, session_factory, recorded_events,
    ):
        last_crate = pending_order.crates[-1]
        resp = await client.patch(f"/api/crates/{last_crate.qr_code}", json={"pouch_count": 0})
        assert resp.status_code == 200

        resp = await client.post(f"/api/orders/{pending_order.id}/processing")

        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "CRATES_INCOMPLETE"
        assert error["message"] == "Crates not complete yet."
        assert error["details"]["pouches_in_crates"] == 16
        assert await _status(session_factory, pending_order.id) == OrderStatus.PENDING
        assert recorded_events == []

    async def test_not_from_loading(self, client: AsyncClient, pending_order, session_factory):
        await _set_status(session_factory, pending_order.id, OrderStatus.LOADING)

        resp = await client.post(f"/api/orders/{pending_order.id}/processing")

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_TRANSITION"

    async def test_unknown_order(self, client: AsyncClient):
        resp = await client.post("/api/orders/nope/processing")
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestLoading:

    async def test_processing_to_loading_with_comment(
        self, client: AsyncClient, pending_order, recorded_events,
    ):
        await client.post(f"/api/orders/{pending_order.id}/processing")

        resp = await client.post(
            f"/api/orders/{pending_order.id}/done",
            json={"comment": "Two crates by the door"},
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == OrderStatus.LOADING
        detail = (await client.get(f"/api/orders/{pending_order.id}")).json()
        assert detail["comment"] == "Two crates by the door"
        assert [e.name for e in recorded_events] == [ORDER_PROCESSING, ORDER_STATUS_UPDATED]

    async def test_repeat_reconfirms_without_event(
        self, client: AsyncClient, pending_order, recorded_events,
    ):
        await client.post(f"/api/orders/{pending_order.id}/processing")
        await client.post(f"/api/orders/{pending_order.id}/done")

        resp = await client.post(f"/api/orders/{pending_order.id}/done", json={"comment": "later"})

        assert resp.status_code == 200
        assert resp.json()["changed"] is False
        assert [e.name for e in recorded_events].count(ORDER_STATUS_UPDATED) == 1

    async def test_pending_cannot_skip_processing(self, client: AsyncClient, pending_order):
        resp = await client.post(f"/api/orders/{pending_order.id}/done")
        assert resp.status_code == 409


@pytest.mark.api
@pytest.mark.asyncio
class TestPickup:

    async def test_only_ready_orders_can_be_picked_up(self, client: AsyncClient, pending_order):
        resp = await client.post(f"/api/orders/{pending_order.id}/pickup")
        assert resp.status_code == 409

    async def test_pickup_search_and_handover(
        self, client: AsyncClient, pending_order, session_factory, recorded_events,
    ):
        await _set_status(session_factory, pending_order.id, OrderStatus.READY)

        resp = await client.get("/api/orders/pickup", params={"query": "virta"})
        assert [o["id"] for o in resp.json()] == [pending_order.id]
        resp = await client.get("/api/orders/pickup", params={"query": "4012"})
        assert [o["id"] for o in resp.json()] == [pending_order.id]
        resp = await client.get("/api/orders/pickup", params={"query": "nobody"})
        assert resp.json() == []

        resp = await client.post(f"/api/orders/{pending_order.id}/pickup")

        assert resp.status_code == 200
        assert resp.json()["status"] == OrderStatus.PICKED_UP
        detail = (await client.get(f"/api/orders/{pending_order.id}")).json()
        assert detail["picked_up_at"] is not None
        assert [e.name for e in recorded_events] == [ORDER_STATUS_UPDATED]

        resp = await client.get("/api/orders/pickup")
        assert resp.json() == []


@pytest.mark.api
@pytest.mark.asyncio
class TestCrateCorrections:

    async def test_crate_lookup_by_qr_and_id(self, client: AsyncClient, pending_order):
        crate = pending_order.crates[0]

        by_qr = await client.get(f"/api/crates/{crate.qr_code}")
        by_id = await client.get(f"/api/crates/{crate.id}")

        assert by_qr.status_code == by_id.status_code == 200
        assert by_qr.json()["id"] == by_id.json()["id"] == crate.id
        assert by_qr.json()["order"]["id"] == pending_order.id
        assert by_qr.json()["pallet_id"] is None

    async def test_crate_over_capacity(self, client: AsyncClient, pending_order):
        crate = pending_order.crates[-1]
        resp = await client.patch(f"/api/crates/{crate.id}", json={"pouch_count": 9})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CRATE_CAPACITY_EXCEEDED"

    async def test_crate_locked_after_processing(self, client: AsyncClient, pending_order):
        await client.post(f"/api/orders/{pending_order.id}/processing")
        crate = pending_order.crates[-1]

        resp = await client.patch(f"/api/crates/{crate.id}", json={"pouch_count": 2})

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "ORDER_NOT_PENDING"

    async def test_crate_qr_svg(self, client: AsyncClient, pending_order):
        resp = await client.get(f"/api/crates/{pending_order.crates[0].id}/qr")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")
        assert b"<svg" in resp.content
