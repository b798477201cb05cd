import asyncio

from foodpay.services.notification.fanout import NotificationFanout
from foodpay.services.notification.hub import NotificationHub


class FakeSocket:
    def __init__(self, stall_first: bool = False, fail_first: bool = False) -> None:
        self.sent: list[dict] = []
        self.stall_first = stall_first
        self.fail_first = fail_first

    async def send_json(self, message):
        if self.fail_first:
            self.fail_first = False
            raise RuntimeError("socket closed mid-send")
        if self.stall_first:
            self.stall_first = False
            await asyncio.sleep(5)
        self.sent.append(message)


async def _settle():
    await asyncio.sleep(0.05)


def test_customer_only_receives_own_channel():
    async def scenario():
        hub = NotificationHub(queue_size=10, send_timeout=1.0)
        mine, theirs = FakeSocket(), FakeSocket()
        sub_mine = hub.subscribe(mine, "cust-1", is_admin=False)
        sub_theirs = hub.subscribe(theirs, "cust-2", is_admin=False)
        pumps = [asyncio.create_task(s.pump()) for s in (sub_mine, sub_theirs)]

        NotificationFanout(hub).payment_update("cust-1", "o-1", "COMPLETED", "Payment successful")
        await _settle()
        for pump in pumps:
            pump.cancel()
        return mine.sent, theirs.sent

    mine, theirs = asyncio.run(scenario())
    assert mine == [
        {
            "event": "payment:update",
            "channel": "user:cust-1",
            "data": {"orderId": "o-1", "paymentStatus": "COMPLETED", "message": "Payment successful"},
        }
    ]
    assert theirs == []


def test_order_updates_reach_order_viewers_and_admins():
    async def scenario():
        hub = NotificationHub(queue_size=10, send_timeout=1.0)
        viewer, admin = FakeSocket(), FakeSocket()
        sub_viewer = hub.subscribe(viewer, "cust-1", is_admin=False)
        hub.join(sub_viewer, "order:o-1")
        sub_admin = hub.subscribe(admin, None, is_admin=True)
        pumps = [asyncio.create_task(s.pump()) for s in (sub_viewer, sub_admin)]

        NotificationFanout(hub).order_update("o-1", "PREPARING", "Order status updated to PREPARING")
        await _settle()
        for pump in pumps:
            pump.cancel()
        return viewer.sent, admin.sent

    viewer, admin = asyncio.run(scenario())
    assert [m["channel"] for m in viewer] == ["order:o-1"]
    assert [m["channel"] for m in admin] == ["admin"]
    assert admin[0]["data"]["status"] == "PREPARING"


def test_full_queue_drops_instead_of_blocking():
    async def scenario():
        hub = NotificationHub(queue_size=2, send_timeout=1.0)
        socket = FakeSocket()
        sub = hub.subscribe(socket, "cust-1", is_admin=False)
        for i in range(5):
            hub.publish("user:cust-1", "payment:update", {"n": i})
        await _settle()
        pump = asyncio.create_task(sub.pump())
        await _settle()
        pump.cancel()
        return socket.sent

    sent = asyncio.run(scenario())
    assert [m["data"]["n"] for m in sent] == [0, 1]


def test_stalled_send_times_out_and_pump_continues():
    async def scenario():
        hub = NotificationHub(queue_size=10, send_timeout=0.01)
        socket = FakeSocket(stall_first=True)
        sub = hub.subscribe(socket, "cust-1", is_admin=False)
        pump = asyncio.create_task(sub.pump())
        hub.publish("user:cust-1", "payment:update", {"n": 1})
        hub.publish("user:cust-1", "payment:update", {"n": 2})
        await asyncio.sleep(0.2)
        pump.cancel()
        return socket.sent

    sent = asyncio.run(scenario())
    assert [m["data"]["n"] for m in sent] == [2]


def test_unsubscribe_leaves_all_channels():
    async def scenario():
        hub = NotificationHub()
        sub = hub.subscribe(FakeSocket(), "cust-1", is_admin=True)
        hub.join(sub, "order:o-1")
        assert hub.subscriber_count("admin") == 1
        hub.unsubscribe(sub)
        return [hub.subscriber_count(c) for c in ("user:cust-1", "admin", "order:o-1")]

    assert asyncio.run(scenario()) == [0, 0, 0]


def test_publish_with_no_subscribers_is_a_noop():
    NotificationHub().publish("admin", "order:new", {"orderId": "o-1"})


def test_failed_send_is_dropped_and_pump_continues():
    async def scenario():
        hub = NotificationHub(queue_size=10, send_timeout=1.0)
        socket = FakeSocket(fail_first=True)
        sub = hub.subscribe(socket, "cust-1", is_admin=False)
        pump = asyncio.create_task(sub.pump())
        hub.publish("user:cust-1", "payment:update", {"n": 1})
        hub.publish("user:cust-1", "payment:update", {"n": 2})
        await _settle()
        alive = not pump.done()
        pump.cancel()
        return socket.sent, alive

    sent, alive = asyncio.run(scenario())
    assert alive
    assert [m["data"]["n"] for m in sent] == [2]
