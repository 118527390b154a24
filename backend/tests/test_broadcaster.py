"""Tests for the broadcast router's delivery and failure policy."""
import asyncio

from fastapi.websockets import WebSocketState

from app.chat.broadcaster import BroadcastRouter
from app.chat.protocol import SystemMessage
from app.chat.registry import ConnectionRegistry


def make_router(*sockets):
    registry = ConnectionRegistry()
    for ws in sockets:
        registry.register(ws)
    return BroadcastRouter(registry)


def test_broadcast_all_reaches_every_session(fake_ws):
    sockets = [fake_ws() for _ in range(3)]
    router = make_router(*sockets)

    delivered = asyncio.run(router.broadcast_all(SystemMessage(content="hello")))

    assert delivered == 3
    for ws in sockets:
        assert ws.sent == [{"type": "systemMessage", "content": "hello"}]


def test_broadcast_with_no_sessions():
    router = make_router()
    assert asyncio.run(router.broadcast_all(SystemMessage(content="hello"))) == 0


def test_broadcast_except_skips_one(fake_ws):
    ws1, ws2, ws3 = fake_ws(), fake_ws(), fake_ws()
    router = make_router(ws1, ws2, ws3)

    delivered = asyncio.run(router.broadcast_except(SystemMessage(content="x"), ws2))

    assert delivered == 2
    assert len(ws1.sent) == 1
    assert ws2.sent == []
    assert len(ws3.sent) == 1


def test_send_one(fake_ws):
    ws1, ws2 = fake_ws(), fake_ws()
    router = make_router(ws1, ws2)

    assert asyncio.run(router.send_one(ws1, SystemMessage(content="only you"))) is True
    assert ws1.sent == [{"type": "systemMessage", "content": "only you"}]
    assert ws2.sent == []


def test_failed_send_does_not_stop_broadcast(fake_ws):
    """A recipient whose send raises is skipped; others still get the frame."""
    good1, bad, good2 = fake_ws(), fake_ws(fail_sends=True), fake_ws()
    router = make_router(good1, bad, good2)

    delivered = asyncio.run(router.broadcast_all(SystemMessage(content="x")))

    assert delivered == 2
    assert len(good1.sent) == 1
    assert len(good2.sent) == 1


def test_closed_connection_is_skipped_not_removed(fake_ws):
    """Closed recipients are skipped; removal is left to the disconnect handler."""
    live, closed = fake_ws(), fake_ws()
    closed.client_state = WebSocketState.DISCONNECTED
    router = make_router(live, closed)

    delivered = asyncio.run(router.broadcast_all(SystemMessage(content="x")))

    assert delivered == 1
    assert closed.sent == []
    assert closed in router.registry


def test_send_one_to_unaccepted_connection(fake_ws):
    pending = fake_ws(accepted=False)
    router = make_router(pending)
    assert asyncio.run(router.send_one(pending, SystemMessage(content="x"))) is False
    assert pending.sent == []


def test_successive_broadcasts_arrive_in_call_order(fake_ws):
    sockets = [fake_ws() for _ in range(4)]
    router = make_router(*sockets)

    async def send_many():
        for i in range(10):
            await router.broadcast_all(SystemMessage(content=str(i)))

    asyncio.run(send_many())

    for ws in sockets:
        assert [frame["content"] for frame in ws.sent] == [str(i) for i in range(10)]


def test_unencodable_frame_is_dropped(fake_ws):
    ws1, ws2 = fake_ws(), fake_ws()
    router = make_router(ws1, ws2)
    broken = SystemMessage(content="\ud800")

    assert asyncio.run(router.broadcast_all(broken)) == 0
    assert asyncio.run(router.send_one(ws1, broken)) is False
    assert ws1.sent == []

    assert asyncio.run(router.broadcast_all(SystemMessage(content="fine"))) == 2
    assert ws2.sent == [{"type": "systemMessage", "content": "fine"}]
