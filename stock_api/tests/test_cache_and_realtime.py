from typing import Any, List

from starlette.websockets import WebSocketState

from src.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    get_token_subject,
    verify_password,
)
from src.services.cache import CacheService
from src.services.realtime import DASHBOARD_STATS_EVENT, STOCK_TOPIC, BroadcastManager


class FakeSocket:
    """Stands in for an accepted starlette WebSocket."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[Any] = []
        self.fail = fail
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def send_json(self, message: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


async def test_cache_hit_and_remove():
    cache = CacheService()
    await cache.set("k", {"v": 1}, 60)

    assert await cache.get("k") == {"v": 1}
    await cache.remove("k")
    assert await cache.get("k") is None


async def test_cache_entry_expires():
    cache = CacheService()
    await cache.set("k", "value", -1)
    assert await cache.get("k") is None


async def test_cache_clear():
    cache = CacheService()
    await cache.set("a", 1, 60)
    await cache.set("b", 2, 60)
    await cache.clear()
    assert await cache.get("a") is None
    assert await cache.get("b") is None


async def test_publish_event_wraps_payload_in_envelope():
    manager = BroadcastManager()
    ws = FakeSocket()
    await manager.connect(STOCK_TOPIC, ws)

    await manager.publish_event("product.deleted", {"id": 7}, user_id="3")

    assert len(ws.sent) == 1
    message = ws.sent[0]
    assert message["type"] == "product.deleted"
    assert message["payload"] == {"id": 7}
    assert message["user_id"] == "3"
    assert message["channel"] == STOCK_TOPIC
    assert "at" in message


async def test_dashboard_stats_event_type():
    manager = BroadcastManager()
    ws = FakeSocket()
    await manager.connect(STOCK_TOPIC, ws)

    await manager.publish_dashboard_stats({"total_products": 2})

    assert ws.sent[0]["type"] == DASHBOARD_STATS_EVENT


async def test_failing_socket_is_dropped():
    manager = BroadcastManager()
    good, bad = FakeSocket(), FakeSocket(fail=True)
    await manager.connect(STOCK_TOPIC, good)
    await manager.connect(STOCK_TOPIC, bad)

    await manager.publish_event("todo.created", {"id": 1})

    assert manager.subscriber_count() == 1
    assert len(good.sent) == 1


async def test_disconnect_removes_subscriber():
    manager = BroadcastManager()
    ws = FakeSocket()
    await manager.connect(STOCK_TOPIC, ws)
    await manager.disconnect(STOCK_TOPIC, ws)
    assert manager.subscriber_count() == 0


def test_access_token_round_trip():
    token, _ = create_access_token("12", "a@b.com", roles=["Admin"], permissions=["CanUseChat"])
    claims = decode_token(token)

    assert claims["sub"] == "12"
    assert claims["type"] == "access"
    assert claims["roles"] == ["Admin"]
    assert get_token_subject(token) == "12"


def test_garbage_token_has_no_subject():
    assert get_token_subject("not-a-jwt") is None


def test_refresh_tokens_are_random():
    first, _ = create_refresh_token()
    second, _ = create_refresh_token()
    assert first != second


def test_password_hash_verifies():
    hashed = get_password_hash("s3cret!")
    assert verify_password("s3cret!", hashed)
    assert not verify_password("wrong", hashed)
