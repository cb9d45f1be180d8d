import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from src.api.main import app
from src.core.security import create_access_token
from src.repositories.security import SecurityRepository
from src.services.realtime import DASHBOARD_STATS_EVENT, STOCK_TOPIC


def _token(user_id):
    token, _ = create_access_token(str(user_id), "ws@stockapp.com")
    return token


@pytest.fixture
async def inactive_user_id(session_maker, seeded):
    async with session_maker() as s:
        user = await SecurityRepository(s).get_user_by_id(seeded["user_id"])
        user.is_active = False
        await s.commit()
    return seeded["user_id"]


def test_connect_sends_stats_and_answers_ping(seeded):
    client = TestClient(app)

    with client.websocket_connect(f"/ws/stock?token={_token(seeded['admin_id'])}") as ws:
        first = ws.receive_json()
        assert first["type"] == DASHBOARD_STATS_EVENT
        assert first["channel"] == STOCK_TOPIC
        assert first["payload"]["total_products"] == 0

        ws.send_text("ping")
        assert ws.receive_text() == "pong"


@pytest.mark.parametrize("token", ["", "not-a-jwt"])
def test_invalid_token_is_closed_with_4401(seeded, token):
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/stock?token={token}") as ws:
            ws.receive_text()

    assert exc.value.code == 4401


def test_unknown_user_is_closed_with_4401(seeded):
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/stock?token={_token(9999)}") as ws:
            ws.receive_text()

    assert exc.value.code == 4401


def test_inactive_user_is_closed_with_4401(inactive_user_id):
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/stock?token={_token(inactive_user_id)}") as ws:
            ws.receive_text()

    assert exc.value.code == 4401
