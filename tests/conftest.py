import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from dorm_chat.core.config import Settings
from dorm_chat.main import create_app
from dorm_chat.models.identity import Identity, IdentityKind
from dorm_chat.services.chat_store import InMemoryChatStore
from dorm_chat.utils.auth import create_access_token
from dorm_chat.websockets.connection import Connection
from dorm_chat.websockets.gateway import ChatGateway


@pytest.fixture
def test_settings() -> Settings:
    """테스트용 설정 (정리 루프 비활성화)"""
    return Settings(room_idle_ttl_seconds=0, welcome_message_enabled=True)


@pytest.fixture
def store() -> InMemoryChatStore:
    return InMemoryChatStore()


@pytest_asyncio.fixture
async def gateway(store, test_settings) -> ChatGateway:
    """이벤트 루프 안에서 생성한 게이트웨이"""
    gw = ChatGateway(store=store, settings=test_settings)
    yield gw
    await gw.persister.drain()


@pytest.fixture
def admin_identity() -> Identity:
    return Identity(kind=IdentityKind.ADMIN, subject_id="admin-1", name="Admin One")


@pytest.fixture
def tenant_identity() -> Identity:
    return Identity(kind=IdentityKind.TENANT, subject_id="42", name="Nok")


@pytest.fixture
def guest_connection() -> Connection:
    return Connection(Identity(kind=IdentityKind.GUEST))


@pytest.fixture
def admin_token() -> str:
    """관리자 토큰"""
    return create_access_token(data={"sub": "admin-1", "role": "admin", "name": "Admin One"})


@pytest.fixture
def second_admin_token() -> str:
    return create_access_token(data={"sub": "admin-2", "role": "admin", "name": "Admin Two"})


@pytest.fixture
def tenant_token() -> str:
    """입주자 토큰"""
    return create_access_token(data={"sub": "user-9", "role": "tenant", "tenantId": "42", "name": "Nok"})


@pytest.fixture
def app(store, test_settings):
    return create_app(store=store, settings=test_settings)


@pytest.fixture
def client(app):
    """테스트용 동기 HTTP/WebSocket 클라이언트 (lifespan 포함)"""
    with TestClient(app) as test_client:
        yield test_client


def events_of(connection: Connection, event_type: str):
    """연결 송신 큐에서 특정 타입 이벤트만 추출"""
    return [event["data"] for event in connection.drain_events() if event["type"] == event_type]


def receive_until(websocket, event_type: str, limit: int = 20):
    """원하는 타입의 이벤트가 올 때까지 수신"""
    for _ in range(limit):
        event = websocket.receive_json()
        if event["type"] == event_type:
            return event["data"]
    raise AssertionError(f"did not receive {event_type!r} within {limit} events")
