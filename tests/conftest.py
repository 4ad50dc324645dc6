"""
Shared pytest fixtures — in-memory SQLite, FastAPI TestClient and a mocked
Gemini API.
"""
import uuid

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fintrack.database import Base, get_db
from fintrack.models import UserModel
from fintrack.main import app
from fintrack.routers.receipts import get_receipt_scanner
from fintrack.scanner import ReceiptScanner
from fintrack.scanner.endpoints import build_endpoints
from fintrack.security import RateLimiter, get_rate_limiter

API_BASE = "https://ai.test/v1beta"
MODELS = ["model-a", "model-b", "model-c", "model-d"]

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)


def gemini_reply(text: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"candidates": [{"content": {"parts": [{"text": text}]}}]},
    )


class FakeGemini:
    """Routes requests by model name; records every call."""

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.calls: list[httpx.Request] = []

    def model_of(self, request: httpx.Request) -> str:
        return request.url.path.rsplit("/", 1)[-1].split(":", 1)[0]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(self.model_of(request))
        if route is None:
            return httpx.Response(404, text="model not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        return route(request)

    @property
    def called_models(self) -> list[str]:
        return [self.model_of(r) for r in self.calls]


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def gemini():
    return FakeGemini()


@pytest.fixture()
def scanner(gemini):
    client = httpx.Client(transport=httpx.MockTransport(gemini))
    yield ReceiptScanner(
        api_key="test-key",
        endpoints=build_endpoints(API_BASE, MODELS),
        api_base=API_BASE,
        client=client,
    )
    client.close()


@pytest.fixture()
def limiter():
    return RateLimiter(capacity=100, refill_seconds=3600)


@pytest.fixture()
def client(db, scanner, limiter):
    def _override():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override
    app.dependency_overrides[get_receipt_scanner] = lambda: scanner
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def user(db):
    row = UserModel(
        id=str(uuid.uuid4()),
        clerk_user_id="clerk_123",
        email="ada@example.com",
        name="Ada",
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture()
def auth(user):
    return {"X-User-Id": user.clerk_user_id}
