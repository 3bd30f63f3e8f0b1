import httpx
import pytest

from aichild.core.config import Settings
from aichild.core.flags import FeatureFlags
from aichild.core.storage import MemoryUploadStore
from aichild.services.replicate import ReplicateClient

BASE_URL = "https://replicate.test/v1"


class FakeSleep:
    """Records requested waits instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class FakeReplicate:
    """
    httpx.MockTransport handler standing in for the predictions API.

    `create` answers POST /predictions; `polls` answer GET /predictions/{id} in
    order, repeating the last one. An item is a JSON dict, an httpx.Response,
    or "connect_error" / "timeout".
    """

    def __init__(self, create, polls=()):
        self.create = create
        self.polls = list(polls)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            return self._respond(self.create, request, 201)
        item = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
        return self._respond(item, request, 200)

    @staticmethod
    def _respond(item, request: httpx.Request, status_code: int) -> httpx.Response:
        if item == "connect_error":
            raise httpx.ConnectError("connection refused", request=request)
        if item == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(status_code, json=item)

    @property
    def submit_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def poll_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def client(self, sleep=None, api_token: str = "test-token") -> ReplicateClient:
        return ReplicateClient(
            api_token=api_token,
            base_url=BASE_URL,
            model_version="smoosh-sh/baby-mystic:test",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
            sleep=sleep or FakeSleep(),
        )


def prediction(status: str, output=None, error=None, pid: str = "pred-1", **extra) -> dict:
    body = {"id": pid, "status": status, "output": output, "error": error}
    body.update(extra)
    return body


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def fake_replicate():
    return FakeReplicate


@pytest.fixture
def make_prediction():
    return prediction


@pytest.fixture
def settings_factory():
    def make(**overrides) -> Settings:
        values = {
            "REPLICATE_API_TOKEN": "test-token",
            "REPLICATE_BASE_URL": BASE_URL,
            "REPLICATE_POLL_INTERVAL": 2.0,
            "REPLICATE_POLL_MAX_ATTEMPTS": 5,
            "MOCK_IMAGE_URL": "https://mock.test/baby.jpg",
            "URL_DENYLIST": "nsfw,placeholder",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return make


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture
def flags_factory():
    def make(**overrides) -> FeatureFlags:
        return FeatureFlags(_env_file=None, **overrides)
    return make


@pytest.fixture
def flags(flags_factory) -> FeatureFlags:
    return flags_factory(
        FF_USE_DISK_STORAGE=False,
        FF_SEND_PARENT_IMAGES=True,
        FF_ON_MISSING_TOKEN="mock",
        FF_ON_API_FAILURE="error",
    )


@pytest.fixture
def store() -> MemoryUploadStore:
    return MemoryUploadStore()
