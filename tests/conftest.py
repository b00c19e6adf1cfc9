"""Pytest configuration and fixtures."""

import asyncio
import io
import zipfile
from typing import Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from theme_deployer.api.deps import get_dataverse, get_deployments, get_events, get_tokens
from theme_deployer.core.deployments import DeploymentService
from theme_deployer.core.events import EventBus
from theme_deployer.core.exceptions import (
    AuthenticationError,
    CacheInvalidationError,
    RemoteApiError,
)
from theme_deployer.core.gallery import InMemoryGalleryStore
from theme_deployer.core.orchestrator import DeploymentOrchestrator
from theme_deployer.core.organizations import InMemoryBrandingStore
from theme_deployer.core.store import DeploymentStore
from theme_deployer.core.worker import DeploymentWorker
from theme_deployer.main import app
from theme_deployer.models.branding import BrandColors, BrandingProfile, Organization
from theme_deployer.models.deployment import (
    DeploymentLogEntry,
    DeploymentRecord,
    EnvironmentTarget,
)
from theme_deployer.models.gallery import GalleryTheme
from theme_deployer.models.theme import ThemeFile
from theme_deployer.models.website import Website
from theme_deployer.services.dataverse import DataverseClient
from theme_deployer.services.publisher import RemotePublisher

ENVIRONMENT_URL = "https://contoso.crm.dynamics.com"
WEBSITE_ID = "3f1c2b7e-0000-4000-8000-000000000001"


class FakeTokenProvider:
    """Token provider double that can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[str] = []

    async def get_token(self, environment_url: str) -> str:
        self.calls.append(environment_url)
        if self.fail:
            raise AuthenticationError(environment_url, "invalid client secret")
        return "test-token"


class FakeSiteClient:
    """Remote site double recording every upload attempt."""

    def __init__(self) -> None:
        self.attempted: list[str] = []
        self.uploaded: list[ThemeFile] = []
        self.failing_paths: set[str] = set()
        self.fail_cache = False
        self.cache_calls = 0
        self.websites: list[Website] = []
        # When set, every upload blocks until the event fires
        self.gate: asyncio.Event | None = None

    async def upload_file(self, target: EnvironmentTarget, token: str, file: ThemeFile) -> dict:
        self.attempted.append(file.path)
        if self.gate is not None:
            await self.gate.wait()
        if file.path in self.failing_paths:
            raise RemoteApiError("adx_webfiles", 500, "internal error")
        self.uploaded.append(file)
        return {"adx_webfileid": f"wf-{len(self.uploaded)}"}

    async def invalidate_cache(self, target: EnvironmentTarget, token: str) -> None:
        self.cache_calls += 1
        if self.fail_cache:
            raise CacheInvalidationError(target.website_id, "action not available")

    async def list_websites(self, environment_url: str, token: str) -> list[Website]:
        return self.websites

    def uploaded_content(self, path: str) -> bytes:
        return next(f.content for f in self.uploaded if f.path == path)


def build_archive(entries: dict[str, bytes | str], directories: tuple[str, ...] = ()) -> bytes:
    """Build a zip archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for directory in directories:
            archive.writestr(zipfile.ZipInfo(directory.rstrip("/") + "/"), b"")
        for path, content in entries.items():
            archive.writestr(path, content)
    return buffer.getvalue()


@pytest.fixture
def make_archive() -> Callable[..., bytes]:
    return build_archive


@pytest.fixture
def theme_entries() -> dict[str, str]:
    """A small but complete Bootstrap theme."""
    return {
        "index.html": (
            "<html><head><title>{{ORG_NAME}}</title></head>"
            "<body style=\"color: {{PRIMARY_COLOR}}\"><h1>{{ORG_NAME}}</h1></body></html>"
        ),
        "css/styles.css": "body { font-family: {{BODY_FONT}}; }",
        "css/bootstrap.min.css": ".container { width: 100%; }",
        "js/bootstrap.bundle.min.js": "console.log('bootstrap');",
    }


@pytest.fixture
def theme_archive(theme_entries: dict[str, str]) -> bytes:
    return build_archive(theme_entries, directories=("css", "js"))


@pytest.fixture
def acme_branding() -> BrandingProfile:
    return BrandingProfile(
        organization_name="Acme",
        colors=BrandColors(primary="#ff0000"),
    )


@pytest.fixture
def target() -> EnvironmentTarget:
    return EnvironmentTarget(environment_url=ENVIRONMENT_URL, website_id=WEBSITE_ID)


@pytest.fixture
def token_provider() -> FakeTokenProvider:
    return FakeTokenProvider()


@pytest.fixture
def site_client() -> FakeSiteClient:
    return FakeSiteClient()


@pytest.fixture
def store() -> DeploymentStore:
    """Create a fresh deployment store for tests."""
    return DeploymentStore()


@pytest.fixture
def events() -> EventBus:
    """Create a fresh event bus."""
    return EventBus()


@pytest.fixture
def publisher(token_provider: FakeTokenProvider, site_client: FakeSiteClient) -> RemotePublisher:
    return RemotePublisher(token_provider, site_client)


@pytest.fixture
def orchestrator(
    publisher: RemotePublisher, store: DeploymentStore, events: EventBus
) -> DeploymentOrchestrator:
    """Create orchestrator with test dependencies."""
    return DeploymentOrchestrator(publisher=publisher, store=store, events=events)


@pytest.fixture
def create_record(store: DeploymentStore):
    """Factory persisting a pending deployment record."""

    async def _create(theme_id: str = "theme-1", **fields) -> DeploymentRecord:
        record = DeploymentRecord(
            theme_id=theme_id,
            theme_name="Acme Landing",
            environment_url=ENVIRONMENT_URL,
            website_id=WEBSITE_ID,
            logs=[DeploymentLogEntry(message="Deployment initiated")],
            **fields,
        )
        return await store.create(record)

    return _create


@pytest.fixture
def branding_store() -> InMemoryBrandingStore:
    return InMemoryBrandingStore(
        [
            Organization(
                id="org-acme",
                name="Acme",
                branding=BrandingProfile(colors=BrandColors(primary="#ff0000")),
            )
        ]
    )


@pytest.fixture
def gallery_store() -> InMemoryGalleryStore:
    return InMemoryGalleryStore(
        [
            GalleryTheme(
                id="gallery-starter",
                name="Bootstrap Starter",
                download_url="https://themes.example.com/starter.zip",
            )
        ]
    )


@pytest.fixture
async def worker(orchestrator: DeploymentOrchestrator):
    """Worker pool bound to the test event loop."""
    pool = DeploymentWorker(orchestrator, concurrency=2)
    yield pool
    await pool.shutdown(timeout=2.0)


@pytest.fixture
def service(
    store: DeploymentStore,
    worker: DeploymentWorker,
    branding_store: InMemoryBrandingStore,
    gallery_store: InMemoryGalleryStore,
) -> DeploymentService:
    return DeploymentService(
        store=store,
        worker=worker,
        branding_store=branding_store,
        gallery_store=gallery_store,
        conflict_policy="reject",
        recent_log_limit=20,
    )


@pytest.fixture
def dataverse_handler() -> list[Callable[[httpx.Request], httpx.Response]]:
    """Holder for the mocked Dataverse request handler used by API tests."""
    return [lambda request: httpx.Response(404)]


@pytest.fixture
async def client(
    service: DeploymentService,
    events: EventBus,
    token_provider: FakeTokenProvider,
    dataverse_handler: list,
) -> AsyncClient:
    """Create an async test client wired to the test doubles."""
    transport = httpx.MockTransport(lambda request: dataverse_handler[0](request))
    dataverse_http = httpx.AsyncClient(transport=transport)

    app.dependency_overrides[get_deployments] = lambda: service
    app.dependency_overrides[get_events] = lambda: events
    app.dependency_overrides[get_tokens] = lambda: token_provider
    app.dependency_overrides[get_dataverse] = lambda: DataverseClient(http_client=dataverse_http)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await dataverse_http.aclose()
