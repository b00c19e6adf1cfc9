"""Integration tests for API endpoints."""

import asyncio
from uuid import UUID, uuid4

import httpx
import pytest
from httpx import AsyncClient
from sse_starlette import sse

ENVIRONMENT_URL = "https://contoso.crm.dynamics.com"


async def wait_for_terminal(client: AsyncClient, deployment_id: str) -> dict:
    """Poll the status endpoint until the deployment settles."""
    for _ in range(500):
        response = await client.get(f"/v1/deployments/{deployment_id}/status")
        data = response.json()
        if data["status"] in ("completed", "failed"):
            return data
        await asyncio.sleep(0.01)
    raise AssertionError("deployment did not finish")


def deployment_form(**overrides) -> dict:
    form = {
        "theme_name": "Acme Landing",
        "environment_url": ENVIRONMENT_URL,
        "website_id": "site-1",
        "theme_id": "theme-acme",
    }
    form.update(overrides)
    return form


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        """Health reflects credentials and the worker pool."""
        response = await client.get("/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("healthy", "degraded")
        assert data["status"] == ("healthy" if data["dataverse_configured"] else "degraded")
        assert "version" in data
        assert data["workers"]["concurrency"] == 2
        assert data["workers"]["conflict_policy"] == "reject"

    @pytest.mark.asyncio
    async def test_request_id_header(self, client: AsyncClient):
        response = await client.get("/v1/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        assert response.headers["X-Response-Time"].endswith("ms")


class TestDeploymentEndpoints:
    """Tests for deployment endpoints."""

    @pytest.mark.asyncio
    async def test_deploy_and_poll(self, client: AsyncClient, theme_archive: bytes, site_client):
        """Upload a theme, then poll until it completes."""
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(),
            files={"theme_file": ("acme.zip", theme_archive, "application/zip")},
        )

        assert response.status_code == 202
        accepted = response.json()
        assert accepted["theme_id"] == "theme-acme"
        assert accepted["status"] == "pending"

        status = await wait_for_terminal(client, accepted["deployment_id"])
        assert status["status"] == "completed"
        assert status["progress_percent"] == 100
        assert status["website_url"] == "https://site-1.powerappsportals.com"
        assert status["recent_logs"][-1]["message"] == "Deployment completed successfully!"
        assert len(site_client.uploaded) == 4

        detail = await client.get(f"/v1/deployments/{accepted['deployment_id']}")
        assert detail.status_code == 200
        body = detail.json()
        assert body["source_type"] == "upload"
        assert body["source_name"] == "acme.zip"
        assert body["uploaded_files"] == 4
        assert body["logs"][0]["message"] == "Deployment initiated"

    @pytest.mark.asyncio
    async def test_deploy_with_branding(self, client: AsyncClient, theme_archive: bytes, site_client):
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(organization_id="org-acme", apply_branding="true"),
            files={"theme_file": ("acme.zip", theme_archive, "application/zip")},
        )
        status = await wait_for_terminal(client, response.json()["deployment_id"])

        assert status["status"] == "completed"
        assert b"<h1>Acme</h1>" in site_client.uploaded_content("index.html")

    @pytest.mark.asyncio
    async def test_failed_deployment_reports_error(self, client: AsyncClient, make_archive):
        archive = make_archive({"readme.txt": "no entry point"})
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(),
            files={"theme_file": ("broken.zip", archive, "application/zip")},
        )
        status = await wait_for_terminal(client, response.json()["deployment_id"])

        assert status["status"] == "failed"
        assert status["progress_percent"] == 0
        assert "Missing index.html" in status["error_message"]

    @pytest.mark.asyncio
    async def test_rejects_non_zip_upload(self, client: AsyncClient):
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(),
            files={"theme_file": ("theme.tar.gz", b"data", "application/gzip")},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_a_source(self, client: AsyncClient):
        response = await client.post("/v1/deployments", data=deployment_form())

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_gallery_theme(self, client: AsyncClient):
        response = await client.post(
            "/v1/deployments", data=deployment_form(gallery_id="gallery-missing")
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Gallery theme not found"

    @pytest.mark.asyncio
    async def test_rejects_more_than_one_source(self, client: AsyncClient, theme_archive: bytes):
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(gallery_id="gallery-starter"),
            files={"theme_file": ("acme.zip", theme_archive, "application/zip")},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_environment_url(self, client: AsyncClient, theme_archive: bytes):
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(environment_url="not-a-url"),
            files={"theme_file": ("acme.zip", theme_archive, "application/zip")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATIONERROR"

    @pytest.mark.asyncio
    async def test_conflicting_deployment(self, client: AsyncClient, theme_archive: bytes, site_client):
        site_client.gate = asyncio.Event()
        files = {"theme_file": ("acme.zip", theme_archive, "application/zip")}

        first = await client.post("/v1/deployments", data=deployment_form(), files=files)
        second = await client.post("/v1/deployments", data=deployment_form(), files=files)

        assert first.status_code == 202
        assert second.status_code == 409
        assert second.json()["error"]["details"]["active_deployment_id"] == first.json()["deployment_id"]

        site_client.gate.set()
        await wait_for_terminal(client, first.json()["deployment_id"])

    @pytest.mark.asyncio
    async def test_cancel(self, client: AsyncClient, theme_archive: bytes, site_client):
        site_client.gate = asyncio.Event()
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(),
            files={"theme_file": ("acme.zip", theme_archive, "application/zip")},
        )
        deployment_id = response.json()["deployment_id"]

        cancel = await client.post(
            f"/v1/deployments/{deployment_id}/cancel", json={"reason": "wrong site"}
        )
        assert cancel.status_code == 202

        site_client.gate.set()
        status = await wait_for_terminal(client, deployment_id)
        assert status["status"] == "failed"
        assert status["error_message"] == "Deployment cancelled: wrong site"

    @pytest.mark.asyncio
    async def test_list_deployments(self, client: AsyncClient, theme_archive: bytes):
        files = {"theme_file": ("acme.zip", theme_archive, "application/zip")}
        for theme_id in ("theme-a", "theme-b"):
            response = await client.post("/v1/deployments", data=deployment_form(theme_id=theme_id), files=files)
            await wait_for_terminal(client, response.json()["deployment_id"])

        response = await client.get("/v1/deployments", params={"theme_id": "theme-a"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["deployments"][0]["theme_id"] == "theme-a"
        assert data["deployments"][0]["status"] == "completed"

        completed = await client.get("/v1/deployments", params={"status": "completed"})
        assert completed.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_unknown_deployment(self, client: AsyncClient):
        response = await client.get(f"/v1/deployments/{uuid4()}/status")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DEPLOYMENTNOTFOUNDERROR"


class TestStreamEndpoint:
    """Tests for the Server-Sent Events stream."""

    @pytest.fixture(autouse=True)
    def reset_sse_exit_event(self, monkeypatch):
        # Older sse-starlette releases keep a process-wide exit event bound to the first loop
        if hasattr(sse, "AppStatus"):
            monkeypatch.setattr(sse.AppStatus, "should_exit_event", None, raising=False)

    @pytest.mark.asyncio
    async def test_stream_of_finished_deployment(self, client: AsyncClient, theme_archive: bytes):
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(),
            files={"theme_file": ("acme.zip", theme_archive, "application/zip")},
        )
        deployment_id = response.json()["deployment_id"]
        await wait_for_terminal(client, deployment_id)

        stream = await client.get(f"/v1/deployments/{deployment_id}/stream")

        assert stream.status_code == 200
        assert "event: connected" in stream.text
        assert '"status":"completed"' in stream.text

    @pytest.mark.asyncio
    async def test_stream_receives_events_after_connecting(
        self, client: AsyncClient, theme_archive: bytes, site_client, events
    ):
        site_client.gate = asyncio.Event()
        response = await client.post(
            "/v1/deployments",
            data=deployment_form(),
            files={"theme_file": ("acme.zip", theme_archive, "application/zip")},
        )
        deployment_id = response.json()["deployment_id"]

        stream = asyncio.create_task(client.get(f"/v1/deployments/{deployment_id}/stream"))
        for _ in range(500):
            if UUID(deployment_id) in events._subscribers:
                break
            await asyncio.sleep(0.01)
        else:
            raise AssertionError("stream never subscribed")

        site_client.gate.set()
        result = await asyncio.wait_for(stream, timeout=5.0)

        assert "event: connected" in result.text
        assert "event: log" in result.text
        assert "event: deployment_complete" in result.text
        assert UUID(deployment_id) not in events._subscribers

    @pytest.mark.asyncio
    async def test_stream_unknown_deployment(self, client: AsyncClient, events):
        deployment_id = uuid4()

        response = await client.get(f"/v1/deployments/{deployment_id}/stream")

        assert response.status_code == 404
        assert deployment_id not in events._subscribers


class TestWebsiteEndpoints:
    """Tests for Power Pages website endpoints."""

    @pytest.mark.asyncio
    async def test_fetch_websites(self, client: AsyncClient, dataverse_handler: list):
        dataverse_handler[0] = lambda request: httpx.Response(
            200,
            json={"value": [{"powerpagesiteid": "site-1", "name": "Acme", "statecode": 0}]},
        )

        response = await client.post("/v1/websites/fetch", json={"environment_url": ENVIRONMENT_URL})

        assert response.status_code == 200
        assert response.json()["websites"] == [
            {"id": "site-1", "name": "Acme", "url": None, "active": True}
        ]

    @pytest.mark.asyncio
    async def test_fetch_websites_authentication_failure(self, client: AsyncClient, token_provider):
        token_provider.fail = True

        response = await client.post("/v1/websites/fetch", json={"environment_url": ENVIRONMENT_URL})

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "AUTHENTICATIONERROR"

    @pytest.mark.asyncio
    async def test_site_status(self, client: AsyncClient, dataverse_handler: list):
        def handler(request: httpx.Request) -> httpx.Response:
            if "adx_webfiles" in request.url.path:
                return httpx.Response(200, json={"value": [{"adx_webfileid": "wf-1"}]})
            return httpx.Response(200, json={"powerpagesiteid": "site-1", "name": "Acme", "statecode": 0})

        dataverse_handler[0] = handler

        response = await client.get(
            "/v1/websites/site-1/status", params={"environment_url": ENVIRONMENT_URL}
        )

        assert response.status_code == 200
        assert response.json()["file_count"] == 1

    @pytest.mark.asyncio
    async def test_blank_site_conflict(self, client: AsyncClient, dataverse_handler: list):
        dataverse_handler[0] = lambda request: httpx.Response(
            200,
            json={"value": [{"powerpagesiteid": "site-1", "name": "Acme", "statecode": 0}]},
        )

        response = await client.post(
            "/v1/websites/blank-site", json={"environment_url": ENVIRONMENT_URL, "name": "acme"}
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_blank_site_instructions(self, client: AsyncClient, dataverse_handler: list):
        dataverse_handler[0] = lambda request: httpx.Response(200, json={"value": []})

        response = await client.post(
            "/v1/websites/blank-site", json={"environment_url": ENVIRONMENT_URL, "name": "Acme Portal"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["requires_manual_creation"] is True
        assert len(data["steps"]) == 6
