"""Tests for the adapter HTTP surface.

Covers the webhook receiver, the stats endpoint and the health probes.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from scm_github.api.app import create_application as create_app
from scm_github.errors import CircuitOpenError, NotFoundError
from scm_github.services.circuit_breaker import CircuitState


@pytest.fixture
def app(scm):
    return create_app(scm=scm)


async def _post_webhook(app, headers, body):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.post("/webhooks/github", content=body, headers=headers)


class TestWebhookEndpoint:
    async def test_push_event(self, app, make_webhook, push_payload):
        headers, body = make_webhook("push", push_payload)

        response = await _post_webhook(app, headers, body)

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "repo"
        assert data["action"] == "push"
        assert data["branch"] == "master"
        assert data["sha"] == "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c"
        assert data["scm_context"] == "github:github.com"
        assert "X-Request-ID" in response.headers

    async def test_pull_request_event(self, app, make_webhook, pr_payload):
        pr_payload["action"] = "synchronize"
        headers, body = make_webhook("pull_request", pr_payload)

        response = await _post_webhook(app, headers, body)

        assert response.status_code == 200
        assert response.json()["action"] == "synchronized"
        assert response.json()["pr_ref"] == "pull/1/merge"

    async def test_ping_event(self, app, make_webhook, pr_payload):
        headers, body = make_webhook("ping", pr_payload)

        response = await _post_webhook(app, headers, body)

        assert response.status_code == 200
        assert response.json()["type"] == "ping"

    async def test_bad_signature(self, app, make_webhook, push_payload):
        headers, body = make_webhook("push", push_payload, secret="wrong")

        response = await _post_webhook(app, headers, body)

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid x-hub-signature"}

    async def test_untracked_action_is_no_content(self, app, make_webhook, pr_payload):
        pr_payload["action"] = "labeled"
        headers, body = make_webhook("pull_request", pr_payload)

        response = await _post_webhook(app, headers, body)

        assert response.status_code == 204

    async def test_unsupported_event_is_no_content(self, app, make_webhook, push_payload):
        headers, body = make_webhook("issues", push_payload)

        response = await _post_webhook(app, headers, body)

        assert response.status_code == 204

    async def test_request_id_is_echoed(self, app, make_webhook, push_payload):
        headers, body = make_webhook("push", push_payload)
        headers["X-Request-ID"] = "req-123"

        response = await _post_webhook(app, headers, body)

        assert response.headers["X-Request-ID"] == "req-123"


class TestErrorHandlers:
    async def test_not_found(self, app, scm, make_webhook, push_payload):
        headers, body = make_webhook("push", push_payload)

        with patch.object(
            scm, "parse_hook", new_callable=AsyncMock, side_effect=NotFoundError("Not Found")
        ):
            response = await _post_webhook(app, headers, body)

        assert response.status_code == 404

    async def test_circuit_open(self, app, scm, make_webhook, push_payload):
        headers, body = make_webhook("push", push_payload)

        with patch.object(
            scm,
            "parse_hook",
            new_callable=AsyncMock,
            side_effect=CircuitOpenError("github:github.com"),
        ):
            response = await _post_webhook(app, headers, body)

        assert response.status_code == 503


class TestStatsEndpoint:
    async def test_stats(self, app, scm, github):
        github.respond("get_by_id", {"id": 920414, "full_name": "screwdriver-cd/models"})
        await scm.lookup_scm_uri("github.com:920414:master", "token")

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/stats")

        assert response.status_code == 200
        stats = response.json()["github:github.com"]
        assert stats["requests"]["total"] == 1
        assert stats["breaker"]["state"] == "closed"

    async def test_stats_without_adapter(self):
        app = create_app()

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/stats")

        assert response.status_code == 503


class TestHealth:
    async def test_health(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_ready(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"scm": "healthy", "breaker": "closed"},
        }

    async def test_not_ready_while_breaker_open(self, app, scm):
        for _ in range(6):
            scm.executor.breaker.record_failure()
        assert scm.executor.breaker.state == CircuitState.OPEN

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["breaker"] == "open"

    async def test_not_ready_without_adapter(self):
        app = create_app()

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"scm": "unhealthy"}
