"""Tests for event_forwarder.graph_client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
import respx

from event_forwarder.config import GraphConfig
from event_forwarder.graph_client import SCOPES, GraphAuthError, GraphClient

BASE = "https://graph.test/v1.0"


def _msal(token_result: dict) -> MagicMock:
    app = MagicMock()
    app.acquire_token_for_client.return_value = token_result
    return MagicMock(return_value=app)


class TestGraphClient:
    def test_mailbox_path(self, graph_config: GraphConfig):
        assert GraphClient(graph_config).mailbox_path == "/users/watcher@example.com"

    @pytest.mark.asyncio
    async def test_start_builds_msal_app(self, graph_config: GraphConfig):
        factory = _msal({"access_token": "tok"})
        with patch("event_forwarder.graph_client.ConfidentialClientApplication", factory):
            client = GraphClient(graph_config)
            await client.start()
            await client.stop()

        kwargs = factory.call_args.kwargs
        assert kwargs["client_id"] == "client-abc"
        assert kwargs["client_credential"] == "s3cret"
        assert kwargs["authority"] == "https://login.microsoftonline.com/tenant-123"

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self, graph_config: GraphConfig):
        await GraphClient(graph_config).stop()  # should not raise

    @pytest.mark.asyncio
    async def test_request_not_started_raises(self, graph_config: GraphConfig):
        with pytest.raises(AssertionError, match="not started"):
            await GraphClient(graph_config).get_json("/me")

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_json_sends_bearer_and_prefer(self, graph_config: GraphConfig):
        route = respx.get(f"{BASE}/users/watcher@example.com").respond(200, json={"id": "u1"})
        factory = _msal({"access_token": "tok"})

        with patch("event_forwarder.graph_client.ConfidentialClientApplication", factory):
            client = GraphClient(graph_config)
            await client.start()
            try:
                payload = await client.get_json(client.mailbox_path)
            finally:
                await client.stop()

        assert payload == {"id": "u1"}
        request = route.calls[0].request
        assert request.headers["authorization"] == "Bearer tok"
        assert 'IdType="ImmutableId"' in request.headers["prefer"]
        factory.return_value.acquire_token_for_client.assert_called_with(scopes=SCOPES)

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_json_body_and_empty_response(self, graph_config: GraphConfig):
        route = respx.post(f"{BASE}/things").respond(202)

        with patch(
            "event_forwarder.graph_client.ConfidentialClientApplication",
            _msal({"access_token": "tok"}),
        ):
            client = GraphClient(graph_config)
            await client.start()
            try:
                result = await client.post_json("/things", {"name": "x"})
            finally:
                await client.stop()

        assert result == {}
        assert json.loads(route.calls[0].request.content) == {"name": "x"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_raises(self, graph_config: GraphConfig):
        respx.delete(f"{BASE}/things/1").respond(403)

        with patch(
            "event_forwarder.graph_client.ConfidentialClientApplication",
            _msal({"access_token": "tok"}),
        ):
            client = GraphClient(graph_config)
            await client.start()
            try:
                with pytest.raises(httpx.HTTPStatusError):
                    await client.delete("/things/1")
            finally:
                await client.stop()

    @pytest.mark.asyncio
    @respx.mock
    async def test_extra_headers_are_merged(self, graph_config: GraphConfig):
        route = respx.get(f"{BASE}/users").respond(200, json={"value": []})

        with patch(
            "event_forwarder.graph_client.ConfidentialClientApplication",
            _msal({"access_token": "tok"}),
        ):
            client = GraphClient(graph_config)
            await client.start()
            try:
                await client.get_json("/users", headers={"ConsistencyLevel": "eventual"})
            finally:
                await client.stop()

        headers = route.calls[0].request.headers
        assert headers["consistencylevel"] == "eventual"
        assert headers["authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_token_failure_raises_auth_error(self, graph_config: GraphConfig):
        factory = _msal({"error": "invalid_client", "error_description": "bad secret"})

        with patch("event_forwarder.graph_client.ConfidentialClientApplication", factory):
            client = GraphClient(graph_config)
            await client.start()
            try:
                with pytest.raises(GraphAuthError, match="bad secret"):
                    await client.get_json("/me")
            finally:
                await client.stop()
