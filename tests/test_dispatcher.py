"""Tests for RequestDispatcher against a mocked relay."""

from __future__ import annotations

import json

import httpx
import pytest

from cmdgen.dispatcher import RequestDispatcher, build_payload
from cmdgen.models import Candidate, ExplainResult, GenerateResult, Mode

from .helpers import CONTEXT, sse_body


class RelayStub:
    """Records relay requests and answers each with a prepared response."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _dispatcher(stub):
    reported = []
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return RequestDispatcher(client, "http://relay.test/", report=reported.append), reported


def _stream(*contents: str) -> httpx.Response:
    return httpx.Response(
        200, content=sse_body(*contents), headers={"content-type": "text/event-stream"}
    )


@pytest.mark.asyncio
async def test_explain_round_trip_through_relay():
    stub = RelayStub(_stream('{"explanation": ', '"Lists directory contents."}'))
    dispatcher, reported = _dispatcher(stub)

    result = await dispatcher.dispatch(Mode.EXPLAIN, "ls", CONTEXT)

    assert result == ExplainResult("Lists directory contents.")
    assert reported == []
    assert len(stub.requests) == 1
    request = stub.requests[0]
    assert request.method == "POST"
    assert request.url == "http://relay.test/api/proxy"
    body = json.loads(request.content)
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert body["messages"][1]["content"] == "ls"
    assert "explanation" in body["messages"][0]["content"]


@pytest.mark.asyncio
async def test_generate_passes_existing_commands_into_prompt():
    stub = RelayStub(_stream('{"commands": [{"command": "ls -la", "description": "list files"}]}'))
    dispatcher, _ = _dispatcher(stub)

    result = await dispatcher.dispatch(Mode.GENERATE, "list files", CONTEXT, ["ls", "dir"])

    assert result == GenerateResult([Candidate("ls -la", "list files")])
    system_prompt = json.loads(stub.requests[0].content)["messages"][0]["content"]
    assert "- ls\n- dir" in system_prompt


@pytest.mark.asyncio
async def test_malformed_response_reports_single_error():
    stub = RelayStub(_stream("not json at all"))
    dispatcher, reported = _dispatcher(stub)

    assert await dispatcher.dispatch(Mode.EXPLAIN, "ls", CONTEXT) is None
    assert len(reported) == 1
    assert "empty or malformed" in reported[0]


@pytest.mark.asyncio
async def test_deeply_nested_response_is_reported_not_raised():
    stub = RelayStub(_stream("[" * 2500, "[" * 2500))
    dispatcher, reported = _dispatcher(stub)

    assert await dispatcher.dispatch(Mode.EXPLAIN, "ls", CONTEXT) is None
    assert len(reported) == 1
    assert "empty or malformed" in reported[0]


@pytest.mark.asyncio
async def test_empty_stream_is_a_parse_failure():
    stub = RelayStub(httpx.Response(200, content=b"data: [DONE]\n\n"))
    dispatcher, reported = _dispatcher(stub)

    assert await dispatcher.dispatch(Mode.GENERATE, "x", CONTEXT) is None
    assert len(reported) == 1


@pytest.mark.asyncio
async def test_relay_error_message_is_reported():
    stub = RelayStub(
        httpx.Response(500, json={"error": {"message": "Upstream API key is not configured."}})
    )
    dispatcher, reported = _dispatcher(stub)

    assert await dispatcher.dispatch(Mode.EXPLAIN, "ls", CONTEXT) is None
    assert reported == ["Upstream API key is not configured."]


@pytest.mark.asyncio
async def test_relay_error_without_body_reports_status():
    stub = RelayStub(httpx.Response(503, content=b"busy"))
    dispatcher, reported = _dispatcher(stub)

    assert await dispatcher.dispatch(Mode.EXPLAIN, "ls", CONTEXT) is None
    assert reported == ["HTTP 503"]


@pytest.mark.asyncio
async def test_connection_failure_is_reported_not_raised():
    stub = RelayStub(httpx.ConnectError("All connection attempts failed"))
    dispatcher, reported = _dispatcher(stub)

    assert await dispatcher.dispatch(Mode.GENERATE, "x", CONTEXT) is None
    assert reported == ["All connection attempts failed"]
    assert len(stub.requests) == 1


@pytest.mark.asyncio
async def test_stream_breaking_mid_way_is_reported():
    async def broken():
        yield sse_body('{"explanation": "part', done=False)
        raise httpx.ReadError("peer closed connection")

    stub = RelayStub(httpx.Response(200, content=broken()))
    dispatcher, reported = _dispatcher(stub)

    assert await dispatcher.dispatch(Mode.EXPLAIN, "ls", CONTEXT) is None
    assert reported == ["peer closed connection"]


def test_build_payload_shape():
    payload = build_payload(Mode.ERROR, "Error Message:\nboom", CONTEXT)
    assert list(payload) == ["messages"]
    system, user = payload["messages"]
    assert system["role"] == "system" and "solution" in system["content"]
    assert user == {"role": "user", "content": "Error Message:\nboom"}
