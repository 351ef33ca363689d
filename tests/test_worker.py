"""
Tests for the stdio worker

Verifies:
- The online status is the first line written
- Messages are read one JSON document per line and answered in kind
- Invalid lines are reported on the fault channel without stopping the worker
- Exceptions raised by evaluated code, SystemExit included, never stop the worker
- Closing the input releases runs that wait for a reply
"""

import io
import json

import pytest

from evalkernel.application.channel import StdioChannel, encode_message
from evalkernel.application.schema.events import StatusEvent
from evalkernel.application.worker import KernelWorker
from evalkernel.infrastructure.config.settings import WorkerSettings


def make_input(*messages) -> io.StringIO:
    lines = [m if isinstance(m, str) else json.dumps(m) for m in messages]
    return io.StringIO("".join(line + "\n" for line in lines))


async def serve(*messages, settings=None):
    output = io.StringIO()
    worker = KernelWorker(settings, input_stream=make_input(*messages), output_stream=output)
    await worker.serve()
    return [json.loads(line) for line in output.getvalue().splitlines()]


@pytest.mark.asyncio
async def test_worker_announces_online_first():
    written = await serve()

    assert written[0]["status"] == "online"
    assert len(written) == 1


@pytest.mark.asyncio
async def test_worker_answers_run_and_inspect():
    written = await serve(
        ["run", "1+1", "ctx1"],
        ["inspect", "[1, 2]", "ctx1"],
    )

    assert written[1] == {"id": "ctx1", "mime": {"text/plain": "2"}, "end": True}
    assert written[2]["inspection"]["type"] == "list"
    assert written[2]["inspection"]["length"] == 2


@pytest.mark.asyncio
async def test_worker_reports_invalid_json_and_keeps_going():
    written = await serve(
        "{not json",
        "",
        ["run", "'still alive'", "ctx1"],
    )

    assert "MalformedMessage" in written[1]["stderr"]
    assert written[2]["mime"] == {"text/plain": "'still alive'"}


@pytest.mark.asyncio
async def test_worker_request_reply_round_trip():
    written = await serve(
        ["run", "await kernel.request('ping')", "ctx1"],
        ["reply", "pong", "ctx1", 1],
    )

    assert ["request", "ping", "ctx1", 1] in written
    assert {"id": "ctx1", "mime": {"text/plain": "'pong'"}, "end": True} in written


@pytest.mark.asyncio
async def test_worker_stops_when_input_closes_with_pending_request():
    written = await serve(["run", "await kernel.request('ping')", "ctx1"])

    assert written[-1] == ["request", "ping", "ctx1", 1]


@pytest.mark.asyncio
async def test_worker_survives_system_exit_from_code():
    written = await serve(
        ["run", "raise SystemExit(3)", "ctx1"],
        ["run", "1", "ctx1"],
    )

    assert written[0]["status"] == "online"
    assert written[1]["error"]["ename"] == "SystemExit"
    assert written[2] == {"id": "ctx1", "mime": {"text/plain": "1"}, "end": True}


@pytest.mark.asyncio
async def test_worker_defer_inside_awaited_value_sends_no_result():
    written = await serve(["run", "async def f():\n    kernel.defer()\n    return 1\nf()", "ctx1"])

    assert written[1:] == []


@pytest.mark.asyncio
async def test_worker_debug_mode_keeps_channel_to_protocol_messages():
    written = await serve(["run", "1", "ctx1"], settings=WorkerSettings(debug=True, log_level="DEBUG"))

    assert written == [written[0], {"id": "ctx1", "mime": {"text/plain": "1"}, "end": True}]
    assert written[0]["status"] == "online"


@pytest.mark.asyncio
async def test_worker_uses_default_context_config():
    code = "async def f():\n    return 5\nf()"

    written = await serve(["run", code, "ctx1"], settings=WorkerSettings(await_execution=True))

    assert written[1]["mime"] == {"text/plain": "5"}


def test_stdio_channel_writes_json_lines():
    stream = io.StringIO()
    channel = StdioChannel(stream)

    assert channel.send({"id": "a", "end": True})
    assert channel.send(["request", {"x": 1}, "a", 1])

    assert stream.getvalue().splitlines() == [
        '{"id": "a", "end": true}',
        '["request", {"x": 1}, "a", 1]',
    ]


def test_stdio_channel_stops_after_closed_stream():
    stream = io.StringIO()
    channel = StdioChannel(stream)
    stream.close()

    assert not channel.send({"id": "a"})
    assert channel.closed
    assert not channel.send({"id": "b"})


def test_encode_message_handles_models_and_unserializable_values():
    assert json.loads(encode_message(StatusEvent(status="online")))["status"] == "online"
    assert json.loads(encode_message({"value": {1, 2}})) == {"value": "{1, 2}"}
