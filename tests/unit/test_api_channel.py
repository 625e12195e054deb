"""Unit tests for the WebSocket job channel.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_channel.py

"""

from __future__ import annotations

import typing as typ

import falcon
import falcon.testing
import msgspec
import pytest

from costar.api.app import SOCKET_PATH, AppDependencies, create_app
from costar.api.channel import ChannelHub, encode_message, parse_job_request
from costar.api.errors import InvalidInputError
from costar.jobs.models import ChannelEvent, JobRequest, ServerStatus
from costar.jobs.scheduler import JobScheduler
from tests.helpers.fakes import InstantRunner


class _FakeSocket:
    """Collects sent text; optionally behaves like a closed socket."""

    def __init__(self, *, gone: bool = False) -> None:
        self.sent: list[str] = []
        self.gone = gone

    async def send_text(self, text: str) -> None:
        if self.gone:
            raise falcon.WebSocketDisconnected
        self.sent.append(text)


def _decode(text: str) -> tuple[str, typ.Any]:
    message = msgspec.json.decode(text)
    return message["event"], message["payload"]


@pytest.fixture
def runner() -> InstantRunner:
    """Return a runner that completes immediately."""
    return InstantRunner()


@pytest.fixture
def deps(runner: InstantRunner) -> AppDependencies:
    """Wire a scheduler to a fresh hub."""
    hub = ChannelHub()
    return AppDependencies(scheduler=JobScheduler(runner, hub), hub=hub)


class TestEncodeMessage:
    """Tests for the channel envelope."""

    def test_struct_payload_uses_camel_case(self) -> None:
        """Payload structs keep their wire names."""
        text = encode_message(ChannelEvent.STATUS, ServerStatus(connected_clients=2))
        assert _decode(text) == (
            "status",
            {"connectedClients": 2, "isRunning": False, "queueFull": False},
        )

    def test_plain_payload(self) -> None:
        """Text payloads are sent as JSON strings."""
        assert encode_message(ChannelEvent.MESSAGE, "hi") == (
            '{"event":"message","payload":"hi"}'
        )


class TestParseJobRequest:
    """Tests for ``jobs:add`` payload validation."""

    def test_valid_payload(self) -> None:
        """Both fields are read from their camelCase names."""
        request = parse_job_request(
            {"repoFullName": "octo/reef", "maxStarsPerUser": 120}
        )
        assert request == JobRequest(repo_full_name="octo/reef", max_stars_per_user=120)

    def test_default_cap(self) -> None:
        """``maxStarsPerUser`` defaults to 200."""
        request = parse_job_request({"repoFullName": "octo/reef"})
        assert request.max_stars_per_user == 200, "wrong default cap"

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            ["octo/reef"],
            {},
            {"repoFullName": "octo/reef", "maxStarsPerUser": 0},
            {"repoFullName": "octo/reef", "maxStarsPerUser": "many"},
        ],
    )
    def test_invalid_shape(self, payload: object) -> None:
        """Anything but an object with the right types is rejected."""
        with pytest.raises(InvalidInputError) as excinfo:
            parse_job_request(payload)
        assert excinfo.value.field is None, "shape errors carry no field"

    @pytest.mark.parametrize("name", ["reef", "octo/", "/reef", "a/b/c"])
    def test_invalid_full_name(self, name: str) -> None:
        """The repository must be given as owner/name."""
        with pytest.raises(InvalidInputError) as excinfo:
            parse_job_request({"repoFullName": name})
        assert excinfo.value.field == "repoFullName", "wrong field"


class TestChannelHub:
    """Tests for client registration and delivery."""

    def test_register_assigns_sequential_ids(self) -> None:
        """Each socket gets its own id."""
        hub = ChannelHub()
        first = hub.register(_FakeSocket())  # type: ignore[arg-type]
        second = hub.register(_FakeSocket())  # type: ignore[arg-type]
        assert (first, second) == ("client-1", "client-2")
        assert hub.client_ids == ["client-1", "client-2"]

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_client(self) -> None:
        """Every registered socket receives the envelope."""
        hub = ChannelHub()
        sockets = [_FakeSocket(), _FakeSocket()]
        for ws in sockets:
            hub.register(ws)  # type: ignore[arg-type]

        await hub.broadcast(ChannelEvent.MESSAGE, "hello")

        assert [ws.sent for ws in sockets] == [
            ['{"event":"message","payload":"hello"}'],
            ['{"event":"message","payload":"hello"}'],
        ]

    @pytest.mark.asyncio
    async def test_send_targets_one_client(self) -> None:
        """Private messages reach only their addressee."""
        hub = ChannelHub()
        alice, bob = _FakeSocket(), _FakeSocket()
        hub.register(alice)  # type: ignore[arg-type]
        bob_id = hub.register(bob)  # type: ignore[arg-type]

        await hub.send(bob_id, ChannelEvent.MESSAGE, "only you")

        assert alice.sent == []
        assert len(bob.sent) == 1

    @pytest.mark.asyncio
    async def test_vanished_client_is_dropped(self) -> None:
        """A closed socket is unregistered and the broadcast continues."""
        hub = ChannelHub()
        gone = _FakeSocket(gone=True)
        alive = _FakeSocket()
        hub.register(gone)  # type: ignore[arg-type]
        alive_id = hub.register(alive)  # type: ignore[arg-type]

        await hub.broadcast(ChannelEvent.MESSAGE, "still here?")

        assert hub.client_ids == [alive_id]
        assert len(alive.sent) == 1

    @pytest.mark.asyncio
    async def test_unknown_client_is_ignored(self) -> None:
        """Sending to a departed client is a no-op."""
        hub = ChannelHub()
        await hub.send("client-9", ChannelEvent.MESSAGE, "anyone?")
        hub.unregister("client-9")
        assert hub.client_ids == []


class TestChannelResource:
    """Tests for the WebSocket endpoint."""

    @pytest.mark.asyncio
    async def test_connect_receives_status_then_job_list(
        self, deps: AppDependencies
    ) -> None:
        """A new client is counted, then sent the current jobs."""
        async with (
            falcon.testing.ASGIConductor(create_app(deps)) as conductor,
            conductor.simulate_ws(SOCKET_PATH) as ws,
        ):
            status = _decode(await ws.receive_text())
            jobs = _decode(await ws.receive_text())

        assert status == (
            "status",
            {"connectedClients": 1, "isRunning": False, "queueFull": False},
        )
        assert jobs == ("jobs:list", [])

    @pytest.mark.asyncio
    async def test_disconnect_is_counted(self, deps: AppDependencies) -> None:
        """Closing the socket releases the client slot."""
        assert deps.scheduler is not None
        async with falcon.testing.ASGIConductor(create_app(deps)) as conductor:
            async with conductor.simulate_ws(SOCKET_PATH) as ws:
                await ws.receive_text()
                await ws.receive_text()
                assert deps.scheduler.status.connected_clients == 1

        assert deps.scheduler.status.connected_clients == 0
        assert deps.hub is not None
        assert deps.hub.client_ids == []

    @pytest.mark.asyncio
    async def test_jobs_add_runs_a_crawl(
        self, deps: AppDependencies, runner: InstantRunner
    ) -> None:
        """Submitting over the socket queues, runs and settles the job."""
        assert deps.scheduler is not None
        async with (
            falcon.testing.ASGIConductor(create_app(deps)) as conductor,
            conductor.simulate_ws(SOCKET_PATH) as ws,
        ):
            await ws.receive_text()
            await ws.receive_text()
            await ws.send_text(
                encode_message(
                    ChannelEvent.JOBS_ADD,
                    {"repoFullName": "octo/reef", "maxStarsPerUser": 120},
                )
            )

            seen: list[tuple[str, typ.Any]] = []
            while not any(
                event == "jobs:update" and payload["progress"]["done"]
                for event, payload in seen
            ):
                seen.append(_decode(await ws.receive_text()))
            await deps.scheduler.wait_idle()

        assert seen[0][0] == "jobs:list", "job list is broadcast first"
        assert seen[0][1][0]["request"]["repoFullName"] == "octo/reef"
        assert runner.seeds == [("octo/reef", 120)]
        assert any(
            event == "jobs:update" and payload["progress"]["fraction"] == 0.5
            for event, payload in seen
        ), "progress snapshots are forwarded"
        final = seen[-1][1]
        assert final["progress"]["error"] is None
        assert final["outputFile"] == "/out/octo_reef-stats.csv"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("not json", "Malformed message"),
            ('{"event": "jobs:remove"}', "event: Unsupported event: jobs:remove"),
            (
                '{"event": "jobs:add", "payload": {"repoFullName": "reef"}}',
                "repoFullName: Invalid repository full name",
            ),
            (
                '{"event": "jobs:add", "payload": '
                '{"repoFullName": "octo/reef", "maxStarsPerUser": 0}}',
                "maxStarsPerUser",
            ),
        ],
    )
    async def test_invalid_messages_are_answered_privately(
        self,
        deps: AppDependencies,
        runner: InstantRunner,
        text: str,
        expected: str,
    ) -> None:
        """Bad input yields a ``message`` event and no job."""
        async with (
            falcon.testing.ASGIConductor(create_app(deps)) as conductor,
            conductor.simulate_ws(SOCKET_PATH) as ws,
        ):
            await ws.receive_text()
            await ws.receive_text()
            await ws.send_text(text)
            event, payload = _decode(await ws.receive_text())

        assert event == "message"
        assert expected in payload
        assert runner.seeds == []
