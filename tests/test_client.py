"""Tests for DacpClient against an in-process DACP server."""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from dacp_remote import (
    DacpAuthenticationError,
    DacpClient,
    DacpConnectionError,
    DacpNotLoggedInError,
    DacpProtocolError,
    Endpoint,
    PlayerState,
    ReadyState,
    ServerInfo,
    dmap,
)

PAIRING = "0123456789ABCDEF"
SESSION_ID = 42


class FakeDacpServer:
    """Minimal iTunes stand-in. Records every request's path and query."""

    def __init__(self):
        self.requests = []
        self.volume = 37
        self.command_status = 204

    def _dmap(self, fields):
        return web.Response(body=dmap.encode(fields), content_type="application/x-dmap-tagged")

    def app(self):
        app = web.Application()
        app.router.add_get("/login", self.login)
        app.router.add_get("/logout", self.logout)
        app.router.add_get("/server-info", self.server_info)
        app.router.add_get("/ctrl-int/1/playstatusupdate", self.play_status_update)
        app.router.add_get("/ctrl-int/1/getproperty", self.get_property)
        app.router.add_get("/ctrl-int/1/{command}", self.command)
        return app

    async def login(self, request):
        self.requests.append((request.path, dict(request.query)))
        if request.query.get("pairing-guid") != f"0x{PAIRING}":
            return web.Response(status=403)
        return self._dmap({"mlog": {"mstt": 200, "mlid": SESSION_ID}})

    async def logout(self, request):
        self.requests.append((request.path, dict(request.query)))
        return web.Response(status=204)

    async def server_info(self, request):
        self.requests.append((request.path, dict(request.query)))
        return self._dmap({"msrv": {"mstt": 200, "mpro": "2.0", "apro": "3.12", "minm": "Test Library"}})

    async def play_status_update(self, request):
        self.requests.append((request.path, dict(request.query)))
        return self._dmap({
            "cmst": {
                "mstt": 200,
                "cmsr": 7,
                "caps": 4,
                "cann": "Song",
                "cana": "Artist",
                "canl": "Album",
                "cast": 240000,
                "cant": 200000,
            }
        })

    async def get_property(self, request):
        self.requests.append((request.path, dict(request.query)))
        return self._dmap({"cmgt": {"mstt": 200, "cmvo": self.volume}})

    async def command(self, request):
        self.requests.append((request.path, dict(request.query)))
        return web.Response(status=self.command_status)

    def paths(self):
        return [path for path, _ in self.requests]


@pytest.fixture
def server():
    return FakeDacpServer()


@pytest_asyncio.fixture
async def endpoint(server):
    test_server = TestServer(server.app())
    await test_server.start_server()
    yield Endpoint(test_server.host, test_server.port)
    await test_server.close()


@pytest_asyncio.fixture
async def client():
    dacp_client = DacpClient(request_timeout=5)
    yield dacp_client
    await dacp_client.close()


class TestLogin:
    """Login, logout and ready state."""

    @pytest.mark.asyncio
    async def test_login_opens_session(self, client, endpoint, server):
        """Login sends the pairing GUID and stores the session id."""
        states = []
        client.on_ready_state_changed(states.append)

        await client.login(endpoint, PAIRING)

        assert client.is_logged_in
        assert client.ready_state is ReadyState.OPEN
        assert states == [ReadyState.CONNECTING, ReadyState.OPEN]
        assert server.requests[0] == ("/login", {"pairing-guid": f"0x{PAIRING}"})

    @pytest.mark.asyncio
    async def test_rejected_pairing(self, client, endpoint):
        """HTTP 403 on login raises DacpAuthenticationError."""
        with pytest.raises(DacpAuthenticationError):
            await client.login(endpoint, "FFFFFFFFFFFFFFFF")

        assert not client.is_logged_in
        assert client.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_unreachable_server(self, client):
        """Connection refused raises DacpConnectionError."""
        with pytest.raises(DacpConnectionError):
            await client.login(Endpoint("127.0.0.1", 1), PAIRING)

        assert client.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, client, endpoint, server):
        """A second logout does not reach the server."""
        await client.login(endpoint, PAIRING)

        await client.logout()
        await client.logout()

        assert server.paths().count("/logout") == 1
        assert server.requests[-1] == ("/logout", {"session-id": str(SESSION_ID)})
        assert client.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_logout_without_login(self, client):
        """Logout before any login is a no-op."""
        await client.logout()

        assert client.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_unsubscribe_ready_state(self, client, endpoint):
        """The returned callable removes the callback."""
        states = []
        unsubscribe = client.on_ready_state_changed(states.append)
        unsubscribe()

        await client.login(endpoint, PAIRING)

        assert states == []


class TestRequests:
    """Server info, status updates and commands."""

    @pytest.mark.asyncio
    async def test_server_info(self, client, endpoint):
        """Server info is decoded from msrv."""
        await client.login(endpoint, PAIRING)

        info = await client.get_server_info()

        assert info.name == "Test Library"
        assert info.dmap_version == "2.0"
        assert info.daap_version == "3.12"

    @pytest.mark.asyncio
    async def test_get_update_tracks_revision(self, client, endpoint, server):
        """The next long poll asks for the revision the server reported."""
        await client.login(endpoint, PAIRING)

        first = await client.get_update()
        await client.get_update()

        assert first["cmst"]["cann"] == "Song"
        assert first["cmst"]["cast"] - first["cmst"]["cant"] == 40000
        queries = [query for path, query in server.requests if path.endswith("playstatusupdate")]
        assert queries[0] == {"revision-number": "1", "session-id": str(SESSION_ID)}
        assert queries[1]["revision-number"] == "7"

    @pytest.mark.asyncio
    async def test_commands_hit_their_paths(self, client, endpoint, server):
        """Transport commands map to the ctrl-int paths."""
        await client.login(endpoint, PAIRING)

        await client.play_pause()
        await client.pause()
        await client.next_item()
        await client.previous_item()

        assert server.paths()[1:] == [
            "/ctrl-int/1/playpause",
            "/ctrl-int/1/pause",
            "/ctrl-int/1/nextitem",
            "/ctrl-int/1/previtem",
        ]

    @pytest.mark.asyncio
    async def test_volume(self, client, endpoint, server):
        """Volume is read from cmgt.cmvo and set via dmcp.volume."""
        await client.login(endpoint, PAIRING)

        assert await client.get_volume() == 37
        await client.set_volume(40)

        path, query = server.requests[-1]
        assert path == "/ctrl-int/1/setproperty"
        assert query["dmcp.volume"] == "40"

    @pytest.mark.asyncio
    async def test_volume_out_of_range(self, client, endpoint):
        """Volumes outside 0-100 are rejected before any request."""
        await client.login(endpoint, PAIRING)

        with pytest.raises(ValueError):
            await client.set_volume(101)

    @pytest.mark.asyncio
    async def test_command_before_login(self, client):
        """Commands without a session raise and are not reported."""
        errors = []
        client.on_error(errors.append)

        with pytest.raises(DacpNotLoggedInError):
            await client.play_pause()

        assert errors == []

    @pytest.mark.asyncio
    async def test_failed_command_is_reported(self, client, endpoint, server):
        """A failing command raises and reaches the error callbacks."""
        errors = []
        client.on_error(errors.append)
        await client.login(endpoint, PAIRING)
        server.command_status = 500

        with pytest.raises(DacpProtocolError):
            await client.next_item()

        assert len(errors) == 1
        assert isinstance(errors[0], DacpProtocolError)

    @pytest.mark.asyncio
    async def test_play_toggles_only_when_not_playing(self, client, endpoint, server):
        """play() sends playpause unless the last update said playing."""
        await client.login(endpoint, PAIRING)

        await client.play()
        assert server.paths()[-1] == "/ctrl-int/1/playpause"

        await client.get_update()
        await client.play()

        assert server.paths().count("/ctrl-int/1/playpause") == 1
        assert client.player_state is PlayerState.PLAYING


class TestServerInfo:
    """Decoding of the msrv record."""

    def test_missing_record(self):
        assert ServerInfo.from_response({}) == ServerInfo(name=None)

    def test_repeated_record_is_protocol_error(self):
        """Two msrv containers decode to a list, which is rejected."""
        response = {"msrv": [{"minm": "One"}, {"minm": "Two"}]}

        with pytest.raises(DacpProtocolError):
            ServerInfo.from_response(response)
