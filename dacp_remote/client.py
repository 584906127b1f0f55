"""
DACP Remote Control Client

asyncio HTTP client for the Digital Audio Control Protocol spoken by iTunes,
Music.app and other remote-controllable players (port 3689).

Protocol summary:
- All requests are HTTP GET, responses are DMAP-encoded (see dmap.py)
- /login?pairing-guid=0x<guid> returns a session id (mlog.mlid)
- Every further request carries ?session-id=<id>
- /ctrl-int/1/playstatusupdate is a long poll: the server holds the request
  until the revision number it was given is out of date
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import aiohttp

from . import dmap
from .const import (
    CLIENT_DAAP_VERSION,
    DEFAULT_REQUEST_TIMEOUT,
    VIEWER_ONLY_CLIENT,
    VOLUME_MAX,
    VOLUME_MIN,
)
from .exceptions import (
    DacpAuthenticationError,
    DacpConnectionError,
    DacpError,
    DacpNotLoggedInError,
    DacpProtocolError,
)
from .models import Endpoint, PlayerState, ReadyState, ServerInfo


class DacpClient:
    """
    HTTP client for one DACP server.

    Features:
    - Login/logout with an opaque pairing credential
    - Long-poll status updates with revision tracking
    - Transport and volume commands
    - Ready-state and error callbacks

    Errors from transport and volume commands are raised to the caller and
    also emitted on the error callbacks, since they happen outside of the
    update loop that owns the session.
    """

    # Endpoints
    LOGIN_PATH = "/login"
    LOGOUT_PATH = "/logout"
    SERVER_INFO_PATH = "/server-info"
    PLAY_STATUS_UPDATE_PATH = "/ctrl-int/1/playstatusupdate"
    PLAY_PAUSE_PATH = "/ctrl-int/1/playpause"
    PAUSE_PATH = "/ctrl-int/1/pause"
    NEXT_ITEM_PATH = "/ctrl-int/1/nextitem"
    PREV_ITEM_PATH = "/ctrl-int/1/previtem"
    GET_PROPERTY_PATH = "/ctrl-int/1/getproperty"
    SET_PROPERTY_PATH = "/ctrl-int/1/setproperty"

    VOLUME_PROPERTY = "dmcp.volume"
    INITIAL_REVISION = 1

    HEADERS = {
        "Viewer-Only-Client": VIEWER_ONLY_CLIENT,
        "Client-DAAP-Version": CLIENT_DAAP_VERSION,
    }

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        debug: bool = False,
    ):
        """
        Initialize DACP client.

        Args:
            session: Shared aiohttp session. If omitted, the client creates
                one and closes it in close().
            request_timeout: Timeout for every request except the long poll
            debug: Enable debug logging
        """
        self._http = session
        self._owns_http = session is None
        self._request_timeout = request_timeout
        self.debug = debug

        self.logger = logging.getLogger("DacpClient")
        if debug:
            self.logger.setLevel(logging.DEBUG)

        # Connection state
        self._endpoint: Optional[Endpoint] = None
        self._session_id: Optional[int] = None
        self._revision = self.INITIAL_REVISION
        self._ready_state = ReadyState.CLOSED
        self._player_state = PlayerState.UNKNOWN

        # Callbacks
        self._ready_state_callbacks: list[Callable[[ReadyState], None]] = []
        self._error_callbacks: list[Callable[[Exception], None]] = []

    @property
    def ready_state(self) -> ReadyState:
        """Current connection state."""
        return self._ready_state

    @property
    def endpoint(self) -> Optional[Endpoint]:
        """Endpoint of the last login."""
        return self._endpoint

    @property
    def player_state(self) -> PlayerState:
        """Playback state from the last status update."""
        return self._player_state

    @property
    def is_logged_in(self) -> bool:
        """Check if a session id is held."""
        return self._session_id is not None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self, endpoint: Endpoint, pairing: str) -> None:
        """
        Log in to the DACP server.

        Args:
            endpoint: Server host and port
            pairing: Pairing GUID (16 hex characters, without 0x)

        Raises:
            DacpConnectionError: If the server cannot be reached
            DacpAuthenticationError: If the pairing is rejected
            DacpProtocolError: If the response carries no session id
        """
        self._endpoint = endpoint
        self._session_id = None
        self._revision = self.INITIAL_REVISION
        self.logger = logging.getLogger(f"DacpClient({endpoint})")
        if self.debug:
            self.logger.setLevel(logging.DEBUG)

        self._set_ready_state(ReadyState.CONNECTING)
        self.logger.info(f"Logging in to {endpoint}...")

        try:
            response = await self._request(
                self.LOGIN_PATH,
                {"pairing-guid": f"0x{pairing}"},
                with_session=False,
            )
            session_id = (response.get("mlog") or {}).get("mlid")
            if not isinstance(session_id, int):
                raise DacpProtocolError(f"Login response has no session id: {response}")
        except DacpError:
            self._set_ready_state(ReadyState.CLOSED)
            raise

        self._session_id = session_id
        self._player_state = PlayerState.UNKNOWN
        self._set_ready_state(ReadyState.OPEN)
        self.logger.info(f"Logged in (session {session_id})")

    async def logout(self) -> None:
        """
        Log out of the DACP server.

        Idempotent and never raises; failures are logged at debug level.
        """
        if self._session_id is None:
            self._set_ready_state(ReadyState.CLOSED)
            return

        self._set_ready_state(ReadyState.CLOSING)
        try:
            await self._request(self.LOGOUT_PATH)
        except DacpError as e:
            self.logger.debug(f"Error during logout (ignored): {e}")
        finally:
            self._session_id = None
            self._revision = self.INITIAL_REVISION
            self._set_ready_state(ReadyState.CLOSED)

        self.logger.info("Logged out")

    async def close(self) -> None:
        """Log out and release the HTTP session if this client created it."""
        await self.logout()
        if self._owns_http and self._http is not None:
            await self._http.close()
            self._http = None

    async def get_server_info(self) -> ServerInfo:
        """Fetch the server identity."""
        response = await self._request(self.SERVER_INFO_PATH, with_session=False)
        return ServerInfo.from_response(response)

    async def get_update(self) -> dict[str, Any]:
        """
        Wait for the next play status update.

        The first call after login returns immediately; later calls block on
        the server until the state changes. There is no read timeout.

        Returns:
            Decoded response, normally {"cmst": {...}}
        """
        response = await self._request(
            self.PLAY_STATUS_UPDATE_PATH,
            {"revision-number": str(self._revision)},
            timeout=aiohttp.ClientTimeout(
                total=None, sock_connect=self._request_timeout, sock_read=None
            ),
        )

        status = response.get("cmst") or {}
        revision = status.get("cmsr")
        if isinstance(revision, int):
            self._revision = revision
        caps = status.get("caps")
        if isinstance(caps, int):
            self._player_state = PlayerState(caps)

        self.logger.debug(f"Status update received (next revision {self._revision})")
        return response

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def play_pause(self) -> None:
        """Toggle between play and pause."""
        await self._command(self.PLAY_PAUSE_PATH)

    async def play(self) -> None:
        """
        Start playback.

        DACP only has a play/pause toggle, so nothing is sent when the last
        status update reported playing.
        """
        if self._player_state is not PlayerState.PLAYING:
            await self._command(self.PLAY_PAUSE_PATH)

    async def pause(self) -> None:
        """Pause playback."""
        await self._command(self.PAUSE_PATH)

    async def next_item(self) -> None:
        """Skip to the next track."""
        await self._command(self.NEXT_ITEM_PATH)

    async def previous_item(self) -> None:
        """Go back to the previous track."""
        await self._command(self.PREV_ITEM_PATH)

    async def get_volume(self) -> int:
        """
        Get the player volume.

        Returns:
            Volume 0-100
        """
        response = await self._command(
            self.GET_PROPERTY_PATH, {"properties": self.VOLUME_PROPERTY}
        )
        volume = (response.get("cmgt") or {}).get("cmvo")
        if not isinstance(volume, int):
            error = DacpProtocolError(f"Volume missing from response: {response}")
            self._emit_error(error)
            raise error
        return volume

    async def set_volume(self, volume: int) -> None:
        """
        Set the player volume.

        Args:
            volume: Volume 0-100

        Raises:
            ValueError: If volume is out of range
        """
        if not (VOLUME_MIN <= volume <= VOLUME_MAX):
            raise ValueError(f"Invalid volume: {volume} (must be {VOLUME_MIN}-{VOLUME_MAX})")

        await self._command(self.SET_PROPERTY_PATH, {self.VOLUME_PROPERTY: str(volume)})
        self.logger.debug(f"Volume set to {volume}")

    async def _command(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        """Issue a session-bound command, reporting failures on the error callbacks."""
        try:
            return await self._request(path, params)
        except DacpNotLoggedInError:
            raise
        except DacpError as e:
            self._emit_error(e)
            raise

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        return self._http

    async def _request(
        self,
        path: str,
        params: Optional[dict[str, str]] = None,
        *,
        with_session: bool = True,
        timeout: Optional[aiohttp.ClientTimeout] = None,
    ) -> dict[str, Any]:
        """
        Perform one GET request and decode the DMAP body.

        Returns:
            Decoded fields, or an empty dict for 204 No Content

        Raises:
            DacpNotLoggedInError: If a session-bound request has no session
            DacpConnectionError: On network errors and timeouts
            DacpAuthenticationError: On HTTP 401/403
            DacpProtocolError: On any other unexpected status or bad body
        """
        if self._endpoint is None:
            raise DacpNotLoggedInError("No endpoint - call login() first")

        query = dict(params or {})
        if with_session:
            if self._session_id is None:
                raise DacpNotLoggedInError(f"Not logged in - cannot request {path}")
            query["session-id"] = str(self._session_id)

        url = f"{self._endpoint.base_url}{path}"
        if timeout is None:
            timeout = aiohttp.ClientTimeout(total=self._request_timeout)

        self.logger.debug(f"GET {path} {query}")

        try:
            async with self._get_http().get(
                url, params=query, headers=self.HEADERS, timeout=timeout
            ) as response:
                status = response.status
                body = await response.read()
        except asyncio.TimeoutError as e:
            raise DacpConnectionError(f"Request to {path} timed out") from e
        except aiohttp.ClientError as e:
            raise DacpConnectionError(f"Request to {path} failed: {e}") from e

        if status in (401, 403):
            raise DacpAuthenticationError(f"{path} rejected with HTTP {status}")
        if status == 204:
            return {}
        if status != 200:
            raise DacpProtocolError(f"{path} returned HTTP {status}")

        self.logger.debug(f"RX {len(body)} bytes from {path}")
        return dmap.decode(body) if body else {}

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _set_ready_state(self, state: ReadyState) -> None:
        if state is self._ready_state:
            return
        self._ready_state = state
        for callback in list(self._ready_state_callbacks):
            callback(state)

    def _emit_error(self, error: Exception) -> None:
        for callback in list(self._error_callbacks):
            callback(error)

    def on_ready_state_changed(self, callback: Callable[[ReadyState], None]) -> Callable[[], None]:
        """
        Register callback for ready-state changes.

        Returns:
            Callable that removes the callback
        """
        self._ready_state_callbacks.append(callback)
        return lambda: self._ready_state_callbacks.remove(callback)

    def on_error(self, callback: Callable[[Exception], None]) -> Callable[[], None]:
        """
        Register callback for out-of-band errors.

        Returns:
            Callable that removes the callback
        """
        self._error_callbacks.append(callback)
        return lambda: self._error_callbacks.remove(callback)
