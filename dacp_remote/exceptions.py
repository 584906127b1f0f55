"""Exceptions raised by the DACP client and session manager."""


class DacpError(Exception):
    """Base class for all DACP errors."""


class DacpConnectionError(DacpError):
    """Network failure talking to the DACP server (refused, reset, timeout)."""


class DacpProtocolError(DacpError):
    """The DACP server answered with something we cannot use."""


class DacpAuthenticationError(DacpError):
    """The pairing credential or session id was rejected."""


class DacpNotLoggedInError(DacpError):
    """A session-bound request was issued without a session id."""


class DmapDecodeError(DacpProtocolError):
    """A DMAP payload is truncated or otherwise undecodable."""


class MalformedSnapshotError(DacpProtocolError):
    """A playstatusupdate response has fields of the wrong type."""
