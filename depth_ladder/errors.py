"""Error types raised at the feed boundary. The ladder core raises none."""


class DepthLadderError(Exception):
    """Base class for depth ladder errors."""


class MalformedMessage(DepthLadderError, ValueError):
    """A feed message could not be decoded into a DepthUpdate."""


class ConnectionLost(DepthLadderError, ConnectionError):
    """The WebSocket closed or errored; the client will reconnect."""
