"""Error kinds raised by lynx-sync."""


class LynxError(Exception):
    """Base class for all lynx-sync failures."""


class TransportFailure(LynxError):
    """Raised when a remote resource cannot be reached or answers with an error."""


class ParseFailure(LynxError):
    """Raised when a URL, feed document or article body cannot be parsed."""


class PersistenceFailure(LynxError):
    """Raised when the store rejects a write."""


class AuthorizationFailure(LynxError):
    """Raised when the caller is unauthenticated or does not own the resource."""


class NotFound(LynxError):
    """Raised when a referenced entity does not exist."""
