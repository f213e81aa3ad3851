"""Error taxonomy shared by the order book, cache and orchestrator."""


class BookArbError(Exception):
    """Base class for bookarb errors."""


class InvalidArgument(BookArbError, ValueError):
    """Unknown side tag or malformed level/message. Raised before any book mutation."""


class UpstreamUnavailable(BookArbError):
    """Counterpart snapshot could not be fetched or decoded. Fatal to the current cycle."""


class ConfigurationError(BookArbError):
    """Missing or invalid configuration (e.g. no strategy section for a currency pair)."""
