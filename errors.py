"""Exception hierarchy shared by tools, agents and the orchestrator."""


class TravelMapError(Exception):
    """Base class for all assistant errors."""


class ConfigurationError(TravelMapError):
    """A required credential or setting is missing."""


class UpstreamServiceError(TravelMapError):
    """A Gemini or Google Maps call failed or returned a non-success status."""


class LLMServiceError(UpstreamServiceError):
    """The language model call failed."""


class GeoServiceError(UpstreamServiceError):
    """A Google Maps Platform call failed."""


class ParseError(TravelMapError):
    """A model completion could not be parsed into the expected shape."""


class OrderValidationError(ParseError):
    """A parsed visiting order violates index or length constraints."""
