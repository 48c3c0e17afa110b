"""Error taxonomy shared by the pipeline components."""


class TransportError(Exception):
    """An external API call failed (network, auth, rate limit, bad payload)."""

    def __init__(self, operation: str, detail: object = None):
        self.operation = operation
        self.detail = detail
        message = f"{operation} failed"
        if detail is not None:
            message = f"{message}: {detail}"
        super().__init__(message)


class ParseError(Exception):
    """A block of the summarization response could not be interpreted."""


class ConfigError(Exception):
    """A required setting or secret is missing."""
