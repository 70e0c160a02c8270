"""Error types."""


class DataUnavailableError(Exception):
    """Upstream listing, shop or competitor data could not be fetched."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source
