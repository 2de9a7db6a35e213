# geosaude/core/errors.py


class GeocodingError(Exception):
    """Base class for failures inside the geocoding chain."""


class ProviderUnavailable(GeocodingError):
    """Non-2xx status, network failure, bad payload or timeout from a provider."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider}: {detail}")


class InvalidPostalCode(GeocodingError):
    pass


class StoreNotInitialized(RuntimeError):
    pass
