import logging
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """An external dependency failed (AI API, storage, auth, monitoring)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StorageError(UpstreamError):
    pass


class ModelOutputError(UpstreamError):
    """Model text was not valid JSON or did not match the requested shape."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class ConfigurationError(Exception):
    """A setting is present but unusable."""


def upstream_json(resp: Any, source: str) -> Dict[str, Any]:
    """Decode a 2xx reply body; anything but a JSON object is an UpstreamError."""
    try:
        data = resp.json()
    except ValueError:
        logger.error("%s returned a non-JSON body: %s", source, resp.text[:500])
        raise UpstreamError(f"{source} returned a non-JSON response", status_code=resp.status_code)
    if not isinstance(data, dict):
        raise UpstreamError(f"{source} returned an unexpected payload", status_code=resp.status_code)
    return data
