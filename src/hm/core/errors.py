"""
Structured error system for hm.

Every failure that ends an invocation is one of these types. Messages start
with a short phrase naming the failing stage so the CLI can print them as-is.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Optional


class HmError(Exception):
    """Base exception for all hm errors."""

    code = "HM_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "type": self.__class__.__name__
        }

    def __str__(self) -> str:
        return self.message


class ConfigurationError(HmError):
    """Base class for errors raised while resolving configuration."""

    code = "CONFIGURATION_ERROR"


class ConfigFileReadError(ConfigurationError):
    """The config file could not be read."""

    code = "CONFIG_FILE_READ_ERROR"

    def __init__(self, path: Path, original_error: Optional[BaseException] = None):
        reason = f": {original_error}" if original_error else ""
        super().__init__(
            f"error reading config file {path}{reason}",
            details={"path": str(path)},
            original_error=original_error,
        )


class ConfigFileParseError(ConfigurationError):
    """The config file is not a valid JSON settings object."""

    code = "CONFIG_FILE_PARSE_ERROR"

    def __init__(
        self,
        path: Path,
        reason: str,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(
            f"error parsing config file {path}: {reason}",
            details={"path": str(path)},
            original_error=original_error,
        )


class MissingConfiguration(ConfigurationError):
    """Required settings are empty after all sources were merged."""

    code = "MISSING_CONFIGURATION"

    def __init__(self, missing: Iterable[str]):
        missing = list(missing)
        super().__init__(
            "missing required configuration: api-key, api-endpoint and deployment are required "
            f"(missing: {', '.join(missing)}). Set them in the config file (~/.hm.json), "
            "with the HM_API_KEY, HM_API_ENDPOINT and HM_DEPLOYMENT environment variables, "
            "or with the --api-key, --api-endpoint and --deployment flags.",
            details={"missing": missing},
        )


class CompletionError(HmError):
    """Base class for errors raised while requesting a completion."""

    code = "COMPLETION_ERROR"


class RequestBuildError(CompletionError):
    """The outbound request could not be constructed."""

    code = "REQUEST_BUILD_ERROR"


class TransportError(CompletionError):
    """The request could not be delivered or the response not received."""

    code = "TRANSPORT_ERROR"


class ResponseParseError(CompletionError):
    """The response body is not the expected JSON shape."""

    code = "RESPONSE_PARSE_ERROR"


class EmptyCompletion(CompletionError):
    """The response carried no choices."""

    code = "EMPTY_COMPLETION"

    def __init__(
        self,
        status: Optional[int] = None,
        provider_message: Optional[str] = None
    ):
        message = "no content found in response"
        if provider_message:
            message = f"{message} (status {status}: {provider_message})"
        super().__init__(
            message,
            details={"status": status, "provider_message": provider_message},
        )
