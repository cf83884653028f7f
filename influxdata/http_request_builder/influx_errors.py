"""Error taxonomy shared by the query and write request builders."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional


class RequestBuildError(Exception):
    """Base class for failures that stop a request descriptor from being built.

    Args:
        message: Human-readable description of the failure
        field: Name of the offending input field, if any
        value: Offending input value, if any
    """

    error_type = "RequestBuildError"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type,
            "error": self.message,
            "field": self.field,
            "value": _json_safe(self.value),
        }


class ConfigError(RequestBuildError):
    """Missing connection profile or missing auth token."""

    error_type = "ConfigError"


class InputError(RequestBuildError):
    """Structurally invalid message input."""

    error_type = "InputError"


class UnexpectedError(RequestBuildError):
    """Any other failure raised while building a descriptor."""

    error_type = "UnexpectedError"


@dataclass(frozen=True)
class RecordWarning:
    """A single payload element that was dropped by line protocol validation."""

    index: int
    value: Any
    reason: str

    def __str__(self) -> str:
        return f"Record {self.index} dropped: {self.reason}"

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "value": _json_safe(self.value), "reason": self.reason}


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return repr(value)
