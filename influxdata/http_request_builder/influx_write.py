"""Build line protocol write requests from a payload of candidate lines."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from influx_errors import InputError, RecordWarning, RequestBuildError, UnexpectedError
from influx_logging import get_reporter
from influx_profile import ConnectionProfile, coerce_int_setting, require_profile
from influx_query import resolve_timeout
from influx_request import (
    RequestDescriptor,
    build_auth_headers,
    build_descriptor,
    select_dialect,
)
from line_protocol import build_extra_tags, filter_valid_lines, inject_tags

DEFAULT_WRITE_TIMEOUT_MS = 5000
WRITE_PRECISION = "ns"


@dataclass(frozen=True)
class WriteSettings:
    """Trigger-level defaults for the write pipeline."""

    tags: str = ""
    timeout: int = DEFAULT_WRITE_TIMEOUT_MS

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "WriteSettings":
        return cls(
            tags=config.get("tags") or "",
            timeout=coerce_int_setting(
                config.get("write_timeout"), DEFAULT_WRITE_TIMEOUT_MS
            ),
        )


def _write_params(profile: ConnectionProfile) -> Dict[str, Any]:
    if profile.is_v3:
        return {"db": profile.database}
    return {
        "org": profile.org,
        "bucket": profile.database,
        "precision": WRITE_PRECISION,
    }


def build_write_request(
    message: Mapping[str, Any],
    profile: Optional[ConnectionProfile],
    settings: Optional[WriteSettings] = None,
    influxdb3_local=None,
    task_id: str = "",
) -> Tuple[RequestDescriptor, List[RecordWarning]]:
    """Validate, tag and serialize ``message["payload"]`` into a POST descriptor.

    Args:
        message: Inbound message with ``payload`` (list of lines) and optional
            ``tags`` and ``timeout`` overrides
        profile: Connection profile to address
        settings: Trigger-level defaults
        influxdb3_local: Engine API object used for logging
        task_id: Identifier prefixed to log lines

    Returns:
        Tuple of (descriptor, warnings for dropped records)

    Raises:
        ConfigError: If the profile is missing or has no token
        InputError: If the payload is not a list or no valid line remains
        UnexpectedError: If anything else fails while building
    """
    reporter = get_reporter(influxdb3_local)
    settings = settings or WriteSettings()
    profile = require_profile(profile)

    try:
        payload = message.get("payload")
        if not isinstance(payload, (list, tuple)):
            raise InputError(
                "Invalid payload: Expected array of line protocol strings",
                field="payload",
                value=payload,
            )

        lines, warnings = filter_valid_lines(payload, reporter, task_id)
        if not lines:
            raise InputError(
                "No valid line protocol strings in payload",
                field="payload",
                value=payload,
            )

        tags = message.get("tags") or settings.tags
        extra_tags = build_extra_tags(tags)
        if extra_tags:
            lines = [inject_tags(line, extra_tags) for line in lines]

        timeout = resolve_timeout(message, settings.timeout)
        dialect = select_dialect(profile)
        headers = build_auth_headers(
            dialect,
            profile.token,
            extra_headers={"Content-Type": "text/plain; charset=utf-8"},
        )
        descriptor = build_descriptor(
            profile,
            dialect.write_path,
            _write_params(profile),
            method="POST",
            headers=headers,
            body="\n".join(lines),
            timeout=timeout,
        )
    except RequestBuildError:
        raise
    except Exception as e:
        raise UnexpectedError(f"Failed to process request: {e}") from e

    reporter.info(
        f"[{task_id}] Prepared {dialect.name} write of {len(lines)} line(s), "
        f"{len(warnings)} dropped"
    )
    return descriptor, warnings
