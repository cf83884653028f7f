"""Build time-windowed SQL query requests against a single table."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from influx_errors import InputError, RequestBuildError, UnexpectedError
from influx_logging import get_reporter
from influx_profile import ConnectionProfile, coerce_int_setting, require_profile
from influx_request import (
    RequestDescriptor,
    build_auth_headers,
    build_descriptor,
    select_dialect,
)

UNSET_TABLE = "Undefined"
DEFAULT_TIME_SPAN_SECONDS = 604800
DEFAULT_QUERY_TIMEOUT_MS = 30000


@dataclass(frozen=True)
class QuerySettings:
    """Trigger-level defaults for the query pipeline."""

    table: str = UNSET_TABLE
    default_time_span: int = DEFAULT_TIME_SPAN_SECONDS
    timeout: int = DEFAULT_QUERY_TIMEOUT_MS

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "QuerySettings":
        return cls(
            table=str(config.get("table") or UNSET_TABLE),
            default_time_span=coerce_int_setting(
                config.get("default_time_span"), DEFAULT_TIME_SPAN_SECONDS
            ),
            timeout=coerce_int_setting(
                config.get("query_timeout"), DEFAULT_QUERY_TIMEOUT_MS
            ),
        )


def build_sql_query(table: str, time_span: int) -> str:
    """
    Build the SQL for the last ``time_span`` seconds of ``table``.

    The table name is embedded verbatim between double quotes and is not
    escaped; existing deployments rely on this exact format.
    """
    return (
        f'SELECT * FROM "{table}" '
        f"WHERE time >= now() - INTERVAL '{time_span} SECOND' ORDER BY time"
    )


def _is_present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and value.strip() == "")


def parse_positive_int(value: Any, field: str) -> int:
    """Parse ``value`` as a strictly positive integer or raise InputError."""
    if isinstance(value, bool):
        raise InputError(f"Invalid {field}: Must be a positive integer", field=field, value=value)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            raise InputError(
                f"Invalid {field}: Must be a positive integer", field=field, value=value
            ) from None
    else:
        raise InputError(f"Invalid {field}: Must be a positive integer", field=field, value=value)

    if parsed <= 0:
        raise InputError(f"Invalid {field}: Must be a positive integer", field=field, value=value)
    return parsed


def resolve_table(message: Mapping[str, Any], settings: QuerySettings) -> str:
    table = message.get("table") or settings.table
    if not table or table == UNSET_TABLE:
        raise InputError("No valid table specified", field="table", value=table)
    return str(table)


def resolve_time_span(
    message: Mapping[str, Any],
    settings: QuerySettings,
    query_parameters: Optional[Mapping[str, Any]] = None,
) -> int:
    """
    Pick the time span in seconds.
    Priority: message timeSpan > request query parameter timeSpan > configured default
    """
    if _is_present(message.get("timeSpan")):
        return parse_positive_int(message["timeSpan"], "timeSpan")
    if query_parameters and _is_present(query_parameters.get("timeSpan")):
        return parse_positive_int(query_parameters["timeSpan"], "timeSpan")
    return parse_positive_int(settings.default_time_span, "timeSpan")


def resolve_timeout(message: Mapping[str, Any], default: int) -> int:
    if _is_present(message.get("timeout")):
        return parse_positive_int(message["timeout"], "timeout")
    return default


def build_query_request(
    message: Mapping[str, Any],
    profile: Optional[ConnectionProfile],
    settings: Optional[QuerySettings] = None,
    query_parameters: Optional[Mapping[str, Any]] = None,
    influxdb3_local=None,
    task_id: str = "",
) -> RequestDescriptor:
    """Build a GET descriptor querying a table over a trailing time window.

    Args:
        message: Inbound message with optional ``table``, ``timeSpan`` and ``timeout``
        profile: Connection profile to address
        settings: Trigger-level defaults
        query_parameters: Request context query parameters, consulted for ``timeSpan``
        influxdb3_local: Engine API object used for logging
        task_id: Identifier prefixed to log lines

    Returns:
        RequestDescriptor annotated with the resolved ``table`` and ``timeSpan``

    Raises:
        ConfigError: If the profile is missing or has no token
        InputError: If the table or time span is invalid
        UnexpectedError: If anything else fails while building
    """
    reporter = get_reporter(influxdb3_local)
    settings = settings or QuerySettings()
    profile = require_profile(profile)

    try:
        table = resolve_table(message, settings)
        time_span = resolve_time_span(message, settings, query_parameters)
        timeout = resolve_timeout(message, settings.timeout)

        dialect = select_dialect(profile)
        params: Dict[str, Any] = {
            "db": profile.database,
            "q": build_sql_query(table, time_span),
            "format": "json",
        }
        headers = build_auth_headers(
            dialect,
            profile.token,
            extra_headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        descriptor = build_descriptor(
            profile,
            dialect.query_path,
            params,
            method="GET",
            headers=headers,
            body=None,
            timeout=timeout,
            annotations={"table": table, "timeSpan": time_span},
        )
    except RequestBuildError:
        raise
    except Exception as e:
        raise UnexpectedError(f"Failed to prepare request: {e}") from e

    reporter.info(
        f"[{task_id}] Prepared {dialect.name} query for table {table} over {time_span}s"
    )
    return descriptor
