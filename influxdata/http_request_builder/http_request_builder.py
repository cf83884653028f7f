"""
{
    "plugin_type": ["http"],
    "http_args_config": [
        {
            "name": "host",
            "example": "localhost",
            "description": "InfluxDB host the built requests address.",
            "required": false
        },
        {
            "name": "port",
            "example": "8086",
            "description": "InfluxDB HTTP port.",
            "required": false
        },
        {
            "name": "database",
            "example": "telegraf",
            "description": "Database (v3) or bucket (v2) name.",
            "required": false
        },
        {
            "name": "org",
            "example": "my-org",
            "description": "Organization name, used by the v2 write API only.",
            "required": false
        },
        {
            "name": "version",
            "example": "3",
            "description": "Target API version: '2.x' (default) or '3'.",
            "required": false
        },
        {
            "name": "token",
            "example": "my-token",
            "description": "Authentication token. Requests are never built without one.",
            "required": false
        },
        {
            "name": "profile",
            "example": "production",
            "description": "Name of a [profiles.<name>] table in the config file to use instead of flat keys.",
            "required": false
        },
        {
            "name": "table",
            "example": "cpu",
            "description": "Default table for query requests when the message has none.",
            "required": false
        },
        {
            "name": "default_time_span",
            "example": "604800",
            "description": "Default query window in seconds.",
            "required": false
        },
        {
            "name": "query_timeout",
            "example": "30000",
            "description": "Timeout in milliseconds attached to query requests.",
            "required": false
        },
        {
            "name": "tags",
            "example": "region=us,env=prod",
            "description": "Comma-separated values injected into every written line as tag_<n> tags.",
            "required": false
        },
        {
            "name": "write_timeout",
            "example": "5000",
            "description": "Timeout in milliseconds attached to write requests.",
            "required": false
        },
        {
            "name": "config_file_path",
            "example": "request_builder.toml",
            "description": "Path to TOML config file to override args, relative to PLUGIN_DIR.",
            "required": false
        }
    ]
}
"""

import json
import uuid
from typing import Any, Dict

from influx_errors import RequestBuildError
from influx_profile import load_config, load_profile
from influx_query import QuerySettings, build_query_request
from influx_write import WriteSettings, build_write_request

AVAILABLE_ACTIONS = ["query", "write"]


def _error_response(task_id: str, action: str, error: Dict[str, Any]) -> Dict[str, Any]:
    return {"status": "error", "task_id": task_id, "action": action, **error}


def process_request(
    influxdb3_local, query_parameters, request_headers, request_body, args=None
):
    """
    HTTP request handler that turns a message into an InfluxDB request descriptor.

    Endpoints:
    - GET|POST /api/v3/engine/<trigger>?action=query - Build a query request
    - POST /api/v3/engine/<trigger>?action=write - Build a line protocol write request

    The JSON request body is the message. The built request is returned, not sent.
    """
    task_id: str = str(uuid.uuid4())
    query_parameters = query_parameters or {}
    action = query_parameters.get("action", "query")
    influxdb3_local.info(f"[{task_id}] Request builder invoked, action={action}")

    if action not in AVAILABLE_ACTIONS:
        influxdb3_local.error(f"[{task_id}] Unknown action: {action}")
        return {
            "status": "error",
            "task_id": task_id,
            "error": f"Unknown action: {action}",
            "available_actions": AVAILABLE_ACTIONS,
        }

    try:
        message: Dict[str, Any] = json.loads(request_body) if request_body else {}
        if not isinstance(message, dict):
            message = {"payload": message}

        config = load_config(influxdb3_local, task_id, args)
        profile = load_profile(config)

        warnings = []
        if action == "query":
            descriptor = build_query_request(
                message,
                profile,
                QuerySettings.from_mapping(config),
                query_parameters=query_parameters,
                influxdb3_local=influxdb3_local,
                task_id=task_id,
            )
        else:
            descriptor, warnings = build_write_request(
                message,
                profile,
                WriteSettings.from_mapping(config),
                influxdb3_local=influxdb3_local,
                task_id=task_id,
            )

        return {
            "status": "success",
            "task_id": task_id,
            "action": action,
            "request": descriptor.to_message(message),
            "warnings": [warning.to_dict() for warning in warnings],
        }

    except RequestBuildError as e:
        influxdb3_local.error(f"[{task_id}] {e.error_type}: {e}")
        return _error_response(task_id, action, e.to_dict())
    except Exception as e:
        influxdb3_local.error(f"[{task_id}] Failed to process request: {e}")
        return _error_response(
            task_id,
            action,
            {"error_type": "UnexpectedError", "error": str(e), "field": None, "value": None},
        )
