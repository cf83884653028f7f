"""Tests for influx_query.py functions."""

import pytest
from unittest.mock import Mock
from urllib.parse import parse_qs, urlsplit

from influx_errors import ConfigError, InputError, UnexpectedError
from influx_profile import ConnectionProfile
from influx_query import (
    DEFAULT_QUERY_TIMEOUT_MS,
    DEFAULT_TIME_SPAN_SECONDS,
    QuerySettings,
    build_query_request,
    build_sql_query,
    resolve_time_span,
)

V2_PROFILE = ConnectionProfile(
    host="localhost", port=8086, database="mydb", org="myorg", version="2.x", token="v2-token"
)
V3_PROFILE = ConnectionProfile(
    host="localhost", port=8181, database="mydb", version="3", token="v3-token"
)


def _query_params(url):
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


class TestBuildSqlQuery:
    """Tests for build_sql_query."""

    @pytest.mark.parametrize("table,span", [("metrics", 60), ("cpu", 1), ("a b", 604800)])
    def test_query_format(self, table, span):
        assert build_sql_query(table, span) == (
            f'SELECT * FROM "{table}" WHERE time >= now() - INTERVAL '
            f"'{span} SECOND' ORDER BY time"
        )

    def test_table_is_not_escaped(self):
        query = build_sql_query('x" OR 1=1 --', 60)
        assert 'FROM "x" OR 1=1 --"' in query


class TestResolveTimeSpan:
    """Priority and validation of the time span."""

    def test_message_beats_query_parameter_and_default(self):
        span = resolve_time_span({"timeSpan": 60}, QuerySettings(default_time_span=900), {"timeSpan": "120"})
        assert span == 60

    def test_query_parameter_beats_default(self):
        span = resolve_time_span({}, QuerySettings(default_time_span=900), {"timeSpan": "120"})
        assert span == 120

    def test_default_used_when_nothing_supplied(self):
        assert resolve_time_span({}, QuerySettings(), None) == DEFAULT_TIME_SPAN_SECONDS

    def test_empty_string_counts_as_absent(self):
        span = resolve_time_span({"timeSpan": ""}, QuerySettings(), {"timeSpan": "30"})
        assert span == 30

    def test_numeric_string_is_accepted(self):
        assert resolve_time_span({"timeSpan": " 45 "}, QuerySettings(), None) == 45

    @pytest.mark.parametrize("value", [0, -5, "0", "-1", "abc", "60.5", 1.5, True, [60]])
    def test_invalid_message_value_fails(self, value):
        with pytest.raises(InputError, match="Must be a positive integer"):
            resolve_time_span({"timeSpan": value}, QuerySettings(), {"timeSpan": "120"})

    def test_invalid_query_parameter_fails(self):
        with pytest.raises(InputError) as exc_info:
            resolve_time_span({}, QuerySettings(), {"timeSpan": "-10"})
        assert exc_info.value.field == "timeSpan"
        assert exc_info.value.value == "-10"


class TestBuildQueryRequest:
    """Tests for build_query_request."""

    def test_v3_query_descriptor(self):
        descriptor = build_query_request({"table": "metrics", "timeSpan": 60}, V3_PROFILE)

        parts = urlsplit(descriptor.url)
        assert parts.scheme == "http"
        assert parts.netloc == "localhost:8181"
        assert parts.path == "/api/v3/query_sql"
        assert descriptor.method == "GET"
        assert descriptor.headers == {
            "Authorization": "Bearer v3-token",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        assert descriptor.body is None
        assert descriptor.timeout == DEFAULT_QUERY_TIMEOUT_MS

    def test_v2_query_descriptor(self):
        descriptor = build_query_request({"table": "metrics", "timeSpan": 60}, V2_PROFILE)

        assert urlsplit(descriptor.url).path == "/api/v2/query"
        assert descriptor.headers["Authorization"] == "Token v2-token"

    def test_query_parameters_are_percent_encoded(self):
        descriptor = build_query_request({"table": "metrics", "timeSpan": 60}, V3_PROFILE)

        assert _query_params(descriptor.url) == {
            "db": "mydb",
            "q": build_sql_query("metrics", 60),
            "format": "json",
        }
        query_string = urlsplit(descriptor.url).query
        assert " " not in query_string
        assert "%20" in query_string
        assert query_string.startswith("db=mydb&q=SELECT%20%2A%20FROM%20%22metrics%22")

    def test_message_table_overrides_configured_table(self):
        descriptor = build_query_request(
            {"table": "from_message"}, V2_PROFILE, QuerySettings(table="from_config")
        )
        assert 'FROM "from_message"' in _query_params(descriptor.url)["q"]

    def test_configured_table_used_when_message_has_none(self):
        descriptor = build_query_request({}, V2_PROFILE, QuerySettings(table="from_config"))
        assert descriptor.annotations["table"] == "from_config"

    def test_annotations_stamp_resolved_values(self):
        descriptor = build_query_request(
            {"table": "cpu"}, V2_PROFILE, query_parameters={"timeSpan": "300"}
        )
        assert descriptor.annotations == {"table": "cpu", "timeSpan": 300}

    def test_message_timeout_overrides_default(self):
        descriptor = build_query_request({"table": "cpu", "timeout": 1000}, V2_PROFILE)
        assert descriptor.timeout == 1000

    def test_configured_timeout(self):
        descriptor = build_query_request({"table": "cpu"}, V2_PROFILE, QuerySettings(timeout=12000))
        assert descriptor.timeout == 12000

    def test_missing_profile_raises_config_error(self):
        with pytest.raises(ConfigError, match="No InfluxDB configuration defined"):
            build_query_request({"table": "cpu"}, None)

    def test_empty_token_raises_config_error(self):
        profile = ConnectionProfile(database="mydb", token="")
        with pytest.raises(ConfigError, match="No token provided"):
            build_query_request({"table": "cpu"}, profile)

    @pytest.mark.parametrize("message", [{}, {"table": ""}, {"table": "Undefined"}])
    def test_unset_table_raises_input_error(self, message):
        with pytest.raises(InputError, match="No valid table specified"):
            build_query_request(message, V2_PROFILE)

    def test_invalid_time_span_raises_input_error(self):
        with pytest.raises(InputError):
            build_query_request({"table": "cpu", "timeSpan": -1}, V2_PROFILE)

    def test_malformed_port_raises_unexpected_error(self):
        profile = ConnectionProfile(host="localhost", port="not-a-port", token="t")
        with pytest.raises(UnexpectedError, match="Failed to prepare request"):
            build_query_request({"table": "cpu"}, profile)

    def test_missing_host_raises_unexpected_error(self):
        profile = ConnectionProfile(host="", token="t")
        with pytest.raises(UnexpectedError):
            build_query_request({"table": "cpu"}, profile)

    def test_message_is_not_mutated(self):
        message = {"table": "cpu", "timeSpan": 60}
        build_query_request(message, V2_PROFILE)
        assert message == {"table": "cpu", "timeSpan": 60}

    def test_logs_info_without_token(self):
        mock_influxdb3_local = Mock()

        build_query_request(
            {"table": "cpu"}, V2_PROFILE, influxdb3_local=mock_influxdb3_local, task_id="t1"
        )

        logged = mock_influxdb3_local.info.call_args[0][0]
        assert logged.startswith("[t1] ")
        assert "v2-token" not in logged


class TestQuerySettings:
    """Tests for QuerySettings.from_mapping."""

    def test_defaults(self):
        assert QuerySettings.from_mapping({}) == QuerySettings()

    def test_parses_values(self):
        settings = QuerySettings.from_mapping(
            {"table": "cpu", "default_time_span": "3600", "query_timeout": 1000}
        )
        assert settings == QuerySettings(table="cpu", default_time_span=3600, timeout=1000)

    @pytest.mark.parametrize("value", ["abc", "0", "-3", ""])
    def test_invalid_default_time_span_falls_back(self, value):
        settings = QuerySettings.from_mapping({"default_time_span": value})
        assert settings.default_time_span == DEFAULT_TIME_SPAN_SECONDS
