"""Dialect selection and the transport-agnostic request descriptor."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlencode

import requests

from influx_profile import ConnectionProfile


@dataclass(frozen=True)
class Dialect:
    """Endpoint paths and auth scheme of one InfluxDB HTTP API revision."""

    name: str
    query_path: str
    write_path: str
    auth_scheme: str


V2 = Dialect(
    name="v2",
    query_path="/api/v2/query",
    write_path="/api/v2/write",
    auth_scheme="Token",
)
V3 = Dialect(
    name="v3",
    query_path="/api/v3/query_sql",
    write_path="/api/v3/write_lp",
    auth_scheme="Bearer",
)


def select_dialect(profile: ConnectionProfile) -> Dialect:
    return V3 if profile.is_v3 else V2


def build_auth_headers(
    dialect: Dialect,
    token: str,
    extra_headers: Dict[str, str] = None,
) -> Dict[str, str]:
    """Build headers for a request against the given API dialect.

    Args:
        dialect: Dialect whose auth scheme is used
        token: Auth token from the connection profile
        extra_headers: Optional additional headers to include

    Returns:
        Headers dict with Authorization first, then extra headers
    """
    headers = {"Authorization": f"{dialect.auth_scheme} {token}"}
    if extra_headers:
        headers.update(extra_headers)
    return headers


def encode_params(params: Mapping[str, Any]) -> str:
    """Percent-encode query parameters (spaces as %20, not '+')."""
    return urlencode(params, quote_via=quote)


@dataclass(frozen=True)
class RequestDescriptor:
    """Fully formed HTTP request ready for an external transport.

    Building a descriptor never performs network I/O. Headers and annotations
    are copied into read-only mappings on construction.
    """

    url: str
    method: str
    headers: Mapping[str, str]
    body: Optional[str]
    timeout: int
    annotations: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "annotations", MappingProxyType(dict(self.annotations)))

    def to_message(self, message: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Return a copy of ``message`` carrying the transport fields.

        The inbound message is left untouched.
        """
        result = dict(message or {})
        result.update(self.annotations)
        result.update(
            {
                "url": self.url,
                "method": self.method,
                "headers": dict(self.headers),
                "payload": self.body,
                "timeout": self.timeout,
            }
        )
        return result

    def prepare(self) -> requests.PreparedRequest:
        """Convert into a ``requests.PreparedRequest`` for a downstream session."""
        return requests.Request(
            method=self.method,
            url=self.url,
            headers=dict(self.headers),
            data=self.body.encode("utf-8") if self.body is not None else None,
        ).prepare()


def build_descriptor(
    profile: ConnectionProfile,
    path: str,
    params: Mapping[str, Any],
    method: str,
    headers: Dict[str, str],
    body: Optional[str],
    timeout: int,
    annotations: Optional[Dict[str, Any]] = None,
) -> RequestDescriptor:
    """
    Assemble a descriptor for ``profile`` and ``path``.

    The URL goes through requests' URL preparation so that a malformed host
    or port fails here instead of in the transport.
    """
    raw_url = f"{profile.base_url}{path}?{encode_params(params)}"
    prepared = requests.Request(method=method, url=raw_url).prepare()
    return RequestDescriptor(
        url=prepared.url,
        method=method,
        headers=headers,
        body=body,
        timeout=timeout,
        annotations=dict(annotations or {}),
    )
