"""Request/response envelopes that flow through the router and cache tiers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from urllib.parse import urlsplit, urlunsplit


def normalize_url(url: str) -> str:
    """Drop the fragment and lowercase scheme/host; path and query are kept verbatim."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""))


def request_identity(method: str, url: str) -> str:
    return f"{method.upper()} {normalize_url(url)}"


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


# httpx already decoded the body, so these no longer describe it
_UNSTORABLE_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection", "keep-alive"}


def storable_headers(headers) -> dict[str, str]:
    return {k.lower(): v for k, v in headers.items() if k.lower() not in _UNSTORABLE_HEADERS}


def forwardable_headers(headers) -> dict[str, str]:
    """Inbound headers minus the ones that describe the hop to the gateway."""
    skip = _UNSTORABLE_HEADERS | {"host", "accept-encoding"}
    return {k.lower(): v for k, v in headers.items() if k.lower() not in skip}


@dataclass
class OutboundRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def identity(self) -> str:
        return request_identity(self.method, self.url)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    def header(self, name: str) -> str:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return ""

    def expects_document(self) -> bool:
        """True for navigations that want a full page back."""
        if self.method.upper() != "GET":
            return False
        if self.header("sec-fetch-dest") == "document":
            return True
        return "text/html" in self.header("accept")


@dataclass
class RelayResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    from_cache: bool = False

    @classmethod
    def from_httpx(cls, response) -> "RelayResponse":
        return cls(
            status_code=response.status_code,
            headers=storable_headers(response.headers),
            body=response.content,
        )

    @classmethod
    def json_response(cls, status_code: int, data: dict) -> "RelayResponse":
        return cls(
            status_code=status_code,
            headers={"content-type": "application/json"},
            body=json.dumps(data).encode("utf-8"),
        )

    def json(self):
        return json.loads(self.body.decode("utf-8"))
