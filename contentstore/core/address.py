"""
Resource addresses.

An address looks like ``content://<authority>/<collection>[/<key>][?options]``.
Path segments are kept raw apart from percent-decoding, so an empty trailing
segment (``images/``) survives parsing and can be rejected by the router.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit

SCHEME = "content"


@dataclass(frozen=True)
class ResourceAddress:
    """Parsed, immutable resource address."""

    authority: str
    segments: Tuple[str, ...] = ()
    query: Tuple[Tuple[str, str], ...] = ()
    scheme: str = SCHEME

    @classmethod
    def parse(cls, value: Union[str, "ResourceAddress"]) -> "ResourceAddress":
        """Parse ``value``; an existing address is returned unchanged."""
        if isinstance(value, ResourceAddress):
            return value
        if not isinstance(value, str):
            raise TypeError(f"address must be a string, got {type(value).__name__}")

        parts = urlsplit(value)
        path = parts.path
        if path in ("", "/"):
            segments: Tuple[str, ...] = ()
        else:
            raw = path[1:] if path.startswith("/") else path
            segments = tuple(unquote(s) for s in raw.split("/"))
        query = tuple(parse_qsl(parts.query, keep_blank_values=True))
        return cls(authority=parts.netloc, segments=segments, query=query, scheme=parts.scheme)

    @classmethod
    def build(cls, authority: str, *segments: str, **options: str) -> "ResourceAddress":
        return cls(authority=authority, segments=tuple(segments),
                   query=tuple((k, str(v)) for k, v in options.items()))

    @property
    def path(self) -> str:
        return "/".join(self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    def get_query_parameter(self, name: str) -> Optional[str]:
        """First value of query option ``name``, or None."""
        for key, value in self.query:
            if key == name:
                return value
        return None

    def has_query_parameter(self, name: str) -> bool:
        return any(key == name for key, _ in self.query)

    def without_query(self) -> "ResourceAddress":
        if not self.query:
            return self
        return ResourceAddress(authority=self.authority, segments=self.segments, scheme=self.scheme)

    def with_query(self, **options: str) -> "ResourceAddress":
        merged = [(k, v) for k, v in self.query if k not in options]
        merged.extend((k, str(v)) for k, v in options.items())
        return ResourceAddress(authority=self.authority, segments=self.segments,
                               query=tuple(merged), scheme=self.scheme)

    def append_path(self, *segments: str) -> "ResourceAddress":
        return ResourceAddress(authority=self.authority, segments=self.segments + tuple(segments),
                               query=self.query, scheme=self.scheme)

    def is_ancestor_of(self, other: "ResourceAddress") -> bool:
        """True when ``other`` lies strictly below this address. Query options are ignored."""
        if (self.scheme, self.authority) != (other.scheme, other.authority):
            return False
        n = len(self.segments)
        return len(other.segments) > n and other.segments[:n] == self.segments

    def same_target(self, other: "ResourceAddress") -> bool:
        """Equality that ignores query options."""
        return (self.scheme, self.authority, self.segments) == \
            (other.scheme, other.authority, other.segments)

    def __str__(self) -> str:
        text = f"{self.scheme}://{self.authority}"
        if self.segments:
            text += "/" + "/".join(quote(s, safe="") for s in self.segments)
        if self.query:
            text += "?" + urlencode(self.query)
        return text
