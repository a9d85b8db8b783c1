"""Outbound HTTP helpers: header sanitizing and bounded JSON fetches."""

from parallelizer.http.fetcher import BoundedFetcher, FetchError
from parallelizer.http.headers import sanitize_headers

__all__ = [
    "BoundedFetcher",
    "FetchError",
    "sanitize_headers",
]
