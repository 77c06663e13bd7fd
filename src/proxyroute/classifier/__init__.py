"""URL classification against the force list.

This package provides the matching side of the redirect engine:
- HostPattern / PathPattern: Tagged pattern variants parsed once per pattern
- sanitize_pattern: Normalize user-entered patterns before storing them
- URLClassifier: Decide whether a URL is forced through the proxy
"""

from proxyroute.classifier.patterns import (
    HostPattern,
    PathPattern,
    Pattern,
    parse_pattern,
    parse_patterns,
    sanitize_pattern,
)
from proxyroute.classifier.classifier import (
    URLClassifier,
    http_hostname,
    is_forced,
    is_http_url,
)

__all__ = [
    "HostPattern",
    "PathPattern",
    "Pattern",
    "parse_pattern",
    "parse_patterns",
    "sanitize_pattern",
    "URLClassifier",
    "http_hostname",
    "is_forced",
    "is_http_url",
]
