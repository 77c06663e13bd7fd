"""Force-list patterns and their normalization.

This module turns the pattern strings kept in the store into matchers.
The kind of a pattern is decided once, at parse time, from the presence
of a ``/``:

- HostPattern: matches a hostname exactly or any of its subdomains
- PathPattern: matches the scheme-less URL by prefix on a path boundary

It also provides sanitize_pattern, the normalization applied to patterns
entered by users before they are written to the store.
"""

import re
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from proxyroute.core.constants import PATH_BOUNDARY_CHARS, PatternKind
from proxyroute.core.exceptions import InvalidPatternError


_SCHEME_RE = re.compile(r"^https?://")
_WWW_PREFIX = "www."


def strip_scheme(url: str) -> str:
    """Remove a leading http:// or https:// from url."""
    return _SCHEME_RE.sub("", url, count=1)


def sanitize_pattern(text: Optional[str]) -> Optional[str]:
    """Normalize a user-entered pattern.

    Steps:
    1. Trim surrounding whitespace
    2. Remove http/https scheme
    3. Remove leading www.
    4. Remove one trailing slash

    Args:
        text: Raw pattern text

    Returns:
        Normalized pattern, or None if nothing is left
    """
    if not text:
        return None

    pattern = strip_scheme(text.strip())
    if pattern.startswith(_WWW_PREFIX):
        pattern = pattern[len(_WWW_PREFIX):]
    if pattern.endswith("/"):
        pattern = pattern[:-1]

    return pattern or None


@dataclass(frozen=True)
class HostPattern:
    """Pattern without a path: host or any subdomain of it."""
    text: str

    kind: ClassVar[PatternKind] = PatternKind.HOST

    def matches(self, hostname: str, bare_url: str) -> bool:
        """Check hostname against this pattern.

        Args:
            hostname: Lowercased URL hostname
            bare_url: URL without scheme (unused for host patterns)

        Returns:
            True if hostname equals the pattern or is a subdomain of it
        """
        if not self.text:
            return False
        return hostname == self.text or hostname.endswith("." + self.text)


@dataclass(frozen=True)
class PathPattern:
    """Pattern with a path: scheme-less URL prefix on a path boundary."""
    text: str

    kind: ClassVar[PatternKind] = PatternKind.PATH

    def matches(self, hostname: str, bare_url: str) -> bool:
        """Check the scheme-less URL against this pattern.

        Both the URL as given and, when present, the URL without its
        leading ``www.`` are tried, so ``example.com/feed`` also matches
        ``www.example.com/feed``.

        Args:
            hostname: Lowercased URL hostname (unused for path patterns)
            bare_url: URL without scheme

        Returns:
            True if the pattern is a boundary-aligned prefix of the URL
        """
        if not self.text:
            return False
        if self._prefix_match(bare_url):
            return True
        return bare_url.startswith(_WWW_PREFIX) and self._prefix_match(bare_url[len(_WWW_PREFIX):])

    def _prefix_match(self, target: str) -> bool:
        if not target.startswith(self.text):
            return False
        rest = target[len(self.text):]
        return rest == "" or rest[0] in PATH_BOUNDARY_CHARS


Pattern = Union[HostPattern, PathPattern]


def parse_pattern(text: str) -> Pattern:
    """Build the matcher for a stored pattern string.

    Host patterns are lowercased since URL hostnames are compared in
    lower case. Path patterns are kept as written.

    Args:
        text: Pattern string from the force list

    Returns:
        HostPattern or PathPattern

    Raises:
        InvalidPatternError: If the pattern is empty
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidPatternError(f"Empty pattern: {text!r}")

    text = text.strip()
    if "/" in text:
        return PathPattern(text)
    return HostPattern(text.lower())


def parse_patterns(texts: list[str]) -> list[Pattern]:
    """Parse a batch of pattern strings.

    Args:
        texts: Pattern strings in list order

    Returns:
        List of patterns (empty or invalid entries are skipped)
    """
    patterns = []
    for text in texts:
        try:
            patterns.append(parse_pattern(text))
        except InvalidPatternError:
            continue
    return patterns
