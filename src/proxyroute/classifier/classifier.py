"""URL classification against the force list.

This module decides whether a navigation target is *forced*, i.e. whether
policy requires it to be loaded through the security proxy. Classification
is a pure function of the URL and the pattern list: it never raises on bad
input and never touches engine state.
"""

import logging
from collections.abc import Iterable
from typing import Optional, Union
from urllib.parse import urlsplit

from proxyroute.classifier.patterns import Pattern, parse_pattern, strip_scheme
from proxyroute.core.constants import HTTP_SCHEMES
from proxyroute.core.exceptions import InvalidPatternError


logger = logging.getLogger(__name__)

PolicyLike = Iterable[Union[Pattern, str]]


def is_http_url(url: object) -> bool:
    """Check if url is a non-empty string with an http(s) scheme."""
    return isinstance(url, str) and url.startswith(HTTP_SCHEMES)


def http_hostname(url: object) -> Optional[str]:
    """Return the hostname of an absolute http(s) URL.

    Returns None for other schemes, for URLs the parser rejects, and for
    URLs with an empty authority such as "https://".
    """
    if not is_http_url(url):
        return None
    try:
        hostname = urlsplit(url).hostname
    except ValueError as e:
        logger.debug(f"Unparseable URL {url!r}: {e}")
        return None
    return hostname or None


class URLClassifier:
    """Match URLs against an ordered list of force-list patterns.

    Only http:// and https:// URLs can be forced. Anything else, including
    URLs the parser rejects, is reported as not forced.
    """

    def match(self, url: str, policy: PolicyLike) -> Optional[Pattern]:
        """Find the first pattern that forces url.

        Args:
            url: Navigation target
            policy: Patterns in list order; raw strings are parsed on the fly

        Returns:
            The first matching pattern, or None
        """
        hostname = http_hostname(url)
        if hostname is None:
            return None

        bare_url = strip_scheme(url)

        for pattern in policy:
            if isinstance(pattern, str):
                try:
                    pattern = parse_pattern(pattern)
                except InvalidPatternError:
                    continue
            if pattern.matches(hostname, bare_url):
                logger.debug(f"{url} forced by {pattern.kind.value} pattern '{pattern.text}'")
                return pattern

        return None

    def is_forced(self, url: str, policy: PolicyLike) -> bool:
        """Check if policy requires url to go through the proxy.

        Args:
            url: Navigation target
            policy: Patterns in list order

        Returns:
            True if any pattern matches, False otherwise
        """
        return self.match(url, policy) is not None

    def classify_batch(self, urls: list[str], policy: PolicyLike) -> dict[str, bool]:
        """Classify a batch of URLs against the same policy.

        Args:
            urls: URLs to classify
            policy: Patterns in list order

        Returns:
            Dictionary mapping each URL to its forced flag
        """
        patterns = list(policy)
        return {url: self.is_forced(url, patterns) for url in urls}


_default_classifier = URLClassifier()


def is_forced(url: str, policy: PolicyLike) -> bool:
    """Module-level shortcut for URLClassifier().is_forced."""
    return _default_classifier.is_forced(url, policy)
