"""Constants used throughout ProxyRoute.

This module contains enums, default values, and static configurations
to ensure consistency across the application.
"""

from enum import Enum


class PatternKind(Enum):
    """Structural kind of a force-list pattern."""
    HOST = "host"
    PATH = "path"


class RedirectReason(Enum):
    """Why the engine asked the host to navigate."""
    TO_PROXY = "to_proxy"
    BYPASS_PROXY = "bypass_proxy"
    ERROR_FAILOVER = "error_failover"


class LoopGuardBackend(Enum):
    """Where session redirect markers are kept."""
    MEMORY = "memory"
    SQLITE = "sqlite"


class AuditEventType(str, Enum):
    """Types of events recorded in the audit log."""
    ENGINE_START = "engine_start"
    ENGINE_STOP = "engine_stop"
    REDIRECT_ISSUED = "redirect_issued"
    REDIRECT_SUPPRESSED = "redirect_suppressed"
    NAVIGATION_FAILED = "navigation_failed"
    POLICY_RELOAD = "policy_reload"
    FEATURE_TOGGLE = "feature_toggle"


# Security proxy namespace; a wrapped site lives at PROXY_PREFIX + original URL
PROXY_PREFIX = "https://safe.menlosecurity.com/"

HTTP_SCHEMES = ("http://", "https://")

TOP_LEVEL_FRAME_ID = 0

# Error codes the host reports for loads cancelled locally (user stop, new navigation)
ABORTED_ERROR_CODES = frozenset({
    "net::ERR_ABORTED",
    "ABORTED",
})

# Storage keys
FORCE_LIST_KEY = "force_list"
ENABLED_KEY = "enabled"

# Characters allowed to follow a path pattern in a matching URL
PATH_BOUNDARY_CHARS = ("/", "?", "#")


# Application-wide defaults
DEFAULTS = {
    "heartbeat_interval": 60.0,
    "navigator_timeout": 10.0,
    "result_history": 1000,
    "database": "proxyroute.db",
    "loop_guard": LoopGuardBackend.MEMORY.value,
}
