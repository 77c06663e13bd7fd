"""Redirect engine.

This package provides the decision side of ProxyRoute: the copy-on-write
policy cell, the per-session loop guard, the redirect decision state
machine, and the async service that connects them to the host.
"""

from proxyroute.engine.policy import (
    PolicyCell,
    PolicySnapshot,
)
from proxyroute.engine.loop_guard import (
    LoopGuard,
    MemoryLoopGuard,
    SQLiteLoopGuard,
)
from proxyroute.engine.decision import RedirectDecisionEngine
from proxyroute.engine.service import RedirectService


__all__ = [
    # Policy
    "PolicyCell",
    "PolicySnapshot",
    # Loop guard
    "LoopGuard",
    "MemoryLoopGuard",
    "SQLiteLoopGuard",
    # Decisions
    "RedirectDecisionEngine",
    "RedirectService",
]
