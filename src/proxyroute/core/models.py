"""Core data models for ProxyRoute.

This module defines the data structures passed between the host event
source, the redirect decision engine, and the host navigator, plus the
runtime settings model.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from proxyroute.core.constants import (
    ABORTED_ERROR_CODES,
    DEFAULTS,
    PROXY_PREFIX,
    TOP_LEVEL_FRAME_ID,
    LoopGuardBackend,
    RedirectReason,
)


# ============================================================================
# Host Events
# ============================================================================

@dataclass(frozen=True)
class NavigationEvent:
    """Navigation about to start in a session's frame."""
    session_id: int
    frame_id: int
    url: str

    @property
    def is_top_level(self) -> bool:
        """Check if the event targets the session's main frame."""
        return self.frame_id == TOP_LEVEL_FRAME_ID


@dataclass(frozen=True)
class NavigationErrorEvent:
    """Navigation in a session's frame failed to load."""
    session_id: int
    frame_id: int
    url: str
    error_code: str

    @property
    def is_top_level(self) -> bool:
        """Check if the event targets the session's main frame."""
        return self.frame_id == TOP_LEVEL_FRAME_ID


@dataclass(frozen=True)
class SessionClosedEvent:
    """Session (tab) terminated."""
    session_id: int


# ============================================================================
# Redirect Models
# ============================================================================

@dataclass(frozen=True)
class RedirectAction:
    """Request to load target_url in the session's top-level frame."""
    session_id: int
    target_url: str
    reason: RedirectReason


@dataclass
class NavigationResult:
    """Outcome of asking the host to perform a redirect."""
    action: RedirectAction
    error: Optional[str] = None
    completed_at: datetime = field(default_factory=datetime.now)

    @property
    def success(self) -> bool:
        """Check if the host accepted the navigation."""
        return self.error is None


# ============================================================================
# Settings Model
# ============================================================================

@dataclass
class Settings:
    """Runtime settings loaded from YAML configuration."""
    proxy_prefix: str = PROXY_PREFIX
    database: Path = Path(DEFAULTS["database"])
    audit_dir: Optional[Path] = None
    heartbeat_interval: float = DEFAULTS["heartbeat_interval"]
    aborted_error_codes: frozenset[str] = ABORTED_ERROR_CODES
    loop_guard: LoopGuardBackend = LoopGuardBackend.MEMORY

    # Host navigator
    navigator_endpoint: Optional[str] = None
    navigator_timeout: float = DEFAULTS["navigator_timeout"]

    # Patterns seeded into an empty store
    force_list: list[str] = field(default_factory=list)
