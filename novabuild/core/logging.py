# novabuild/core/logging.py
"""
Scope-tagged console logging.

Every line reads "[HH:MM:SS] [SCOPE] [projectid] message". Build lifecycle
scopes print by default; chattier scopes (retries, routing, store, realtime)
only print with NOVABUILD_DEBUG=true or after set_debug(True).
"""
import os
from datetime import datetime
from typing import Any, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# LOG FILTERING
# ═══════════════════════════════════════════════════════════════════════════════

INFO_SCOPES = {
    "BUILD",        # Build lifecycle
    "PLANNER",      # Plan compilation
    "ORACLE",       # LLM boundary
    "GATE",         # Database gate decisions
    "HEAL",         # Self-healing repairs
    "CHECKPOINT",   # Persistence of build state
    "SUPERVISOR",   # Job registry
}

# Shown only in debug mode
DEBUG_SCOPES = {
    "RETRY",
    "ROUTER",
    "STORE",
    "PROVISION",
    "SQL",
    "WS",
}

_debug = os.getenv("NOVABUILD_DEBUG", "false").lower() == "true"

PROJECT_ID_WIDTH = 8


def set_debug(enabled: bool) -> None:
    global _debug
    _debug = enabled


def is_enabled(scope: str) -> bool:
    return _debug or scope in INFO_SCOPES


def format_line(scope: str, message: str, project_id: Optional[str] = None, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%H:%M:%S")
    prefix = f"[{stamp}] [{scope}]"
    if project_id:
        prefix += f" [{project_id[:PROJECT_ID_WIDTH]}]"
    return f"{prefix} {message}"


def log(scope: str, message: str, data: Any = None, project_id: Optional[str] = None) -> None:
    """
    Unified logging function for NovaBuild.

    `data` is printed on an indented second line when given.
    """
    if not is_enabled(scope):
        return
    print(format_line(scope, message, project_id), flush=True)
    if data:
        print(f"  Data: {data}", flush=True)


def log_section(scope: str, title: str, project_id: Optional[str] = None) -> None:
    """Banner line for the start of a build or a resume."""
    if not is_enabled(scope):
        return
    rule = "=" * 60
    print(f"\n{rule}\n{format_line(scope, title, project_id)}\n{rule}", flush=True)


def log_step(index: int, total: int, description: str, kind: str, project_id: Optional[str] = None) -> None:
    log("BUILD", f"▶️ Step {index + 1}/{total} [{kind}]: {description}", project_id=project_id)
