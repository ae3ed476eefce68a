"""
Debug Log Utility

Provides optional, safe file-based debug logging for tracing drag gestures,
scene reconciliation and collaboration events. Logs are written only when
enabled via environment variable; failures are swallowed so the viewer never
crashes due to logging.

Inputs:
    - debug_log(location, message, data) calls from application code
    - Environment: MEDVIEW_DEBUG_LOG (set to 1, true, or yes to enable)
    - Environment: MEDVIEW_DEBUG_LOG_DIR (optional override of the log directory)

Outputs:
    - When enabled: appends JSON lines to <project_root>/.debug/debug.log
    - When disabled or on error: no side effects

Requirements:
    - Standard library only: pathlib, os, json, time
"""

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

# Project root: this file is src/utils/debug_log.py -> parent=utils, parent.parent=src, parent.parent.parent=project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _env_flag(name: str) -> bool:
    """Return True when the environment variable is set to 1, true, or yes (case-insensitive)."""
    return os.getenv(name, "0").strip().lower() in ("1", "true", "yes")


# Default off.
DEBUG_LOG_ENABLED = _env_flag("MEDVIEW_DEBUG_LOG")

# Drag gesture console tracing; set MEDVIEW_DRAG_DEBUG=1 to enable.
DRAG_DEBUG_ENABLED = _env_flag("MEDVIEW_DRAG_DEBUG")


def drag_debug(msg: str) -> None:
    """Print drag-and-drop debug message to console only when MEDVIEW_DRAG_DEBUG is set."""
    if DRAG_DEBUG_ENABLED:
        print(f"[DRAG DEBUG] {msg}")


def get_log_path() -> Path:
    """
    Get the path of the debug log file.

    Returns:
        Path to debug.log (directory may not exist yet)
    """
    override: Optional[str] = os.getenv("MEDVIEW_DEBUG_LOG_DIR")
    log_dir = Path(override) if override else _PROJECT_ROOT / ".debug"
    return log_dir / "debug.log"


def debug_log(
    location: str,
    message: str,
    data: Dict[str, Any],
    session_id: str = "viewer",
) -> None:
    """
    Append one JSON log line to .debug/debug.log when debug logging is enabled.

    Failures (missing dir, permission, disk full, etc.) are caught and ignored
    so the application remains stable.

    Args:
        location: Call site identifier (e.g. "scene_synchronizer.py:reconcile").
        message: Short description of the event.
        data: Arbitrary dict of context (must be JSON-serializable).
        session_id: Optional tag to tell concurrent viewers apart (e.g. a room id).
    """
    if not DEBUG_LOG_ENABLED:
        return
    try:
        log_path = get_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "sessionId": session_id,
            "location": location,
            "message": message,
            "data": data,
            "timestamp": int(time.time() * 1000),
        }
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, default=str) + "\n")
    except Exception:
        pass
