"""Project-level configuration, path helpers and sync tuning."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "helpdesk.db"
DEFAULT_LOG_PATH = LOGS_DIR / "helpdesk.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class SyncSettings:
    """Timing and geometry knobs of a help-chat session."""

    near_bottom_px: float = 50.0
    auto_mark_debounce: float = 0.3  # seconds
    auto_mark_initial_delay: float = 1.0
    scroll_throttle: float = 0.1
    notice_ttl: float = 3.0

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Build settings from HELPDESK_* environment variables."""
        return cls(
            near_bottom_px=_env_float("HELPDESK_NEAR_BOTTOM_PX", cls.near_bottom_px),
            auto_mark_debounce=_env_float(
                "HELPDESK_AUTO_MARK_DEBOUNCE", cls.auto_mark_debounce
            ),
            auto_mark_initial_delay=_env_float(
                "HELPDESK_AUTO_MARK_INITIAL_DELAY", cls.auto_mark_initial_delay
            ),
            scroll_throttle=_env_float("HELPDESK_SCROLL_THROTTLE", cls.scroll_throttle),
            notice_ttl=_env_float("HELPDESK_NOTICE_TTL", cls.notice_ttl),
        )
