"""Engine settings with defaults, overridable from the environment or a .env file."""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

from pulsediff.budget import DEFAULT_CHARS_PER_TOKEN
from pulsediff.diffing import DEFAULT_MAX_CHARS_PER_PAGE
from pulsediff.grouping import DEFAULT_SESSION_GAP
from pulsediff.resolver import DEFAULT_CONCURRENCY

DEFAULT_DB_PATH = ".pulsediff/pulse.db"
DEFAULT_TOKEN_BUDGET = 12_500

ENV_PREFIX = "PULSEDIFF_"


def _load_env(start: Path | None = None) -> None:
    """Load the nearest .env file, walking up from ``start`` (default: CWD)."""
    cwd = start or Path.cwd()
    for parent in [cwd, *cwd.parents]:
        env_file = parent / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            return


def _env_number(name: str, default, cast):
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}") from None


@dataclass
class EngineSettings:
    db_path: Path = Path(DEFAULT_DB_PATH)
    session_gap: timedelta = DEFAULT_SESSION_GAP
    token_budget: int = DEFAULT_TOKEN_BUDGET
    chars_per_token: float = DEFAULT_CHARS_PER_TOKEN
    concurrency: int = DEFAULT_CONCURRENCY
    max_chars_per_page: int | None = DEFAULT_MAX_CHARS_PER_PAGE

    @classmethod
    def from_env(cls, start: Path | None = None) -> "EngineSettings":
        """Settings from PULSEDIFF_* variables, after loading any .env file.

        Variables: PULSEDIFF_DB, PULSEDIFF_SESSION_GAP_MINUTES,
        PULSEDIFF_TOKEN_BUDGET, PULSEDIFF_CHARS_PER_TOKEN,
        PULSEDIFF_CONCURRENCY, PULSEDIFF_MAX_CHARS_PER_PAGE (0 disables
        the per-page cap).
        """
        _load_env(start)
        defaults = cls()

        gap_minutes = _env_number(
            "SESSION_GAP_MINUTES", defaults.session_gap.total_seconds() / 60, float)
        per_page = _env_number("MAX_CHARS_PER_PAGE", defaults.max_chars_per_page, int)

        return cls(
            db_path=Path(os.environ.get(ENV_PREFIX + "DB") or defaults.db_path),
            session_gap=timedelta(minutes=gap_minutes),
            token_budget=_env_number("TOKEN_BUDGET", defaults.token_budget, int),
            chars_per_token=_env_number("CHARS_PER_TOKEN", defaults.chars_per_token, float),
            concurrency=_env_number("CONCURRENCY", defaults.concurrency, int),
            max_chars_per_page=per_page or None,
        )
