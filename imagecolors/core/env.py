"""Environment loading and settings for imagecolors.

Load order (first wins):
  1. Existing OS environment variables — never overwrite.
  2. .env file at --env-file path (if explicitly provided).
  3. .env file walking up from cwd, stopping at .git (file or dir).

Recognised variables:
  IMAGECOLORS_LOG_LEVEL      loguru level name (default WARNING)
  IMAGECOLORS_MAX_WORKERS    clustering worker cap (default min(8, cpu count))
  IMAGECOLORS_SNAPSHOT_SIZE  edge length requested from snapshot providers (default 128)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

MAX_WORKERS_CAP = 8
DEFAULT_SNAPSHOT_SIZE = 128


def _find_dotenv(start: Path) -> Path | None:
    """Walk up from start, return first .env found, stop at .git boundary."""
    current = start.resolve()
    while True:
        candidate = current / '.env'
        if candidate.is_file():
            return candidate
        # .git can be a dir (normal clone) or file (worktree)
        if (current / '.git').exists():
            return None
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _parse_dotenv(path: Path) -> dict[str, str]:
    """Parse a .env file into a dict.

    Handles KEY=value, KEY="value" and shell-style `export KEY=value`.
    """
    result: dict[str, str] = {}
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, _, raw_value = line.partition('=')
        key = key.strip().removeprefix('export ').strip()
        if key:
            result[key] = raw_value.strip().strip('"').strip("'")
    return result


def load_env(env_file: str | None = None) -> Path | None:
    """Load .env into os.environ for keys not already set.

    Returns the path that was loaded, or None if no .env was found/used.
    """
    if env_file:
        path = Path(env_file)
        if not path.is_file():
            return None
    else:
        path = _find_dotenv(Path.cwd())
        if path is None:
            return None

    parsed = _parse_dotenv(path)
    for key, value in parsed.items():
        if key not in os.environ:
            os.environ[key] = value

    return path


def default_workers() -> int:
    return max(1, min(MAX_WORKERS_CAP, os.cpu_count() or 1))


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning('Ignoring {}={!r}: not an integer', name, raw)
        return default
    if value < minimum:
        logger.warning('Ignoring {}={}: must be >= {}', name, value, minimum)
        return default
    return value


def default_snapshot_size() -> int:
    """Edge length requested from snapshot providers, from IMAGECOLORS_SNAPSHOT_SIZE."""
    return _int_env('IMAGECOLORS_SNAPSHOT_SIZE', DEFAULT_SNAPSHOT_SIZE)


@dataclass
class Settings:
    log_level: str = 'WARNING'
    max_workers: int = field(default_factory=default_workers)
    snapshot_size: int = DEFAULT_SNAPSHOT_SIZE

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            log_level=os.environ.get('IMAGECOLORS_LOG_LEVEL', 'WARNING').upper(),
            max_workers=min(MAX_WORKERS_CAP, _int_env('IMAGECOLORS_MAX_WORKERS', default_workers())),
            snapshot_size=default_snapshot_size(),
        )
