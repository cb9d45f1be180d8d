"""
Alembic runner for the stock schema without an alembic.ini.

The script location points at the migrations folder next to this module and the
database URL comes from the DB settings, so the same runner serves the CLI and the
optional upgrade at application startup.

Usage examples:
    python -m src.db.run_migrations upgrade head
    python -m src.db.run_migrations downgrade -1
    python -m src.db.run_migrations stamp head
    python -m src.db.run_migrations current
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from alembic import command
from alembic.config import Config

from src.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# Default arguments for commands that take a target revision.
_DEFAULT_TARGETS: Dict[str, List[str]] = {
    "upgrade": ["head"],
    "downgrade": ["-1"],
    "stamp": ["head"],
}

_COMMANDS: Dict[str, Callable[..., object]] = {
    "upgrade": command.upgrade,
    "downgrade": command.downgrade,
    "stamp": command.stamp,
    "history": command.history,
    "current": command.current,
    "heads": command.heads,
    "revision": command.revision,
    "show": command.show,
}


# PUBLIC_INTERFACE
def build_config() -> Config:
    """Return an Alembic Config bound to the stock migrations and the configured database."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # env.py switches to the async URL for online runs.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


# PUBLIC_INTERFACE
def run_alembic(args: List[str]) -> None:
    """
    Run one Alembic command, e.g. ["upgrade", "head"].

    Raises:
        ValueError: no command, an unsupported command, or 'show' without a revision.
    """
    if not args:
        raise ValueError("No Alembic arguments provided. Example: upgrade head")
    cmd, other = args[0], list(args[1:])
    handler = _COMMANDS.get(cmd)
    if handler is None:
        raise ValueError(f"Unsupported Alembic command: {cmd}")
    if cmd == "show" and not other:
        raise ValueError("Usage: show <revision>")

    logger.info("Running alembic %s %s", cmd, " ".join(other or _DEFAULT_TARGETS.get(cmd, [])))
    handler(build_config(), *(other or _DEFAULT_TARGETS.get(cmd, [])))


# PUBLIC_INTERFACE
def main(argv: Optional[List[str]] = None) -> None:
    """Command-line entry point."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        run_alembic(args)
    except ValueError as exc:
        print(exc)
        sys.exit(2)


if __name__ == "__main__":
    main()
