"""
Programmatic Alembic migration runner.

The service ships no alembic.ini; the script location is the migrations
directory next to this file and the URL comes from fxdesk_api.db.config.

Usage examples:
    python -m fxdesk_api.db.run_migrations upgrade head
    python -m fxdesk_api.db.run_migrations downgrade -1
    python -m fxdesk_api.db.run_migrations current
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List

from alembic import command
from alembic.config import Config

from fxdesk_api.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


# PUBLIC_INTERFACE
def build_config() -> Config:
    """Return an Alembic Config pointing at the bundled migrations."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Offline URL; env.py builds its own async engine online.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


def _with_default(fn: Callable[..., None], default: str) -> Callable[[Config, List[str]], None]:
    return lambda cfg, rest: fn(cfg, *(rest or [default]))


_COMMANDS: Dict[str, Callable[[Config, List[str]], None]] = {
    "upgrade": _with_default(command.upgrade, "head"),
    "downgrade": _with_default(command.downgrade, "-1"),
    "stamp": _with_default(command.stamp, "head"),
    "history": lambda cfg, rest: command.history(cfg, *rest),
    "current": lambda cfg, rest: command.current(cfg, *rest),
    "heads": lambda cfg, rest: command.heads(cfg, *rest),
    "revision": lambda cfg, rest: command.revision(cfg, *rest),
}


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> None:
    """Run an Alembic command, e.g. main(["upgrade", "head"])."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("No Alembic arguments provided. Example: upgrade head")
        sys.exit(1)

    cmd, rest = args[0], args[1:]
    handler = _COMMANDS.get(cmd)
    if handler is None:
        print(f"Unsupported Alembic command: {cmd}. Supported: {', '.join(sorted(_COMMANDS))}")
        sys.exit(2)

    logger.info("alembic %s %s", cmd, " ".join(rest))
    handler(build_config(), rest)


if __name__ == "__main__":
    main()
