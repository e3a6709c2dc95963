from __future__ import annotations

import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Put the directory above this package on ``sys.path``.

    Lets ``python speed_duel/__main__.py`` work as well as ``python -m speed_duel``.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # Works when executed as a module: python -m speed_duel
    from .app import run  # type: ignore[attr-defined]
except ImportError:
    # Works when executed as a script.
    _ensure_repo_root_on_path()
    from speed_duel.app import run  # type: ignore[attr-defined]


def main() -> int:
    """Entry point for running the game from the command line."""
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
