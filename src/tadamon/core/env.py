"""
Environment + project-root helpers.

The hosted backend URL and API key usually live in a repo-local `.env` file, and the
CLI, the API server and the test suite start from different working directories.

- `load_dotenv_if_present()` loads that `.env` once; real environment variables win.
- `get_project_root()` locates the checkout (`TADAMON_PROJECT_ROOT` overrides it).
- `resolve_project_path()` anchors relative catalog paths there.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


def _is_checkout(path: Path) -> bool:
    if (path / ".env").is_file() or (path / ".git").exists():
        return True
    return (path / "pyproject.toml").is_file() and (path / "src" / "tadamon").is_dir()


def _search_up(start: Path) -> Path | None:
    start = start.resolve()
    return next((p for p in (start, *start.parents) if _is_checkout(p)), None)


@lru_cache
def get_project_root() -> Path:
    """Return the best-guess project root directory (cached)."""
    override = os.getenv("TADAMON_PROJECT_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    env_file = os.getenv("TADAMON_ENV_FILE")
    if env_file:
        return Path(env_file).expanduser().resolve().parent

    # CWD first; then the package location, for editable installs launched elsewhere.
    return _search_up(Path.cwd()) or _search_up(Path(__file__).parent) or Path.cwd().resolve()


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load `.env` once and return its path, or None when there is none."""
    explicit = os.getenv("TADAMON_ENV_FILE")
    env_path = Path(explicit).expanduser().resolve() if explicit else get_project_root() / ".env"
    if not env_path.is_file():
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path


def resolve_project_path(path: str | Path) -> Path:
    p = Path(path).expanduser()
    return p if p.is_absolute() else (get_project_root() / p).resolve()
