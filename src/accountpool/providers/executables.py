"""Provider executable resolution.

Search order for a provider's CLI binary:
1. Explicit override (``providers.<name>.path`` in config), returned as-is
2. System PATH (``shutil.which``)
3. Well-known install locations (Homebrew, /usr/local, npm/volta/nvm shims)
"""

from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path
from typing import Optional

from accountpool._logging import get_logger
from accountpool.providers.kinds import ProviderKind

logger = get_logger("AccountPool.Executables")

EXECUTABLE_NAMES: dict[ProviderKind, str] = {
    ProviderKind.CODEX: "codex",
    ProviderKind.CLAUDE: "claude",
    ProviderKind.GEMINI: "gemini",
}

_SYSTEM_DIRS = ["/opt/homebrew/bin", "/usr/local/bin", "/usr/bin", "/bin"]


def _node_shim_dirs(home: Path) -> list[Path]:
    """Directories where npm-installed CLIs usually land."""
    dirs = [
        home / ".npm" / "bin",
        home / ".npm-global" / "bin",
        home / ".local" / "bin",
        home / ".volta" / "bin",
        Path("/usr/local/lib/node_modules/.bin"),
    ]
    for versions_root, suffix in (
        (home / ".nvm" / "versions" / "node", ("bin",)),
        (home / ".fnm" / "node-versions", ("installation", "bin")),
        (home / ".local" / "share" / "fnm" / "node-versions", ("installation", "bin")),
    ):
        if versions_root.is_dir():
            for version_dir in sorted(versions_root.iterdir(), reverse=True):
                dirs.append(version_dir.joinpath(*suffix))
    return dirs


def search_dirs(provider: ProviderKind) -> list[Path]:
    """Fallback directories probed after PATH for *provider*."""
    dirs = [Path(d) for d in _SYSTEM_DIRS]
    # Codex and Gemini ship through npm; Claude has both npm and native installers.
    dirs.extend(_node_shim_dirs(Path.home()))
    if provider is ProviderKind.CLAUDE:
        dirs.append(Path.home() / ".claude" / "local")
    return dirs


def is_executable(path: str | Path) -> bool:
    """Check that *path* exists and is executable."""
    p = Path(path)
    if not p.is_file():
        return False
    if sys.platform != "win32":
        return os.access(p, os.X_OK)
    return True


def resolve_executable(
    provider: ProviderKind, override: Optional[str] = None
) -> Optional[str]:
    """Map *provider* to an executable path, honouring a user override.

    A non-empty *override* is returned untouched; whether it is actually
    executable is the auth probe's concern. Returns ``None`` when nothing
    is found.
    """
    if override:
        return override

    name = EXECUTABLE_NAMES[provider]
    on_path = shutil.which(name)
    if on_path:
        return on_path

    for directory in search_dirs(provider):
        candidate = directory / name
        if is_executable(candidate):
            logger.debug(f"Resolved {name} outside PATH: {candidate}")
            return str(candidate)

    return None
