"""
majordomo - Action governance and temporal state engine for a personal assistant
"""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
import tomllib


def _get_version() -> str:
    """Installed distribution version, else the source tree's pyproject.toml."""
    try:
        return version("majordomo")
    except PackageNotFoundError:
        pass
    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        return tomllib.loads(pyproject_path.read_text())["project"]["version"]
    return "0.0.0-unknown"


__version__ = _get_version()
__logo__ = "🎩"
