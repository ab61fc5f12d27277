"""
autoPim - self-activation of Azure PIM eligible roles
"""

# Standard library imports
import platform
from importlib.metadata import PackageNotFoundError, version


try:
    __version__ = version("autopim")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"


def version_string() -> str:
    """Version with interpreter and platform details, e.g. '1.0.0 (Python 3.12.1, linux-x86_64)'."""
    return (
        f"{__version__} (Python {platform.python_version()}, "
        f"{platform.system().lower()}-{platform.machine()})"
    )
