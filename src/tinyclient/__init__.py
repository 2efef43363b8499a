"""Matrix TinyClient: a minimal Matrix session and sync engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("matrix-tinyclient")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .client import MatrixClient  # noqa: E402
from .events import EventKind, RoomEvent  # noqa: E402

__all__ = ["MatrixClient", "EventKind", "RoomEvent", "__version__"]
