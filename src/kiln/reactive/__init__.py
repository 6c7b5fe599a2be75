"""Live reload — broadcaster, injected client script, and reload server."""

from kiln.reactive.broadcaster import Broadcaster, ReloadConnection
from kiln.reactive.hmr import RELOAD_PATH, inject_reload_script
from kiln.reactive.server import ReloadServer

__all__ = [
    "RELOAD_PATH",
    "Broadcaster",
    "ReloadConnection",
    "ReloadServer",
    "inject_reload_script",
]
