"""Shared type definitions for kiln."""

from collections.abc import Awaitable, Callable
from typing import Literal

# Mode of operation
type KilnMode = Literal["dev", "build"]

# libsass output styles
type OutputStyle = Literal["nested", "expanded", "compact", "compressed"]

# What a watch binding does to connected browsers after its pipeline
type ReloadMode = Literal["full", "inject", "none"]

# Callback fired by a watch binding
type WatchHandler = Callable[[], Awaitable[object]]
