"""Kiln error hierarchy.

All kiln-specific errors inherit from KilnError for easy catching.
"""

from __future__ import annotations

from pathlib import Path


class KilnError(Exception):
    """Base error for all kiln operations."""


class ConfigError(KilnError):
    """Invalid or missing configuration."""


class PipelineError(KilnError):
    """A transformation stage failed while running an asset pipeline.

    Attributes:
        asset: Asset class whose pipeline failed (e.g. ``styles``).
        stage: Name of the failing stage (e.g. ``sass``).
        path: Source file being processed, when known.

    """

    def __init__(
        self,
        message: str,
        *,
        asset: str,
        stage: str,
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.asset = asset
        self.stage = stage
        self.path = path

    @property
    def location(self) -> str:
        """Short ``asset/stage (file)`` label used in log lines."""
        where = f"{self.asset}/{self.stage}"
        if self.path is not None:
            where += f" ({self.path.name})"
        return where


class ReloadError(KilnError):
    """The live-reload server could not start."""
