"""Pipeline building blocks — stages, stage context, pipeline definitions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from kiln.config import AssetConfig, KilnConfig
    from kiln.pipeline.files import AssetFile


@dataclass(frozen=True, slots=True)
class StageContext:
    """Everything a stage may read while transforming files.

    Attributes:
        config: The immutable project configuration for this run.
        asset: Config of the asset class being built.

    """

    config: KilnConfig
    asset: AssetConfig

    @property
    def root(self) -> Path:
        return self.config.root

    @property
    def dest(self) -> Path:
        """Absolute output directory of the asset class."""
        return self.config.dest_path(self.asset.name)


type StageFunc = Callable[[tuple[AssetFile, ...], StageContext], tuple[AssetFile, ...]]

type SelectFunc = Callable[[AssetFile, StageContext], bool]


@dataclass(frozen=True, slots=True)
class Stage:
    """A named transformation from a batch of files to a batch of files."""

    name: str
    run: StageFunc


@dataclass(frozen=True, slots=True)
class Pipeline:
    """Ordered stages for one asset class.

    Attributes:
        asset: Asset class name.
        stages: Transformations applied in order. An empty tuple copies.
        select: Optional per-file filter applied before the first stage;
            rejected files are reported as skipped.

    """

    asset: str
    stages: tuple[Stage, ...] = ()
    select: SelectFunc | None = None

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)
