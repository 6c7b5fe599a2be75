"""Pipeline layer — asset classes mapped to stage chains and run safely.

Reads sources by glob, applies the registered stages, writes under the
asset class destination, and routes failures to the error sink.

The registry and runner import every stage library, so they are not
re-exported here; use ``kiln.pipeline.registry`` / ``kiln.pipeline.runner``.
"""

from kiln.pipeline.files import AssetFile, glob_base, matches_glob, read_sources, write_outputs
from kiln.pipeline.sink import ErrorSink
from kiln.pipeline.stage import Pipeline, Stage, StageContext

__all__ = [
    "AssetFile",
    "ErrorSink",
    "Pipeline",
    "Stage",
    "StageContext",
    "glob_base",
    "matches_glob",
    "read_sources",
    "write_outputs",
]
