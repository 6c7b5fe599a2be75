"""Source selection and output writing for asset pipelines.

Files flow between stages as frozen :class:`AssetFile` values whose
``relative`` path is measured from the glob base, the same way gulp's
``src()`` / ``dest()`` pair preserves directory structure::

    src/sass/**/*.scss   base = src/sass
    src/sass/layout/grid.scss  ->  <dest>/layout/grid.scss

Globs support ``*``, ``?``, ``[...]`` within a segment and ``**`` across
segments.  Dotfiles are never selected.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath

from kiln._errors import ConfigError

_GLOB_CHARS = frozenset("*?[")


@dataclass(frozen=True, slots=True)
class AssetFile:
    """One file travelling through a pipeline.

    Attributes:
        relative: Output path relative to the asset class dest dir.
        contents: File contents.
        source: Absolute source path (None for generated files).

    """

    relative: PurePosixPath
    contents: bytes
    source: Path | None = None

    @property
    def name(self) -> str:
        return self.relative.name

    def text(self) -> str:
        """Contents decoded as UTF-8."""
        return self.contents.decode("utf-8")

    def derive(
        self,
        contents: bytes | str,
        *,
        suffix: str | None = None,
        relative: PurePosixPath | None = None,
    ) -> AssetFile:
        """Return a copy with new contents and optionally a new path."""
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        new_relative = relative if relative is not None else self.relative
        if suffix is not None:
            new_relative = new_relative.with_suffix(suffix)
        return replace(self, relative=new_relative, contents=contents)


def _has_magic(part: str) -> bool:
    return any(ch in _GLOB_CHARS for ch in part)


def glob_base(pattern: str) -> PurePosixPath:
    """Leading directory of *pattern* that contains no glob characters.

    ``src/pug/**/*.pug`` -> ``src/pug``; ``src/app.js`` -> ``src``.

    """
    parts = PurePosixPath(pattern).parts
    static: list[str] = []
    for part in parts:
        if _has_magic(part):
            break
        static.append(part)
    else:
        # Literal file path: its base is the containing directory
        static = static[:-1]
    return PurePosixPath(*static) if static else PurePosixPath(".")


def _match_parts(parts: tuple[str, ...], pattern: tuple[str, ...]) -> bool:
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_parts(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatchcase(parts[0], head) and _match_parts(parts[1:], rest)


def matches_glob(relative: str | PurePosixPath, pattern: str) -> bool:
    """Whether a root-relative path matches *pattern*.

    Dotfiles (any segment below the glob base starting with ``.``) never match.

    """
    rel = PurePosixPath(relative)
    base = glob_base(pattern)
    if base != PurePosixPath(".") and not rel.is_relative_to(base):
        return False
    below = rel.relative_to(base) if base != PurePosixPath(".") else rel
    if any(part.startswith(".") for part in below.parts):
        return False
    return _match_parts(rel.parts, PurePosixPath(pattern).parts)


def read_sources(root: Path, pattern: str) -> tuple[AssetFile, ...]:
    """Read every file under *root* matching *pattern*, sorted by path.

    A pattern that matches nothing yields an empty tuple (not an error).

    Raises:
        ConfigError: If *pattern* is absolute.

    """
    if PurePosixPath(pattern).is_absolute():
        msg = f"Source globs must be relative to the project root: {pattern!r}"
        raise ConfigError(msg)

    base_dir = root / glob_base(pattern)
    if not base_dir.is_dir():
        return ()

    files: list[AssetFile] = []
    for path in sorted(root.glob(pattern)):
        if not path.is_file():
            continue
        relative = PurePosixPath(path.relative_to(base_dir).as_posix())
        if any(part.startswith(".") for part in relative.parts):
            continue
        files.append(AssetFile(relative=relative, contents=path.read_bytes(), source=path))
    return tuple(files)


def output_path(dest: Path, file: AssetFile) -> Path:
    """Absolute target path of *file* under *dest* (``..`` segments allowed)."""
    return Path(os.path.normpath(dest / file.relative))


def write_outputs(dest: Path, files: tuple[AssetFile, ...]) -> tuple[Path, ...]:
    """Write *files* under *dest*, creating directories as needed.

    Each file is written to a dotfile beside the target and renamed into
    place, so concurrent readers (other pipelines, the watcher) never see
    a partial file.
    """
    written: list[Path] = []
    for file in files:
        target = output_path(dest, file)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.kiln-tmp")
        tmp.write_bytes(file.contents)
        os.replace(tmp, target)
        written.append(target)
    return tuple(written)
