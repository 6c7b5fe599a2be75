"""Startup banner — mode-aware status output.

Prints the version, the asset classes with their source globs and
destinations, and (in dev mode) the local URL.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from kiln._console import BOLD, COLOR, CYAN, DIM, GREEN, ORANGE, RESET, YELLOW

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kiln._types import KilnMode
    from kiln.config import KilnConfig


# ---------------------------------------------------------------------------
# Mode badges
# ---------------------------------------------------------------------------

_MODE_STYLES: dict[str, tuple[str, str]] = {
    "dev": (GREEN, "dev"),
    "build": (YELLOW, "build"),
}


def _mode_badge(mode: str) -> str:
    """Return a styled [mode] badge."""
    color, label = _MODE_STYLES.get(mode, (DIM, mode))
    return f"{color}[{label}]{RESET}"


def _clickable_url(url: str) -> str:
    """Wrap *url* in an OSC 8 hyperlink escape if the terminal supports it."""
    if not COLOR:
        return url
    return f"\033]8;;{url}\033\\{BOLD}{CYAN}{url}{RESET}\033]8;;\033\\"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def print_banner(
    config: KilnConfig,
    mode: KilnMode,
    *,
    assets: Iterable[str] | None = None,
    url: str | None = None,
    warnings: list[str] | None = None,
) -> None:
    """Print the kiln startup banner to stderr.

    Args:
        config: Resolved KilnConfig.
        mode: ``"dev"`` or ``"build"``.
        assets: Asset classes to list (all configured classes by default).
        url: Local server URL, shown in dev mode.
        warnings: Optional list of warning messages to display.

    """
    from kiln import __version__

    names = list(assets) if assets is not None else list(config.assets)
    width = max((len(n) for n in names), default=0)

    lines: list[str] = [
        "",
        f"  {ORANGE}{BOLD}kiln{RESET} {DIM}v{__version__}{RESET}  {_mode_badge(mode)}",
        f"  {DIM}{'─' * 43}{RESET}",
    ]

    for name in names:
        asset = config.asset(name)
        lines.append(
            f"  {DIM}├─{RESET} {name:<{width}}  {asset.source_glob} "
            f"{DIM}->{RESET} {asset.dest_dir}"
        )

    lines.append(f"  {DIM}└─{RESET} styles: {DIM}{config.output_style}{RESET}")

    if mode == "dev" and url:
        lines.append("")
        lines.append(f"  {_clickable_url(url)}")
        lines.append("")
        lines.append(f"  {DIM}Watching for changes...{RESET}")

    if warnings:
        lines.append("")
        lines.extend(f"  {YELLOW}!{RESET} {w}" for w in warnings)

    lines.append("")

    print("\n".join(lines), file=sys.stderr)
