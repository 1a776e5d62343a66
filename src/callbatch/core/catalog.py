"""
Target catalog.

Builds the ordered, validated list of call targets from the app
configuration and an optional targets file.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable

from callbatch.core.config.loader import ConfigError
from callbatch.core.config.models import ADDRESS_PATTERN, AppConfig


logger = logging.getLogger(__name__)


class CatalogError(ConfigError):
    """Invalid or unreadable target list."""
    pass


def is_valid_target(value: str) -> bool:
    """Check for a 0x-prefixed 20-byte hex address."""
    return bool(ADDRESS_PATTERN.match(value))


def parse_targets_text(text: str, source: str = "<text>") -> list[str]:
    """Parse one target per line.

    Blank lines and '#' comments (whole-line or trailing) are ignored.

    Raises:
        CatalogError: On the first invalid entry
    """
    targets: list[str] = []
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue
        if not is_valid_target(line):
            raise CatalogError(
                f"Invalid target on line {line_no} of {source}: {line!r}",
                details="Expected a 0x-prefixed 40 hex digit address",
            )
        targets.append(line)
    return targets


def load_targets_file(path: Path | str) -> list[str]:
    """Read targets from a file.

    Raises:
        CatalogError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise CatalogError(f"Targets file not found: {path}", path=path)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogError(f"Cannot read {path}", path=path, details=str(e)) from e

    return parse_targets_text(text, source=str(path))


def validate_targets(targets: Iterable[str], source: str = "config") -> list[str]:
    """Validate an in-memory target list.

    Raises:
        CatalogError: On the first invalid entry
    """
    validated: list[str] = []
    for position, target in enumerate(targets, start=1):
        if not is_valid_target(target):
            raise CatalogError(
                f"Invalid target #{position} in {source}: {target!r}",
                details="Expected a 0x-prefixed 40 hex digit address",
            )
        validated.append(target)
    return validated


def find_duplicates(targets: Iterable[str]) -> list[str]:
    """Targets that appear more than once (case-insensitive)."""
    counts = Counter(t.lower() for t in targets)
    return sorted(t for t, n in counts.items() if n > 1)


class TargetCatalog:
    """Ordered sequence of call targets for a run.

    The list is resolved when the catalog is read, so edits to the
    targets file between runs are picked up by the next run.
    """

    def __init__(
        self,
        targets: Iterable[str] | None = None,
        targets_file: Path | str | None = None,
    ):
        self._targets = list(targets or [])
        self.targets_file = Path(targets_file) if targets_file else None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        targets_file: Path | str | None = None,
    ) -> "TargetCatalog":
        """Build a catalog from config, with an optional file override."""
        return cls(
            targets=config.targets,
            targets_file=targets_file or config.targets_file,
        )

    def resolve(self) -> list[str]:
        """Load and validate the full ordered target list.

        Config targets come first, followed by file targets.

        Raises:
            CatalogError: If any target is invalid
        """
        targets = validate_targets(self._targets)
        if self.targets_file:
            targets.extend(load_targets_file(self.targets_file))

        duplicates = find_duplicates(targets)
        if duplicates:
            logger.warning(
                f"{len(duplicates)} target(s) listed more than once: "
                f"{', '.join(duplicates[:5])}{'...' if len(duplicates) > 5 else ''}"
            )

        return targets
