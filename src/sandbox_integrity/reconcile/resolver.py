"""Companion-executable lookup across unknown installation layouts.

A published install keeps the tools next to the main binary or under a
``Tools``/``Assets`` folder; a developer checkout keeps them under sibling
project build folders a few levels up. The resolver tries those layouts in a
fixed priority order and returns ``None`` when the tool is simply not there.
"""

from __future__ import annotations

import os
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

import structlog

from sandbox_integrity.constants import (
    DEFAULT_EXECUTABLE_ALIASES,
    EXECUTABLE_SUFFIX,
    RESOLVER_ANCESTOR_LEVELS,
    RESOLVER_MARKERS,
    RESOLVER_MAX_DEPTH,
    RESOLVER_MAX_ENTRIES,
    RESOLVER_SKIP_DIRS,
    RESOLVER_SUBFOLDERS,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence


class ResolutionStrategy(str, Enum):
    """Which search stage produced a match."""

    EXPLICIT = "explicit"
    INSTALL_ROOT = "install_root"
    SUBFOLDER = "subfolder"
    ANCESTOR_SEARCH = "ancestor_search"


@dataclass(frozen=True, slots=True)
class ResolverSettings:
    """Search bounds for :class:`ExecutableResolver`."""

    subfolders: tuple[str, ...] = tuple(str(item) for item in RESOLVER_SUBFOLDERS)
    ancestor_levels: int = RESOLVER_ANCESTOR_LEVELS
    max_depth: int = RESOLVER_MAX_DEPTH
    max_entries: int = RESOLVER_MAX_ENTRIES
    markers: tuple[str, ...] = RESOLVER_MARKERS
    ceiling: Path | None = None
    aliases: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_EXECUTABLE_ALIASES))

    def __post_init__(self) -> None:
        if self.ancestor_levels < 0:
            raise ValueError("ancestor_levels must be >= 0")
        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        object.__setattr__(
            self,
            "aliases",
            {key.strip().lower(): value.strip() for key, value in self.aliases.items()},
        )


@dataclass(frozen=True, slots=True)
class ResolvedExecutable:
    """A located executable and the stage that found it."""

    path: Path
    strategy: ResolutionStrategy


class ExecutableResolver:
    """Locate a companion executable by logical name.

    Search order, first match wins:

    1. explicit absolute candidates supplied by the caller;
    2. the install root itself;
    3. conventional subfolders (``Tools``, ``Assets/Tools``, ``Assets``);
    4. a bounded upward walk from the install root, searching each ancestor's
       subtree (depth- and entry-limited) and preferring matches under a
       build/runtime marker segment such as ``bin`` or ``Release``.

    The walk never climbs above ``settings.ceiling`` and never scans the
    filesystem root.
    """

    def __init__(
        self,
        settings: ResolverSettings | None = None,
        *,
        logger: Any | None = None,
    ) -> None:
        self._settings = settings or ResolverSettings()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def settings(self) -> ResolverSettings:
        return self._settings

    def candidate_names(self, logical_name: str) -> tuple[str, ...]:
        """Return file names to look for, alias first, ``.exe`` before bare name."""

        stem = logical_name.strip()
        if not stem:
            raise ValueError("logical_name must not be empty")

        stems: list[str] = []
        alias = self._settings.aliases.get(stem.lower())
        if alias:
            stems.append(alias)
        if stem not in stems:
            stems.append(stem)

        names: list[str] = []
        for item in stems:
            if item.lower().endswith(EXECUTABLE_SUFFIX):
                options = [item]
            else:
                options = [f"{item}{EXECUTABLE_SUFFIX}", item]
            for option in options:
                if option not in names:
                    names.append(option)
        return tuple(names)

    def resolve(
        self,
        logical_name: str,
        install_root: Path | str,
        *,
        explicit_candidates: Sequence[Path | str] = (),
    ) -> ResolvedExecutable | None:
        """Return the first matching executable, or ``None`` when none exists."""

        names = self.candidate_names(logical_name)
        root = Path(os.path.abspath(install_root))

        for raw in explicit_candidates:
            candidate = Path(raw)
            if candidate.is_absolute() and _is_file(candidate):
                return self._found(logical_name, candidate, ResolutionStrategy.EXPLICIT)

        for name in names:
            candidate = root / name
            if _is_file(candidate):
                return self._found(logical_name, candidate, ResolutionStrategy.INSTALL_ROOT)

        for subfolder in self._settings.subfolders:
            folder = root.joinpath(*PurePosixPath(subfolder.replace("\\", "/")).parts)
            for name in names:
                candidate = folder / name
                if _is_file(candidate):
                    return self._found(logical_name, candidate, ResolutionStrategy.SUBFOLDER)

        searched: Path | None = None
        for search_root in self._search_roots(root):
            matches = self._scan_subtree(search_root, names, skip=searched)
            searched = search_root
            if matches:
                best = min(matches, key=lambda item: self._rank(item, search_root))
                return self._found(logical_name, best, ResolutionStrategy.ANCESTOR_SEARCH)

        self._logger.info(
            "executable_not_found",
            logical_name=logical_name,
            candidate_names=list(names),
            install_root=str(root),
        )
        return None

    def _found(
        self,
        logical_name: str,
        path: Path,
        strategy: ResolutionStrategy,
    ) -> ResolvedExecutable:
        self._logger.debug(
            "executable_resolved",
            logical_name=logical_name,
            path=str(path),
            strategy=strategy.value,
        )
        return ResolvedExecutable(path=path, strategy=strategy)

    def _search_roots(self, install_root: Path) -> list[Path]:
        ceiling = (
            Path(os.path.abspath(self._settings.ceiling))
            if self._settings.ceiling is not None
            else None
        )
        roots: list[Path] = []
        current = install_root
        for _ in range(self._settings.ancestor_levels + 1):
            if current.parent == current:
                break
            if ceiling is not None and not _is_relative_to(current, ceiling):
                break
            roots.append(current)
            if ceiling is not None and current == ceiling:
                break
            current = current.parent
        return roots

    def _scan_subtree(
        self,
        search_root: Path,
        names: Iterable[str],
        *,
        skip: Path | None,
    ) -> list[Path]:
        wanted = {_name_key(name) for name in names}
        matches: list[Path] = []
        budget = self._settings.max_entries
        queue: deque[tuple[Path, int]] = deque([(search_root, 0)])

        while queue and budget > 0:
            directory, depth = queue.popleft()
            try:
                with os.scandir(directory) as iterator:
                    children = sorted(iterator, key=lambda item: item.name)
            except OSError:
                continue

            for child in children:
                budget -= 1
                if budget <= 0:
                    break
                try:
                    if child.is_dir(follow_symlinks=False):
                        if depth >= self._settings.max_depth:
                            continue
                        if child.name.startswith(".") or child.name in RESOLVER_SKIP_DIRS:
                            continue
                        child_path = Path(child.path)
                        if skip is not None and child_path == skip:
                            continue
                        queue.append((child_path, depth + 1))
                    elif _name_key(child.name) in wanted and child.is_file():
                        matches.append(Path(child.path))
                except OSError:
                    continue

        if budget <= 0:
            self._logger.debug("executable_search_budget_exhausted", search_root=str(search_root))
        return matches

    def _rank(self, path: Path, search_root: Path) -> tuple[int, int, str]:
        relative = path.relative_to(search_root)
        segments = [part.casefold() for part in relative.parts[:-1]]
        marker_rank = len(self._settings.markers)
        for index, marker in enumerate(self._settings.markers):
            if marker.casefold() in segments:
                marker_rank = index
                break
        return (marker_rank, len(relative.parts), relative.as_posix())


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True


def _name_key(name: str) -> str:
    return name.casefold() if os.name == "nt" else name


__all__ = [
    "ExecutableResolver",
    "ResolutionStrategy",
    "ResolvedExecutable",
    "ResolverSettings",
]
