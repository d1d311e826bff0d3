"""Region name alias table: known spelling variants of the same region."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

import yaml


BUILTIN_ALIAS_CLASSES: tuple[tuple[str, ...], ...] = (
    ("Turkey", "Türkiye", "Turkiye"),
)


class AliasTable:
    """Set of name equivalence classes.

    Membership is exact string equality. Classes that share a name are
    merged so that lookups stay transitive. A `read_only` table rejects
    `add_class` once built.
    """

    def __init__(self, classes: Iterable[Sequence[str]] = (), *, read_only: bool = False) -> None:
        self._class_of: dict[str, int] = {}
        self._classes: list[frozenset[str]] = []
        self._read_only = False
        for names in classes:
            self.add_class(names)
        self._read_only = read_only

    @property
    def read_only(self) -> bool:
        return self._read_only

    def add_class(self, names: Sequence[str]) -> None:
        if self._read_only:
            raise TypeError("Alias table is read-only; build a new AliasTable to extend it")
        members = {name for name in names if name}
        if len(members) < 2:
            raise ValueError(f"Alias class needs at least two distinct names: {list(names)}")

        overlapping = sorted({self._class_of[name] for name in members if name in self._class_of})
        for idx in overlapping:
            members |= self._classes[idx]

        merged = frozenset(members)
        if overlapping:
            target = overlapping[0]
            self._classes[target] = merged
            for idx in overlapping[1:]:
                self._classes[idx] = frozenset()
        else:
            target = len(self._classes)
            self._classes.append(merged)
        for name in merged:
            self._class_of[name] = target

    def equivalent(self, left: str, right: str) -> bool:
        """True when both names belong to the same equivalence class."""
        left_idx = self._class_of.get(left)
        return left_idx is not None and left_idx == self._class_of.get(right)

    def variants_of(self, name: str) -> frozenset[str]:
        idx = self._class_of.get(name)
        if idx is None:
            return frozenset()
        return self._classes[idx]

    @property
    def classes(self) -> tuple[frozenset[str], ...]:
        return tuple(cls for cls in self._classes if cls)

    def __len__(self) -> int:
        return len(self.classes)

    def __contains__(self, name: object) -> bool:
        return name in self._class_of


DEFAULT_ALIASES = AliasTable(BUILTIN_ALIAS_CLASSES, read_only=True)


def load_alias_table(path: Path | None, *, include_builtin: bool = True) -> AliasTable:
    """Load extra alias classes from a YAML list of name lists."""
    table = AliasTable(BUILTIN_ALIAS_CLASSES if include_builtin else ())
    if path is None or not path.exists():
        return table
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        return table
    if not isinstance(raw, list):
        raise ValueError(f"Expected list of alias classes in {path}")

    for idx, entry in enumerate(raw):
        if not isinstance(entry, list):
            raise ValueError(f"Alias class at index {idx} must be a list in {path}")
        names: list[str] = []
        for name in entry:
            if not isinstance(name, str) or not name.strip():
                raise ValueError(f"Alias names must be non-empty strings (index {idx}) in {path}")
            names.append(name.strip())
        table.add_class(names)
    return table
