"""Class groups: named buckets of raw categorical class codes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from landcover_pipeline.errors import ConfigError


@dataclass(frozen=True)
class ClassGroup:
    """A named set of inclusive class-code ranges.

    Discrete values are stored as one-code ranges, so ``{12, 14}`` becomes
    ``((12, 12), (14, 14))``.
    """

    name: str
    ranges: Tuple[Tuple[int, int], ...]

    def contains(self, code: int) -> bool:
        return any(lo <= code <= hi for lo, hi in self.ranges)

    def codes(self) -> List[int]:
        """All member codes in ascending order."""
        out: set[int] = set()
        for lo, hi in self.ranges:
            out.update(range(lo, hi + 1))
        return sorted(out)

    @classmethod
    def from_spec(cls, name: str, spec: Iterable[Any]) -> "ClassGroup":
        """Parse ``[1, "6-9", [12, 14]]`` style specs.

        Strings ``"a-b"`` and two-item lists are inclusive ranges; bare
        integers are single codes.
        """
        ranges: List[Tuple[int, int]] = []
        for item in spec:
            ranges.append(_parse_range(name, item))
        if not ranges:
            raise ConfigError(f"Class group {name!r} has no codes")
        return cls(name=name, ranges=tuple(sorted(set(ranges))))


def _parse_range(name: str, item: Any) -> Tuple[int, int]:
    try:
        if isinstance(item, bool):
            raise TypeError
        if isinstance(item, int):
            lo = hi = item
        elif isinstance(item, str):
            parts = item.split("-")
            if len(parts) == 1:
                lo = hi = int(parts[0])
            elif len(parts) == 2:
                lo, hi = int(parts[0]), int(parts[1])
            else:
                raise ValueError(item)
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            lo, hi = int(item[0]), int(item[1])
        else:
            raise TypeError(item)
    except (TypeError, ValueError):
        raise ConfigError(f"Class group {name!r}: cannot parse code spec {item!r}") from None
    if lo > hi:
        raise ConfigError(f"Class group {name!r}: empty range {lo}-{hi}")
    return lo, hi


class GroupingScheme:
    """Ordered collection of pairwise-disjoint class groups."""

    def __init__(self, groups: Sequence[ClassGroup]):
        names = [g.name for g in groups]
        if len(set(names)) != len(names):
            raise ConfigError(f"Duplicate class group names: {names}")
        for i, a in enumerate(groups):
            for b in groups[i + 1:]:
                overlap = _overlap(a, b)
                if overlap is not None:
                    raise ConfigError(
                        f"Class groups {a.name!r} and {b.name!r} overlap on code {overlap}"
                    )
        self._groups: Tuple[ClassGroup, ...] = tuple(groups)

    @classmethod
    def from_mapping(cls, spec: Mapping[str, Iterable[Any]]) -> "GroupingScheme":
        return cls([ClassGroup.from_spec(name, codes) for name, codes in spec.items()])

    def __iter__(self) -> Iterator[ClassGroup]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    @property
    def names(self) -> List[str]:
        return [g.name for g in self._groups]

    def group_for(self, code: int) -> Optional[str]:
        """Name of the group containing *code*, or ``None`` if ungrouped."""
        for g in self._groups:
            if g.contains(code):
                return g.name
        return None

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            g.name: [str(lo) if lo == hi else f"{lo}-{hi}" for lo, hi in g.ranges]
            for g in self._groups
        }


def _overlap(a: ClassGroup, b: ClassGroup) -> Optional[int]:
    for alo, ahi in a.ranges:
        for blo, bhi in b.ranges:
            lo = max(alo, blo)
            if lo <= min(ahi, bhi):
                return lo
    return None


# IGBP (MCD12Q1 LC_Type1) buckets
CANONICAL_GROUPS: Dict[str, List[Any]] = {
    "Forest": ["1-5"],
    "Savanna": ["6-9"],
    "Agriculture": [12, 14],
}


def canonical_scheme() -> GroupingScheme:
    return GroupingScheme.from_mapping(CANONICAL_GROUPS)
