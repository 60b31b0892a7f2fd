"""Region identity atoms and the fast atom → position lookup used by ``World.calc``."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from market_share.errors import ModelStructureError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, order=True, slots=True)
class RegionAtom:
    """Immutable identity of a region, independent of its position."""

    name: str

    def __str__(self) -> str:
        return self.name


class RegionIndex:
    """Map each region atom to its position in the world's region list.

    Rebuilt whenever region membership changes. Rebuilding takes the index
    lock, so it cannot overlap a calculation that holds :meth:`exclusive`.
    """

    def __init__(self) -> None:
        self._positions: dict[RegionAtom, int] = {}
        self._lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._lock:
            yield

    def rebuild(self, atoms: Sequence[RegionAtom]) -> None:
        positions: dict[RegionAtom, int] = {}
        for position, atom in enumerate(atoms):
            if atom in positions:
                raise ModelStructureError(f"Region '{atom}' appears more than once.")
            positions[atom] = position
        with self._lock:
            self._positions = positions

    def position(self, atom: RegionAtom) -> int | None:
        return self._positions.get(atom)

    def positions(self, atoms: Iterable[RegionAtom]) -> list[int]:
        """Resolve atoms to sorted, de-duplicated positions; unknown atoms are skipped."""
        resolved: set[int] = set()
        for atom in atoms:
            position = self._positions.get(atom)
            if position is None:
                LOGGER.debug("Region '%s' is not part of this model; skipping.", atom)
                continue
            resolved.add(position)
        return sorted(resolved)

    def items(self) -> list[tuple[RegionAtom, int]]:
        return sorted(self._positions.items(), key=lambda item: item[1])

    def __contains__(self, atom: object) -> bool:
        return atom in self._positions

    def __len__(self) -> int:
        return len(self._positions)
