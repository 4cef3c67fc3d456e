import numpy as np
from dataclasses import dataclass
from typing import Tuple, Optional, Iterable

from amrmeta.errors import ConsistencyError


def _as_ijk(values: Iterable[int]) -> Tuple[int, int, int]:

    ijk = tuple(int(v) for v in values)
    if len(ijk) != 3:
        raise ValueError(f"An index triple needs 3 entries, got {len(ijk)}")
    return ijk  # type: ignore[return-value]


@dataclass(frozen=True)
class AMRBox:
    """
    Index-space footprint of a block at its refinement level.

    The extent is cell-centered and inclusive on both ends, i.e. a box with
    lo=(0,0,0) and hi=(7,7,7) holds 8x8x8 cells. A box is empty along an
    axis where hi < lo.
    """

    lo: Tuple[int, int, int]
    hi: Tuple[int, int, int]
    level: int = 0
    rank: int = 0

    def __post_init__(self):
        # frozen dataclass, normalize through object.__setattr__
        object.__setattr__(self, 'lo', _as_ijk(self.lo))
        object.__setattr__(self, 'hi', _as_ijk(self.hi))
        object.__setattr__(self, 'level', int(self.level))
        object.__setattr__(self, 'rank', int(self.rank))
        if self.level < 0:
            raise ValueError(f"level must be non-negative, got {self.level}")

    @property
    def lo_corner(self) -> np.ndarray:
        return np.array(self.lo, dtype=int)

    @property
    def hi_corner(self) -> np.ndarray:
        return np.array(self.hi, dtype=int)

    @property
    def cell_dimensions(self) -> np.ndarray:
        return np.maximum(self.hi_corner - self.lo_corner + 1, 0)

    @property
    def number_of_cells(self) -> int:
        return int(np.prod(self.cell_dimensions))

    @property
    def is_empty(self) -> bool:
        return bool(np.any(self.hi_corner < self.lo_corner))

    def empty_dimension(self, axis: int) -> bool:
        return self.hi[axis] < self.lo[axis]

    def intersect(self, other: 'AMRBox') -> Optional['AMRBox']:
        """
        The common part of two boxes of the same level, None if they are disjoint
        """
        if other.level != self.level:
            raise ValueError(f"Cannot intersect boxes of level {self.level} and {other.level}")

        lo = np.maximum(self.lo_corner, other.lo_corner)
        hi = np.minimum(self.hi_corner, other.hi_corner)
        if np.any(hi < lo):
            return None
        return AMRBox(lo, hi, self.level, self.rank)

    def contains(self, other: 'AMRBox') -> bool:
        return bool(np.all(self.lo_corner <= other.lo_corner) and np.all(self.hi_corner >= other.hi_corner))

    def coarsen(self, r: int) -> 'AMRBox':
        """
        The box covering the same region at the next coarser level.
        Cell k of the coarse level holds cells [k*r, k*r+r-1] of this level.
        """
        if r < 1:
            raise ValueError(f"refinement ratio must be positive, got {r}")
        if self.level == 0:
            raise ValueError("A level 0 box cannot be coarsened")
        return AMRBox(np.floor_divide(self.lo_corner, r), np.floor_divide(self.hi_corner, r),
                      self.level-1, self.rank)

    def refine(self, r: int) -> 'AMRBox':
        if r < 1:
            raise ValueError(f"refinement ratio must be positive, got {r}")
        return AMRBox(self.lo_corner*r, (self.hi_corner+1)*r-1, self.level+1, self.rank)

    def shrink(self, ghost: Iterable[int]) -> 'AMRBox':
        """
        Remove ghost layers given as (imin,imax,jmin,jmax,kmin,kmax)
        """
        ghost = np.asarray(list(ghost), dtype=int)
        if ghost.shape != (6,):
            raise ValueError(f"ghost vector must have 6 entries, got {ghost.shape}")
        if np.any(ghost < 0):
            raise ConsistencyError(f"Negative ghost layer count in {ghost.tolist()}")

        lo = self.lo_corner + ghost[0::2]
        hi = self.hi_corner - ghost[1::2]
        if np.any(hi < lo):
            raise ConsistencyError(f"Stripping {ghost.tolist()} from box {self.lo}-{self.hi} leaves a negative extent")
        return AMRBox(lo, hi, self.level, self.rank)

    def __repr__(self) -> str:
        return f"AMRBox(lo={self.lo}, hi={self.hi}, level={self.level}, rank={self.rank})"
