"""
Manually generate AMR hierarchies: boxes, grids with field values and datasets.

The generators allow building AMR configurations, with or without ghost
layers and distributed over any number of ranks, without a simulation.
Field values are a function of the position only, so a ghost cell holds the
same value as the real cell it duplicates.
"""

import numpy as np
from typing import Callable, List, Tuple

from amrmeta.dataset.data_set import AMRDataSet
from amrmeta.mesh.uniform_grid import UniformGrid
from .amr_box import AMRBox


def linear_field(coordinates: np.ndarray) -> np.ndarray:
    """
    x + 10y + 100z, coordinates of shape (3,N)
    """
    return coordinates[0] + 10.0*coordinates[1] + 100.0*coordinates[2]


class AMRGenerator:

    """
    Generators for AMR boxes, grids and datasets.

    Level 0 is tiled by ng1 x ng2 x ng3 blocks of block_nx cells, finer levels
    hold the refined regions added with `add_refined_region`.
    """

    def __init__(self, ng1: int, ng2: int, ng3: int, block_nx,
                 xmin=(0., 0., 0.), dx=(1., 1., 1.), ratio: int = 2, nghostcells: int = 0,
                 field: Callable[[np.ndarray], np.ndarray] = linear_field):

        self.nblock = np.array([ng1, ng2, ng3], dtype=int)
        self.block_nx = np.asarray(block_nx, dtype=int)
        self.xmin = np.asarray(xmin, dtype=float)
        self.dx = np.asarray(dx, dtype=float)
        self.ratio = ratio
        self.nghostcells = nghostcells
        self.field = field

        assert np.all(self.nblock > 0), "the number of level 0 blocks must be positive"
        assert np.all(self.block_nx > 0), "block_nx must be positive"

        self.regions: List[Tuple[int, np.ndarray, np.ndarray]] = []

    @property
    def number_of_levels(self) -> int:
        return 1 + max((level for level, _, _ in self.regions), default=0)

    def level_spacing(self, level: int) -> np.ndarray:
        return self.dx / self.ratio**level

    def add_refined_region(self, level: int, lo, hi):
        """
        Add a refined region given by its cell range [lo, hi] in the index
        space of the level, the region is split into blocks of block_nx cells
        """
        lo = np.asarray(lo, dtype=int)
        hi = np.asarray(hi, dtype=int)
        if level < 1:
            raise ValueError("Refined regions start at level 1")
        if np.any((hi - lo + 1) % self.block_nx):
            raise ValueError(f"Region {lo}-{hi} is not divisible into blocks of {self.block_nx} cells")
        self.regions.append((level, lo, hi))

    def level_boxes(self, level: int) -> List[AMRBox]:
        """The ghost-free boxes of a level"""

        if level == 0:
            regions = [(np.zeros(3, dtype=int), self.nblock * self.block_nx - 1)]
        else:
            regions = [(lo, hi) for lev, lo, hi in self.regions if lev == level]

        boxes = []
        for lo, hi in regions:
            nblock = (hi - lo + 1) // self.block_nx
            for k, j, i in np.ndindex(nblock[2], nblock[1], nblock[0]):
                blo = lo + np.array([i, j, k]) * self.block_nx
                boxes.append(AMRBox(blo, blo + self.block_nx - 1, level))
        return boxes

    def ghosted_box(self, box: AMRBox, boxes: List[AMRBox]) -> AMRBox:
        """
        Grow the box by nghostcells on every side touching a face neighbor
        """
        lo, hi = box.lo_corner, box.hi_corner
        grow_lo = np.zeros(3, dtype=int)
        grow_hi = np.zeros(3, dtype=int)

        for other in boxes:
            olo, ohi = other.lo_corner, other.hi_corner
            for idim in range(3):
                others = [i for i in range(3) if i != idim]
                if np.any(ohi[others] < lo[others]) or np.any(olo[others] > hi[others]):
                    continue
                if olo[idim] == hi[idim] + 1:
                    grow_hi[idim] = self.nghostcells
                if ohi[idim] == lo[idim] - 1:
                    grow_lo[idim] = self.nghostcells

        return AMRBox(lo - grow_lo, hi + grow_hi, box.level, box.rank)

    def grid_for_box(self, box: AMRBox) -> UniformGrid:
        """
        A grid covering the box with the point field 'potential' and the cell field 'density'
        """
        spacing = self.level_spacing(box.level)
        origin = self.xmin + box.lo_corner * spacing
        grid = UniformGrid(origin, spacing, box.cell_dimensions + 1)

        ext = grid.extent
        ii, jj, kk = np.meshgrid(*[np.arange(ext[2*i], ext[2*i+1]+1) for i in range(3)], indexing='ij')
        points = np.stack([ii.ravel(order='F'), jj.ravel(order='F'), kk.ravel(order='F')])
        grid.point_data.add_array('potential', self.field(origin[:, None] + points * spacing[:, None]))

        ii, jj, kk = np.meshgrid(*[np.arange(n) for n in grid.cell_dimensions], indexing='ij')
        cells = np.stack([ii.ravel(order='F'), jj.ravel(order='F'), kk.ravel(order='F')])
        grid.cell_data.add_array('density', self.field(origin[:, None] + (cells + 0.5) * spacing[:, None]))

        return grid

    def grids(self) -> List[List[UniformGrid]]:
        """All the grids per level, with ghost layers if nghostcells > 0"""

        grids = []
        for level in range(self.number_of_levels):
            boxes = self.level_boxes(level)
            if self.nghostcells > 0:
                boxes = [self.ghosted_box(box, boxes) for box in boxes]
            grids.append([self.grid_for_box(box) for box in boxes])
        return grids

    def dataset(self, rank: int = 0, size: int = 1) -> AMRDataSet:
        """
        The part of the hierarchy owned by rank when the blocks are dealt out
        round-robin over size ranks
        """
        if not 0 <= rank < size:
            raise ValueError(f"rank {rank} out of range for {size} ranks")

        ds = AMRDataSet()
        iblock = 0
        for level, level_grids in enumerate(self.grids()):
            for grid in level_grids:
                if iblock % size == rank:
                    ds.add_grid(level, grid, rank)
                iblock += 1
        return ds
