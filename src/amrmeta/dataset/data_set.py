import numpy as np
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from amrmeta.geometry.amr.amr_box import AMRBox
from amrmeta.mesh.uniform_grid import UniformGrid


@dataclass
class Block:
    """
    One block slot of a level. The grid is None for blocks owned by other processes.
    """
    index: int  # position of the block within its owner's level
    rank: int = 0
    box: Optional[AMRBox] = None
    grid: Optional[UniformGrid] = None

    @property
    def is_local(self) -> bool:
        return self.grid is not None


@dataclass
class Level:
    """Blocks sharing one grid spacing"""
    level: int
    blocks: List[Block] = field(default_factory=list)
    spacing: Optional[np.ndarray] = None

    @property
    def boxes(self) -> List[Optional[AMRBox]]:
        return [block.box for block in self.blocks]

    def local_blocks(self) -> List[Block]:
        return [block for block in self.blocks if block.is_local]

    def __len__(self) -> int:
        return len(self.blocks)


class AMRDataSet:
    """
    Process-local view of an AMR hierarchy.

    Blocks owned by this process carry their grid. Once the metadata has been
    generated every level also lists the boxes of the blocks owned by the other
    processes, in the same (rank, index) order on every process.
    """

    def __init__(self, grids: Sequence[Sequence[UniformGrid]] | None = None, rank: int = 0):
        """
        Args:
            grids: owned grids per level, grids[level][index]
            rank: the rank owning the given grids
        """
        self.levels: List[Level] = []
        self.origin: Optional[np.ndarray] = None
        self.bounds: Optional[np.ndarray] = None
        self.refinement_ratios: List[int] = []

        if grids is not None:
            for ilevel, level_grids in enumerate(grids):
                self.ensure_levels(ilevel+1)
                for grid in level_grids:
                    self.add_grid(ilevel, grid, rank)

    @property
    def number_of_levels(self) -> int:
        return len(self.levels)

    def ensure_levels(self, nlevels: int):

        while len(self.levels) < nlevels:
            self.levels.append(Level(len(self.levels)))

    def add_grid(self, level: int, grid: UniformGrid, rank: int = 0) -> Block:
        """
        Append an owned grid to the given level
        """
        self.ensure_levels(level+1)
        index = len([b for b in self.levels[level].blocks if b.rank == rank])
        block = Block(index, rank, None, grid)
        self.levels[level].blocks.append(block)
        return block

    def number_of_blocks(self, level: int) -> int:
        return len(self.levels[level].blocks)

    def get_block(self, level: int, index: int) -> Block:
        return self.levels[level].blocks[index]

    def get_grid(self, level: int, index: int) -> Optional[UniformGrid]:
        return self.levels[level].blocks[index].grid

    def get_box(self, level: int, index: int) -> Optional[AMRBox]:
        return self.levels[level].blocks[index].box

    def refinement_ratio(self, level: int) -> int:
        return self.refinement_ratios[level]

    def blocks(self) -> Iterator[Block]:
        for level in self.levels:
            yield from level.blocks

    def local_blocks(self) -> Iterator[Block]:
        for level in self.levels:
            yield from level.local_blocks()

    @property
    def number_of_local_blocks(self) -> int:
        return sum(1 for _ in self.local_blocks())

    def drop_remote_blocks(self):
        """
        Discard the metadata of blocks owned by other processes, the levels
        beyond the finest owned one are dropped as well
        """
        levels = [Level(level.level, level.local_blocks()) for level in self.levels]
        while levels and not levels[-1].blocks:
            levels.pop()
        self.levels = levels

    def shallow_copy(self) -> 'AMRDataSet':
        """
        A new dataset sharing the grids and boxes of this one
        """
        ds = AMRDataSet()
        ds.levels = [Level(level.level,
                           [Block(b.index, b.rank, b.box, b.grid) for b in level.blocks],
                           None if level.spacing is None else level.spacing.copy())
                     for level in self.levels]
        ds.origin = None if self.origin is None else self.origin.copy()
        ds.bounds = None if self.bounds is None else self.bounds.copy()
        ds.refinement_ratios = list(self.refinement_ratios)
        return ds

    def __repr__(self) -> str:
        nblocks = [len(level) for level in self.levels]
        return f"AMRDataSet(levels={self.number_of_levels}, blocks={nblocks}, local={self.number_of_local_blocks})"
