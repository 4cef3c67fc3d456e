"""
Detection and removal of the ghost layers of an AMR dataset.

Ghost layers show up in two ways. Blocks of the same level never overlap in a
ghost-free hierarchy, so an overlap between two boxes of one level is made of
ghost cells. The overlap between two face neighbors is shared evenly between
them: for an overlap of width w the lower block keeps ceil(w/2) fewer cells on
its max side and the upper block floor(w/2) fewer cells on its min side.

A refined block covers whole cells of the next coarser level, so its corners
sit on multiples of the refinement ratio r. Cells past the last multiple of r
on a side are ghost layers reaching over the coarse/fine boundary; this only
resolves ghost depths below r.

Both rules only use the exchanged boxes, so every process derives the same
seams.
"""

import numpy as np
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from amrmeta.dataset.data_set import AMRDataSet, Block, Level
from amrmeta.errors import ConsistencyError, IncompleteMetadataError, PartialOverlapAmbiguity
from amrmeta.mesh.field_data import FieldData
from amrmeta.mesh.uniform_grid import UniformGrid, cell_extent_from_point_extent
from amrmeta.parallel.controller import Controller
from .amr_box import AMRBox


def _level_boxes(level: Level) -> List[AMRBox]:

    boxes = level.boxes
    if any(box is None for box in boxes):
        raise IncompleteMetadataError(f"Level {level.level} has blocks without boxes, generate the metadata first")
    for box in boxes:
        if box.is_empty:
            raise PartialOverlapAmbiguity(f"Zero-width box {box} makes the overlap test ambiguous")
    return boxes


def _coarser_ratio(amr_data: AMRDataSet, ilevel: int) -> Optional[int]:
    """The refinement ratio between level ilevel-1 and ilevel, None at level 0"""

    if ilevel == 0:
        return None
    if len(amr_data.refinement_ratios) < ilevel:
        raise IncompleteMetadataError(f"No refinement ratio above level {ilevel}, generate the metadata first")
    return int(amr_data.refinement_ratios[ilevel-1])


def _overlapping_pairs(boxes: List[AMRBox]) -> np.ndarray:
    """
    Index pairs (i,j) of intersecting boxes, found by sweeping the boxes
    sorted along x. Each pair is reported once.
    """
    if len(boxes) < 2:
        return np.empty((0, 2), dtype=int)

    lo = np.array([box.lo for box in boxes])
    hi = np.array([box.hi for box in boxes])
    order = np.argsort(lo[:, 0], kind='stable')
    lo, hi = lo[order], hi[order]

    # the boxes after i in the sweep starting before i ends along x
    stop = np.searchsorted(lo[:, 0], hi[:, 0], side='right')

    pairs = []
    for i in range(len(boxes)):
        candidates = np.arange(i+1, stop[i])
        if len(candidates) == 0:
            continue
        hit = np.all((lo[candidates] <= hi[i]) & (hi[candidates] >= lo[i]), axis=1)
        pairs.extend((order[i], order[j]) for j in candidates[hit])

    return np.array(pairs, dtype=int).reshape(-1, 2)


def _stride_ghosts(box: AMRBox, ratio: Optional[int]) -> np.ndarray:
    """
    Cells on each side of a refined box past the last multiple of the ratio,
    axes one cell thick are left alone
    """
    ghost = np.zeros(6, dtype=int)
    if ratio is None or ratio <= 1:
        return ghost

    thick = box.cell_dimensions > 1
    ghost[0::2] = np.where(thick, np.mod(-box.lo_corner, ratio), 0)
    ghost[1::2] = np.where(thick, np.mod(box.hi_corner + 1, ratio), 0)
    return ghost


def has_partially_overlapping_ghost_cells(amr_data: AMRDataSet) -> bool:
    """
    A quick test of whether partially overlapping ghost cells exist. The test
    starts from the finest level and returns True as soon as a refined box is
    off the stride of its refinement ratio, or two boxes of one level overlap.
    Otherwise False is returned.
    """
    for ilevel in range(amr_data.number_of_levels-1, -1, -1):
        boxes = _level_boxes(amr_data.levels[ilevel])
        ratio = _coarser_ratio(amr_data, ilevel)

        if ratio is not None and ratio > 1 and boxes:
            lo = np.array([box.lo for box in boxes])
            hi = np.array([box.hi for box in boxes])
            off_stride = (hi > lo) & ((np.mod(lo, ratio) != 0) | (np.mod(hi + 1, ratio) != 0))
            if np.any(off_stride):
                i = int(np.flatnonzero(np.any(off_stride, axis=1))[0])
                logger.debug(f"Level {ilevel}: box {boxes[i]} is off the stride {ratio}")
                return True

        pairs = _overlapping_pairs(boxes)
        if len(pairs):
            i, j = pairs[0]
            logger.debug(f"Level {ilevel}: boxes {boxes[i]} and {boxes[j]} overlap")
            return True

    return False


def _face_crossing(box: AMRBox, neighbor: AMRBox) -> Optional[Tuple[int, int]]:
    """
    The side of box crossed by an intersecting neighbor and the ghost depth
    on that side, None for edge and corner neighbors
    """
    lo, hi = box.lo_corner, box.hi_corner
    nlo, nhi = neighbor.lo_corner, neighbor.hi_corner

    nested = ((nlo <= lo) & (nhi >= hi)) | ((lo <= nlo) & (hi >= nhi))
    partial = np.flatnonzero(~nested)
    if len(partial) > 1:
        return None

    if len(partial) == 1:
        axis = partial[0]
    else:
        # one box inside the other, flush with it on one side of one axis
        differ = np.flatnonzero((nlo != lo) | (nhi != hi))
        if len(differ) != 1 or (nlo[differ[0]] != lo[differ[0]] and nhi[differ[0]] != hi[differ[0]]):
            raise PartialOverlapAmbiguity(f"Boxes {box} and {neighbor} are nested, "
                                          f"no face separates their real cells")
        axis = differ[0]

    width = min(hi[axis], nhi[axis]) - max(lo[axis], nlo[axis]) + 1
    if lo[axis] + hi[axis] < nlo[axis] + nhi[axis]:
        return 2*axis + 1, (width + 1) // 2
    return 2*axis, width // 2


def get_ghost_vector(box: AMRBox, neighbors: Iterable[AMRBox], ratio: Optional[int] = None) -> np.ndarray:
    """
    The number of ghost layers on each of the 6 sides of the box,
    ordered (imin,imax,jmin,jmax,kmin,kmax).

    Sides crossed by a face neighbor, a box of the same level intersecting
    this one across a single face, take their depth from the overlap. The
    other sides of a refined box take it from the stride of the refinement
    ratio to the next coarser level, if given.

    A neighbor whose overlap lies within the overlap of another neighbor is
    further away than that one and is not counted.
    """
    if box.is_empty:
        raise PartialOverlapAmbiguity(f"Zero-width box {box} makes the ghost layers ambiguous")

    crossings = []
    for neighbor in neighbors:
        if neighbor is box or neighbor.level != box.level:
            continue
        if neighbor.is_empty:
            raise PartialOverlapAmbiguity(f"Zero-width box {neighbor} makes the ghost layers ambiguous")
        overlap = box.intersect(neighbor)
        if overlap is None:
            continue
        crossing = _face_crossing(box, neighbor)
        if crossing is not None:
            crossings.append((overlap, crossing))

    ghost = _stride_ghosts(box, ratio)
    found = np.zeros(6, dtype=bool)

    for overlap, (side, depth) in crossings:
        if any(other != overlap and other.contains(overlap) for other, _ in crossings):
            continue
        if found[side] and ghost[side] != depth:
            raise ConsistencyError(f"Box {box} has {ghost[side]} and {depth} ghost layers on side {side} "
                                   f"from different neighbors")
        ghost[side] = depth
        found[side] = True

    return ghost


def copy_field_data(target: FieldData, target_ids, source: FieldData, source_ids,
                    number_of_tuples: Optional[int] = None):
    """
    Copies the tuples of every source array at source_ids to target_ids of the
    target array of the same name. Missing target arrays are created first with
    the dtype and width of the source array.
    """
    target_ids = np.asarray(target_ids, dtype=int)
    source_ids = np.asarray(source_ids, dtype=int)
    if target_ids.shape != source_ids.shape:
        raise ValueError(f"Mismatched index maps {target_ids.shape} and {source_ids.shape}")

    if number_of_tuples is None:
        number_of_tuples = int(target_ids.max()) + 1 if target_ids.size else 0

    for name, values in source.items():
        if name not in target:
            target.allocate_like(name, values, number_of_tuples)
        target[name][target_ids] = values[source_ids]


def copy_fields_within_real_extent(real_extent, ghosted_grid: UniformGrid, stripped_grid: UniformGrid):
    """
    Given the real extent w.r.t. the ghosted grid, copies the point and cell
    fields of the ghosted grid onto the stripped grid.
    """
    real_extent = np.asarray(real_extent, dtype=int)
    local_extent = real_extent.copy()
    local_extent[0::2] = 0
    local_extent[1::2] = real_extent[1::2] - real_extent[0::2]

    copy_field_data(stripped_grid.point_data, stripped_grid.point_ids(local_extent),
                    ghosted_grid.point_data, ghosted_grid.point_ids(real_extent),
                    stripped_grid.number_of_points)

    copy_field_data(stripped_grid.cell_data, stripped_grid.cell_ids(cell_extent_from_point_extent(local_extent)),
                    ghosted_grid.cell_data, ghosted_grid.cell_ids(cell_extent_from_point_extent(real_extent)),
                    stripped_grid.number_of_cells)


def strip_ghost_layers_from_grid(grid: UniformGrid, ghost) -> UniformGrid:
    """
    Strips the ghost layers given as (imin,imax,jmin,jmax,kmin,kmax) from the
    grid. For example, a ghost vector of (0,2,0,2,0,0) removes 2 layers on the
    imax and the jmax side. The grid itself is returned if there is nothing
    to strip.
    """
    ghost = np.asarray(ghost)
    if ghost.shape != (6,):
        raise ValueError(f"ghost vector must have 6 entries, got shape {ghost.shape}")
    if not np.all(np.equal(np.mod(ghost, 1), 0)):
        raise ConsistencyError(f"Ghost layer counts must be integers, got {ghost.tolist()}")
    ghost = ghost.astype(int)
    if np.any(ghost < 0):
        raise ConsistencyError(f"Negative ghost layer count in {ghost.tolist()}")

    if not np.any(ghost):
        return grid

    real_extent = grid.extent.copy()
    real_extent[0::2] += ghost[0::2]
    real_extent[1::2] -= ghost[1::2]

    dims = real_extent[1::2] - real_extent[0::2] + 1
    # a non-flat axis must keep at least one cell
    if np.any(dims < 1) or np.any((grid.dimensions > 1) & (dims < 2)):
        raise ConsistencyError(f"Stripping {ghost.tolist()} from a grid of dimensions "
                               f"{grid.dimensions.tolist()} leaves a negative extent")

    stripped = UniformGrid(grid.origin + ghost[0::2] * grid.spacing, grid.spacing.copy(), dims)
    copy_fields_within_real_extent(real_extent, grid, stripped)

    return stripped


def strip_ghost_layers(ghosted: AMRDataSet, controller: Optional[Controller] = None) -> AMRDataSet:
    """
    Detects and strips the partially overlapping cells of the dataset. If
    ghost layers are detected, new grids are created for the stripped blocks,
    otherwise every block is shallow-copied.

    The ghosted dataset must carry the complete (exchanged) metadata, the
    stripped dataset comes with the boxes of all the stripped blocks.
    """
    if not has_partially_overlapping_ghost_cells(ghosted):
        logger.debug("No partially overlapping ghost cells, shallow copy")
        return ghosted.shallow_copy()

    stripped = ghosted.shallow_copy()
    nstripped = 0

    for level in stripped.levels:
        boxes = _level_boxes(level)
        ratio = _coarser_ratio(stripped, level.level)

        neighbors = [[] for _ in boxes]
        for i, j in _overlapping_pairs(boxes):
            neighbors[i].append(boxes[j])
            neighbors[j].append(boxes[i])

        blocks = []
        for block, box, near in zip(level.blocks, boxes, neighbors):
            ghost = get_ghost_vector(box, near, ratio)
            grid = block.grid
            if grid is not None:
                grid = strip_ghost_layers_from_grid(grid, ghost)
                nstripped += int(grid is not block.grid)
            blocks.append(Block(block.index, block.rank, box.shrink(ghost), grid))

        pairs = _overlapping_pairs([block.box for block in blocks])
        if len(pairs):
            i, j = pairs[0]
            raise ConsistencyError(f"Level {level.level}: boxes {blocks[i].box} and {blocks[j].box} "
                                   f"still overlap after stripping")
        level.blocks = blocks

    if controller is not None:
        controller.barrier()

    logger.info(f"Stripped ghost layers from {nstripped} local blocks")
    return stripped
