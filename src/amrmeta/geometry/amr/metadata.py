import struct
import numpy as np
from typing import List, Optional

from loguru import logger

from amrmeta.dataset.data_set import AMRDataSet, Block, Level
from amrmeta.errors import IncompleteMetadataError, ProtocolError
from amrmeta.mesh.uniform_grid import UniformGrid
from amrmeta.parallel.controller import Controller
from amrmeta.utils.configurations import get_configuration
from .amr_box import AMRBox
from .bounds import compute_dataset_origin, compute_global_bounds
from .refinement import compute_level_refinement_ratio

# Native byte order without padding; exchange between processes of different
# endianness is not supported
ALIGN = "="
COUNT_FORMAT = ALIGN + "i"
# level, rank, lo[3], hi[3]
RECORD_FORMAT = ALIGN + 8 * "i"
COUNT_SIZE = struct.calcsize(COUNT_FORMAT)
RECORD_SIZE = struct.calcsize(RECORD_FORMAT)


def create_amr_box_for_grid(origin, grid: UniformGrid, level: int = 0, rank: int = 0) -> AMRBox:
    """
    Construct the box of a grid w.r.t. the global origin.

    The data on the grid is taken as cell-centered, hence the box spans the
    cell dimensions of the grid and not the node dimensions.
    """
    origin = np.asarray(origin, dtype=float)
    tolerance = get_configuration('index_tolerance')

    lo = np.floor((grid.origin - origin) / grid.spacing + tolerance).astype(int)
    hi = lo + grid.cell_dimensions - 1
    return AMRBox(lo, hi, level, rank)


def compute_local_metadata(origin, amr_data: AMRDataSet, process: int):
    """
    Computes the boxes of the blocks owned by this process, and the spacing
    of every level holding at least one of them
    """
    for level in amr_data.levels:
        local_blocks = level.local_blocks()
        for block in local_blocks:
            block.rank = process
            block.box = create_amr_box_for_grid(origin, block.grid, level.level, process)
        # uniform within a level, the first grid stands for all
        level.spacing = local_blocks[0].grid.spacing.copy() if local_blocks else None


def serialize_metadata(amr_data: AMRDataSet) -> bytes:
    """
    Pack the boxes of the owned blocks, ordered by level then block index:
    a record count followed by one {level, rank, lo[3], hi[3]} record per box
    """
    records = []
    for block in amr_data.local_blocks():
        box = block.box
        if box is None:
            raise IncompleteMetadataError(f"Owned block {block.index} has no box, compute the local metadata first")
        records.append(struct.pack(RECORD_FORMAT, box.level, box.rank, *box.lo, *box.hi))

    return struct.pack(COUNT_FORMAT, len(records)) + b"".join(records)


def deserialize_metadata(buffer: bytes) -> List[AMRBox]:

    buffer = bytes(buffer)
    if len(buffer) < COUNT_SIZE:
        raise ProtocolError(f"Metadata buffer of {len(buffer)} bytes has no record count")

    [nboxes] = struct.unpack_from(COUNT_FORMAT, buffer)
    if nboxes < 0:
        raise ProtocolError(f"Negative record count {nboxes} in metadata buffer")

    expected = COUNT_SIZE + nboxes * RECORD_SIZE
    if len(buffer) != expected:
        raise ProtocolError(f"Metadata buffer declares {nboxes} records ({expected} bytes) but holds {len(buffer)} bytes")

    boxes = []
    for level, rank, *corners in struct.iter_unpack(RECORD_FORMAT, buffer[COUNT_SIZE:]):
        if level < 0:
            raise ProtocolError(f"Negative level {level} in metadata record")
        boxes.append(AMRBox(corners[:3], corners[3:], level, rank))
    return boxes


def distribute_metadata(amr_data: AMRDataSet, controller: Controller):
    """
    Exchange the metadata so that every process holds the boxes of all the
    blocks. The merged levels are built aside and swapped in at the end.
    """
    nlevels = int(controller.reduce(np.array([amr_data.number_of_levels]), "max")[0])

    # +inf where this process owns no block of the level
    spacing = np.full((nlevels, 3), np.inf)
    for level in amr_data.levels:
        if level.spacing is not None:
            spacing[level.level] = level.spacing
    spacing = controller.reduce(spacing, "min")

    buffers = controller.all_gather(serialize_metadata(amr_data))

    levels = [Level(ilevel, [], spacing[ilevel].copy() if np.all(np.isfinite(spacing[ilevel])) else None)
              for ilevel in range(nlevels)]

    for rank, buffer in enumerate(buffers):
        if rank == controller.rank:
            for level in amr_data.levels:
                levels[level.level].blocks.extend(level.local_blocks())
            continue

        nblocks = np.zeros(nlevels, dtype=int)
        for box in deserialize_metadata(buffer):
            if box.rank != rank:
                raise ProtocolError(f"Record of rank {box.rank} found in the buffer of rank {rank}")
            if box.level >= nlevels:
                raise ProtocolError(f"Record level {box.level} exceeds the {nlevels} agreed levels")
            levels[box.level].blocks.append(Block(int(nblocks[box.level]), rank, box))
            nblocks[box.level] += 1

    amr_data.levels = levels

    logger.debug(f"Rank {controller.rank}: metadata of {sum(len(level) for level in levels)} blocks "
                 f"on {nlevels} levels after exchange")


def collect_amr_metadata(amr_data: AMRDataSet, controller: Optional[Controller] = None, origin=None):
    """
    Collects & constructs the metadata of the given dataset. If the data is
    distributed, the metadata is communicated s.t. every process holds the
    complete hierarchy of boxes.
    """
    rank = 0 if controller is None else controller.rank

    # metadata is rebuilt from the owned grids on every pass
    amr_data.drop_remote_blocks()

    if origin is None:
        origin = compute_dataset_origin(amr_data, controller)
    origin = np.asarray(origin, dtype=float)

    compute_local_metadata(origin, amr_data, rank)

    if controller is not None and controller.size > 1:
        distribute_metadata(amr_data, controller)

    amr_data.origin = origin
    amr_data.bounds = compute_global_bounds(amr_data, controller)


def generate_metadata(amr_data: AMRDataSet, controller: Optional[Controller] = None, origin=None):
    """
    Generates all the metadata of the dataset: the distributed boxes, origin,
    bounds and the refinement ratio of every level.
    """
    collect_amr_metadata(amr_data, controller, origin)
    compute_level_refinement_ratio(amr_data)

    logger.info(f"Generated metadata: {amr_data}, ratios {amr_data.refinement_ratios}")
