import numpy as np
from typing import Optional

from loguru import logger

from amrmeta.dataset.data_set import AMRDataSet
from amrmeta.errors import EmptyDatasetError
from amrmeta.parallel.controller import Controller


def _is_distributed(controller: Optional[Controller]) -> bool:
    return controller is not None and controller.size > 1


def compute_global_bounds(amr_data: AMRDataSet, controller: Optional[Controller] = None) -> np.ndarray:
    """
    Computes the global bounds (xmin,ymin,zmin,xmax,ymax,zmax) over all the
    blocks of all the levels on all the processes.

    input:
    amr_data: AMRDataSet, the process-local dataset
    controller: Controller, required when the blocks are distributed

    output:
    bounds: np.ndarray of 6 floats, identical on every process
    """
    local = np.full(6, np.inf)
    local[3:] = -np.inf

    for block in amr_data.local_blocks():
        grid_bounds = block.grid.bounds
        local[:3] = np.minimum(local[:3], grid_bounds[:3])
        local[3:] = np.maximum(local[3:], grid_bounds[3:])

    if _is_distributed(controller):
        # a single min-reduction: the maxima travel negated
        reduced = controller.reduce(np.concatenate([local[:3], -local[3:]]), "min")
        bounds = np.concatenate([reduced[:3], -reduced[3:]])
    else:
        bounds = local

    if not np.all(np.isfinite(bounds)):
        raise EmptyDatasetError("Cannot compute global bounds, the dataset has no blocks on any process")

    logger.debug(f"Global bounds {bounds.tolist()}")
    return bounds


def compute_dataset_origin(amr_data: AMRDataSet, controller: Optional[Controller] = None) -> np.ndarray:
    """
    Computes the global origin, i.e. the min (x,y,z) of the level 0 blocks.

    Only level 0 is checked: it is guaranteed to cover the entire domain, while
    the finer blocks may sit anywhere inside it.
    """
    origin = np.full(3, np.inf)

    if amr_data.number_of_levels > 0:
        for block in amr_data.levels[0].local_blocks():
            origin = np.minimum(origin, block.grid.origin)

    if _is_distributed(controller):
        origin = controller.reduce(origin, "min")

    if not np.all(np.isfinite(origin)):
        raise EmptyDatasetError("Cannot compute the dataset origin, level 0 has no blocks on any process")

    return origin
