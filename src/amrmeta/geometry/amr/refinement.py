import numpy as np
from typing import List

from loguru import logger

from amrmeta.dataset.data_set import AMRDataSet
from amrmeta.errors import ConsistencyError, IncompleteMetadataError
from amrmeta.utils.configurations import get_configuration


def compute_level_refinement_ratio(amr_data: AMRDataSet) -> List[int]:
    """
    Computes the refinement ratio r_l = D_l / D_{l+1} at every level, D being
    the grid spacing of the level.

    Assumptions:
    1) the metadata has been collected, i.e. every level knows its spacing and
       the boxes of all its blocks
    2) within each level the ratio is the same for all blocks, so one block
       stands for the whole level
    3) the ratio is the same along every (non-flat) axis

    The finest level gets the configured default ratio.
    """
    nlevels = amr_data.number_of_levels
    if nlevels == 0:
        amr_data.refinement_ratios = []
        return []

    tolerance = get_configuration('ratio_tolerance')
    ratios = []

    for ilevel in range(nlevels-1):
        level = amr_data.levels[ilevel]
        child = amr_data.levels[ilevel+1]

        for lev in (level, child):
            if lev.spacing is None or not lev.blocks or lev.blocks[0].box is None:
                raise IncompleteMetadataError(f"Level {lev.level} has no spacing or boxes, collect the metadata first")

        box = level.blocks[0].box
        child_box = child.blocks[0].box

        # axes one cell thick on both levels carry no refinement (2D data)
        flat = (box.cell_dimensions == 1) & (child_box.cell_dimensions == 1)
        axes = ~flat if np.any(~flat) else np.ones(3, dtype=bool)

        ratio = level.spacing[axes] / child.spacing[axes]

        if np.ptp(ratio) > tolerance:
            raise ConsistencyError(f"Refinement ratio between level {ilevel} and {ilevel+1} "
                                   f"differs across axes: {ratio.tolist()}")

        r = int(round(ratio[0]))
        if r < 1 or abs(ratio[0] - r) > tolerance:
            raise ConsistencyError(f"Refinement ratio {ratio[0]} between level {ilevel} and {ilevel+1} "
                                   f"is not a positive integer")
        ratios.append(r)

    ratios.append(int(get_configuration('default_refinement_ratio')))
    amr_data.refinement_ratios = ratios

    logger.debug(f"Level refinement ratios {ratios}")
    return ratios
