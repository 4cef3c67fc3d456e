import numpy as np
import pytest
from amrmeta.geometry.amr.amr_box import AMRBox
from amrmeta.errors import ConsistencyError

@pytest.fixture
def common_box():
    """A level 1 box of 8 x 4 x 2 cells"""
    return AMRBox((2, 4, 0), (9, 7, 1), level=1, rank=3)

def test_box_dimensions(common_box):

    assert np.all(common_box.cell_dimensions == [8, 4, 2])
    assert common_box.number_of_cells == 64
    assert not common_box.is_empty

    empty = AMRBox((0, 0, 0), (3, -1, 3))
    assert empty.is_empty
    assert empty.empty_dimension(1)
    assert not empty.empty_dimension(0)
    assert empty.number_of_cells == 0

def test_box_normalizes_corners():

    box = AMRBox(np.array([1, 2, 3]), [4.0, 5.0, 6.0])
    assert box.lo == (1, 2, 3)
    assert box.hi == (4, 5, 6)
    assert box == AMRBox((1, 2, 3), (4, 5, 6))

    with pytest.raises(ValueError):
        AMRBox((0, 0), (1, 1))
    with pytest.raises(ValueError):
        AMRBox((0, 0, 0), (1, 1, 1), level=-1)

def test_intersect_and_contains(common_box):

    other = AMRBox((8, 0, 0), (15, 5, 1), level=1)
    common = common_box.intersect(other)
    assert common.lo == (8, 4, 0)
    assert common.hi == (9, 5, 1)

    assert common_box.intersect(AMRBox((10, 0, 0), (12, 3, 1), level=1)) is None
    assert common_box.contains(common)
    assert not common.contains(common_box)

    with pytest.raises(ValueError):
        common_box.intersect(AMRBox((0, 0, 0), (1, 1, 1), level=0))

def test_coarsen_refine(common_box):

    coarse = common_box.coarsen(2)
    assert coarse.level == 0
    assert coarse.lo == (1, 2, 0)
    assert coarse.hi == (4, 3, 0)

    fine = coarse.refine(2)
    assert fine.level == 1
    assert fine.lo == (2, 4, 0)
    assert fine.hi == (9, 7, 1)

    with pytest.raises(ValueError):
        coarse.coarsen(2)

def test_shrink(common_box):

    shrunk = common_box.shrink([1, 2, 0, 1, 0, 0])
    assert shrunk.lo == (3, 4, 0)
    assert shrunk.hi == (7, 6, 1)
    assert shrunk.level == common_box.level
    assert shrunk.rank == common_box.rank

    with pytest.raises(ConsistencyError):
        common_box.shrink([0, 0, 0, 0, -1, 0])
    with pytest.raises(ConsistencyError):
        common_box.shrink([4, 4, 0, 0, 0, 0])
