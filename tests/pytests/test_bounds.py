import numpy as np
import pytest
from amrmeta.dataset.data_set import AMRDataSet
from amrmeta.errors import EmptyDatasetError
from amrmeta.geometry.amr.bounds import compute_global_bounds, compute_dataset_origin
from amrmeta.geometry.amr.generators import AMRGenerator
from amrmeta.mesh.uniform_grid import UniformGrid
from amrmeta.parallel.controller import SerialController, ThreadGroup

@pytest.fixture
def common_generator():
    """
    2 x 2 x 1 level 0 blocks of 4 cells, spacing 0.5 from (-1,0,0),
    and a level 1 region of 2 x 2 x 2 blocks
    """
    gen = AMRGenerator(2, 2, 1, block_nx=[4, 4, 4], xmin=(-1., 0., 0.), dx=(0.5, 0.5, 0.5))
    gen.add_refined_region(1, [0, 0, 0], [7, 7, 7])
    return gen

def test_global_bounds_serial(common_generator):

    ds = common_generator.dataset()
    bounds = compute_global_bounds(ds)

    assert np.allclose(bounds, [-1., 0., 0., 3., 4., 2.])
    assert np.allclose(compute_global_bounds(ds, SerialController()), bounds)

@pytest.mark.parametrize("size", [1, 2, 3, 5, 13])
def test_global_bounds_distribution_invariance(common_generator, size):
    """Any partition of the 12 blocks, including ranks without blocks, gives the same bounds"""

    expected = compute_global_bounds(common_generator.dataset())

    group = ThreadGroup(size)
    results = group.run(lambda c: compute_global_bounds(common_generator.dataset(c.rank, c.size), c))

    for bounds in results:
        assert np.array_equal(bounds, expected)

def test_empty_dataset_bounds():

    with pytest.raises(EmptyDatasetError):
        compute_global_bounds(AMRDataSet())

    group = ThreadGroup(3)
    with pytest.raises(EmptyDatasetError):
        group.run(lambda c: compute_global_bounds(AMRDataSet(), c))

def test_dataset_origin_uses_level0_only():
    """A level 1 block sticking out below level 0 must not move the origin"""

    level0 = UniformGrid((0., 0., 0.), (1., 1., 1.), (5, 5, 5))
    level1 = UniformGrid((-1., -1., -1.), (0.5, 0.5, 0.5), (5, 5, 5))
    ds = AMRDataSet([[level0], [level1]])

    assert np.allclose(compute_dataset_origin(ds), [0., 0., 0.])
    # the bounds do see every level
    assert np.allclose(compute_global_bounds(ds)[:3], [-1., -1., -1.])

def test_dataset_origin_distributed(common_generator):

    group = ThreadGroup(4)
    results = group.run(lambda c: compute_dataset_origin(common_generator.dataset(c.rank, c.size), c))

    for origin in results:
        assert np.allclose(origin, [-1., 0., 0.])

def test_dataset_origin_empty():

    level1 = UniformGrid((0., 0., 0.), (0.5, 0.5, 0.5), (5, 5, 5))
    ds = AMRDataSet([[], [level1]])

    with pytest.raises(EmptyDatasetError):
        compute_dataset_origin(ds)
