import numpy as np
import pytest
from amrmeta.mesh.uniform_grid import UniformGrid, cell_extent_from_point_extent
from amrmeta.mesh.field_data import FieldData

def test_grid_geometry():

    grid = UniformGrid((1., 2., 3.), (0.5, 0.5, 0.25), (5, 3, 1))

    assert np.all(grid.extent == [0, 4, 0, 2, 0, 0])
    assert np.all(grid.cell_dimensions == [4, 2, 1])
    assert grid.number_of_points == 15
    assert grid.number_of_cells == 8
    assert np.allclose(grid.bounds, [1., 2., 3., 3., 3., 3.])

def test_grid_validation():

    with pytest.raises(ValueError):
        UniformGrid((0, 0, 0), (1, 1, 1), (0, 2, 2))
    with pytest.raises(ValueError):
        UniformGrid((0, 0, 0), (1, -1, 1), (2, 2, 2))

def test_point_ids_x_fastest():

    grid = UniformGrid((0, 0, 0), (1, 1, 1), (4, 3, 2))

    assert np.all(grid.point_ids([0, 3, 0, 2, 0, 1]) == np.arange(24))
    # the second row of the first slab
    assert np.all(grid.point_ids([0, 3, 1, 1, 0, 0]) == [4, 5, 6, 7])
    assert np.all(grid.point_ids([1, 1, 0, 2, 1, 1]) == [13, 17, 21])

def test_cell_extent_from_point_extent():

    assert np.all(cell_extent_from_point_extent([0, 7, 2, 5, 0, 0]) == [0, 6, 2, 4, 0, 0])

def test_field_data():

    fd = FieldData({'density': np.arange(4.0)})
    fd.add_array('velocity', np.zeros((4, 3), dtype=np.float32))

    assert fd.number_of_arrays == 2
    assert fd.array_names == ['density', 'velocity']
    assert fd['density'].shape == (4, 1)
    assert 'velocity' in fd

    target = FieldData()
    created = target.allocate_like('velocity', fd['velocity'], 6)
    assert created.shape == (6, 3)
    assert created.dtype == np.float32

    with pytest.raises(ValueError):
        fd.add_array('bad', np.zeros((2, 2, 2)))
