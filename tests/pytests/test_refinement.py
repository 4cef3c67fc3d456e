import numpy as np
import pytest
from amrmeta.dataset.data_set import AMRDataSet
from amrmeta.errors import ConsistencyError, IncompleteMetadataError
from amrmeta.geometry.amr.generators import AMRGenerator
from amrmeta.geometry.amr.metadata import collect_amr_metadata, generate_metadata
from amrmeta.geometry.amr.refinement import compute_level_refinement_ratio
from amrmeta.mesh.uniform_grid import UniformGrid
from amrmeta.utils.configurations import update_configurations, reset_configurations

def two_level_dataset(fine_spacing, coarse_dims=(9, 9, 9), fine_dims=(5, 5, 5)):

    coarse = UniformGrid((0., 0., 0.), (1., 1., 1.), coarse_dims)
    fine = UniformGrid((0., 0., 0.), fine_spacing, fine_dims)
    ds = AMRDataSet([[coarse], [fine]])
    collect_amr_metadata(ds)
    return ds

def test_ratio_two():

    ds = two_level_dataset((0.5, 0.5, 0.5))
    ratios = compute_level_refinement_ratio(ds)

    assert ratios == [2, 2]
    assert ds.refinement_ratios == ratios
    assert ds.refinement_ratio(0) == 2

def test_ratio_from_generator():

    gen = AMRGenerator(2, 2, 2, block_nx=[4, 4, 4], ratio=4)
    gen.add_refined_region(1, [0, 0, 0], [7, 7, 7])
    gen.add_refined_region(2, [0, 0, 0], [3, 3, 3])
    ds = gen.dataset()
    generate_metadata(ds)

    assert ds.refinement_ratios == [4, 4, 2]

def test_non_isotropic_ratio():

    ds = two_level_dataset((0.5, 0.25, 0.5))
    with pytest.raises(ConsistencyError):
        compute_level_refinement_ratio(ds)

def test_non_integer_ratio():

    ds = two_level_dataset((0.4, 0.4, 0.4))
    with pytest.raises(ConsistencyError):
        compute_level_refinement_ratio(ds)

def test_coarser_child_level():

    ds = two_level_dataset((2., 2., 2.))
    with pytest.raises(ConsistencyError):
        compute_level_refinement_ratio(ds)

def test_flat_axis_is_ignored():
    """2D data keeps the same spacing along the flat axis on every level"""

    ds = two_level_dataset((0.5, 0.5, 1.), coarse_dims=(9, 9, 1), fine_dims=(5, 5, 1))
    assert compute_level_refinement_ratio(ds) == [2, 2]

def test_ratio_tolerance():

    ds = two_level_dataset((0.5 + 1e-9, 0.5, 0.5))
    assert compute_level_refinement_ratio(ds)[0] == 2

    ds = two_level_dataset((0.5001, 0.5001, 0.5001))
    with pytest.raises(ConsistencyError):
        compute_level_refinement_ratio(ds)

    update_configurations(ratio_tolerance=1e-2)
    try:
        assert compute_level_refinement_ratio(ds)[0] == 2
    finally:
        reset_configurations()

def test_single_and_no_level():

    ds = AMRDataSet([[UniformGrid((0., 0., 0.), (1., 1., 1.), (3, 3, 3))]])
    collect_amr_metadata(ds)
    assert compute_level_refinement_ratio(ds) == [2]

    assert compute_level_refinement_ratio(AMRDataSet()) == []

def test_ratio_requires_metadata():

    ds = AMRDataSet([[UniformGrid((0., 0., 0.), (1., 1., 1.), (3, 3, 3))],
                     [UniformGrid((0., 0., 0.), (.5, .5, .5), (3, 3, 3))]])
    with pytest.raises(IncompleteMetadataError):
        compute_level_refinement_ratio(ds)
