"""
amrmeta: metadata and ghost-cell geometry for block-structured AMR datasets.

This package builds a globally consistent view of the boxes of a (possibly
distributed) AMR hierarchy, derives the level refinement ratios and detects
and strips the ghost layers of its blocks.
"""

__version__ = "0.1.0"
__author__ = "Hao Wu"
__license__ = "GPL-3.0"

# Version information tuple
VERSION_INFO = tuple(map(int, __version__.split(".")))

# Expose main functionality at package level
from .utils import configurations
from .errors import (AMRMetadataError, EmptyDatasetError, ProtocolError, ConsistencyError,
                     PartialOverlapAmbiguity, IncompleteMetadataError)
from .geometry.amr.amr_box import AMRBox
from .mesh.field_data import FieldData
from .mesh.uniform_grid import UniformGrid
from .dataset.data_set import AMRDataSet
from .parallel.controller import Controller, SerialController, MPIController, ThreadGroup
from .geometry.amr.bounds import compute_global_bounds, compute_dataset_origin
from .geometry.amr.metadata import (create_amr_box_for_grid, compute_local_metadata, serialize_metadata,
                                    deserialize_metadata, distribute_metadata, collect_amr_metadata,
                                    generate_metadata)
from .geometry.amr.refinement import compute_level_refinement_ratio
from .geometry.amr.ghost_cells import (has_partially_overlapping_ghost_cells, get_ghost_vector,
                                       strip_ghost_layers_from_grid, copy_fields_within_real_extent,
                                       copy_field_data, strip_ghost_layers)
from .geometry.amr.generators import AMRGenerator

# Define what should be available in "from amrmeta import *"
__all__ = [
    'configurations',
    'AMRMetadataError',
    'EmptyDatasetError',
    'ProtocolError',
    'ConsistencyError',
    'PartialOverlapAmbiguity',
    'IncompleteMetadataError',
    'AMRBox',
    'FieldData',
    'UniformGrid',
    'AMRDataSet',
    'Controller',
    'SerialController',
    'MPIController',
    'ThreadGroup',
    'compute_global_bounds',
    'compute_dataset_origin',
    'create_amr_box_for_grid',
    'compute_local_metadata',
    'serialize_metadata',
    'deserialize_metadata',
    'distribute_metadata',
    'collect_amr_metadata',
    'generate_metadata',
    'compute_level_refinement_ratio',
    'has_partially_overlapping_ghost_cells',
    'get_ghost_vector',
    'strip_ghost_layers_from_grid',
    'copy_fields_within_real_extent',
    'copy_field_data',
    'strip_ghost_layers',
    'AMRGenerator',
]
