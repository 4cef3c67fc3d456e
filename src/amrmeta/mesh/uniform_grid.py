import numpy as np
from dataclasses import dataclass, field
from typing import Sequence

from .field_data import FieldData


@dataclass
class UniformGrid:
    """
    Axis-aligned uniform block holding point and cell fields.

    Points are indexed with the extent [0, dims-1] along each axis and flat ids
    run x fastest. An axis with a single point is flat and holds one cell layer.
    """

    origin: np.ndarray
    spacing: np.ndarray
    dimensions: np.ndarray  # number of points along each axis
    point_data: FieldData = field(default_factory=FieldData)
    cell_data: FieldData = field(default_factory=FieldData)

    def __post_init__(self):
        self.origin = np.asarray(self.origin, dtype=float).reshape(3)
        self.spacing = np.asarray(self.spacing, dtype=float).reshape(3)
        self.dimensions = np.asarray(self.dimensions, dtype=int).reshape(3)

        if np.any(self.dimensions < 1):
            raise ValueError(f"dimensions must be at least 1 along each axis, got {self.dimensions}")
        if np.any(self.spacing <= 0):
            raise ValueError(f"spacing must be positive, got {self.spacing}")

    @property
    def extent(self) -> np.ndarray:
        """Point extent (imin,imax,jmin,jmax,kmin,kmax)"""
        ext = np.zeros(6, dtype=int)
        ext[1::2] = self.dimensions - 1
        return ext

    @property
    def cell_dimensions(self) -> np.ndarray:
        return np.maximum(self.dimensions - 1, 1)

    @property
    def number_of_points(self) -> int:
        return int(np.prod(self.dimensions))

    @property
    def number_of_cells(self) -> int:
        return int(np.prod(self.cell_dimensions))

    @property
    def bounds(self) -> np.ndarray:
        """World bounds (xmin,ymin,zmin,xmax,ymax,zmax)"""
        return np.concatenate([self.origin, self.origin + self.spacing * (self.dimensions - 1)])

    def point_ids(self, extent: Sequence[int]) -> np.ndarray:
        """Flat ids of the points inside a sub-extent of this grid"""
        return _flat_ids(extent, self.dimensions)

    def cell_ids(self, cell_extent: Sequence[int]) -> np.ndarray:
        """Flat ids of the cells inside a sub cell-extent of this grid"""
        return _flat_ids(cell_extent, self.cell_dimensions)


def cell_extent_from_point_extent(extent: Sequence[int]) -> np.ndarray:
    """
    The cells spanned by a point extent; flat axes keep their single cell
    """
    extent = np.asarray(extent, dtype=int)
    cell_extent = extent.copy()
    for i in range(3):
        if extent[2*i+1] > extent[2*i]:
            cell_extent[2*i+1] = extent[2*i+1] - 1
    return cell_extent


def _flat_ids(extent: Sequence[int], dims: np.ndarray) -> np.ndarray:

    extent = np.asarray(extent, dtype=int)
    ranges = [np.arange(extent[2*i], extent[2*i+1]+1) for i in range(3)]
    ii, jj, kk = np.meshgrid(*ranges, indexing='ij')
    # x fastest, consistent with the flattened order='F' layout
    return np.ravel_multi_index((ii.ravel(order='F'), jj.ravel(order='F'), kk.ravel(order='F')),
                                tuple(dims), order='F')
