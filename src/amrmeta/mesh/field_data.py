import numpy as np
from typing import Dict, Iterator, List, Tuple


class FieldData:
    """
    Named tuple arrays attached to the points or the cells of a grid.

    Each array is stored as (number_of_tuples, number_of_components), tuples
    are addressed by the flat point/cell id of the owning grid.
    """

    def __init__(self, arrays: Dict[str, np.ndarray] | None = None):

        self._arrays: Dict[str, np.ndarray] = {}
        if arrays is not None:
            for name, values in arrays.items():
                self.add_array(name, values)

    def add_array(self, name: str, values) -> np.ndarray:

        values = np.asarray(values)
        if values.ndim == 1:
            values = values.reshape(-1, 1)
        if values.ndim != 2:
            raise ValueError(f"Array '{name}' must be 1D or 2D, got shape {values.shape}")
        self._arrays[name] = values
        return values

    def get_array(self, name: str) -> np.ndarray:
        return self._arrays[name]

    def allocate_like(self, name: str, source: np.ndarray, number_of_tuples: int) -> np.ndarray:
        """Create an array with the dtype and width of the source array"""
        return self.add_array(name, np.zeros((number_of_tuples, source.shape[1]), dtype=source.dtype))

    @property
    def array_names(self) -> List[str]:
        return list(self._arrays)

    @property
    def number_of_arrays(self) -> int:
        return len(self._arrays)

    def items(self) -> Iterator[Tuple[str, np.ndarray]]:
        return iter(self._arrays.items())

    def __contains__(self, name: str) -> bool:
        return name in self._arrays

    def __getitem__(self, name: str) -> np.ndarray:
        return self._arrays[name]

    def __len__(self) -> int:
        return len(self._arrays)

    def __repr__(self) -> str:
        shapes = ", ".join(f"{name}: {values.shape}" for name, values in self._arrays.items())
        return f"FieldData({shapes})"
