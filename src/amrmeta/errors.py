"""
Exceptions raised by the AMR metadata and ghost-cell routines.

Every error aborts only the metadata or ghost operation that raised it,
the caller decides whether to rebuild the metadata or give up.
"""


class AMRMetadataError(Exception):
    """Base class of all errors raised while building or using AMR metadata."""


class EmptyDatasetError(AMRMetadataError):
    """No blocks exist on any process for a global reduction."""


class ProtocolError(AMRMetadataError):
    """A serialized metadata buffer is malformed or truncated."""


class ConsistencyError(AMRMetadataError):
    """The AMR geometry is invalid: bad refinement ratio or ghost layout."""


class PartialOverlapAmbiguity(AMRMetadataError):
    """Degenerate (zero-width) boxes make the ghost overlap test ambiguous."""


class IncompleteMetadataError(AMRMetadataError):
    """A block has no box or a level has no spacing where exchanged metadata is required."""
