"""Container image release: plan + registry -> build jobs -> images."""

from .errors import ImageError
from .matrix import MatrixResult, compute_matrix, derive_matrix, matrix_json
from .model import BuildJob, ImageDescriptor, ImageRegistry, JobOutcome, ReleasePlanEntry

__all__ = [
    "BuildJob",
    "ImageDescriptor",
    "ImageError",
    "ImageRegistry",
    "JobOutcome",
    "MatrixResult",
    "ReleasePlanEntry",
    "compute_matrix",
    "derive_matrix",
    "matrix_json",
]
