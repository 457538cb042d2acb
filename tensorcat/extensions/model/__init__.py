from tensorcat.extensions.model.column import ArrowColumn, columns_to_table
from tensorcat.extensions.model.fixed_shape_tensor import FixedShapeTensorMetadata
from tensorcat.extensions.model.types import StorageKind
from tensorcat.extensions.model.variable_shape_tensor import (
    VariableShapeTensorMetadata,
)

__all__ = [
    "ArrowColumn",
    "FixedShapeTensorMetadata",
    "StorageKind",
    "VariableShapeTensorMetadata",
    "columns_to_table",
]
