from tensorcat.extensions.model import (
    ArrowColumn,
    FixedShapeTensorMetadata,
    StorageKind,
    VariableShapeTensorMetadata,
    columns_to_table,
)
from tensorcat.extensions.fixed_shape_tensor import FixedShapeTensorArray
from tensorcat.extensions.variable_shape_tensor import VariableShapeTensorArray
from tensorcat.extensions.registry import (
    ExtensionRegistration,
    ExtensionRegistry,
    default_registry,
    register_tensor_extensions,
)

__all__ = [
    "ArrowColumn",
    "ExtensionRegistration",
    "ExtensionRegistry",
    "FixedShapeTensorArray",
    "FixedShapeTensorMetadata",
    "StorageKind",
    "VariableShapeTensorArray",
    "VariableShapeTensorMetadata",
    "columns_to_table",
    "default_registry",
    "register_tensor_extensions",
]
