import logging

import tensorcat.logs  # noqa: F401
from tensorcat.extensions import (
    ArrowColumn,
    ExtensionRegistration,
    ExtensionRegistry,
    FixedShapeTensorArray,
    FixedShapeTensorMetadata,
    StorageKind,
    VariableShapeTensorArray,
    VariableShapeTensorMetadata,
    columns_to_table,
    default_registry,
    register_tensor_extensions,
)

tensorcat.logs.configure_tensorcat_logger(logging.getLogger(__name__))

__version__ = "0.1.0"


__all__ = [
    "__version__",
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
