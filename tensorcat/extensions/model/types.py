from __future__ import annotations

from enum import Enum

import pyarrow as pa


class StorageKind(str, Enum):
    FIXED_SIZE_LIST = "fixed_size_list"
    LIST = "list"
    LARGE_LIST = "large_list"
    STRUCT = "struct"
    FIXED_SIZE_BINARY = "fixed_size_binary"
    OTHER = "other"

    @staticmethod
    def of(arrow_type: pa.DataType) -> StorageKind:
        """Returns the kind of physical storage used by the given Arrow type.
        Extension types resolve to the kind of their storage type."""
        if isinstance(arrow_type, pa.BaseExtensionType):
            arrow_type = arrow_type.storage_type
        if pa.types.is_fixed_size_list(arrow_type):
            return StorageKind.FIXED_SIZE_LIST
        if pa.types.is_list(arrow_type):
            return StorageKind.LIST
        if pa.types.is_large_list(arrow_type):
            return StorageKind.LARGE_LIST
        if pa.types.is_struct(arrow_type):
            return StorageKind.STRUCT
        if pa.types.is_fixed_size_binary(arrow_type):
            return StorageKind.FIXED_SIZE_BINARY
        return StorageKind.OTHER
