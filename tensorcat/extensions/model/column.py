# Allow classes to use self-referencing Type hints in Python 3.7.
from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pyarrow as pa

from tensorcat import logs
from tensorcat.constants import EXTENSION_METADATA_KEY, EXTENSION_NAME_KEY
from tensorcat.exceptions import InvalidArgumentError, categorize_errors
from tensorcat.extensions.extension_metadata import RESERVED_EXTENSION_KEYS
from tensorcat.extensions.model.fixed_shape_tensor import FixedShapeTensorMetadata
from tensorcat.extensions.model.types import StorageKind

logger = logs.configure_tensorcat_logger(logging.getLogger(__name__))

KeyValuePair = Tuple[str, str]
MetadataInput = Union[Mapping, Sequence[Tuple[Union[str, bytes], Union[str, bytes]]]]


class ArrowColumn(dict):
    """
    A pyarrow array together with its display name and its ordered field-level
    key-value metadata. This is the unit that extension arrays are built on
    and loaded from.
    """

    @staticmethod
    def of(
        array: pa.Array,
        name: Optional[str] = None,
        metadata: Optional[MetadataInput] = None,
    ) -> ArrowColumn:
        if isinstance(array, pa.ChunkedArray):
            array = array.combine_chunks()
        if not isinstance(array, pa.Array):
            raise InvalidArgumentError(
                f"Expected a pyarrow array but found {type(array).__name__}"
            )
        return ArrowColumn(
            {
                "array": array,
                "name": name,
                "metadata": _normalize_metadata(metadata),
            }
        )

    @staticmethod
    def from_field(
        field: pa.Field,
        array: Union[pa.Array, pa.ChunkedArray],
    ) -> ArrowColumn:
        """
        Creates a column from an Arrow field and its data. If the field has an
        Arrow extension type, then the column holds the extension's storage
        array, and the extension name and serialized parameters are restored
        into the column's metadata.
        """
        if isinstance(array, pa.ChunkedArray):
            array = array.combine_chunks()
        metadata = _normalize_metadata(field.metadata) or []
        if isinstance(field.type, pa.BaseExtensionType):
            if isinstance(array, pa.ExtensionArray):
                array = array.storage
            metadata = [pair for pair in metadata if pair[0] not in RESERVED_EXTENSION_KEYS]
            metadata.append((EXTENSION_NAME_KEY, field.type.extension_name))
            serialized = _serialize_extension_type(field.type)
            if serialized:
                metadata.append((EXTENSION_METADATA_KEY, serialized))
        return ArrowColumn.of(array, field.name, metadata or None)

    @staticmethod
    def from_table(table: pa.Table, column: Union[str, int]) -> ArrowColumn:
        index = table.schema.get_field_index(column) if isinstance(column, str) else column
        if index < 0:
            raise InvalidArgumentError(f"Column '{column}' not found in table.")
        return ArrowColumn.from_field(table.schema.field(index), table.column(index))

    @property
    def array(self) -> pa.Array:
        return self["array"]

    @property
    def name(self) -> Optional[str]:
        return self.get("name")

    @property
    def metadata(self) -> Optional[List[KeyValuePair]]:
        return self.get("metadata")

    @property
    def storage_kind(self) -> StorageKind:
        return StorageKind.of(self.array.type)

    @property
    def field(self) -> pa.Field:
        metadata = self.metadata
        return pa.field(
            self.name or "",
            self.array.type,
            metadata=pa.KeyValueMetadata(metadata) if metadata else None,
        )

    def set_name(self, name: Optional[str]) -> None:
        self["name"] = name

    def set_metadata(self, metadata: Optional[MetadataInput]) -> None:
        self["metadata"] = _normalize_metadata(metadata)


@categorize_errors
def columns_to_table(columns: Iterable[ArrowColumn]) -> pa.Table:
    """Creates a table with one column per given column, preserving each
    column's name and field metadata."""
    columns = list(columns)
    return pa.Table.from_arrays(
        [column.array for column in columns],
        schema=pa.schema([column.field for column in columns]),
    )


def _to_str(value: Union[str, bytes]) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def _normalize_metadata(metadata: Optional[MetadataInput]) -> Optional[List[KeyValuePair]]:
    if metadata is None:
        return None
    pairs = metadata.items() if isinstance(metadata, Mapping) else metadata
    return [(_to_str(key), _to_str(value)) for key, value in pairs]


def _serialize_extension_type(arrow_type: pa.BaseExtensionType) -> Optional[str]:
    if isinstance(arrow_type, pa.FixedShapeTensorType):
        return FixedShapeTensorMetadata.of(
            shape=arrow_type.shape,
            dim_names=arrow_type.dim_names or None,
            permutation=arrow_type.permutation or None,
        ).to_json()
    if isinstance(arrow_type, pa.ExtensionType):
        return _to_str(arrow_type.__arrow_ext_serialize__())
    logger.debug(
        f"Parameters of extension type '{arrow_type.extension_name}' cannot be "
        f"serialized. Only its name will be kept."
    )
    return None
