# Allow classes to use self-referencing Type hints in Python 3.7.
from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional, Sequence

import numpy as np
import pyarrow as pa

from tensorcat import logs
from tensorcat.constants import (
    VARIABLE_SHAPE_TENSOR_DATA_FIELD_NAME,
    VARIABLE_SHAPE_TENSOR_EXTENSION_NAME,
    VARIABLE_SHAPE_TENSOR_SHAPE_FIELD_NAME,
)
from tensorcat.exceptions import (
    InvalidArgumentError,
    StorageLayoutError,
    TensorIndexError,
    categorize_errors,
)
from tensorcat.extensions.extension_metadata import (
    extract_extension_metadata,
    init_extension_metadata,
)
from tensorcat.extensions.model.column import ArrowColumn, MetadataInput
from tensorcat.extensions.model.types import StorageKind
from tensorcat.extensions.model.variable_shape_tensor import (
    VariableShapeTensorMetadata,
)
from tensorcat.utils.pyarrow import struct_array, to_arrow_array

logger = logs.configure_tensorcat_logger(logging.getLogger(__name__))

DATA_CHILD_INDEX = 0
SHAPE_CHILD_INDEX = 1


class VariableShapeTensorArray:
    """
    An array of tensors of the same rank whose shapes may differ from one
    tensor to the next. Stored as a struct array with a `data` child holding
    each tensor's values as a variable length list (row-major order) and a
    `shape` child holding each tensor's shape as a fixed size list of int32.
    """

    def __init__(self, column: ArrowColumn, metadata: VariableShapeTensorMetadata):
        self._column = column
        self._metadata = metadata

    @staticmethod
    @categorize_errors
    def of(
        ndim: int,
        data: Any,
        shape: Any,
        metadata: Optional[VariableShapeTensorMetadata] = None,
        validity: Optional[Sequence[bool]] = None,
        name: Optional[str] = None,
        arrow_metadata: Optional[MetadataInput] = None,
    ) -> VariableShapeTensorArray:
        """
        Creates a new variable shape tensor array from its data and shape
        children.

        Args:
            ndim (int): Rank of every tensor in the array.

            data (Any): List array (or python sequence of sequences) holding
            the flat, row-major values of each tensor.

            shape (Any): Fixed size list array of int32 with list size `ndim`
            (or python sequence of sequences) holding the shape of each tensor.

            metadata (Optional[VariableShapeTensorMetadata]): Valid metadata
            for the array. Defaults to metadata without any constraints.

            validity (Optional[Sequence[bool]]): One entry per tensor, where
            False marks a null tensor. All tensors are valid if omitted.

            name (Optional[str]): Display name of the array.

            arrow_metadata (Optional[MetadataInput]): Additional key-value
            metadata to attach to the array. The extension entries are added
            after these.

        Returns:
            New variable shape tensor array with one element per entry of
            `data` and `shape`.
        """
        if metadata is None:
            metadata = VariableShapeTensorMetadata.of()
        metadata.validate()
        if ndim <= 0:
            raise InvalidArgumentError(f"Tensor rank must be positive but was {ndim}")
        metadata_ndim = metadata.get_ndim()
        if metadata_ndim is not None and metadata_ndim != ndim:
            raise InvalidArgumentError(
                f"Tensor rank {ndim} does not match rank {metadata_ndim} of "
                f"variable shape tensor metadata"
            )
        data = to_arrow_array(data)
        if not (pa.types.is_list(data.type) or pa.types.is_large_list(data.type)):
            raise InvalidArgumentError(
                f"Expected a list array of tensor data but found {data.type}"
            )
        shape_type = pa.list_(pa.int32(), ndim)
        if isinstance(shape, (pa.Array, pa.ChunkedArray)):
            shape = to_arrow_array(shape)
            if (
                not pa.types.is_fixed_size_list(shape.type)
                or shape.type.list_size != ndim
            ):
                raise InvalidArgumentError(
                    f"Expected a fixed size list array of {ndim} dimensions per "
                    f"tensor shape but found {shape.type}"
                )
        shape = to_arrow_array(shape, shape_type)
        storage = struct_array(
            [data, shape],
            [
                VARIABLE_SHAPE_TENSOR_DATA_FIELD_NAME,
                VARIABLE_SHAPE_TENSOR_SHAPE_FIELD_NAME,
            ],
            validity,
        )
        column = ArrowColumn.of(storage, name, arrow_metadata)
        column.set_metadata(
            init_extension_metadata(
                column.metadata,
                VARIABLE_SHAPE_TENSOR_EXTENSION_NAME,
                metadata.to_json(),
            )
        )
        logger.debug(
            f"Created variable shape tensor array '{name}' with {len(storage)} "
            f"tensors of rank {ndim}"
        )
        return VariableShapeTensorArray(column, metadata)

    @staticmethod
    def from_column(column: ArrowColumn) -> VariableShapeTensorArray:
        """
        Wraps an existing column holding variable shape tensors. Columns
        without extension metadata are loaded with metadata that declares no
        constraints.
        """
        if column.storage_kind != StorageKind.STRUCT:
            raise StorageLayoutError(
                f"Expected struct storage for variable shape tensors but found "
                f"{column.array.type}"
            )
        metadata_json = extract_extension_metadata(column.metadata, required=False)
        metadata = VariableShapeTensorMetadata.from_json(metadata_json)
        metadata.validate()
        storage_type = column.array.type
        metadata_ndim = metadata.get_ndim()
        if metadata_ndim is not None and storage_type.num_fields > SHAPE_CHILD_INDEX:
            shape_type = storage_type.field(SHAPE_CHILD_INDEX).type
            if (
                pa.types.is_fixed_size_list(shape_type)
                and shape_type.list_size != metadata_ndim
            ):
                raise StorageLayoutError(
                    f"Shape list size {shape_type.list_size} does not match rank "
                    f"{metadata_ndim} of variable shape tensor metadata"
                )
        logger.debug(
            f"Loaded variable shape tensor array '{column.name}' with "
            f"{len(column.array)} tensors"
        )
        return VariableShapeTensorArray(column, metadata)

    @staticmethod
    def from_numpy(
        ndarrays: Sequence[Optional[np.ndarray]],
        dim_names: Optional[Sequence[str]] = None,
        permutation: Optional[Sequence[int]] = None,
        uniform_shape: Optional[Sequence[Optional[int]]] = None,
        name: Optional[str] = None,
    ) -> VariableShapeTensorArray:
        """
        Creates a variable shape tensor array from a sequence of numpy
        ndarrays of equal rank. None entries become null tensors.
        """
        metadata = VariableShapeTensorMetadata.of(
            dim_names=dim_names,
            permutation=permutation,
            uniform_shape=uniform_shape,
        )
        tensors = [tensor for tensor in ndarrays if tensor is not None]
        ranks = {tensor.ndim for tensor in tensors}
        if len(ranks) > 1:
            raise InvalidArgumentError(
                f"Expected ndarrays of equal rank but found ranks {sorted(ranks)}"
            )
        ndim = ranks.pop() if ranks else metadata.get_ndim()
        if ndim is None:
            raise InvalidArgumentError(
                "Cannot infer the tensor rank without any ndarrays or metadata"
            )
        value_type = pa.from_numpy_dtype(tensors[0].dtype) if tensors else pa.null()
        data = pa.array(
            [
                None if tensor is None else np.ravel(tensor, order="C").tolist()
                for tensor in ndarrays
            ],
            type=pa.list_(value_type),
        )
        shape = pa.array(
            [None if tensor is None else list(tensor.shape) for tensor in ndarrays],
            type=pa.list_(pa.int32(), ndim),
        )
        validity = None
        if len(tensors) != len(ndarrays):
            validity = [tensor is not None for tensor in ndarrays]
        return VariableShapeTensorArray.of(
            ndim,
            data,
            shape,
            metadata,
            validity=validity,
            name=name,
        )

    @property
    def column(self) -> ArrowColumn:
        return self._column

    @property
    def storage(self) -> pa.StructArray:
        return self._column.array

    @property
    def name(self) -> Optional[str]:
        return self._column.name

    @property
    def metadata(self) -> VariableShapeTensorMetadata:
        return self._metadata

    @staticmethod
    def data_field_name() -> str:
        return VARIABLE_SHAPE_TENSOR_DATA_FIELD_NAME

    @staticmethod
    def shape_field_name() -> str:
        return VARIABLE_SHAPE_TENSOR_SHAPE_FIELD_NAME

    def names(self) -> List[str]:
        """Returns the names of the storage struct's children in order."""
        return [field.name for field in self.storage.type]

    def data_child(self) -> pa.Array:
        return self.storage.field(DATA_CHILD_INDEX)

    def shape_child(self) -> pa.FixedSizeListArray:
        return self.storage.field(SHAPE_CHILD_INDEX)

    def ndim(self) -> Optional[int]:
        return self._metadata.get_ndim()

    def size(self) -> int:
        return len(self.storage)

    def empty(self) -> bool:
        return self.size() == 0

    def is_valid(self) -> bool:
        return self.storage.type.num_fields == 2 and self._metadata.is_valid()

    def at(self, i: int) -> pa.StructScalar:
        self._check_index(i)
        return self[i]

    def is_null(self, i: int) -> bool:
        self._check_index(i)
        return not self.storage[i].is_valid

    def bitmap(self) -> List[bool]:
        return self.storage.is_valid().to_pylist()

    def tensor(self, i: int) -> Optional[np.ndarray]:
        """
        Returns the i-th tensor as a numpy ndarray with its own physical
        shape, or None if the tensor is null.
        """
        self._check_index(i)
        if not self.storage[i].is_valid:
            return None
        data_entry = self.data_child()[i]
        shape_entry = self.shape_child()[i]
        if not data_entry.is_valid or not shape_entry.is_valid:
            raise StorageLayoutError(
                f"Tensor {i} is valid but its data or shape entry is null"
            )
        shape = shape_entry.as_py()
        values = data_entry.values
        size = int(np.prod(shape))
        if len(values) != size:
            raise StorageLayoutError(
                f"Tensor {i} has {len(values)} values but its shape {shape} "
                f"requires {size}"
            )
        return values.to_numpy(zero_copy_only=False).reshape(shape)

    def to_numpy(self) -> List[Optional[np.ndarray]]:
        return [self.tensor(i) for i in range(self.size())]

    def _check_index(self, i: int) -> None:
        if i < 0 or i >= self.size():
            raise TensorIndexError(
                f"Index {i} is out of range for variable shape tensor array of "
                f"size {self.size()}"
            )

    def __getitem__(self, i: int) -> pa.StructScalar:
        return self.storage[i]

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[pa.StructScalar]:
        return iter(self.storage)

    def __repr__(self) -> str:
        return (
            f"VariableShapeTensorArray(name={self.name!r}, size={self.size()}, "
            f"metadata={self._metadata.to_json()})"
        )
