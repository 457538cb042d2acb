# Allow classes to use self-referencing Type hints in Python 3.7.
from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional, Sequence, Union

import numpy as np
import pyarrow as pa

from tensorcat import logs
from tensorcat.constants import FIXED_SHAPE_TENSOR_EXTENSION_NAME
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
from tensorcat.extensions.model.fixed_shape_tensor import FixedShapeTensorMetadata
from tensorcat.extensions.model.types import StorageKind
from tensorcat.utils.pyarrow import (
    fixed_size_list_array,
    fixed_size_list_values,
    to_arrow_array,
)

logger = logs.configure_tensorcat_logger(logging.getLogger(__name__))


class FixedShapeTensorArray:
    """
    An array of tensors that all share the same shape, stored as a fixed size
    list array with one flat, row-major list of values per tensor. The
    tensor metadata is embedded into the column's key-value metadata under the
    `arrow.fixed_shape_tensor` extension name.
    """

    def __init__(self, column: ArrowColumn, metadata: FixedShapeTensorMetadata):
        self._column = column
        self._metadata = metadata

    @staticmethod
    @categorize_errors
    def of(
        list_size: int,
        flat_values: Any,
        metadata: FixedShapeTensorMetadata,
        validity: Optional[Sequence[bool]] = None,
        name: Optional[str] = None,
        arrow_metadata: Optional[MetadataInput] = None,
        value_type: Optional[pa.DataType] = None,
    ) -> FixedShapeTensorArray:
        """
        Creates a new fixed shape tensor array from a flat buffer of values.

        Args:
            list_size (int): Number of values in each tensor. Must equal the
            product of the metadata's shape.

            flat_values (Any): Values of all tensors laid out one after
            another in row-major order. May be a pyarrow array, a numpy
            ndarray, or a python sequence.

            metadata (FixedShapeTensorMetadata): Valid shape metadata shared by
            every tensor in the array.

            validity (Optional[Sequence[bool]]): One entry per tensor, where
            False marks a null tensor. All tensors are valid if omitted.

            name (Optional[str]): Display name of the array.

            arrow_metadata (Optional[MetadataInput]): Additional key-value
            metadata to attach to the array. The extension entries are added
            after these.

            value_type (Optional[pa.DataType]): Type of each tensor value.
            Inferred from `flat_values` if omitted.

        Returns:
            New fixed shape tensor array with len(flat_values) / list_size
            elements.
        """
        metadata.validate()
        expected_size = metadata.compute_size()
        if list_size != expected_size:
            raise InvalidArgumentError(
                f"List size {list_size} does not match size {expected_size} of "
                f"tensor shape {metadata.shape}"
            )
        values = to_arrow_array(flat_values, value_type)
        storage = fixed_size_list_array(values, list_size, validity)
        column = ArrowColumn.of(storage, name, arrow_metadata)
        column.set_metadata(
            init_extension_metadata(
                column.metadata,
                FIXED_SHAPE_TENSOR_EXTENSION_NAME,
                metadata.to_json(),
            )
        )
        logger.debug(
            f"Created fixed shape tensor array '{name}' with {len(storage)} "
            f"tensors of shape {metadata.shape}"
        )
        return FixedShapeTensorArray(column, metadata)

    @staticmethod
    def from_column(column: ArrowColumn) -> FixedShapeTensorArray:
        """
        Wraps an existing column holding fixed shape tensors. The column's
        extension metadata is required, and is decoded and validated against
        the column's physical storage.
        """
        if column.storage_kind != StorageKind.FIXED_SIZE_LIST:
            raise StorageLayoutError(
                f"Expected fixed size list storage for fixed shape tensors but "
                f"found {column.array.type}"
            )
        metadata_json = extract_extension_metadata(column.metadata, required=True)
        metadata = FixedShapeTensorMetadata.from_json(metadata_json)
        metadata.validate()
        list_size = column.array.type.list_size
        if list_size != metadata.compute_size():
            raise StorageLayoutError(
                f"Storage list size {list_size} does not match size "
                f"{metadata.compute_size()} of tensor shape {metadata.shape}"
            )
        logger.debug(
            f"Loaded fixed shape tensor array '{column.name}' with "
            f"{len(column.array)} tensors of shape {metadata.shape}"
        )
        return FixedShapeTensorArray(column, metadata)

    @staticmethod
    def from_numpy(
        ndarray: np.ndarray,
        dim_names: Optional[Sequence[str]] = None,
        permutation: Optional[Sequence[int]] = None,
        name: Optional[str] = None,
    ) -> FixedShapeTensorArray:
        """
        Creates a fixed shape tensor array from a numpy ndarray whose leading
        axis indexes the tensors, and whose remaining axes give each tensor's
        shape.
        """
        if ndarray.ndim < 2:
            raise InvalidArgumentError(
                f"Expected an ndarray with at least 2 dimensions but found "
                f"{ndarray.ndim}"
            )
        metadata = FixedShapeTensorMetadata.of(
            shape=ndarray.shape[1:],
            dim_names=dim_names,
            permutation=permutation,
        )
        metadata.validate()
        return FixedShapeTensorArray.of(
            metadata.compute_size(),
            np.ascontiguousarray(ndarray),
            metadata,
            name=name,
        )

    @staticmethod
    def from_pyarrow(
        array: Union[pa.FixedShapeTensorArray, pa.ChunkedArray],
        name: Optional[str] = None,
    ) -> FixedShapeTensorArray:
        """Wraps an array of pyarrow's own fixed shape tensor extension type."""
        if not isinstance(array.type, pa.FixedShapeTensorType):
            raise InvalidArgumentError(
                f"Expected a pyarrow fixed shape tensor array but found "
                f"{array.type}"
            )
        column = ArrowColumn.from_field(pa.field(name or "", array.type), array)
        column.set_name(name)
        return FixedShapeTensorArray.from_column(column)

    @categorize_errors
    def to_pyarrow(self) -> pa.FixedShapeTensorArray:
        """Returns this array as pyarrow's own fixed shape tensor extension
        array, sharing the same storage."""
        storage = self.storage
        tensor_type = pa.fixed_shape_tensor(
            storage.type.value_type,
            self.shape,
            dim_names=self._metadata.dim_names,
            permutation=self._metadata.permutation,
        )
        if storage.type != tensor_type.storage_type:
            storage = storage.cast(tensor_type.storage_type)
        return pa.ExtensionArray.from_storage(tensor_type, storage)

    @property
    def column(self) -> ArrowColumn:
        return self._column

    @property
    def storage(self) -> pa.FixedSizeListArray:
        return self._column.array

    @property
    def name(self) -> Optional[str]:
        return self._column.name

    @property
    def metadata(self) -> FixedShapeTensorMetadata:
        return self._metadata

    @property
    def shape(self) -> List[int]:
        return self._metadata.shape

    def size(self) -> int:
        return len(self.storage)

    def empty(self) -> bool:
        return self.size() == 0

    def is_valid(self) -> bool:
        return self._metadata.is_valid()

    def at(self, i: int) -> pa.FixedSizeListScalar:
        self._check_index(i)
        return self[i]

    def is_null(self, i: int) -> bool:
        self._check_index(i)
        return not self.storage[i].is_valid

    def bitmap(self) -> List[bool]:
        return self.storage.is_valid().to_pylist()

    def tensor(self, i: int) -> Optional[np.ndarray]:
        """
        Returns the i-th tensor as a numpy ndarray with the physical shape of
        this array, or None if the tensor is null.
        """
        self._check_index(i)
        if not self.storage[i].is_valid:
            return None
        list_size = self._metadata.compute_size()
        values = fixed_size_list_values(self.storage).slice(i * list_size, list_size)
        return values.to_numpy(zero_copy_only=False).reshape(self.shape)

    def to_numpy(self) -> np.ndarray:
        """
        Returns all tensors as a single numpy ndarray of shape
        (len(self), *self.shape). Arrays with null tensors cannot be converted.
        """
        if self.storage.null_count:
            raise InvalidArgumentError(
                f"Cannot convert {self.storage.null_count} null tensors to a "
                f"numpy ndarray"
            )
        values = fixed_size_list_values(self.storage)
        return values.to_numpy(zero_copy_only=False).reshape(
            [self.size()] + self.shape
        )

    def _check_index(self, i: int) -> None:
        if i < 0 or i >= self.size():
            raise TensorIndexError(
                f"Index {i} is out of range for fixed shape tensor array of "
                f"size {self.size()}"
            )

    def __getitem__(self, i: int) -> pa.FixedSizeListScalar:
        return self.storage[i]

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[pa.FixedSizeListScalar]:
        return iter(self.storage)

    def __repr__(self) -> str:
        return (
            f"FixedShapeTensorArray(name={self.name!r}, size={self.size()}, "
            f"metadata={self._metadata.to_json()})"
        )
