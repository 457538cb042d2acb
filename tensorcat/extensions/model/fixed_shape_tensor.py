# Allow classes to use self-referencing Type hints in Python 3.7.
from __future__ import annotations

import functools
import operator
from typing import List, Optional, Sequence

from tensorcat.constants import SIGNED_INT64_MAX_VALUE
from tensorcat.exceptions import (
    InvalidTensorMetadataError,
    MetadataDecodeError,
)
from tensorcat.extensions.json_codec import (
    JsonValueKind,
    ObjectGrammar,
    decode_object,
    encode_object,
)
from tensorcat.extensions.model.validation import permutation_violation

SHAPE_KEY = "shape"
DIM_NAMES_KEY = "dim_names"
PERMUTATION_KEY = "permutation"

FIXED_SHAPE_TENSOR_GRAMMAR = ObjectGrammar.of(
    keys=[
        (SHAPE_KEY, JsonValueKind.INT_ARRAY),
        (DIM_NAMES_KEY, JsonValueKind.STRING_ARRAY),
        (PERMUTATION_KEY, JsonValueKind.INT_ARRAY),
    ],
    required=[SHAPE_KEY],
)


class FixedShapeTensorMetadata(dict):
    @staticmethod
    def of(
        shape: Sequence[int],
        dim_names: Optional[Sequence[str]] = None,
        permutation: Optional[Sequence[int]] = None,
    ) -> FixedShapeTensorMetadata:
        """
        Creates metadata for a fixed shape tensor extension array.

        Args:
            shape (Sequence[int]): Physical shape of every tensor in the array.
            Must be non-empty and all dimensions must be positive.

            dim_names (Optional[Sequence[str]]): Explicit names of each
            physical dimension (e.g. ["C", "H", "W"]). Must have one entry per
            dimension of `shape` if given.

            permutation (Optional[Sequence[int]]): Indices of the desired
            ordering of the physical dimensions. Must be a permutation of
            [0, 1, ..., len(shape) - 1] if given.

        Returns:
            New fixed shape tensor metadata. The metadata is not validated on
            creation; call `validate()` or `is_valid()` to check it.
        """
        return FixedShapeTensorMetadata(
            {
                SHAPE_KEY: list(shape),
                DIM_NAMES_KEY: list(dim_names) if dim_names is not None else None,
                PERMUTATION_KEY: list(permutation) if permutation is not None else None,
            }
        )

    @property
    def shape(self) -> List[int]:
        return self[SHAPE_KEY]

    @property
    def dim_names(self) -> Optional[List[str]]:
        return self.get(DIM_NAMES_KEY)

    @property
    def permutation(self) -> Optional[List[int]]:
        return self.get(PERMUTATION_KEY)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    def compute_size(self) -> int:
        """Returns the number of values in each tensor (the product of all
        dimensions in its shape). Not meaningful for invalid metadata."""
        return functools.reduce(operator.mul, self.shape, 1)

    def is_valid(self) -> bool:
        return self._violation() is None

    def validate(self) -> None:
        violation = self._violation()
        if violation is not None:
            raise InvalidTensorMetadataError(
                f"Invalid fixed shape tensor metadata: {violation}"
            )

    def to_json(self) -> str:
        return encode_object(self, FIXED_SHAPE_TENSOR_GRAMMAR)

    @staticmethod
    def from_json(text: str) -> FixedShapeTensorMetadata:
        values = decode_object(text, FIXED_SHAPE_TENSOR_GRAMMAR)
        if not values[SHAPE_KEY]:
            raise MetadataDecodeError(f"Missing required '{SHAPE_KEY}' field")
        metadata = FixedShapeTensorMetadata.of(
            shape=values[SHAPE_KEY],
            dim_names=values[DIM_NAMES_KEY],
            permutation=values[PERMUTATION_KEY],
        )
        violation = metadata._violation()
        if violation is not None:
            raise MetadataDecodeError(
                f"Invalid fixed shape tensor metadata: {violation}"
            )
        return metadata

    def _violation(self) -> Optional[str]:
        shape = self.shape
        if not shape:
            return "shape must not be empty"
        for dim in shape:
            if dim <= 0:
                return f"shape dimensions must be positive but found {dim}"
            if dim > SIGNED_INT64_MAX_VALUE:
                return f"shape dimension {dim} does not fit in a signed 64-bit integer"
        dim_names = self.dim_names
        if dim_names is not None and len(dim_names) != len(shape):
            return (
                f"expected {len(shape)} dim_names but found {len(dim_names)}"
            )
        permutation = self.permutation
        if permutation is not None:
            if len(permutation) != len(shape):
                return (
                    f"expected {len(shape)} permutation entries but found "
                    f"{len(permutation)}"
                )
            return permutation_violation(permutation)
        return None
