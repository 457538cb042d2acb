# Allow classes to use self-referencing Type hints in Python 3.7.
from __future__ import annotations

from typing import List, Optional, Sequence

from tensorcat.constants import SIGNED_INT32_MAX_VALUE
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

DIM_NAMES_KEY = "dim_names"
PERMUTATION_KEY = "permutation"
UNIFORM_SHAPE_KEY = "uniform_shape"

VARIABLE_SHAPE_TENSOR_GRAMMAR = ObjectGrammar.of(
    keys=[
        (DIM_NAMES_KEY, JsonValueKind.STRING_ARRAY),
        (PERMUTATION_KEY, JsonValueKind.INT_ARRAY),
        (UNIFORM_SHAPE_KEY, JsonValueKind.NULLABLE_INT_ARRAY),
    ],
)

EMPTY_METADATA_JSON = "{}"


class VariableShapeTensorMetadata(dict):
    @staticmethod
    def of(
        dim_names: Optional[Sequence[str]] = None,
        permutation: Optional[Sequence[int]] = None,
        uniform_shape: Optional[Sequence[Optional[int]]] = None,
    ) -> VariableShapeTensorMetadata:
        """
        Creates metadata for a variable shape tensor extension array. All
        parameters are optional, and metadata without any of them declares no
        constraints on the tensors stored.

        Args:
            dim_names (Optional[Sequence[str]]): Explicit names of each
            physical dimension.

            permutation (Optional[Sequence[int]]): Indices of the desired
            ordering of the physical dimensions. Must be a non-empty
            permutation of [0, 1, ..., N-1] if given.

            uniform_shape (Optional[Sequence[Optional[int]]]): Size of each
            dimension that stays constant across all tensors, or None for
            each dimension that may vary from one tensor to the next.

        Returns:
            New variable shape tensor metadata. Every parameter given must
            have the same length. The metadata is not validated on creation;
            call `validate()` or `is_valid()` to check it.
        """
        return VariableShapeTensorMetadata(
            {
                DIM_NAMES_KEY: list(dim_names) if dim_names is not None else None,
                PERMUTATION_KEY: list(permutation) if permutation is not None else None,
                UNIFORM_SHAPE_KEY: list(uniform_shape)
                if uniform_shape is not None
                else None,
            }
        )

    @property
    def dim_names(self) -> Optional[List[str]]:
        return self.get(DIM_NAMES_KEY)

    @property
    def permutation(self) -> Optional[List[int]]:
        return self.get(PERMUTATION_KEY)

    @property
    def uniform_shape(self) -> Optional[List[Optional[int]]]:
        return self.get(UNIFORM_SHAPE_KEY)

    def get_ndim(self) -> Optional[int]:
        """
        Returns the number of dimensions implied by the first field present
        out of dim_names, permutation, and uniform_shape (checked in that
        order), or None if none of them are present.
        """
        for value in (self.dim_names, self.permutation, self.uniform_shape):
            if value is not None:
                return len(value)
        return None

    def is_valid(self) -> bool:
        return self._violation() is None

    def validate(self) -> None:
        violation = self._violation()
        if violation is not None:
            raise InvalidTensorMetadataError(
                f"Invalid variable shape tensor metadata: {violation}"
            )

    def to_json(self) -> str:
        return encode_object(self, VARIABLE_SHAPE_TENSOR_GRAMMAR)

    @staticmethod
    def from_json(text: Optional[str]) -> VariableShapeTensorMetadata:
        if not text or text == EMPTY_METADATA_JSON:
            return VariableShapeTensorMetadata.of()
        values = decode_object(text, VARIABLE_SHAPE_TENSOR_GRAMMAR)
        metadata = VariableShapeTensorMetadata.of(
            dim_names=values[DIM_NAMES_KEY],
            permutation=values[PERMUTATION_KEY],
            uniform_shape=values[UNIFORM_SHAPE_KEY],
        )
        violation = metadata._violation()
        if violation is not None:
            raise MetadataDecodeError(
                f"Invalid variable shape tensor metadata: {violation}"
            )
        return metadata

    def _violation(self) -> Optional[str]:
        ndim = self.get_ndim()
        if ndim is not None:
            for key in (DIM_NAMES_KEY, PERMUTATION_KEY, UNIFORM_SHAPE_KEY):
                value = self.get(key)
                if value is not None and len(value) != ndim:
                    return f"expected {ndim} {key} entries but found {len(value)}"
        permutation = self.permutation
        if permutation is not None:
            if not permutation:
                return "permutation must not be empty"
            violation = permutation_violation(permutation)
            if violation is not None:
                return violation
        for dim in self.uniform_shape or []:
            if dim is None:
                continue
            if dim <= 0:
                return f"uniform_shape dimensions must be positive but found {dim}"
            if dim > SIGNED_INT32_MAX_VALUE:
                return (
                    f"uniform_shape dimension {dim} does not fit in a signed "
                    f"32-bit integer"
                )
        return None
