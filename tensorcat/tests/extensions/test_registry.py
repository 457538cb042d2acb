import numpy as np
import pyarrow as pa
import pytest

from tensorcat.constants import (
    EXTENSION_NAME_KEY,
    FIXED_SHAPE_TENSOR_EXTENSION_NAME,
    VARIABLE_SHAPE_TENSOR_EXTENSION_NAME,
)
from tensorcat.exceptions import (
    ExtensionAlreadyRegisteredError,
    InvalidArgumentError,
)
from tensorcat.extensions.fixed_shape_tensor import FixedShapeTensorArray
from tensorcat.extensions.model.column import ArrowColumn, columns_to_table
from tensorcat.extensions.model.types import StorageKind
from tensorcat.extensions.registry import (
    ExtensionRegistration,
    default_registry,
    register_tensor_extensions,
)
from tensorcat.extensions.variable_shape_tensor import VariableShapeTensorArray


def test_register_tensor_extensions(registry):
    registrations = register_tensor_extensions(registry)
    assert [registration.key for registration in registrations] == [
        (StorageKind.FIXED_SIZE_LIST, FIXED_SHAPE_TENSOR_EXTENSION_NAME),
        (StorageKind.STRUCT, VARIABLE_SHAPE_TENSOR_EXTENSION_NAME),
    ]
    assert registry.is_registered(
        StorageKind.FIXED_SIZE_LIST, FIXED_SHAPE_TENSOR_EXTENSION_NAME
    )
    assert registry.get_factory(
        StorageKind.STRUCT, VARIABLE_SHAPE_TENSOR_EXTENSION_NAME
    ) == VariableShapeTensorArray.from_column
    assert not registry.is_registered(
        StorageKind.STRUCT, FIXED_SHAPE_TENSOR_EXTENSION_NAME
    )


def test_register_tensor_extensions_is_repeatable(registry):
    assert register_tensor_extensions(registry) == register_tensor_extensions(registry)


def test_register_tensor_extensions_default_registry():
    registrations = register_tensor_extensions()
    for registration in registrations:
        assert default_registry().is_registered(*registration.key)


def test_register_conflicting_factory(registry):
    register_tensor_extensions(registry)
    with pytest.raises(ExtensionAlreadyRegisteredError):
        registry.register(
            StorageKind.FIXED_SIZE_LIST,
            FIXED_SHAPE_TENSOR_EXTENSION_NAME,
            lambda column: column,
        )


def test_register_rejects_empty_name(registry):
    with pytest.raises(InvalidArgumentError):
        registry.register(StorageKind.STRUCT, "", VariableShapeTensorArray.from_column)


def test_unregister(registry):
    registration = registry.register(
        StorageKind.OTHER, "example.label", lambda column: column.name
    )
    assert isinstance(registration, ExtensionRegistration)
    assert registry.unregister(registration)
    assert not registry.is_registered(StorageKind.OTHER, "example.label")
    assert not registry.unregister(registration)


def test_load(registry, matrix_metadata, matrix_values):
    register_tensor_extensions(registry)
    array = FixedShapeTensorArray.of(6, matrix_values, matrix_metadata)
    untyped = ArrowColumn.of(array.storage, metadata=array.column.metadata)
    loaded = registry.load(untyped)
    assert isinstance(loaded, FixedShapeTensorArray)
    assert loaded.metadata == matrix_metadata


def test_load_without_extension_name(registry):
    register_tensor_extensions(registry)
    column = ArrowColumn.of(pa.array([1, 2, 3]), "ids")
    assert registry.load(column) is column


def test_load_without_matching_factory(registry, matrix_values):
    register_tensor_extensions(registry)
    # fixed shape tensor name on struct storage
    column = ArrowColumn.of(
        pa.StructArray.from_arrays([matrix_values], names=["values"]),
        metadata=[(EXTENSION_NAME_KEY, FIXED_SHAPE_TENSOR_EXTENSION_NAME)],
    )
    assert registry.load(column) is column


def test_load_table(registry, variable_data, variable_shape):
    register_tensor_extensions(registry)
    images = FixedShapeTensorArray.from_numpy(
        np.zeros((2, 3, 4, 4), dtype=np.uint8), dim_names=["C", "H", "W"], name="images"
    )
    masks = VariableShapeTensorArray.of(2, variable_data, variable_shape, name="masks")
    labels = ArrowColumn.of(pa.array(["cat", "dog"]), "labels")
    table = columns_to_table([images.column, masks.column, labels])

    loaded = registry.load_table(table)

    assert list(loaded) == ["images", "masks", "labels"]
    assert isinstance(loaded["images"], FixedShapeTensorArray)
    assert loaded["images"].metadata == images.metadata
    assert loaded["images"].tensor(1).shape == (3, 4, 4)
    assert isinstance(loaded["masks"], VariableShapeTensorArray)
    assert loaded["masks"].tensor(0).shape == (2, 3)
    assert loaded["labels"] == labels
