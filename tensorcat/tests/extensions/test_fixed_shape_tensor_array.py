import io

import numpy as np
import pyarrow as pa
import pyarrow.ipc
import pytest

from tensorcat.constants import (
    EXTENSION_METADATA_KEY,
    EXTENSION_NAME_KEY,
    FIXED_SHAPE_TENSOR_EXTENSION_NAME,
)
from tensorcat.exceptions import (
    DependencyPyarrowInvalidError,
    InvalidArgumentError,
    InvalidTensorMetadataError,
    MetadataDecodeError,
    MissingExtensionMetadataError,
    StorageLayoutError,
    TensorIndexError,
)
from tensorcat.extensions.fixed_shape_tensor import FixedShapeTensorArray
from tensorcat.extensions.model.column import ArrowColumn, columns_to_table
from tensorcat.extensions.model.fixed_shape_tensor import FixedShapeTensorMetadata


@pytest.fixture
def matrices(matrix_metadata, matrix_values):
    return FixedShapeTensorArray.of(6, matrix_values, matrix_metadata)


def test_of_size(matrices):
    assert matrices.size() == 3
    assert len(matrices) == 3
    assert not matrices.empty()
    assert matrices.is_valid()
    assert matrices.shape == [2, 3]


def test_of_embeds_extension_metadata(matrices):
    assert matrices.column.metadata == [
        (EXTENSION_NAME_KEY, FIXED_SHAPE_TENSOR_EXTENSION_NAME),
        (EXTENSION_METADATA_KEY, '{"shape":[2,3]}'),
    ]
    assert matrices.storage.type == pa.list_(pa.int64(), 6)


def test_at_out_of_range(matrices):
    assert matrices.at(2).as_py() == list(range(12, 18))
    with pytest.raises(TensorIndexError):
        matrices.at(3)
    with pytest.raises(IndexError):
        matrices.at(-1)


def test_unchecked_access(matrices):
    assert matrices[0].as_py() == list(range(6))
    assert [scalar.as_py() for scalar in matrices] == [
        list(range(0, 6)),
        list(range(6, 12)),
        list(range(12, 18)),
    ]


def test_tensor_reshapes_row_major(matrices):
    np.testing.assert_array_equal(
        matrices.tensor(1), np.arange(6, 12).reshape(2, 3)
    )
    with pytest.raises(TensorIndexError):
        matrices.tensor(3)


def test_to_numpy(matrices):
    np.testing.assert_array_equal(matrices.to_numpy(), np.arange(18).reshape(3, 2, 3))


def test_of_with_name_extra_metadata_and_validity(matrix_metadata, matrix_values):
    array = FixedShapeTensorArray.of(
        6,
        matrix_values,
        matrix_metadata,
        validity=[True, False, True],
        name="matrices",
        arrow_metadata=[("owner", "vision")],
    )
    assert array.name == "matrices"
    assert array.column.metadata == [
        ("owner", "vision"),
        (EXTENSION_NAME_KEY, FIXED_SHAPE_TENSOR_EXTENSION_NAME),
        (EXTENSION_METADATA_KEY, '{"shape":[2,3]}'),
    ]
    assert array.bitmap() == [True, False, True]
    assert array.is_null(1)
    assert not array.is_null(2)
    assert array.tensor(1) is None
    np.testing.assert_array_equal(array.tensor(2), np.arange(12, 18).reshape(2, 3))
    with pytest.raises(InvalidArgumentError):
        array.to_numpy()


def test_of_keeps_existing_extension_payload(matrix_metadata, matrix_values):
    existing = [
        (EXTENSION_NAME_KEY, FIXED_SHAPE_TENSOR_EXTENSION_NAME),
        (EXTENSION_METADATA_KEY, '{"shape":[2,3],"dim_names":["H","W"]}'),
    ]
    array = FixedShapeTensorArray.of(
        6, matrix_values, matrix_metadata, arrow_metadata=existing
    )
    assert array.column.metadata == existing


def test_of_python_values_with_value_type(matrix_metadata):
    array = FixedShapeTensorArray.of(
        6, list(range(12)), matrix_metadata, value_type=pa.float32()
    )
    assert array.size() == 2
    assert array.storage.type == pa.list_(pa.float32(), 6)


def test_of_empty(matrix_metadata):
    array = FixedShapeTensorArray.of(6, pa.array([], type=pa.int64()), matrix_metadata)
    assert array.empty()
    assert array.bitmap() == []


def test_of_rejects_list_size_mismatch(matrix_metadata, matrix_values):
    with pytest.raises(InvalidArgumentError):
        FixedShapeTensorArray.of(5, matrix_values, matrix_metadata)


def test_of_rejects_partial_tensor(matrix_metadata):
    with pytest.raises(InvalidArgumentError):
        FixedShapeTensorArray.of(6, pa.array(np.arange(10)), matrix_metadata)


def test_of_rejects_validity_length_mismatch(matrix_metadata, matrix_values):
    with pytest.raises(InvalidArgumentError):
        FixedShapeTensorArray.of(6, matrix_values, matrix_metadata, validity=[True])


def test_of_rejects_invalid_metadata(matrix_values):
    metadata = FixedShapeTensorMetadata.of([2, 3], permutation=[0, 0])
    with pytest.raises(InvalidTensorMetadataError):
        FixedShapeTensorArray.of(6, matrix_values, metadata)


def test_of_wraps_pyarrow_errors(matrix_metadata):
    with pytest.raises(DependencyPyarrowInvalidError):
        FixedShapeTensorArray.of(
            6, ["a"] * 6, matrix_metadata, value_type=pa.int64()
        )


def test_from_column_round_trip(matrices):
    loaded = FixedShapeTensorArray.from_column(matrices.column)
    assert loaded.metadata == matrices.metadata
    assert loaded.size() == 3


def test_from_column_through_table():
    chw_metadata = FixedShapeTensorMetadata.of(
        shape=[3, 2, 2], dim_names=["C", "H", "W"], permutation=[2, 0, 1]
    )
    array = FixedShapeTensorArray.of(
        12,
        pa.array(np.zeros(24, dtype=np.uint8)),
        chw_metadata,
        name="images",
    )
    table = columns_to_table([array.column])
    loaded = FixedShapeTensorArray.from_column(ArrowColumn.from_table(table, "images"))
    assert loaded.metadata == chw_metadata
    assert loaded.name == "images"
    assert loaded.size() == 2


def test_from_column_requires_metadata(matrix_values):
    storage = pa.FixedSizeListArray.from_arrays(matrix_values, 6)
    with pytest.raises(MissingExtensionMetadataError):
        FixedShapeTensorArray.from_column(ArrowColumn.of(storage))
    with pytest.raises(MissingExtensionMetadataError):
        FixedShapeTensorArray.from_column(
            ArrowColumn.of(
                storage, metadata=[(EXTENSION_NAME_KEY, FIXED_SHAPE_TENSOR_EXTENSION_NAME)]
            )
        )


def test_from_column_rejects_malformed_metadata(matrix_values):
    storage = pa.FixedSizeListArray.from_arrays(matrix_values, 6)
    column = ArrowColumn.of(storage, metadata=[(EXTENSION_METADATA_KEY, '{"shape":[2,3]')])
    with pytest.raises(MetadataDecodeError):
        FixedShapeTensorArray.from_column(column)


def test_from_column_rejects_list_size_mismatch(matrix_values):
    storage = pa.FixedSizeListArray.from_arrays(matrix_values, 9)
    column = ArrowColumn.of(storage, metadata=[(EXTENSION_METADATA_KEY, '{"shape":[2,3]}')])
    with pytest.raises(StorageLayoutError):
        FixedShapeTensorArray.from_column(column)


def test_from_column_rejects_non_fixed_size_list(matrix_values):
    column = ArrowColumn.of(
        matrix_values, metadata=[(EXTENSION_METADATA_KEY, '{"shape":[2,3]}')]
    )
    with pytest.raises(StorageLayoutError):
        FixedShapeTensorArray.from_column(column)


def test_from_numpy():
    ndarray = np.arange(24, dtype=np.float64).reshape(2, 3, 4)
    array = FixedShapeTensorArray.from_numpy(
        ndarray, dim_names=["H", "W"], permutation=[1, 0], name="grid"
    )
    assert array.metadata.to_json() == (
        '{"shape":[3,4],"dim_names":["H","W"],"permutation":[1,0]}'
    )
    assert array.name == "grid"
    np.testing.assert_array_equal(array.to_numpy(), ndarray)


def test_from_numpy_non_contiguous():
    ndarray = np.arange(24).reshape(2, 4, 3).transpose(0, 2, 1)
    array = FixedShapeTensorArray.from_numpy(ndarray)
    np.testing.assert_array_equal(array.tensor(1), ndarray[1])


@pytest.mark.parametrize("ndarray", [np.arange(4), np.zeros((2, 0, 3))])
def test_from_numpy_rejects_shapes(ndarray):
    with pytest.raises((InvalidArgumentError, InvalidTensorMetadataError)):
        FixedShapeTensorArray.from_numpy(ndarray)


def test_sliced_storage(matrix_metadata, matrix_values):
    storage = pa.FixedSizeListArray.from_arrays(matrix_values, 6).slice(1, 2)
    column = ArrowColumn.of(storage, metadata=[(EXTENSION_METADATA_KEY, '{"shape":[2,3]}')])
    array = FixedShapeTensorArray.from_column(column)
    np.testing.assert_array_equal(array.tensor(0), np.arange(6, 12).reshape(2, 3))
    np.testing.assert_array_equal(array.to_numpy(), np.arange(6, 18).reshape(2, 2, 3))


def test_pyarrow_round_trip():
    array = FixedShapeTensorArray.from_numpy(
        np.ones((2, 3, 2, 2), dtype=np.int16),
        dim_names=["C", "H", "W"],
        permutation=[2, 0, 1],
    )
    pyarrow_array = array.to_pyarrow()
    assert isinstance(pyarrow_array.type, pa.FixedShapeTensorType)
    assert pyarrow_array.type.shape == [3, 2, 2]
    assert pyarrow_array.type.dim_names == ["C", "H", "W"]
    assert pyarrow_array.type.permutation == [2, 0, 1]
    loaded = FixedShapeTensorArray.from_pyarrow(pyarrow_array, name="ones")
    assert loaded.metadata == array.metadata
    assert loaded.name == "ones"
    np.testing.assert_array_equal(loaded.to_numpy(), array.to_numpy())


def test_from_pyarrow_rejects_other_types():
    with pytest.raises(InvalidArgumentError):
        FixedShapeTensorArray.from_pyarrow(pa.array([1, 2, 3]))


def test_ipc_round_trip(matrices):
    table = columns_to_table([matrices.column])
    sink = io.BytesIO()
    with pa.ipc.new_stream(sink, table.schema) as writer:
        writer.write_table(table)
    loaded_table = pa.ipc.open_stream(sink.getvalue()).read_all()
    loaded = FixedShapeTensorArray.from_column(
        ArrowColumn.from_table(loaded_table, 0)
    )
    assert loaded.metadata == matrices.metadata
    np.testing.assert_array_equal(loaded.to_numpy(), matrices.to_numpy())
