import numpy as np
import pyarrow as pa
import pytest

from tensorcat.extensions.model.fixed_shape_tensor import FixedShapeTensorMetadata
from tensorcat.extensions.model.variable_shape_tensor import (
    VariableShapeTensorMetadata,
)
from tensorcat.extensions.registry import ExtensionRegistry


@pytest.fixture
def chw_metadata():
    return FixedShapeTensorMetadata.of(
        shape=[100, 200, 500],
        dim_names=["C", "H", "W"],
        permutation=[2, 0, 1],
    )


@pytest.fixture
def matrix_metadata():
    return FixedShapeTensorMetadata.of(shape=[2, 3])


@pytest.fixture
def matrix_values():
    # 3 tensors of shape [2, 3]
    return pa.array(np.arange(18, dtype=np.int64))


@pytest.fixture
def variable_data():
    return pa.ListArray.from_arrays(
        pa.array([0, 6, 10], type=pa.int32()),
        pa.array(np.arange(10, dtype=np.float32)),
    )


@pytest.fixture
def variable_shape():
    return pa.FixedSizeListArray.from_arrays(
        pa.array([2, 3, 1, 4], type=pa.int32()),
        2,
    )


@pytest.fixture
def empty_variable_metadata():
    return VariableShapeTensorMetadata.of()


@pytest.fixture
def registry():
    return ExtensionRegistry()
