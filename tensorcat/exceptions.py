from __future__ import annotations
from enum import Enum
from functools import wraps
from typing import Callable
import logging

from pyarrow.lib import ArrowException, ArrowInvalid, ArrowCapacityError

from tensorcat import logs
from tensorcat.utils.ray_utils.runtime import (
    get_current_node_ip_address,
    get_current_ray_task_id,
)

logger = logs.configure_tensorcat_logger(logging.getLogger(__name__))


class TensorCatErrorNames(str, Enum):

    DEPENDENCY_PYARROW_ERROR = "DependencyPyarrowError"
    DEPENDENCY_PYARROW_INVALID_ERROR = "DependencyPyarrowInvalidError"
    DEPENDENCY_PYARROW_CAPACITY_ERROR = "DependencyPyarrowCapacityError"

    VALIDATION_ERROR = "ValidationError"
    INVALID_TENSOR_METADATA_ERROR = "InvalidTensorMetadataError"
    METADATA_DECODE_ERROR = "MetadataDecodeError"
    STORAGE_LAYOUT_ERROR = "StorageLayoutError"

    INVALID_ARGUMENT_ERROR = "InvalidArgumentError"
    TENSOR_INDEX_ERROR = "TensorIndexError"
    MISSING_EXTENSION_METADATA_ERROR = "MissingExtensionMetadataError"
    EXTENSION_ALREADY_REGISTERED_ERROR = "ExtensionAlreadyRegisteredError"

    UNCLASSIFIED_TENSORCAT_ERROR = "UnclassifiedTensorCatError"


class TensorCatError(Exception):
    def __init__(self, *args, **kwargs):
        self.task_id = get_current_ray_task_id()
        self.node_ip = get_current_node_ip_address()
        super().__init__(*args, **kwargs)


class NonRetryableError(TensorCatError):
    is_retryable = False


class ValidationError(NonRetryableError):
    error_name = TensorCatErrorNames.VALIDATION_ERROR.value


class InvalidTensorMetadataError(ValidationError):
    """Tensor metadata violates one of its structural rules (e.g. an empty
    shape, a non-positive dimension, or a permutation that is not a
    bijection)."""

    error_name = TensorCatErrorNames.INVALID_TENSOR_METADATA_ERROR.value


class MetadataDecodeError(ValidationError):
    """Serialized extension metadata could not be decoded."""

    error_name = TensorCatErrorNames.METADATA_DECODE_ERROR.value


class StorageLayoutError(ValidationError):
    """The physical storage of a loaded array disagrees with its extension
    metadata."""

    error_name = TensorCatErrorNames.STORAGE_LAYOUT_ERROR.value


class InvalidArgumentError(NonRetryableError):
    error_name = TensorCatErrorNames.INVALID_ARGUMENT_ERROR.value


class TensorIndexError(NonRetryableError, IndexError):
    error_name = TensorCatErrorNames.TENSOR_INDEX_ERROR.value


class MissingExtensionMetadataError(NonRetryableError):
    error_name = TensorCatErrorNames.MISSING_EXTENSION_METADATA_ERROR.value


class ExtensionAlreadyRegisteredError(NonRetryableError):
    error_name = TensorCatErrorNames.EXTENSION_ALREADY_REGISTERED_ERROR.value


class DependencyPyarrowError(NonRetryableError):
    error_name = TensorCatErrorNames.DEPENDENCY_PYARROW_ERROR.value


class DependencyPyarrowInvalidError(NonRetryableError):
    error_name = TensorCatErrorNames.DEPENDENCY_PYARROW_INVALID_ERROR.value


class DependencyPyarrowCapacityError(NonRetryableError):
    error_name = TensorCatErrorNames.DEPENDENCY_PYARROW_CAPACITY_ERROR.value


class UnclassifiedTensorCatError(NonRetryableError):
    error_name = TensorCatErrorNames.UNCLASSIFIED_TENSORCAT_ERROR.value


def categorize_errors(func: Callable):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            categorize_tensorcat_exception(e)

    return wrapper


def categorize_tensorcat_exception(e: BaseException):
    if isinstance(e, TensorCatError):
        raise e
    elif isinstance(e, ArrowException):
        _categorize_dependency_pyarrow_error(e)
    elif isinstance(e, AssertionError):
        _categorize_assertion_error(e)

    logger.error(f"Error categorization failed for {e}.", exc_info=True)
    raise UnclassifiedTensorCatError(
        f"Error could not be categorized into a TensorCat error: {e}"
    ) from e


def _categorize_dependency_pyarrow_error(e: ArrowException):
    if isinstance(e, ArrowInvalid):
        raise DependencyPyarrowInvalidError(
            f"Pyarrow Invalid error occurred. {e}"
        ) from e
    elif isinstance(e, ArrowCapacityError):
        raise DependencyPyarrowCapacityError(
            f"Pyarrow Capacity error occurred. {e}"
        ) from e
    else:
        raise DependencyPyarrowError(f"Pyarrow error occurred. {e}") from e


def _categorize_assertion_error(e: BaseException):
    raise ValidationError(f"One of the assertions in TensorCat has failed. {e}") from e
