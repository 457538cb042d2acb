from typing import Any, List, Optional, Sequence

import numpy as np
import pyarrow as pa
import pyarrow.compute as pc

from tensorcat.exceptions import InvalidArgumentError


def to_arrow_array(values: Any, value_type: Optional[pa.DataType] = None) -> pa.Array:
    """
    Converts the given values to a single contiguous pyarrow array. Accepts
    pyarrow arrays, chunked arrays, numpy ndarrays (flattened in row-major
    order), and python sequences.
    """
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if isinstance(values, pa.Array):
        if value_type is not None and values.type != value_type:
            values = values.cast(value_type)
        return values
    if isinstance(values, np.ndarray):
        return pa.array(np.ravel(values, order="C"), type=value_type)
    return pa.array(list(values), type=value_type)


def validity_mask(validity: Optional[Sequence[bool]], length: int) -> Optional[pa.Array]:
    """Returns a boolean array that is True for each null element, or None if
    no validity was given."""
    if validity is None:
        return None
    return pc.invert(pa.array(_validity_list(validity, length), type=pa.bool_()))


def fixed_size_list_array(
    values: pa.Array,
    list_size: int,
    validity: Optional[Sequence[bool]] = None,
) -> pa.FixedSizeListArray:
    """
    Creates a fixed size list array whose elements are consecutive runs of
    `list_size` values. Elements marked False in `validity` are null.
    """
    if len(values) % list_size != 0:
        raise InvalidArgumentError(
            f"Expected a multiple of {list_size} values but found {len(values)}"
        )
    length = len(values) // list_size
    if validity is None:
        return pa.FixedSizeListArray.from_arrays(values, list_size)
    bitmap = pa.array(_validity_list(validity, length), type=pa.bool_()).buffers()[1]
    array = pa.Array.from_buffers(
        pa.list_(values.type, list_size),
        length,
        [bitmap],
        children=[values],
    )
    array.validate()
    return array


def fixed_size_list_values(array: pa.FixedSizeListArray) -> pa.Array:
    """
    Returns the values spanned by the elements of the given fixed size list
    array, including those of null elements. Unlike `array.values`, this
    honors the offset of a sliced array.
    """
    list_size = array.type.list_size
    return array.values.slice(array.offset * list_size, len(array) * list_size)


def struct_array(
    children: Sequence[pa.Array],
    names: Sequence[str],
    validity: Optional[Sequence[bool]] = None,
) -> pa.StructArray:
    lengths = {len(child) for child in children}
    if len(lengths) > 1:
        raise InvalidArgumentError(
            f"Struct children must have equal lengths but found "
            f"{[len(child) for child in children]}"
        )
    length = lengths.pop() if lengths else 0
    mask = validity_mask(validity, length)
    if mask is None:
        return pa.StructArray.from_arrays(list(children), names=list(names))
    return pa.StructArray.from_arrays(list(children), names=list(names), mask=mask)


def _validity_list(validity: Sequence[bool], length: int) -> List[bool]:
    validity = [bool(valid) for valid in validity]
    if len(validity) != length:
        raise InvalidArgumentError(
            f"Expected {length} validity entries but found {len(validity)}"
        )
    return validity
