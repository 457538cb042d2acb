from __future__ import annotations


from tensorcat.utils.common import env_string

# Environment variables
TENSORCAT_SYS_LOG_LEVEL = env_string("TENSORCAT_SYS_LOG_LEVEL", "DEBUG")
TENSORCAT_SYS_LOG_DIR = env_string(
    "TENSORCAT_SYS_LOG_DIR",
    "/tmp/tensorcat/var/output/logs/",
)
TENSORCAT_SYS_INFO_LOG_BASE_FILE_NAME = env_string(
    "TENSORCAT_SYS_INFO_LOG_BASE_FILE_NAME",
    "tensorcat-python.info.log",
)
TENSORCAT_SYS_DEBUG_LOG_BASE_FILE_NAME = env_string(
    "TENSORCAT_SYS_DEBUG_LOG_BASE_FILE_NAME",
    "tensorcat-python.debug.log",
)

TENSORCAT_APP_LOG_LEVEL = env_string("TENSORCAT_APP_LOG_LEVEL", "DEBUG")
TENSORCAT_APP_LOG_DIR = env_string(
    "TENSORCAT_APP_LOG_DIR",
    "/tmp/tensorcat/var/output/logs/",
)
TENSORCAT_APP_INFO_LOG_BASE_FILE_NAME = env_string(
    "TENSORCAT_APP_INFO_LOG_BASE_FILE_NAME",
    "application.info.log",
)
TENSORCAT_APP_DEBUG_LOG_BASE_FILE_NAME = env_string(
    "TENSORCAT_APP_DEBUG_LOG_BASE_FILE_NAME",
    "application.debug.log",
)
# A json context which will be logged along with other context args.
TENSORCAT_LOGGER_CONTEXT = env_string("TENSORCAT_LOGGER_CONTEXT", None)

# Arrow Field Metadata Key holding the extension type name.
# See: https://arrow.apache.org/docs/format/Columnar.html#extension-types
EXTENSION_NAME_KEY = "ARROW:extension:name"

# Arrow Field Metadata Key holding the serialized extension type parameters.
EXTENSION_METADATA_KEY = "ARROW:extension:metadata"

# Canonical extension names.
# See: https://arrow.apache.org/docs/format/CanonicalExtensions.html
FIXED_SHAPE_TENSOR_EXTENSION_NAME = "arrow.fixed_shape_tensor"
VARIABLE_SHAPE_TENSOR_EXTENSION_NAME = "arrow.variable_shape_tensor"

# Variable shape tensor struct storage child names, in storage order.
VARIABLE_SHAPE_TENSOR_DATA_FIELD_NAME = "data"
VARIABLE_SHAPE_TENSOR_SHAPE_FIELD_NAME = "shape"

SIGNED_INT32_MIN_VALUE = -(2**31)
SIGNED_INT32_MAX_VALUE = 2**31 - 1
SIGNED_INT64_MIN_VALUE = -(2**63)
SIGNED_INT64_MAX_VALUE = 2**63 - 1
