# Allow classes to use self-referencing Type hints in Python 3.7.
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pyarrow as pa

from tensorcat import logs
from tensorcat.constants import (
    FIXED_SHAPE_TENSOR_EXTENSION_NAME,
    VARIABLE_SHAPE_TENSOR_EXTENSION_NAME,
)
from tensorcat.exceptions import (
    ExtensionAlreadyRegisteredError,
    InvalidArgumentError,
)
from tensorcat.extensions.extension_metadata import extension_name_of
from tensorcat.extensions.fixed_shape_tensor import FixedShapeTensorArray
from tensorcat.extensions.model.column import ArrowColumn
from tensorcat.extensions.model.types import StorageKind
from tensorcat.extensions.variable_shape_tensor import VariableShapeTensorArray

logger = logs.configure_tensorcat_logger(logging.getLogger(__name__))

ExtensionFactory = Callable[[ArrowColumn], Any]


class ExtensionRegistration(tuple):
    """Handle returned for each registered extension factory."""

    @staticmethod
    def of(
        storage_kind: StorageKind,
        extension_name: str,
        factory: ExtensionFactory,
    ) -> ExtensionRegistration:
        return ExtensionRegistration((StorageKind(storage_kind), extension_name, factory))

    @property
    def storage_kind(self) -> StorageKind:
        return self[0]

    @property
    def extension_name(self) -> str:
        return self[1]

    @property
    def factory(self) -> ExtensionFactory:
        return self[2]

    @property
    def key(self) -> Tuple[StorageKind, str]:
        return self.storage_kind, self.extension_name


class ExtensionRegistry:
    """
    Maps a storage kind and extension name to the factory that wraps a column
    of that storage kind carrying that extension name in its typed adapter.
    """

    def __init__(self):
        self._registrations: Dict[Tuple[StorageKind, str], ExtensionRegistration] = {}

    def register(
        self,
        storage_kind: StorageKind,
        extension_name: str,
        factory: ExtensionFactory,
    ) -> ExtensionRegistration:
        """
        Registers a factory for the given storage kind and extension name.
        Registering the same factory again returns the existing registration,
        while registering a different factory for the same key raises an
        ExtensionAlreadyRegisteredError.
        """
        if not extension_name:
            raise InvalidArgumentError("Extension name must not be empty.")
        registration = ExtensionRegistration.of(storage_kind, extension_name, factory)
        existing = self._registrations.get(registration.key)
        if existing is not None:
            if existing.factory == factory:
                return existing
            raise ExtensionAlreadyRegisteredError(
                f"Extension '{extension_name}' is already registered for "
                f"{registration.storage_kind.value} storage."
            )
        self._registrations[registration.key] = registration
        logger.debug(
            f"Registered extension '{extension_name}' for "
            f"{registration.storage_kind.value} storage."
        )
        return registration

    def unregister(self, registration: ExtensionRegistration) -> bool:
        """Removes the given registration. Returns False if it was not
        registered."""
        if self._registrations.get(registration.key) != registration:
            return False
        del self._registrations[registration.key]
        logger.debug(f"Unregistered extension '{registration.extension_name}'.")
        return True

    def is_registered(self, storage_kind: StorageKind, extension_name: str) -> bool:
        return (StorageKind(storage_kind), extension_name) in self._registrations

    def get_factory(
        self,
        storage_kind: StorageKind,
        extension_name: str,
    ) -> Optional[ExtensionFactory]:
        registration = self._registrations.get((StorageKind(storage_kind), extension_name))
        return registration.factory if registration else None

    def load(self, column: ArrowColumn) -> Union[ArrowColumn, Any]:
        """
        Returns the typed adapter for the given column if its metadata names
        a registered extension for its storage kind. Otherwise returns the
        column unchanged.
        """
        extension_name = extension_name_of(column.metadata)
        if extension_name is None:
            return column
        factory = self.get_factory(column.storage_kind, extension_name)
        if factory is None:
            logger.debug(
                f"No factory registered for extension '{extension_name}' with "
                f"{column.storage_kind.value} storage. Leaving column "
                f"'{column.name}' untyped."
            )
            return column
        logger.debug(f"Loading column '{column.name}' as '{extension_name}'.")
        return factory(column)

    def load_table(self, table: pa.Table) -> Dict[str, Union[ArrowColumn, Any]]:
        """Loads every column of the given table, keyed by column name."""
        return {
            table.schema.field(i).name: self.load(ArrowColumn.from_table(table, i))
            for i in range(table.num_columns)
        }


_DEFAULT_REGISTRY = ExtensionRegistry()


def default_registry() -> ExtensionRegistry:
    return _DEFAULT_REGISTRY


def register_tensor_extensions(
    registry: Optional[ExtensionRegistry] = None,
) -> List[ExtensionRegistration]:
    """
    Registers the fixed and variable shape tensor factories with the given
    registry (the process-wide default registry if omitted). Safe to call
    more than once.
    """
    registry = registry or default_registry()
    return [
        registry.register(
            StorageKind.FIXED_SIZE_LIST,
            FIXED_SHAPE_TENSOR_EXTENSION_NAME,
            FixedShapeTensorArray.from_column,
        ),
        registry.register(
            StorageKind.STRUCT,
            VARIABLE_SHAPE_TENSOR_EXTENSION_NAME,
            VariableShapeTensorArray.from_column,
        ),
    ]
