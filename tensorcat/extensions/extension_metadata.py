import logging
from typing import List, Optional, Sequence, Tuple

from tensorcat import logs
from tensorcat.constants import EXTENSION_METADATA_KEY, EXTENSION_NAME_KEY
from tensorcat.exceptions import MissingExtensionMetadataError

logger = logs.configure_tensorcat_logger(logging.getLogger(__name__))

KeyValuePair = Tuple[str, str]
KeyValueList = List[KeyValuePair]

RESERVED_EXTENSION_KEYS = (EXTENSION_NAME_KEY, EXTENSION_METADATA_KEY)


def init_extension_metadata(
    existing: Optional[Sequence[KeyValuePair]],
    extension_name: str,
    metadata_json: str,
) -> KeyValueList:
    """
    Returns a copy of the given key-value metadata with the extension name and
    serialized extension metadata appended. If an entry already declares this
    extension name then the metadata is returned unchanged, which leaves any
    previously attached extension payload in place.

    Reserved extension entries left over from a different extension are
    dropped before appending, so that each reserved key occurs at most once.
    A plain append would leave the stale pair ahead of the new one, and
    `extract_extension_metadata` returns the first payload it finds. All
    other entries keep their relative order.
    """
    updated = [(key, value) for key, value in existing or []]
    if (EXTENSION_NAME_KEY, extension_name) in updated:
        logger.debug(
            f"Extension '{extension_name}' already declared in metadata. "
            f"Leaving existing payload in place."
        )
        return updated
    stale = [pair for pair in updated if pair[0] in RESERVED_EXTENSION_KEYS]
    if stale:
        logger.debug(f"Replacing stale extension metadata entries: {stale}")
        updated = [pair for pair in updated if pair[0] not in RESERVED_EXTENSION_KEYS]
    updated.append((EXTENSION_NAME_KEY, extension_name))
    updated.append((EXTENSION_METADATA_KEY, metadata_json))
    logger.debug(f"Embedded extension '{extension_name}' metadata: {metadata_json}")
    return updated


def extract_extension_metadata(
    metadata: Optional[Sequence[KeyValuePair]],
    required: bool,
) -> Optional[str]:
    """
    Returns the first serialized extension metadata value found in the given
    key-value metadata. If no non-empty value is found then either raises
    MissingExtensionMetadataError (if required) or returns None.
    """
    if metadata is None:
        if required:
            raise MissingExtensionMetadataError("Missing extension metadata")
        return None
    for key, value in metadata:
        if key == EXTENSION_METADATA_KEY:
            if value:
                return value
            break
    if required:
        raise MissingExtensionMetadataError(f"Missing {EXTENSION_METADATA_KEY}")
    return None


def extension_name_of(metadata: Optional[Sequence[KeyValuePair]]) -> Optional[str]:
    """Returns the first extension name declared in the given key-value
    metadata, or None if no extension name is declared."""
    for key, value in metadata or []:
        if key == EXTENSION_NAME_KEY:
            return value
    return None
