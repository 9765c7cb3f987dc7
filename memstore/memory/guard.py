"""
Metadata privilege guard.

Keys under the reserved namespace (by default ``system``) may only be
created, updated or deleted by privileged callers such as extractors.
"""

import logging
from typing import Iterable, List

from memstore.errors import PermissionDeniedError
from .schemas import MessageMetadata

logger = logging.getLogger(__name__)

RESERVED_NAMESPACE = "system"


class MetadataGuard:
    """
    Validates metadata batches against the reserved-key namespace.

    A batch is accepted or rejected as a whole: one reserved key from an
    unprivileged caller rejects every entry.
    """

    def __init__(self, namespace: str = RESERVED_NAMESPACE):
        self.namespace = namespace

    def is_reserved(self, key: str) -> bool:
        """True if `key` is the namespace itself or nested under it."""
        return key == self.namespace or key.startswith(self.namespace + ".")

    def reserved_keys(self, keys: Iterable[str]) -> List[str]:
        return [k for k in keys if self.is_reserved(k)]

    def check(self, metadata_set: Iterable[MessageMetadata], is_privileged: bool) -> None:
        """
        Raise PermissionDeniedError if the batch touches reserved keys
        without privilege.
        """
        if is_privileged:
            return
        blocked = self.reserved_keys(entry.key for entry in metadata_set)
        if blocked:
            logger.warning("Rejected metadata batch with reserved keys: %s", sorted(set(blocked)))
            raise PermissionDeniedError(
                f"keys under '{self.namespace}' require privilege: {sorted(set(blocked))}"
            )

    def check_keys(self, keys: Iterable[str], is_privileged: bool) -> None:
        """Same as `check` for a plain key collection (message metadata on write)."""
        if is_privileged:
            return
        blocked = self.reserved_keys(keys)
        if blocked:
            raise PermissionDeniedError(
                f"keys under '{self.namespace}' require privilege: {sorted(set(blocked))}"
            )
