"""Extractor contract."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from memstore.memory.schemas import MessageEvent

if TYPE_CHECKING:
    from memstore.memory.store import MemoryStore


class BaseExtractor(ABC):
    """
    Post-processing observer notified of newly committed messages.

    `extract` runs on the extractor's own dispatch worker, never on the
    writer's thread. Extractors that write messages back must pass
    ``suppress_notify=True`` to avoid re-triggering extraction.
    """

    name: str = "extractor"

    @abstractmethod
    def extract(self, store: "MemoryStore", event: MessageEvent) -> None:
        """Process one committed batch."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
