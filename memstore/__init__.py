"""
memstore: conversation memory with summaries, search and extractors.

Import the facade from its module to keep package imports light:

    from memstore.memory.store import MemoryStore
    from memstore.integrate import create_memory_store
"""

__version__ = "0.1.0"
