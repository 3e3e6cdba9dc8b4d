from cashbook.stores.drive import GoogleDriveStore
from cashbook.stores.memory import MemoryFileStore

__all__ = ["GoogleDriveStore", "MemoryFileStore"]
