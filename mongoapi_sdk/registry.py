"""
Handle registry

Maps opaque integer handles to remote connection and collection
descriptors. One registry is owned per API client; nothing is global.
"""

import itertools
import threading
from typing import Dict, List, NewType, Optional

from mongoapi_sdk.exceptions import ValidationError
from mongoapi_sdk.models import CollectionInfo, ConnectionInfo

Handle = NewType("Handle", int)

INVALID_HANDLE = Handle(0)


class HandleRegistry:
    """
    Thread-safe table of connection and collection handles.

    Handles start at 1, are never reused and never collide between
    connections and collections.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._connections: Dict[Handle, ConnectionInfo] = {}
        self._collections: Dict[Handle, CollectionInfo] = {}

    def add_connection(self, info: ConnectionInfo) -> Handle:
        with self._lock:
            handle = Handle(next(self._ids))
            self._connections[handle] = info
            return handle

    def add_collection(self, info: CollectionInfo) -> Handle:
        with self._lock:
            if info.connection_handle not in self._connections:
                raise ValidationError("Invalid connection handle")
            handle = Handle(next(self._ids))
            self._collections[handle] = info
            return handle

    def get_connection(self, handle: Handle) -> Optional[ConnectionInfo]:
        with self._lock:
            return self._connections.get(handle)

    def get_collection(self, handle: Handle) -> Optional[CollectionInfo]:
        with self._lock:
            return self._collections.get(handle)

    def require_connection(self, handle: Handle) -> ConnectionInfo:
        info = self.get_connection(handle)
        if info is None:
            raise ValidationError("Invalid connection handle", detail=str(handle))
        return info

    def require_collection(self, handle: Handle) -> CollectionInfo:
        info = self.get_collection(handle)
        if info is None:
            raise ValidationError("Invalid collection handle", detail=str(handle))
        return info

    def remove_connection(self, handle: Handle) -> Optional[ConnectionInfo]:
        """Drop a connection and every collection handle bound to it."""
        with self._lock:
            info = self._connections.pop(handle, None)
            if info is not None:
                stale = [h for h, c in self._collections.items() if c.connection_handle == handle]
                for h in stale:
                    del self._collections[h]
            return info

    def remove_collection(self, handle: Handle) -> bool:
        with self._lock:
            return self._collections.pop(handle, None) is not None

    def connection_handles(self) -> List[Handle]:
        with self._lock:
            return list(self._connections)

    def clear(self) -> None:
        with self._lock:
            self._connections.clear()
            self._collections.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections) + len(self._collections)
