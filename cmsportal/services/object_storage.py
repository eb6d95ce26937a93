"""Object storage collaborator for document bytes"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from cmsportal.utils.logger import logger

MOCK_BASE_URL = "https://mock-storage.local"


@dataclass
class UploadResult:
    success: bool
    key: str
    error: Optional[str] = None


class ObjectStorage(ABC):
    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> UploadResult:
        ...

    @abstractmethod
    def get_download_url(self, key: str) -> Optional[str]:
        ...


class MockObjectStorage(ObjectStorage):
    """Keeps objects in process memory and hands out fake URLs"""

    def __init__(self, base_url: str = MOCK_BASE_URL):
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.url_requests = 0
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, content_type: str) -> UploadResult:
        with self._lock:
            self.objects[key] = data
            self.content_types[key] = content_type
        logger.debug(f"Stored {len(data)} bytes at {key}")
        return UploadResult(success=True, key=key)

    def get_download_url(self, key: str) -> Optional[str]:
        with self._lock:
            self.url_requests += 1
        return f"{self.base_url}/{key}"


# Process-wide default used by the API layer
object_storage = MockObjectStorage()
