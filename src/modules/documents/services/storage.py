import logging
import os
from urllib.parse import quote

from config import settings
from modules.documents.errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Stores document files under one directory; paths are relative to it."""

    def __init__(self, root: str, public_base_url: str = ""):
        self.root = os.path.abspath(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([self.root, full_path]) != self.root:
            raise InvalidInput(f"Path escapes the storage root: {path}")
        return full_path

    def save(self, path: str, data: bytes) -> str:
        full_path = self._resolve(path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "wb") as f:
            f.write(data)
        return path

    def download(self, path: str) -> bytes:
        full_path = self._resolve(path)
        if not os.path.exists(full_path):
            raise NotFound(f"File not found in storage: {path}")
        with open(full_path, "rb") as f:
            return f.read()

    def delete(self, path: str) -> None:
        full_path = self._resolve(path)
        if os.path.exists(full_path):
            os.remove(full_path)

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(path)}"


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.upload_dir, settings.public_base_url)
