import uuid

BLOB_SCHEME = "blob:"


class BlobRegistry:
    """
    In-process registry of payloads addressable by ``blob:`` URLs.
    Every URL handed out must eventually be revoked by its owner.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}

    def create(self, payload: bytes, mime_type: str) -> str:
        url = f"{BLOB_SCHEME}{uuid.uuid4().hex}"
        self._blobs[url] = (payload, mime_type)
        return url

    def resolve(self, url: str) -> bytes | None:
        entry = self._blobs.get(url)
        return entry[0] if entry else None

    def mime_type(self, url: str) -> str | None:
        entry = self._blobs.get(url)
        return entry[1] if entry else None

    def revoke(self, url: str | None) -> bool:
        """Releases a handle. Returns False for unknown or already revoked URLs."""
        if not url:
            return False
        return self._blobs.pop(url, None) is not None

    def revoke_all(self) -> int:
        count = len(self._blobs)
        self._blobs.clear()
        return count

    def __contains__(self, url: object) -> bool:
        return url in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)
