import asyncio
import base64
import io

from PIL import Image

from ..config.settings import IntakeConfig
from ..core.blob_registry import BlobRegistry
from ..models import Attachment, AttachmentMetadata, CompressionOutcome, Dimensions, IncomingFile
from ..utils.log import log


def _read_dimensions(payload: bytes) -> Dimensions:
    with Image.open(io.BytesIO(payload)) as img:
        width, height = img.size
    return Dimensions(width=width, height=height)


def _to_data_url(payload: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


async def derive_dimensions(payload: bytes, mime_type: str, name: str) -> Dimensions | None:
    if not mime_type.startswith("image/"):
        return None
    try:
        return await asyncio.to_thread(_read_dimensions, payload)
    except Exception as e:
        log(f"⚠️ Не удалось определить размеры изображения {name}: {e}", indent=2)
        return None


async def derive_inline_preview(payload: bytes, mime_type: str, max_bytes: int) -> str | None:
    if len(payload) > max_bytes:
        return None
    try:
        return await asyncio.to_thread(_to_data_url, payload, mime_type)
    except Exception:
        return None


async def build_attachment(
    attachment_id: str,
    file: IncomingFile,
    outcome: CompressionOutcome,
    registry: BlobRegistry,
    config: IntakeConfig,
) -> Attachment:
    """Turns a compression outcome into a ready attachment. Preview and dimensions are best-effort."""
    dimensions = await derive_dimensions(outcome.payload, outcome.type, file.name)
    inline_preview = await derive_inline_preview(outcome.payload, outcome.type, config.inline_preview_max_bytes)

    url = registry.create(outcome.payload, outcome.type)

    return Attachment(
        id=attachment_id,
        name=file.name,
        size=outcome.compressed_size,
        type=outcome.type,
        original_type=file.type,
        original_size=outcome.original_size,
        url=url,
        inline_preview=inline_preview,
        compression_applied=outcome.compression_applied,
        compression_ratio=outcome.size_ratio,
        status="ready",
        metadata=AttachmentMetadata(last_modified=file.last_modified, dimensions=dimensions),
    )


def build_pending_attachment(attachment_id: str, file: IncomingFile) -> Attachment:
    return Attachment(
        id=attachment_id,
        name=file.name,
        size=file.size,
        type=file.type,
        original_type=file.type,
        original_size=file.size,
        metadata=AttachmentMetadata(last_modified=file.last_modified),
    )
