"""Compression strategies.

Each strategy takes the raw bytes and returns ``(payload, mime_type)``. Strategies may raise;
the compressor is responsible for falling back to the original bytes.
"""

import asyncio
import io
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Final, Literal

from PIL import Image, ImageOps
from pypdf import PdfReader, PdfWriter

from ..config.settings import ImageOptions, IntakeConfig
from ..core.progress import ProgressCallback
from ..exceptions import CompressionError

StrategyKind = Literal["image", "pdf", "passthrough"]

PDF_MIME: Final[str] = "application/pdf"
IMAGE_MIME_PREFIX: Final[str] = "image/"
PIL_FORMATS: Final[dict[str, str]] = {"jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}
QUALITY_STEP: Final[float] = 0.1
MIN_QUALITY: Final[float] = 0.1
MAX_ENCODE_PASSES: Final[int] = 10

StrategyResult = tuple[bytes, str]
Strategy = Callable[[bytes, str, IntakeConfig, ProgressCallback], Awaitable[StrategyResult]]


def classify(mime_type: str) -> StrategyKind:
    mime_type = mime_type.lower()
    if mime_type.startswith(IMAGE_MIME_PREFIX):
        return "image"
    if mime_type == PDF_MIME:
        return "pdf"
    return "passthrough"


def min_size_for(kind: StrategyKind, config: IntakeConfig) -> int | None:
    """Size floor above which the strategy is worth running; None means never."""
    match kind:
        case "image":
            return config.image_min_size_bytes
        case "pdf":
            return config.pdf_min_size_bytes
        case _:
            return None


# --- images ---


def _flatten_alpha(img: Image.Image) -> Image.Image:
    rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def _prepare_image(data: bytes, options: ImageOptions) -> Image.Image:
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        prepared = ImageOps.exif_transpose(img)

    prepared.thumbnail((options.max_dimension, options.max_dimension), Image.Resampling.LANCZOS)

    has_alpha = prepared.mode in ("RGBA", "LA", "PA") or "transparency" in prepared.info
    if options.output_format == "jpeg":
        return _flatten_alpha(prepared) if has_alpha else prepared.convert("RGB")
    if prepared.mode not in ("RGB", "RGBA", "L", "LA"):
        return prepared.convert("RGBA" if has_alpha else "RGB")
    return prepared


def _encode_image(img: Image.Image, options: ImageOptions, quality: float) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=PIL_FORMATS[options.output_format], quality=round(quality * 100), optimize=True)
    return buffer.getvalue()


async def compress_image(
    data: bytes, mime_type: str, config: IntakeConfig, on_progress: ProgressCallback
) -> StrategyResult:
    options = config.image
    try:
        img = await asyncio.to_thread(_prepare_image, data, options)
        on_progress(20)

        quality = options.quality
        encoded = await asyncio.to_thread(_encode_image, img, options, quality)
        passes = 1
        on_progress(20 + 80 * passes // MAX_ENCODE_PASSES)

        # PNG is lossless, lowering quality changes nothing
        while (
            len(encoded) > options.max_size_bytes
            and options.output_format != "png"
            and quality - QUALITY_STEP >= MIN_QUALITY
            and passes < MAX_ENCODE_PASSES
        ):
            quality = round(quality - QUALITY_STEP, 2)
            encoded = await asyncio.to_thread(_encode_image, img, options, quality)
            passes += 1
            on_progress(20 + 80 * passes // MAX_ENCODE_PASSES)
    except Exception as e:
        raise CompressionError(f"Не удалось сжать изображение: {e}") from e

    on_progress(100)
    return encoded, options.output_mime


# --- PDF ---


def _pdf_date(moment: datetime) -> str:
    return moment.strftime("D:%Y%m%d%H%M%S+00'00'")


def _strip_pdf_metadata(reader: PdfReader) -> PdfWriter:
    writer = PdfWriter(clone_from=reader)
    now = _pdf_date(datetime.now(timezone.utc))
    writer.add_metadata(
        {
            "/Title": "",
            "/Author": "",
            "/Subject": "",
            "/Keywords": "",
            "/Producer": "",
            "/Creator": "",
            "/CreationDate": now,
            "/ModDate": now,
        }
    )
    return writer


def _serialize_pdf(writer: PdfWriter) -> bytes:
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


async def compress_pdf(
    data: bytes, mime_type: str, config: IntakeConfig, on_progress: ProgressCallback
) -> StrategyResult:
    try:
        on_progress(10)
        reader = await asyncio.to_thread(PdfReader, io.BytesIO(data))
        on_progress(50)
        writer = await asyncio.to_thread(_strip_pdf_metadata, reader)
        on_progress(80)
        payload = await asyncio.to_thread(_serialize_pdf, writer)
        on_progress(90)
    except Exception as e:
        raise CompressionError(f"Не удалось сжать PDF: {e}") from e

    on_progress(100)
    return payload, PDF_MIME


async def pass_through(
    data: bytes, mime_type: str, config: IntakeConfig, on_progress: ProgressCallback
) -> StrategyResult:
    on_progress(100)
    return data, mime_type


STRATEGIES: Final[dict[StrategyKind, Strategy]] = {
    "image": compress_image,
    "pdf": compress_pdf,
    "passthrough": pass_through,
}
