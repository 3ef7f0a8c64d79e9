from typing import Final

from ..config.settings import IntakeConfig
from ..core.progress import ProgressCallback
from ..models import CompressionKind, CompressionOutcome
from ..utils.log import log
from .strategies import STRATEGIES, StrategyKind, classify, min_size_for

# Savings at or below 1% are re-encode noise, not compression
NOISE_FLOOR: Final[float] = 0.01


def _no_progress(value: int) -> None:
    pass


def _outcome_kind(kind: StrategyKind) -> CompressionKind:
    return "none" if kind == "passthrough" else kind


def _evaluate(
    data: bytes, mime_type: str, payload: bytes, payload_type: str, kind: CompressionKind
) -> CompressionOutcome:
    original_size = len(data)
    compressed_size = len(payload)
    savings = (original_size - compressed_size) / original_size if original_size > 0 else 0.0

    if savings <= NOISE_FLOOR:
        return CompressionOutcome.unchanged(data, mime_type, kind)

    return CompressionOutcome(
        payload=payload,
        type=payload_type,
        original_size=original_size,
        compressed_size=compressed_size,
        kind=kind,
        compression_applied=True,
        savings_ratio=savings,
    )


async def compress(
    data: bytes,
    mime_type: str,
    config: IntakeConfig,
    on_progress: ProgressCallback | None = None,
    name: str = "",
) -> CompressionOutcome:
    """
    Picks a strategy by MIME type and runs it when the file is above the strategy's floor.
    Never raises because of an encoding failure: the original bytes are returned instead.
    """
    progress = on_progress or _no_progress
    kind = classify(mime_type)
    outcome_kind = _outcome_kind(kind)
    floor = min_size_for(kind, config)

    if not config.auto_compress or floor is None or len(data) <= floor:
        progress(100)
        return CompressionOutcome.unchanged(data, mime_type, outcome_kind)

    strategy = STRATEGIES[kind]
    try:
        payload, payload_type = await strategy(data, mime_type, config, progress)
    except Exception as e:
        log(f"⚠️ Сжатие {name or mime_type} не удалось, использую оригинал: {e}", indent=2)
        progress(100)
        return CompressionOutcome.unchanged(data, mime_type, outcome_kind)

    return _evaluate(data, mime_type, payload, payload_type, outcome_kind)
