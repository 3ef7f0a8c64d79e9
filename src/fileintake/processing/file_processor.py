from ..compression import compress
from ..config.settings import IntakeConfig
from ..core.blob_registry import BlobRegistry
from ..core.progress import ProgressCallback
from ..exceptions import PayloadUnavailableError
from ..models import Attachment, IncomingFile
from ..utils.log import log
from .builder import build_attachment


class FileProcessor:
    """Runs one file through the compressor and the attachment builder."""

    def __init__(self, registry: BlobRegistry, config: IntakeConfig) -> None:
        self.registry = registry
        self.config = config

    async def process(self, attachment_id: str, file: IncomingFile, on_progress: ProgressCallback) -> Attachment:
        log(f"⚙️ Обрабатываю {file.name} ({file.type})...", indent=2)
        try:
            data = await file.read()
        except Exception as e:
            raise PayloadUnavailableError(f"Не удалось прочитать файл: {e}") from e

        outcome = await compress(data, file.type, self.config, on_progress, name=file.name)
        if outcome.compression_applied:
            log(
                f"🗜️ {file.name}: {outcome.original_size} → {outcome.compressed_size} байт "
                f"(-{outcome.savings_ratio:.0%})",
                indent=3,
            )

        return await build_attachment(attachment_id, file, outcome, self.registry, self.config)
