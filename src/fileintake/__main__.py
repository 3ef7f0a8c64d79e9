import argparse
import asyncio
import sys
from pathlib import Path

from .config.settings import CONFIG_PATH, Settings
from .core.composition import DefaultIntakeComposer
from .utils.log import log


async def main(composer: DefaultIntakeComposer) -> None:
    parser = argparse.ArgumentParser(description="Validate and compress files into attachment records.")
    parser.add_argument("files", nargs="+", type=Path, help="Files to ingest.")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="Path to config.yaml.")
    parser.add_argument("--output", type=Path, default=None, help="Directory to write processed files to.")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    args = parser.parse_args()

    try:
        missing = [str(path) for path in args.files if not path.is_file()]
        if missing:
            raise FileNotFoundError(f"файлы не найдены: {', '.join(missing)}")

        settings = Settings.load(args.config)
        app = composer.compose_app(settings, output_dir=args.output, show_progress=not args.no_progress)
        stats = await app.run(args.files)

        if stats.ready_count == 0:
            sys.exit(1)

    except Exception as e:
        log(f"❌ Критическая ошибка: {e}", err=True)
        sys.exit(1)


def run() -> None:
    asyncio.run(main(DefaultIntakeComposer()))


if __name__ == "__main__":
    run()
