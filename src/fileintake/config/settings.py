from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Final, Literal, cast

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

KIB: Final[int] = 1024
MIB: Final[int] = 1024 * 1024

DEFAULT_ALLOWED_TYPES: Final[list[str]] = [
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
]

CONFIG_PATH: Final[Path] = Path("config.yaml")


class AppConfig(BaseModel):
    output_dir: Path | None = Field(default=None)
    show_progress: bool = Field(default=True)


class ImageOptions(BaseModel):
    max_size_bytes: int = Field(default=200 * KIB, ge=1)
    max_dimension: int = Field(default=600, ge=1)
    quality: float = Field(default=0.8, gt=0, le=1)
    output_format: Literal["jpeg", "png", "webp"] = Field(default="webp")

    @property
    def output_mime(self) -> str:
        return f"image/{self.output_format}"


class IntakeConfig(BaseModel):
    max_files: int = Field(default=10, ge=1)
    allowed_types: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_TYPES))
    max_file_size: int = Field(default=10 * MIB, ge=1)
    allow_duplicates: bool = Field(default=False)
    image: ImageOptions = Field(default_factory=ImageOptions)
    pdf_min_size_bytes: int = Field(default=500 * KIB, ge=0)
    image_min_size_bytes: int = Field(default=100 * KIB, ge=0)
    concurrency: int = Field(default=3, ge=1)
    group_delay_seconds: float = Field(default=0.1, ge=0)
    inline_preview_max_bytes: int = Field(default=1 * MIB, ge=0)
    retain_sources: bool = Field(default=True)
    auto_compress: bool = Field(default=True)
    # Part of the 0-100 progress scale left to an external uploader
    upload_progress_share: int = Field(default=0, ge=0, le=100)

    @field_validator("allowed_types")
    @classmethod
    def validate_allowed_types(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Список allowed_types не может быть пустым")
        normalized = [t.strip().lower() for t in v]
        for mime in normalized:
            if "/" not in mime:
                raise ValueError(f"Некорректный MIME-тип: {mime}. Используйте формат type/subtype.")
        return normalized


class Settings(BaseSettings):
    config_path: ClassVar[Path] = CONFIG_PATH

    app: AppConfig = Field(default_factory=AppConfig)
    intake: IntakeConfig = Field(default_factory=IntakeConfig)

    model_config = SettingsConfigDict(
        env_prefix="FILEINTAKE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    class YamlConfigSource(PydanticBaseSettingsSource):
        yaml_path: Path
        _data: dict[str, Any]

        def __init__(self, settings_cls: type[BaseSettings], yaml_path: Path) -> None:
            super().__init__(settings_cls)
            self.yaml_path = yaml_path
            self._data = {}

        def _read_yaml(self) -> dict[str, Any]:
            if self.yaml_path.exists():
                try:
                    with open(self.yaml_path, encoding="utf-8") as f:
                        loaded = yaml.safe_load(f)
                        self._data = loaded if isinstance(loaded, dict) else {}
                except Exception as e:
                    print(f"⚠️ Ошибка при чтении {self.yaml_path}: {e}")
            return self._data

        def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
            data = self._read_yaml()
            if field_name in data:
                return data[field_name], field_name, True
            return None, field_name, False

        def prepare_field_value(self, field_name: str, field: Any, value: Any, value_is_complex: bool) -> Any:
            return value

        def __call__(self) -> dict[str, Any]:
            return self._read_yaml()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls.YamlConfigSource(settings_cls, cls.config_path),
            file_secret_settings,
        )

    @classmethod
    def load(cls, config_path: Path | None = None) -> Settings:
        """Factory method for correct instantiation without arguments."""
        cls.config_path = config_path or CONFIG_PATH
        factory: type[Any] = cast(type[Any], cls)
        instance = factory()
        return cast(Settings, instance)
