"""
Typed Settings.

Frozen value objects built once from ``ConfigurationManager`` and passed to
each component's constructor. Components never read configuration on their
own; tests build these objects directly.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from config import ConfigurationManager


@dataclass(frozen=True)
class OcrSettings:
    """Tesseract and rasterization options."""
    tessdata_dir: str = ""
    language: str = "eng"
    oem: int = 1
    psm: int = 3
    char_whitelist: str = ""
    preserve_interword_spaces: str = "1"
    priority: int = 10
    pdf_dpi: int = 300
    preprocess: bool = False

    @classmethod
    def from_config(cls, config: ConfigurationManager) -> 'OcrSettings':
        return cls(
            tessdata_dir=config.get("ocr.tesseract.tessdata_dir", "") or "",
            language=config.get("ocr.tesseract.language", "eng"),
            oem=int(config.get("ocr.tesseract.oem", 1)),
            psm=int(config.get("ocr.tesseract.psm", 3)),
            char_whitelist=config.get("ocr.tesseract.char_whitelist", "") or "",
            preserve_interword_spaces=str(
                config.get("ocr.tesseract.preserve_interword_spaces", "1")
            ),
            priority=int(config.get("ocr.tesseract.priority", 10)),
            pdf_dpi=int(config.get("ocr.pdf.dpi", 300)),
            preprocess=bool(config.get("ocr.preprocess", False)),
        )


@dataclass(frozen=True)
class LlmSettings:
    """Connection and sampling options for the hosted LLM."""
    api_url: str = "https://api.groq.com/openai/v1/chat/completions"
    api_key: Optional[str] = field(default=None, repr=False)
    model: Optional[str] = "llama-3.1-70b-versatile"
    temperature: float = 0.1
    max_tokens: int = 2048
    timeout_seconds: float = 30.0
    default_confidence: float = 0.85

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip()) and bool(
            self.model and self.model.strip()
        )

    @classmethod
    def from_config(cls, config: ConfigurationManager) -> 'LlmSettings':
        return cls(
            api_url=config.get("llm.api_url", cls.api_url),
            api_key=config.get_secret(
                "llm.api_key", config.get("llm.api_key_env", "GROQ_API_KEY")
            ),
            model=config.get("llm.model", cls.model),
            temperature=float(config.get("llm.temperature", 0.1)),
            max_tokens=int(config.get("llm.max_tokens", 2048)),
            timeout_seconds=float(config.get("llm.timeout_seconds", 30)),
            default_confidence=float(config.get("llm.default_confidence", 0.85)),
        )


@dataclass(frozen=True)
class PipelineSettings:
    """Worker pool sizes, stage timeouts and intake limits."""
    max_concurrent_extractions: int = 4
    stage_workers: int = 4
    ocr_timeout_seconds: float = 120.0
    llm_timeout_seconds: float = 30.0
    max_file_size_bytes: int = 10 * 1024 * 1024
    low_confidence_threshold: float = 0.7

    @classmethod
    def from_config(cls, config: ConfigurationManager) -> 'PipelineSettings':
        return cls(
            max_concurrent_extractions=int(
                config.get("pipeline.max_concurrent_extractions", 4)
            ),
            stage_workers=int(config.get("pipeline.stage_workers", 4)),
            ocr_timeout_seconds=float(config.get("pipeline.ocr_timeout_seconds", 120)),
            llm_timeout_seconds=float(config.get("llm.timeout_seconds", 30)),
            max_file_size_bytes=int(
                config.get("pipeline.max_file_size_bytes", 10 * 1024 * 1024)
            ),
            low_confidence_threshold=float(
                config.get("pipeline.low_confidence_threshold", 0.7)
            ),
        )


@dataclass(frozen=True)
class StorageSettings:
    """Locations of uploaded files and the SQLite database."""
    upload_dir: Path = Path("data/uploads")
    database_enabled: bool = True
    database_path: Path = Path("outputs/invoice_pipeline.db")

    @classmethod
    def from_config(cls, config: ConfigurationManager) -> 'StorageSettings':
        output_dir = Path(config.get("paths.output_dir", "outputs"))
        return cls(
            upload_dir=Path(config.get("paths.upload_dir", "data/uploads")),
            database_enabled=bool(config.get("output.database.enabled", True)),
            database_path=output_dir / config.get(
                "output.database.name", "invoice_pipeline.db"
            ),
        )


@dataclass(frozen=True)
class AppSettings:
    """All settings for one pipeline instance."""
    ocr: OcrSettings = field(default_factory=OcrSettings)
    llm: LlmSettings = field(default_factory=LlmSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)


def load_settings(config_path: Optional[str] = None) -> AppSettings:
    """
    Build ``AppSettings`` from a YAML file.

    Args:
        config_path: Optional path to a settings file. Defaults to
                    config/settings.yaml.

    Returns:
        Frozen settings for every component.
    """
    config = ConfigurationManager(config_path)
    return AppSettings(
        ocr=OcrSettings.from_config(config),
        llm=LlmSettings.from_config(config),
        pipeline=PipelineSettings.from_config(config),
        storage=StorageSettings.from_config(config),
    )


__all__ = [
    'OcrSettings',
    'LlmSettings',
    'PipelineSettings',
    'StorageSettings',
    'AppSettings',
    'load_settings',
]
