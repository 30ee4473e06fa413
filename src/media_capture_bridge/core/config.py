"""Runtime configuration.

設定読み込みは core 配下に集約する。
依存を増やさないため pydantic-settings は使わず、環境変数から読む。
"""

from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class Settings:
    """ブリッジ設定"""

    media_storage_root: str
    cors_allow_origins: list[str]
    audio_sample_rate: int
    audio_buffer_duration_ms: int
    log_level: str


def load_settings() -> Settings:
    """環境変数から Settings を生成する。"""

    # Relative to the working directory so that captures persist next to the
    # process without extra volume config.
    media_storage_root = os.environ.get("MEDIA_STORAGE_ROOT", "media_store")

    cors = os.environ.get("CORS_ALLOW_ORIGINS", "*")
    cors_allow_origins = [o.strip() for o in cors.split(",") if o.strip()]

    audio_sample_rate = int(os.environ.get("AUDIO_SAMPLE_RATE", "16000"))
    if audio_sample_rate < 8000:
        audio_sample_rate = 8000
    if audio_sample_rate > 48000:
        audio_sample_rate = 48000

    audio_buffer_duration_ms = int(os.environ.get("AUDIO_BUFFER_DURATION_MS", "500"))
    if audio_buffer_duration_ms < 10:
        audio_buffer_duration_ms = 10

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    return Settings(
        media_storage_root=media_storage_root,
        cors_allow_origins=cors_allow_origins,
        audio_sample_rate=audio_sample_rate,
        audio_buffer_duration_ms=audio_buffer_duration_ms,
        log_level=log_level,
    )
