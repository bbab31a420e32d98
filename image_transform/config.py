from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_files() -> list[str]:
    """Load .env from the project root, then the working directory."""
    base = Path(__file__).resolve().parent.parent
    return [str(base / ".env"), ".env"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Buckets ──────────────────────────────────────────────────────────────
    original_image_bucket_name: str = Field(
        default="",
        validation_alias=AliasChoices(
            "originalImageBucketName", "ORIGINAL_IMAGE_BUCKET_NAME"
        ),
    )
    # Empty disables caching of variants and the oversize redirect
    transformed_image_bucket_name: str = Field(
        default="",
        validation_alias=AliasChoices(
            "transformedImageBucketName", "TRANSFORMED_IMAGE_BUCKET_NAME"
        ),
    )

    # ── Responses ────────────────────────────────────────────────────────────
    transformed_image_cache_ttl: str = Field(
        default="max-age=31622400",
        validation_alias=AliasChoices(
            "transformedImageCacheTTL", "TRANSFORMED_IMAGE_CACHE_TTL"
        ),
    )
    # Lambda caps synchronous responses at 6 MB; base64 adds a third
    max_image_size: int = Field(
        default=4_700_000,
        validation_alias=AliasChoices("maxImageSize", "MAX_IMAGE_SIZE"),
    )

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"

    @property
    def cache_enabled(self) -> bool:
        return bool(self.transformed_image_bucket_name)
