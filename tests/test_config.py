from image_transform.config import Settings


def test_reads_deployment_variable_names(monkeypatch) -> None:
    monkeypatch.setenv("originalImageBucketName", "originals")
    monkeypatch.setenv("transformedImageBucketName", "variants")
    monkeypatch.setenv("transformedImageCacheTTL", "max-age=60")
    monkeypatch.setenv("maxImageSize", "1234")

    settings = Settings(_env_file=None)
    assert settings.original_image_bucket_name == "originals"
    assert settings.transformed_image_bucket_name == "variants"
    assert settings.transformed_image_cache_ttl == "max-age=60"
    assert settings.max_image_size == 1234
    assert settings.cache_enabled


def test_cache_disabled_without_transformed_bucket(monkeypatch) -> None:
    monkeypatch.delenv("transformedImageBucketName", raising=False)
    monkeypatch.delenv("TRANSFORMED_IMAGE_BUCKET_NAME", raising=False)
    settings = Settings(_env_file=None)
    assert settings.transformed_image_bucket_name == ""
    assert not settings.cache_enabled
    assert settings.max_image_size == 4_700_000
