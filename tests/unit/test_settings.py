"""Tests for settings parsing and the in-memory record store."""

from uuid import uuid4

import pytest

from tubely.config.settings import Settings
from tubely.core.media.errors import RecordNotFound, RecordStoreFault
from tubely.core.media.models import VideoRecord
from tubely.infrastructure.records.store import InMemoryRecordStore


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:

    def test_parses_token_pairs(self):
        settings = make_settings(api_tokens="abc:user-1, def:user-2, broken, :nobody")

        assert settings.api_tokens_map == {"abc": "user-1", "def": "user-2"}

    def test_default_direct_base_uses_bucket_placeholder(self):
        settings = make_settings(s3_region="eu-west-2")

        assert settings.direct_url_base == "https://{bucket}.s3.eu-west-2.amazonaws.com"

    def test_explicit_direct_base_wins(self):
        settings = make_settings(direct_base_url="https://cdn.example.com")
        assert settings.direct_url_base == "https://cdn.example.com"

    def test_upload_limit_in_bytes(self):
        assert make_settings(max_upload_size_mb=2).max_upload_bytes == 2 * 1024 * 1024

    def test_pipeline_config_carries_limit(self):
        config = make_settings(max_upload_size_mb=3).pipeline_config()
        assert config.max_upload_bytes == 3 * 1024 * 1024

    def test_missing_tokens_reported(self):
        assert make_settings(api_tokens="").validate_required_fields() == ["API_TOKENS"]

    def test_missing_bucket_only_matters_without_mock(self):
        assert make_settings(s3_bucket="").validate_required_fields() == ["S3_BUCKET"]
        assert make_settings(s3_bucket="", s3_mock_mode=True).validate_required_fields() == []

    def test_cors_origins(self):
        settings = make_settings(cors_origins="https://a.example, https://b.example")
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]


class TestInMemoryRecordStore:

    def test_create_then_get(self):
        store = InMemoryRecordStore()
        created = store.create_record("user-1", "Title", "Description")

        fetched = store.get_record(created.id)

        assert fetched.user_id == "user-1"
        assert fetched.title == "Title"

    def test_get_unknown(self):
        with pytest.raises(RecordNotFound):
            InMemoryRecordStore().get_record(uuid4())

    def test_returned_records_are_copies(self):
        store = InMemoryRecordStore()
        created = store.create_record("user-1", "Title")

        fetched = store.get_record(created.id)
        fetched.video_url = "tampered"

        assert store.get_record(created.id).video_url is None

    def test_update_bumps_timestamp(self):
        store = InMemoryRecordStore()
        created = store.create_record("user-1", "Title")

        updated = store.update_record(created.copy(video_url="b,k"))

        assert updated.video_url == "b,k"
        assert updated.updated_at >= created.updated_at
        assert store.get_record(created.id).video_url == "b,k"

    def test_update_unknown_record(self):
        with pytest.raises(RecordStoreFault):
            InMemoryRecordStore().update_record(VideoRecord(user_id="user-1"))
