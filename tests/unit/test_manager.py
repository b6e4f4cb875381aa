"""Tests for the content manager: export, import and dashboard stats."""

import pytest

from cms.config import CMSConfig
from cms.core import BundleError
from cms.core.models import ExportBundle
from cms.manager import ContentManager
from cms.storage import JsonFileStore, MemoryStore


@pytest.fixture
def populated(manager):
    seo = manager.schema.create_component("seo", "SEO", "shared")
    manager.schema.add_field(seo.id, {"name": "metaTitle", "type": "text"})
    article = manager.schema.create_content_type("Article", "Article")
    manager.schema.add_field(article.id, {"name": "title", "type": "text"})
    manager.schema.add_field(
        article.id, {"name": "seo", "type": "component", "componentId": seo.id}
    )
    manager.entries.create_entry(article.id, {"title": "Hello"})
    manager.media.add_media_file(
        {
            "name": "logo",
            "filename": "logo.png",
            "mimeType": "image/png",
            "size": 10,
            "url": "/api/media/logo.png",
        }
    )
    manager.settings.update_settings({"appName": "Newsroom"})
    manager.settings.create_webhook("Deploy", "https://example.com/hook")
    return manager


class TestExport:
    def test_export_bundle(self, populated, clock):
        bundle = populated.export_bundle()
        assert bundle.version == "1.0.0"
        assert bundle.exported_at == clock.now
        assert len(bundle.components) == 1
        assert len(bundle.content_types) == 1
        assert len(bundle.entries) == 1
        assert len(bundle.media_files) == 1
        assert bundle.settings.app_name == "Newsroom"

    def test_storage_form_is_camel_case(self, populated):
        raw = populated.export_bundle().to_storage()
        assert {"contentTypes", "mediaFiles", "exportedAt"} <= set(raw)
        assert raw["components"][0]["usageCount"] == 1


class TestImport:
    """Import restores collections as given."""

    def test_round_trip_into_fresh_store(self, populated, config, clock):
        bundle = populated.export_bundle()
        target = ContentManager(MemoryStore(), config, clock=clock)
        target.import_bundle(bundle.to_storage())

        assert target.schema.list_components() == populated.schema.list_components()
        assert target.entries.list_entries() == populated.entries.list_entries()
        assert target.media.list_files() == populated.media.list_files()
        assert target.settings.settings.app_name == "Newsroom"

    def test_import_model(self, populated, config):
        target = ContentManager(MemoryStore(), config)
        target.import_bundle(populated.export_bundle())
        assert len(target.schema.list_content_types()) == 1

    def test_missing_collections_are_untouched(self, populated):
        populated.import_bundle({"version": "1.0.0", "entries": []})
        assert populated.entries.list_entries() == []
        assert len(populated.schema.list_components()) == 1
        assert populated.media.file_count() == 1
        assert populated.settings.settings.app_name == "Newsroom"

    def test_unsupported_version(self, populated):
        with pytest.raises(BundleError):
            populated.import_bundle({"version": "9.9.9", "entries": []})
        assert len(populated.entries.list_entries()) == 1

    def test_undecodable_bundle(self, populated):
        with pytest.raises(BundleError):
            populated.import_bundle({"version": "1.0.0", "entries": [{"id": 1}]})
        assert len(populated.entries.list_entries()) == 1

    def test_configured_export_version_round_trips(self, store, clock):
        config = CMSConfig(environment="testing", export_version="1.1.0")
        source = ContentManager(store, config, clock=clock)
        source.schema.create_component("seo", "SEO", "shared")
        raw = source.export_bundle().to_storage()
        assert raw["version"] == "1.1.0"

        target = ContentManager(MemoryStore(), config, clock=clock)
        assert target.validate_bundle(raw).is_valid
        target.import_bundle(raw)
        assert target.schema.get_component_by_name("seo") is not None
        target.import_bundle({"version": "1.0.0", "entries": []})

    def test_not_a_mapping(self, manager):
        with pytest.raises(BundleError):
            manager.import_bundle(["version"])

    def test_validate_before_import(self, populated):
        raw = populated.export_bundle().to_storage()
        raw["entries"][0]["contentTypeId"] = "gone"
        result = populated.validate_bundle(raw)
        assert not result.is_valid
        assert result.errors[0].type == "content_type_not_found"
        assert populated.validate_bundle(ExportBundle()).is_valid


class TestDashboard:
    def test_dashboard_stats(self, populated):
        stats = populated.dashboard_stats()
        assert stats.entries.total == 1
        assert stats.media.total == 1
        assert stats.locales == 1
        assert stats.webhooks == 1
        assert stats.api_tokens == 0
        assert "contentTypes" in stats.to_storage()


class TestFromConfig:
    def test_file_backend(self, tmp_path):
        config = CMSConfig(storage_backend="file", data_dir=str(tmp_path))
        manager = ContentManager.from_config(config)
        assert isinstance(manager.store, JsonFileStore)
        manager.schema.create_component("seo", "SEO", "shared")

        reopened = ContentManager.from_config(config)
        assert reopened.schema.get_component_by_name("seo") is not None
