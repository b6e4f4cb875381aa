"""Tests for settings, locales, API tokens and webhooks."""

from datetime import UTC, datetime, timedelta

import pytest

from cms.config import CMSConfig
from cms.core import DuplicateNameError, InvalidUpdateError, NotFoundError
from cms.core.models import Locale
from cms.settings import SettingsRegistry


class TestSettings:
    """Application settings."""

    def test_defaults_from_config(self, store):
        registry = SettingsRegistry(
            store, CMSConfig(app_name="Docs", default_locale="fr", timezone="Europe/Paris")
        )
        assert registry.settings.app_name == "Docs"
        assert registry.settings.default_locale == "fr"
        assert registry.settings.locales == [
            Locale(code="fr", name="French", is_default=True)
        ]
        assert registry.settings.timezone == "Europe/Paris"

    def test_update_settings(self, settings, store, config):
        settings.update_settings({"appName": "Newsroom", "i18nEnabled": True})
        assert settings.settings.app_name == "Newsroom"
        assert SettingsRegistry(store, config).settings.i18n_enabled is True

    def test_unknown_setting_rejected(self, settings):
        with pytest.raises(InvalidUpdateError):
            settings.update_settings({"theme": "dark"})

    def test_invalid_value_rejected(self, settings):
        with pytest.raises(InvalidUpdateError):
            settings.update_settings({"i18nEnabled": "sometimes"})
        assert settings.settings.i18n_enabled is False

    @pytest.mark.asyncio
    async def test_save_settings(self, settings):
        saved = await settings.save_settings({"description": "Company site"})
        assert saved.description == "Company site"
        assert settings.settings.description == "Company site"

    def test_reset(self, settings):
        settings.update_settings({"appName": "Changed"})
        assert settings.reset_settings().app_name == "My CMS"

    def test_subscribers(self, settings):
        seen = []
        settings.subscribe_settings(lambda value: seen.append(value.app_name))
        settings.update_settings({"appName": "Watched"})
        assert seen == ["Watched"]


class TestLocales:
    """Locale list and the single default."""

    def test_add_locale(self, settings):
        settings.add_locale({"code": "fr", "name": "French"})
        assert [item.code for item in settings.settings.locales] == ["en", "fr"]
        assert settings.default_locale().code == "en"

    def test_add_default_locale_demotes_others(self, settings):
        settings.add_locale(Locale(code="de", name="German", is_default=True))
        defaults = [item.code for item in settings.settings.locales if item.is_default]
        assert defaults == ["de"]
        assert settings.settings.default_locale == "de"

    def test_duplicate_locale(self, settings):
        with pytest.raises(DuplicateNameError):
            settings.add_locale({"code": "en", "name": "English again"})

    def test_update_locale(self, settings):
        assert settings.update_locale("en", {"name": "English (US)"}).name == "English (US)"

    def test_set_default_locale(self, settings):
        settings.add_locale({"code": "es", "name": "Spanish"})
        settings.set_default_locale("es")
        assert settings.default_locale().code == "es"
        assert settings.settings.default_locale == "es"
        with pytest.raises(NotFoundError):
            settings.set_default_locale("jp")

    def test_remove_default_falls_back_to_first_remaining(self, settings):
        settings.add_locale({"code": "fr", "name": "French"})
        settings.add_locale({"code": "it", "name": "Italian"})
        settings.remove_locale("en")
        assert settings.default_locale().code == "fr"
        assert settings.settings.default_locale == "fr"

    def test_remove_last_locale(self, settings):
        settings.remove_locale("en")
        assert settings.settings.locales == []
        assert settings.default_locale() is None
        assert settings.settings.default_locale == "en"

    def test_remove_unknown_locale(self, settings):
        with pytest.raises(NotFoundError):
            settings.remove_locale("xx")


class TestApiTokens:
    def test_create_and_regenerate(self, settings):
        token = settings.create_api_token("Frontend")
        assert token.type == "read-only"
        assert len(token.token) >= 32

        new_secret = settings.regenerate_token(token.id)
        assert new_secret != token.token
        assert settings.get_api_token(token.id).token == new_secret

    def test_invalid_type(self, settings):
        with pytest.raises(InvalidUpdateError):
            settings.create_api_token("Bad", type="admin")

    def test_active_tokens(self, settings, clock):
        settings.create_api_token("Forever", type="full-access")
        settings.create_api_token("Expired", expires_at=clock.now - timedelta(days=1))
        assert [t.name for t in settings.active_api_tokens()] == ["Forever"]
        assert len(settings.api_tokens()) == 2

    def test_naive_expiry_is_taken_as_utc(self, settings):
        future = settings.create_api_token("CI", expires_at=datetime(2030, 1, 1))
        settings.create_api_token("Old", expires_at=datetime(2020, 1, 1))

        assert future.expires_at == datetime(2030, 1, 1, tzinfo=UTC)
        assert [t.name for t in settings.active_api_tokens()] == ["CI"]

    def test_delete(self, settings):
        token = settings.create_api_token("Temp")
        settings.delete_api_token(token.id)
        assert settings.get_api_token(token.id) is None
        with pytest.raises(NotFoundError):
            settings.regenerate_token(token.id)


class TestWebhooks:
    def test_create_toggle_delete(self, settings):
        hook = settings.create_webhook(
            "Deploy", "https://example.com/hook", events=["entry.publish"]
        )
        assert settings.active_webhooks() == [hook]

        toggled = settings.toggle_webhook(hook.id)
        assert toggled.is_active is False
        assert settings.active_webhooks() == []

        settings.delete_webhook(hook.id)
        assert settings.webhooks() == []

    def test_unknown_webhook(self, settings):
        with pytest.raises(NotFoundError):
            settings.toggle_webhook("nope")
