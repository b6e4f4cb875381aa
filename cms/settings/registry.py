"""Settings registry: application settings, locales, API tokens and webhooks."""

import asyncio
import secrets
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..config import CMSConfig
from ..core.exceptions import DuplicateNameError, InvalidUpdateError, NotFoundError
from ..core.logging import OperationLogger, get_logger
from ..core.models import (
    ApiToken,
    Locale,
    Settings,
    Webhook,
    as_utc,
    generate_id,
    to_attribute_names,
    utc_now,
)
from ..storage import KeyValueStore, PersistedCollection, PersistedDocument, StorageKey

logger = get_logger(__name__)

LOCALE_NAMES = {
    "en": "English",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "it": "Italian",
}


def generate_token() -> str:
    return secrets.token_urlsafe(32)


class SettingsRegistry:
    """Settings persisted under the ``settings``, ``api-tokens`` and ``webhooks`` keys.

    Args:
        store: Key-value store
        config: Supplies defaults for a fresh installation
        clock: Returns the current time
        id_factory: Returns a fresh token or webhook id
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: CMSConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_id,
    ):
        self.config = config or CMSConfig()
        self._clock = clock
        self._new_id = id_factory
        self._settings_state = PersistedDocument(store, StorageKey.SETTINGS, Settings)
        self._token_state = PersistedCollection(store, StorageKey.API_TOKENS, ApiToken)
        self._webhook_state = PersistedCollection(store, StorageKey.WEBHOOKS, Webhook)
        self._settings = self.default_settings()
        self._tokens: dict[str, ApiToken] = {}
        self._webhooks: dict[str, Webhook] = {}
        self.reload()

    def reload(self) -> None:
        self._settings = self._settings_state.load() or self.default_settings()
        self._tokens = {t.id: t for t in self._token_state.load()}
        self._webhooks = {w.id: w for w in self._webhook_state.load()}

    def default_settings(self) -> Settings:
        code = self.config.default_locale
        return Settings(
            app_name=self.config.app_name,
            default_locale=code,
            locales=[
                Locale(code=code, name=LOCALE_NAMES.get(code, code), is_default=True)
            ],
            timezone=self.config.timezone,
        )

    def subscribe_settings(
        self, listener: Callable[[Settings], None]
    ) -> Callable[[], None]:
        return self._settings_state.subscribe(listener)

    # Settings

    @property
    def settings(self) -> Settings:
        return self._settings

    def _save(self, settings: Settings) -> Settings:
        with OperationLogger(logger, "commit_settings"):
            self._settings_state.save(settings)
        self._settings = settings
        return settings

    def update_settings(self, updates: Mapping[str, Any]) -> Settings:
        """Merge ``updates`` into the settings and persist them.

        Raises:
            InvalidUpdateError: If a key is unknown or a value is invalid
        """
        changes = to_attribute_names(updates, Settings)
        unknown = set(changes) - set(Settings.model_fields)
        if unknown:
            raise InvalidUpdateError(
                f"Unknown settings: {', '.join(sorted(unknown))}"
            )
        try:
            settings = Settings.model_validate(
                {**self._settings.model_dump(), **changes}
            )
        except PydanticValidationError as e:
            raise InvalidUpdateError(f"Invalid settings update: {e}", e) from e

        self._save(settings)
        logger.info("Settings updated", changed=sorted(changes))
        return settings

    async def save_settings(self, updates: Mapping[str, Any]) -> Settings:
        """Persist settings after the configured save delay."""
        await asyncio.sleep(self.config.settings_save_delay)
        return self.update_settings(updates)

    def reset_settings(self) -> Settings:
        settings = self._save(self.default_settings())
        logger.info("Settings reset")
        return settings

    # Locales

    def _find_locale(self, code: str) -> Locale:
        for locale in self._settings.locales:
            if locale.code == code:
                return locale
        raise NotFoundError(f"Locale not found: {code}")

    def add_locale(self, locale: Locale | Mapping[str, Any]) -> Locale:
        """Append a locale.

        Raises:
            DuplicateNameError: If the locale code is already configured
        """
        if not isinstance(locale, Locale):
            try:
                locale = Locale.model_validate(locale)
            except PydanticValidationError as e:
                raise InvalidUpdateError(f"Invalid locale: {e}", e) from e
        if any(existing.code == locale.code for existing in self._settings.locales):
            raise DuplicateNameError(f"Locale '{locale.code}' already exists")

        locales = [*self._settings.locales, locale]
        if locale.is_default:
            locales = [
                item.model_copy(update={"is_default": item.code == locale.code})
                for item in locales
            ]
            update = {"locales": locales, "default_locale": locale.code}
        else:
            update = {"locales": locales}
        self._save(self._settings.model_copy(update=update))
        logger.info("Locale added", locale=locale.code)
        return locale

    def update_locale(self, code: str, updates: Mapping[str, Any]) -> Locale:
        current = self._find_locale(code)
        try:
            updated = Locale.model_validate(
                {**current.model_dump(), **to_attribute_names(updates, Locale)}
            )
        except PydanticValidationError as e:
            raise InvalidUpdateError(f"Invalid locale update: {e}", e) from e

        locales = [updated if item.code == code else item for item in self._settings.locales]
        self._save(self._settings.model_copy(update={"locales": locales}))
        return updated

    def remove_locale(self, code: str) -> None:
        """Remove a locale; the default moves to the first remaining locale if needed.

        Raises:
            NotFoundError: If the locale is not configured
        """
        self._find_locale(code)
        locales = [item for item in self._settings.locales if item.code != code]
        default = next((item for item in locales if item.is_default), None)
        if default is None and locales:
            default = locales[0]
            locales = [
                item.model_copy(update={"is_default": item is default})
                for item in locales
            ]
        default_code = default.code if default else self.config.default_locale

        self._save(
            self._settings.model_copy(
                update={"locales": locales, "default_locale": default_code}
            )
        )
        logger.info("Locale removed", locale=code, default_locale=default_code)

    def set_default_locale(self, code: str) -> Settings:
        """Mark ``code`` as the only default locale.

        Raises:
            NotFoundError: If the locale is not configured
        """
        self._find_locale(code)
        locales = [
            item.model_copy(update={"is_default": item.code == code})
            for item in self._settings.locales
        ]
        settings = self._save(
            self._settings.model_copy(
                update={"locales": locales, "default_locale": code}
            )
        )
        logger.info("Default locale changed", locale=code)
        return settings

    def default_locale(self) -> Locale | None:
        return next((item for item in self._settings.locales if item.is_default), None)

    # API tokens

    def _commit_tokens(self, tokens: dict[str, ApiToken]) -> None:
        self._token_state.save(tokens.values())
        self._tokens = tokens

    def _require_token(self, token_id: str) -> ApiToken:
        token = self._tokens.get(token_id)
        if token is None:
            raise NotFoundError(f"API token not found: {token_id}")
        return token

    def create_api_token(
        self,
        name: str,
        type: str = "read-only",
        expires_at: datetime | None = None,
    ) -> ApiToken:
        try:
            token = ApiToken(
                id=self._new_id(),
                name=name,
                type=type,
                token=generate_token(),
                expires_at=expires_at,
                created_at=self._clock(),
            )
        except PydanticValidationError as e:
            raise InvalidUpdateError(f"Invalid API token: {e}", e) from e
        if token.expires_at is not None:
            token = token.model_copy(update={"expires_at": as_utc(token.expires_at)})

        self._commit_tokens({**self._tokens, token.id: token})
        logger.info("API token created", token_id=token.id, token_type=token.type)
        return token

    def get_api_token(self, token_id: str) -> ApiToken | None:
        return self._tokens.get(token_id)

    def regenerate_token(self, token_id: str) -> str:
        """Replace the secret of an existing token and return the new value."""
        token = self._require_token(token_id)
        updated = token.model_copy(update={"token": generate_token()})
        self._commit_tokens({**self._tokens, token_id: updated})
        logger.info("API token regenerated", token_id=token_id)
        return updated.token

    def delete_api_token(self, token_id: str) -> None:
        self._require_token(token_id)
        tokens = dict(self._tokens)
        del tokens[token_id]
        self._commit_tokens(tokens)
        logger.info("API token deleted", token_id=token_id)

    def api_tokens(self) -> list[ApiToken]:
        return list(self._tokens.values())

    def active_api_tokens(self) -> list[ApiToken]:
        """Tokens without an expiry or expiring in the future."""
        now = as_utc(self._clock())
        return [
            token
            for token in self._tokens.values()
            if token.expires_at is None or as_utc(token.expires_at) > now
        ]

    # Webhooks

    def _commit_webhooks(self, webhooks: dict[str, Webhook]) -> None:
        self._webhook_state.save(webhooks.values())
        self._webhooks = webhooks

    def _require_webhook(self, webhook_id: str) -> Webhook:
        webhook = self._webhooks.get(webhook_id)
        if webhook is None:
            raise NotFoundError(f"Webhook not found: {webhook_id}")
        return webhook

    def create_webhook(
        self,
        name: str,
        url: str,
        events: list[str] | None = None,
        is_active: bool = True,
    ) -> Webhook:
        webhook = Webhook(
            id=self._new_id(),
            name=name,
            url=url,
            events=list(events or []),
            is_active=is_active,
            created_at=self._clock(),
        )
        self._commit_webhooks({**self._webhooks, webhook.id: webhook})
        logger.info("Webhook created", webhook_id=webhook.id, url=url)
        return webhook

    def get_webhook(self, webhook_id: str) -> Webhook | None:
        return self._webhooks.get(webhook_id)

    def toggle_webhook(self, webhook_id: str) -> Webhook:
        webhook = self._require_webhook(webhook_id)
        updated = webhook.model_copy(update={"is_active": not webhook.is_active})
        self._commit_webhooks({**self._webhooks, webhook_id: updated})
        logger.info("Webhook toggled", webhook_id=webhook_id, active=updated.is_active)
        return updated

    def delete_webhook(self, webhook_id: str) -> None:
        self._require_webhook(webhook_id)
        webhooks = dict(self._webhooks)
        del webhooks[webhook_id]
        self._commit_webhooks(webhooks)
        logger.info("Webhook deleted", webhook_id=webhook_id)

    def webhooks(self) -> list[Webhook]:
        return list(self._webhooks.values())

    def active_webhooks(self) -> list[Webhook]:
        return [webhook for webhook in self._webhooks.values() if webhook.is_active]

    def replace_settings(self, settings: Settings) -> None:
        """Overwrite settings wholesale, as done by a bundle import."""
        self._save(settings)
