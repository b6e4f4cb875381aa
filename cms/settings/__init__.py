"""Application settings, locales, API tokens and webhooks."""

from .registry import LOCALE_NAMES, SettingsRegistry, generate_token

__all__ = ["LOCALE_NAMES", "SettingsRegistry", "generate_token"]
