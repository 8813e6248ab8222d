# -*- coding: utf-8 -*-
"""
Internationalization (i18n) module for Task Time Manager.

This module provides translation functions and language management.
Supports English and Portuguese with automatic system locale detection.
"""

import locale
import logging

from tasktime.domain.models import SortMode, TaskStatus
from tasktime.i18n.translations import TRANSLATIONS

# Supported languages
SUPPORTED_LANGUAGES = ["en", "pt"]

# Current language (default to English)
_current_language = "en"

logger = logging.getLogger(__name__)


def detect_system_language() -> str:
    """
    Detect the system language and return a supported language code.

    Returns:
        'pt' if Portuguese is detected, 'en' otherwise.
    """
    system_locale = locale.getlocale()[0]
    if system_locale and system_locale.lower().startswith('pt'):
        return 'pt'
    return 'en'


def init_collation() -> bool:
    """
    Use the user's locale (LANG / LC_ALL / LC_COLLATE) for sorting text.

    Returns:
        False if that locale is not installed; the C locale stays in effect.
    """
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning(f"Falling back to C collation: {e}")
        return False
    return True


def get_language() -> str:
    """Get the current language code."""
    return _current_language


def set_language(lang: str) -> None:
    """
    Set the current display language.

    Args:
        lang: Language code ('en', 'pt' or 'auto')
    """
    global _current_language
    if lang == 'auto':
        lang = detect_system_language()
    if lang not in SUPPORTED_LANGUAGES:
        lang = 'en'
    _current_language = lang


def tr(key: str, **kwargs) -> str:
    """
    Get the translated string for the given key.

    Args:
        key: Translation key (e.g., 'summary.title')
        **kwargs: Format arguments for string interpolation

    Returns:
        Translated string, or the key itself if not found.
    """
    translations = TRANSLATIONS.get(_current_language, TRANSLATIONS['en'])
    text = translations.get(key, key)

    if kwargs:
        try:
            text = text.format(**kwargs)
        except (KeyError, ValueError):
            pass

    return text


def status_text(status: TaskStatus) -> str:
    """Display text for a task status"""
    return tr(f"status.{TaskStatus(status).value}")


def sort_mode_text(mode: SortMode) -> str:
    """Display text for a sort mode"""
    return tr(f"sort.{SortMode(mode).value}")
