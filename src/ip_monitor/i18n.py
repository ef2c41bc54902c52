"""
Internationalization (i18n) module for the IP monitor.

Provides translations for all user-facing messages in English (en) and
Russian (ru).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"en", "ru"})
DEFAULT_LANGUAGE = "en"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Address display states
    "state.loading": {
        "en": "Resolving...",
        "ru": "Определение...",
    },
    "state.resolved": {
        "en": "Resolved via {resolver}",
        "ru": "Определено через {resolver}",
    },
    "state.local": {
        "en": "Local domain",
        "ru": "Локальный домен",
    },
    "state.unknown": {
        "en": "Addresses unknown",
        "ru": "Адреса неизвестны",
    },
    "state.no_addresses": {
        "en": "No addresses",
        "ru": "Нет адресов",
    },

    # Connection security titles
    "security.all_secure": {
        "en": "All connections are secure",
        "ru": "Все соединения защищены",
    },
    "security.insecure_detected": {
        "en": "Insecure connections detected",
        "ru": "Обнаружены незащищённые соединения",
    },
    "security.no_data": {
        "en": "IP Monitor",
        "ru": "IP Monitor",
    },

    # Native resolver error descriptions
    "native_error.unknown": {
        "en": "Unknown error",
        "ru": "Неизвестная ошибка",
    },
    "native_error.invalid_domain": {
        "en": "No domain supplied",
        "ru": "Домен не указан",
    },
    "native_error.dns_resolution_failed": {
        "en": "DNS resolution failed",
        "ru": "Ошибка разрешения DNS",
    },
    "native_error.timeout": {
        "en": "Timed out",
        "ru": "Превышено время ожидания",
    },
    "native_error.system_error": {
        "en": "System error",
        "ru": "Системная ошибка",
    },

    # Public IP report
    "user_ip.title": {
        "en": "Your public IP",
        "ru": "Ваш публичный IP",
    },
    "user_ip.not_detected": {
        "en": "not detected",
        "ru": "не определён",
    },
    "user_ip.ipv6_connectivity": {
        "en": "IPv6 connectivity: {status}",
        "ru": "IPv6-подключение: {status}",
    },
    "user_ip.local_addresses": {
        "en": "Local addresses: {addresses}",
        "ru": "Локальные адреса: {addresses}",
    },

    # CLI messages
    "cli.resolving_domain": {
        "en": "Resolving: {domain}",
        "ru": "Разрешение: {domain}",
    },
    "cli.tab_header": {
        "en": "Tab {tab_id}: {main_domain}",
        "ru": "Вкладка {tab_id}: {main_domain}",
    },
    "cli.no_tabs": {
        "en": "No saved tabs",
        "ru": "Нет сохранённых вкладок",
    },
    "cli.yes": {
        "en": "yes",
        "ru": "да",
    },
    "cli.no": {
        "en": "no",
        "ru": "нет",
    },
    "cli.no_candidates": {
        "en": "No ICE candidates supplied",
        "ru": "ICE-кандидаты не переданы",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'state.local')
        language: Language code ('en' or 'ru'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('state.local', 'en')
        'Local domain'
        >>> get_message('state.resolved', 'en', resolver='doh')
        'Resolved via doh'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            # Leave the template unformatted
            pass

    return message


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """Map each supported language to the keys it is missing."""
    return {language: get_missing_translations(language) for language in SUPPORTED_LANGUAGES}
