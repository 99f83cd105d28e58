"""Registered language resolvers."""

from .lang_base import LanguageResolver
from .lang_javascript import JavaScriptResolver
from .lang_python import PythonResolver

DEFAULT_LANGUAGES: list[LanguageResolver] = [JavaScriptResolver(), PythonResolver()]


def find_language(
    file_name: str, languages: list[LanguageResolver] | None = None
) -> LanguageResolver | None:
    """First resolver that can handle ``file_name``."""
    for language in languages or DEFAULT_LANGUAGES:
        if language.can_handle(file_name):
            return language
    return None


def language_by_name(
    name: str, languages: list[LanguageResolver] | None = None
) -> LanguageResolver | None:
    for language in languages or DEFAULT_LANGUAGES:
        if language.name == name:
            return language
    return None
