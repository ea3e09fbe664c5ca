"""Closed key space with a default key and locale alias normalization."""

from __future__ import annotations

from typing import Iterable, Mapping

from pagecore.exceptions import UnknownKey


LOCALE_NAMES: dict[str, str] = {
    "en": "English",
    "ru": "Русский",
    "kr": "한국어",
    "fr": "Français",
    "du": "Nederlands",
    "cn": "简体中文",
    "tw": "繁體中文",
    "jp": "日本語",
    "tr": "Türkçe",
}

# Browser/page locale codes mapped onto the shipped translation keys.
LOCALE_ALIASES: dict[str, str] = {
    "ko": "kr",
    "ko-kr": "kr",
    "fr-fr": "fr",
    "fr-ca": "fr",
    "fr-be": "fr",
    "fr-ch": "fr",
    "nl": "du",
    "nl-nl": "du",
    "nl-be": "du",
    "zh": "cn",
    "zh-cn": "cn",
    "zh-hans": "cn",
    "zh-sg": "cn",
    "zh-tw": "tw",
    "zh-hk": "tw",
    "zh-hant": "tw",
    "ja": "jp",
    "ja-jp": "jp",
    "tr-tr": "tr",
    "ru-ru": "ru",
    "en-us": "en",
    "en-gb": "en",
    "en-au": "en",
    "en-ca": "en",
    "en-in": "en",
    "th": "en",
    "th-th": "en",
    "ms": "en",
    "ms-my": "en",
}


class KeySpace:
    """A closed set of known keys plus one designated default key."""

    def __init__(
        self,
        known: Iterable[str],
        default: str,
        *,
        aliases: Mapping[str, str] | None = None,
        names: Mapping[str, str] | None = None,
    ) -> None:
        self._known = tuple(dict.fromkeys(key.lower() for key in known))
        self.default = default.lower()
        if self.default not in self._known:
            raise ValueError(f"default key {default!r} is not one of the known keys")
        self._aliases = {alias.lower(): target.lower() for alias, target in (aliases or {}).items()}
        unknown_targets = sorted(set(self._aliases.values()) - set(self._known))
        if unknown_targets:
            raise ValueError(f"aliases point at unknown keys: {unknown_targets}")
        self._names = dict(names or {})

    @property
    def known(self) -> tuple[str, ...]:
        return self._known

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._known

    def is_known(self, key: str) -> bool:
        return key in self._known

    def normalize(self, code: str) -> str:
        """Map a locale-like code onto a known key where one matches.

        Codes that match nothing are returned lower-cased so that ``resolve``
        can report the substitution.
        """
        lower = code.strip().lower().replace("_", "-")
        if lower in self._aliases:
            return self._aliases[lower]
        if lower in self._known:
            return lower
        short = lower[:2]
        if short in self._aliases:
            return self._aliases[short]
        if short in self._known:
            return short
        return lower

    def resolve(self, key: str) -> tuple[str, bool]:
        """Return ``(key, substituted)``, falling back to the default key."""
        normalized = self.normalize(key)
        if normalized in self._known:
            return normalized, False
        return self.default, True

    def require(self, key: str) -> str:
        normalized = self.normalize(key)
        if normalized not in self._known:
            raise UnknownKey(key)
        return normalized

    def display_name(self, key: str) -> str:
        return self._names.get(key, key)


LOCALE_KEYS = KeySpace(LOCALE_NAMES, "en", aliases=LOCALE_ALIASES, names=LOCALE_NAMES)


def key_space_from_settings(settings) -> KeySpace:
    aliases = {alias: target for alias, target in LOCALE_ALIASES.items() if target in settings.known_keys}
    return KeySpace(settings.known_keys, settings.default_key, aliases=aliases, names=LOCALE_NAMES)
