"""User-facing strings for crabrave.

Usage:
    from music.i18n import t
    msg = t("paused", locale, title="Crab Rave")
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"
LOCALE_DIR = Path(__file__).resolve().parent.parent / "locales"

_locales: dict[str, dict[str, str]] = {}


def load_locales(directory: Path = LOCALE_DIR) -> None:
    """(Re)load every ``<lang>.json`` file in *directory*."""
    _locales.clear()
    if not directory.is_dir():
        log.warning("Locales directory not found: %s", directory)
        return
    for path in sorted(directory.glob("*.json")):
        try:
            _locales[path.stem] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Failed to load locale %s: %s", path.stem, exc)
            continue
        log.info("Loaded locale: %s (%d keys)", path.stem, len(_locales[path.stem]))


def available_locales() -> list[str]:
    return sorted(_locales)


def t(key: str, locale: str = DEFAULT_LOCALE, **kwargs) -> str:
    """Look up *key* for *locale*, falling back to English and then the key itself."""
    template = _locales.get(locale, {}).get(key)
    if template is None:
        template = _locales.get(DEFAULT_LOCALE, {}).get(key, key)
    if not kwargs:
        return template
    try:
        return template.format(**kwargs)
    except (KeyError, IndexError):
        return template
