"""Run settings for the converter.

Settings come from three places, later ones winning:

1. a YAML file (``--config``) holding a flat mapping of setting names;
2. environment variables ``TIDDLYCONV_<NAME>`` (e.g. ``TIDDLYCONV_API_KEY``);
3. command-line flags.

Example file::

    platform: blogger
    url: https://example.blogspot.com/
    api_key: AIza...
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from tiddlyconv.errors import ConfigurationError

ENV_PREFIX = "TIDDLYCONV_"
#: Alternate spellings accepted in config files and flag mappings
_ALIASES = {"user": "username"}


@dataclass
class Settings:
    platform: str = ""
    url: str = ""
    username: str = ""
    host: str = ""
    xml_path: str = ""
    api_key: str = ""
    blog_id: str = ""
    template: str = ""
    output: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    def output_path(self) -> Path:
        """``--output`` when given, else ``<base>_import.html``."""
        if self.output:
            return Path(self.output)
        return Path(f"{output_basename(self)}_import.html")


def _field_names() -> set[str]:
    return {f.name for f in fields(Settings)}


def _normalise(data: Mapping[str, Any], source: str) -> dict[str, str]:
    known = _field_names()
    result: dict[str, str] = {}
    for key, value in data.items():
        name = _ALIASES.get(key, key)
        if name not in known:
            raise ConfigurationError(f"unknown setting {key!r} in {source}")
        if value is None:
            continue
        result[name] = str(value).strip()
    return result


def load_config_file(path: Path | str) -> dict[str, str]:
    """Read a YAML settings file into a ``{name: value}`` dict."""
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config file {path} must hold a mapping")
    return _normalise(raw, str(path))


def settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    environ = os.environ if environ is None else environ
    result: dict[str, str] = {}
    for name in _field_names():
        value = environ.get(ENV_PREFIX + name.upper(), "").strip()
        if value:
            result[name] = value
    return result


def load_settings(
    flags: Mapping[str, Any] | None = None,
    *,
    config_file: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Merge file, environment and *flags* into a :class:`Settings`.

    Empty values never override a value from a lower layer.
    """
    merged: dict[str, str] = {}
    if config_file:
        merged.update(load_config_file(config_file))
    merged.update(settings_from_env(environ))
    merged.update({k: v for k, v in _normalise(flags or {}, "flags").items() if v})
    return Settings(**merged)


def output_basename(settings: Settings) -> str:
    """First non-empty of blog_id/url/host/username/platform, made file-safe."""
    base = next(
        (v for v in (settings.blog_id, settings.url, settings.host, settings.username) if v),
        settings.platform,
    )
    base = base.replace("http://", "").replace("https://", "")
    return base.replace("/", "_")
