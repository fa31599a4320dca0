"""Persistent config loader/saver for DualFM."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..theme import DEFAULT_THEME, THEMES
from .models import SortMode

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - exercised on Python <3.11
    import tomli as tomllib

LOGGER = logging.getLogger(__name__)

DEFAULT_COMPRESSION_LEVEL = 6
DEFAULT_TIMESTAMP_TOLERANCE = 2.0
DEFAULT_SPLIT_PART_SIZE = 1_457_664


@dataclass(frozen=True)
class AppConfig:
    """Persistent user-facing configuration.

    The core never reads this; the app hands the values to it at call time.
    ``archive_extensions`` of None means every extension a provider supports.
    """

    theme: str = DEFAULT_THEME
    show_hidden: bool = False
    sort_mode: SortMode = SortMode.NAME_ASC
    file_mask: str = "*"
    compression_level: int = DEFAULT_COMPRESSION_LEVEL
    archive_extensions: Optional[Tuple[str, ...]] = None
    timestamp_tolerance: float = DEFAULT_TIMESTAMP_TOLERANCE
    split_part_size: int = DEFAULT_SPLIT_PART_SIZE


def default_config_path() -> Path:
    """Return default config path (~/.config/dualfm/config.toml)."""
    return Path.home() / ".config" / "dualfm" / "config.toml"


def _coerce_bool(value, default=False):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in ("1", "true", "yes", "on"):
            return True
        if lower in ("0", "false", "no", "off"):
            return False
    return default


def _coerce_int(value, default, low=None, high=None):
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if low is not None and number < low:
        return default
    if high is not None and number > high:
        return default
    return number


def _coerce_float(value, default, low=None):
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if low is not None and number < low:
        return default
    return number


def _coerce_extensions(value):
    if not isinstance(value, (list, tuple)):
        return None
    exts = []
    for item in value:
        text = str(item).strip().lower()
        if not text:
            continue
        if not text.startswith("."):
            text = "." + text
        if text not in exts:
            exts.append(text)
    return tuple(exts)


def _parse_toml(text: str) -> dict:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        LOGGER.warning("Ignoring invalid config file: %s", exc)
        return {}


def _section(raw, name):
    value = raw.get(name)
    return value if isinstance(value, dict) else {}


def _normalize_config(raw: dict) -> AppConfig:
    ui = _section(raw, "ui")
    archive = _section(raw, "archive")
    operations = _section(raw, "operations")

    theme = str(ui.get("theme", DEFAULT_THEME)).strip().lower() or DEFAULT_THEME
    if theme not in THEMES:
        theme = DEFAULT_THEME

    try:
        sort_mode = SortMode(str(ui.get("sort_mode", SortMode.NAME_ASC.value)).strip().lower())
    except ValueError:
        sort_mode = SortMode.NAME_ASC

    file_mask = str(ui.get("file_mask", "*")).strip() or "*"

    return AppConfig(
        theme=theme,
        show_hidden=_coerce_bool(ui.get("show_hidden"), default=False),
        sort_mode=sort_mode,
        file_mask=file_mask,
        compression_level=_coerce_int(
            archive.get("compression_level"), DEFAULT_COMPRESSION_LEVEL, low=0, high=9
        ),
        archive_extensions=_coerce_extensions(archive.get("extensions")),
        timestamp_tolerance=_coerce_float(
            operations.get("timestamp_tolerance"), DEFAULT_TIMESTAMP_TOLERANCE, low=0.0
        ),
        split_part_size=_coerce_int(
            operations.get("split_part_size"), DEFAULT_SPLIT_PART_SIZE, low=1
        ),
    )


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from TOML file; return defaults when missing/invalid."""
    cfg_path = Path(path) if path is not None else default_config_path()
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except OSError:
        return AppConfig()
    return _normalize_config(_parse_toml(text))


def _toml_string(value):
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def serialize_config(config: AppConfig) -> str:
    """Serialize AppConfig as TOML text."""
    lines = [
        "# DualFM user configuration",
        "[ui]",
        f"theme = {_toml_string(config.theme)}",
        f"show_hidden = {'true' if config.show_hidden else 'false'}",
        f"sort_mode = {_toml_string(SortMode(config.sort_mode).value)}",
        f"file_mask = {_toml_string(config.file_mask)}",
        "",
        "[archive]",
        f"compression_level = {int(config.compression_level)}",
    ]
    if config.archive_extensions is not None:
        exts = ", ".join(_toml_string(ext) for ext in config.archive_extensions)
        lines.append(f"extensions = [{exts}]")
    lines += [
        "",
        "[operations]",
        f"timestamp_tolerance = {float(config.timestamp_tolerance)!r}",
        f"split_part_size = {int(config.split_part_size)}",
    ]
    return "\n".join(lines) + "\n"


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    """Persist config and return written path."""
    cfg_path = Path(path) if path is not None else default_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    cfg_path.write_text(serialize_config(config), encoding="utf-8", newline="\n")
    return cfg_path
