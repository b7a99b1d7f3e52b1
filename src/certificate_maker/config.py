"""Run settings: defaults, overlaid by a YAML config file, overlaid by CLI flags."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from certificate_maker.data.sources import SOURCE_CSV, SOURCE_GOOGLE_SHEET
from certificate_maker.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config/settings.yaml"

SOURCES = (SOURCE_CSV, SOURCE_GOOGLE_SHEET)


@dataclass
class Settings:
    """Everything a run needs to know.

    ``source`` picks the data backend explicitly; the backend's own
    fields (``csv_file`` or ``google_sheet_id`` + ``worksheet``) must be
    set to match.
    """
    # ── Columns ──
    template_header: str = "Template"
    file_header: str = "File"

    # ── Behaviour ──
    preserve_intermediary: bool = False
    preserve_output: bool = True
    upload: bool = True
    change: bool = True
    replace: bool = False
    template: str = ""                  # default template name

    # ── Folders ──
    output_folder: str = "certificates/results/"
    intermediary_folder: str = "certificates/intermediaries/"
    template_folder: str = "certificates/templates/"

    # ── Files ──
    config_file: str = DEFAULT_CONFIG_FILE
    credentials_file: str = "config/auth/credentials.json"
    token_file: str = "config/auth/token.json"

    # ── Data source ──
    source: str = SOURCE_CSV
    csv_file: str = ""
    google_sheet_id: str = ""
    worksheet: str = ""
    google_folder_id: str = ""

    debug: bool = False

    @property
    def needs_google(self) -> bool:
        return self.source == SOURCE_GOOGLE_SHEET or self.upload

    def validate(self) -> "Settings":
        if self.source not in SOURCES:
            raise ConfigError(
                f"Unknown source {self.source!r}; expected one of {', '.join(SOURCES)}"
            )
        if self.source == SOURCE_CSV and not self.csv_file:
            raise ConfigError("source is 'csv' but no csv_file was given")
        if self.source == SOURCE_GOOGLE_SHEET and not (self.google_sheet_id and self.worksheet):
            raise ConfigError(
                "source is 'google_sheet' but google_sheet_id and worksheet are not both set"
            )
        if not self.template:
            logger.warning("No default template set; every record must name its own")
        return self


def field_names() -> list[str]:
    return [f.name for f in dataclasses.fields(Settings)]


def is_debug() -> bool:
    """Check if DEBUG is enabled via environment / .env."""
    return os.environ.get("DEBUG", "").lower() in ("1", "true")


def read_config_file(path: str | Path, required: bool = False) -> dict[str, Any]:
    """Read the YAML config file; a missing optional file yields ``{}``."""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        if required:
            raise ConfigError(f"Config file not found: {path}") from exc
        logger.debug("No config file at %s, using defaults", path)
        return {}

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping of settings")

    known = set(field_names())
    result = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown setting %r in %s", key, path)
            continue
        result[key] = value
    return result


def load_settings(overrides: Optional[dict[str, Any]] = None) -> Settings:
    """Merge defaults < config file < *overrides* (usually CLI flags).

    Override values of None mean "not given" and are dropped.
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    config_file = overrides.get("config_file", DEFAULT_CONFIG_FILE)
    file_settings = read_config_file(config_file, required="config_file" in overrides)

    merged = {**file_settings, **overrides}
    settings = Settings(**merged)
    if is_debug():
        settings.debug = True
    return settings
