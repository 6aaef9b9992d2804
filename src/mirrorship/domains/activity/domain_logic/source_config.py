"""Source configuration loader: reads per-source thresholds from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from mirrorship.domains.activity.domain_logic.errors import SourceConfigError
from mirrorship.domains.activity.domain_logic.levels import LevelConfig
from mirrorship.domains.activity.domain_logic.models import ActivityKind

logger = logging.getLogger(__name__)

DEFAULT_SOURCES_PATH = Path(__file__).resolve().parent.parent / "sources.yaml"


@dataclass(frozen=True)
class SourceConfig:
    """How one source is labelled and levelled."""

    source_id: str
    display_name: str
    kind: ActivityKind
    levels: LevelConfig
    requires_link: bool = True


def load_source_configs(path: str | Path | None = None) -> dict[str, SourceConfig]:
    """Load source definitions from a YAML file.

    Args:
        path: YAML file to read. Defaults to the bundled ``sources.yaml``.

    Returns:
        source_id -> SourceConfig, in file order.

    Raises:
        SourceConfigError: If the file is missing or malformed.
    """
    path = Path(path) if path else DEFAULT_SOURCES_PATH
    try:
        with open(path) as f:
            data: Any = yaml.safe_load(f)
    except OSError as exc:
        raise SourceConfigError(f"Cannot read source config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SourceConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("sources"), dict):
        raise SourceConfigError(f"{path}: expected a top-level 'sources' mapping")

    configs: dict[str, SourceConfig] = {}
    for source_id, entry in data["sources"].items():
        configs[str(source_id)] = parse_source_entry(str(source_id), entry)

    logger.info("Loaded %d activity sources from %s", len(configs), path)
    return configs


def parse_source_entry(source_id: str, entry: Any) -> SourceConfig:
    """Build a SourceConfig from one ``sources.<id>`` mapping."""
    if not isinstance(entry, dict):
        raise SourceConfigError(f"source {source_id!r}: expected a mapping")
    try:
        levels = LevelConfig(
            divisor=int(entry["divisor"]),
            max_level=int(entry.get("max_level", 4)),
            zero_floor=_flag(source_id, entry, "zero_floor"),
        )
        kind = ActivityKind(entry.get("kind", "other"))
    except KeyError as exc:
        raise SourceConfigError(f"source {source_id!r}: missing {exc.args[0]!r}") from exc
    except (TypeError, ValueError) as exc:
        raise SourceConfigError(f"source {source_id!r}: {exc}") from exc

    return SourceConfig(
        source_id=source_id,
        display_name=str(entry.get("display_name", source_id)),
        kind=kind,
        levels=levels,
        requires_link=_flag(source_id, entry, "requires_link"),
    )


def _flag(source_id: str, entry: dict, name: str, default: bool = True) -> bool:
    value = entry.get(name, default)
    if not isinstance(value, bool):
        raise SourceConfigError(
            f"source {source_id!r}: {name} must be true or false, got {value!r}"
        )
    return value
