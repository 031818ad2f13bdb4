"""YAML configuration loader and validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")
MAX_VERSION_LIMIT = 9


@dataclass
class SiteConfig:
    """Remote catalog site settings."""

    base_url: str = "https://www.cardmarket.com/en/Pokemon/Products/Singles/"
    invalid_marker: str = "Invalid product!"
    lowercase_slugs: bool = True


@dataclass
class ProbeConfig:
    """Request and backoff settings for the page prober."""

    rate_limit_cooldown: float = 60.0  # seconds after a 429
    block_cooldown: float = 300.0  # seconds after a 403
    backoff_factor: float = 2.0
    max_cooldown: float = 1800.0
    max_attempts: Optional[int] = 8  # None: retry transient responses forever
    timeout: float = 30.0
    user_agent: str = "CardVariantScanner/0.1"


@dataclass
class SearchConfig:
    """Which versions to probe and how to pace the probes."""

    max_version: int = 5
    extended_max_version: int = 9
    delay_min: float = 3.0
    delay_max: float = 5.0
    item_delay_min: float = 3.0
    item_delay_max: float = 5.0
    check_base: bool = True


@dataclass
class PathsConfig:
    """Input and output locations."""

    card_sets_dir: str = "./card-sets"
    checkpoint_file: str = "./checked-cards.json"
    variants_file: str = "./variants-found.json"
    readme_file: str = "./README.md"


@dataclass
class AppConfig:
    """Top-level application configuration."""

    site: SiteConfig = field(default_factory=SiteConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        logger.info("No config file at %s, using defaults", config_path)
        config = AppConfig()
    else:
        logger.info("Loading config from %s", config_path)
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        config = _parse_config(raw) if raw else AppConfig()

    _validate_config(config)
    return config


def _parse_config(raw: Dict[str, Any]) -> AppConfig:
    """Parse raw YAML dict into AppConfig."""
    config = AppConfig()

    if "site" in raw:
        site = raw["site"] or {}
        config.site = SiteConfig(
            base_url=str(site.get("base_url", config.site.base_url)),
            invalid_marker=str(site.get("invalid_marker", config.site.invalid_marker)),
            lowercase_slugs=bool(site.get("lowercase_slugs", config.site.lowercase_slugs)),
        )

    if "probe" in raw:
        pr = raw["probe"] or {}
        defaults = config.probe
        max_attempts = pr.get("max_attempts", defaults.max_attempts)
        config.probe = ProbeConfig(
            rate_limit_cooldown=float(pr.get("rate_limit_cooldown", defaults.rate_limit_cooldown)),
            block_cooldown=float(pr.get("block_cooldown", defaults.block_cooldown)),
            backoff_factor=float(pr.get("backoff_factor", defaults.backoff_factor)),
            max_cooldown=float(pr.get("max_cooldown", defaults.max_cooldown)),
            max_attempts=int(max_attempts) if max_attempts is not None else None,
            timeout=float(pr.get("timeout", defaults.timeout)),
            user_agent=str(pr.get("user_agent", defaults.user_agent)),
        )

    if "search" in raw:
        se = raw["search"] or {}
        defaults = config.search
        config.search = SearchConfig(
            max_version=int(se.get("max_version", defaults.max_version)),
            extended_max_version=int(se.get("extended_max_version", defaults.extended_max_version)),
            delay_min=float(se.get("delay_min", defaults.delay_min)),
            delay_max=float(se.get("delay_max", defaults.delay_max)),
            item_delay_min=float(se.get("item_delay_min", defaults.item_delay_min)),
            item_delay_max=float(se.get("item_delay_max", defaults.item_delay_max)),
            check_base=bool(se.get("check_base", defaults.check_base)),
        )

    if "paths" in raw:
        pa = raw["paths"] or {}
        defaults = config.paths
        config.paths = PathsConfig(
            card_sets_dir=str(pa.get("card_sets_dir", defaults.card_sets_dir)),
            checkpoint_file=str(pa.get("checkpoint_file", defaults.checkpoint_file)),
            variants_file=str(pa.get("variants_file", defaults.variants_file)),
            readme_file=str(pa.get("readme_file", defaults.readme_file)),
        )

    return config


def _validate_config(config: AppConfig) -> None:
    """Validate config and raise on errors."""
    if not config.site.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Config error: site.base_url must be an http(s) URL, got '{config.site.base_url}'"
        )

    probe = config.probe
    if probe.max_attempts is not None and probe.max_attempts < 1:
        raise ValueError("Config error: probe.max_attempts must be at least 1 (or null)")
    if min(probe.rate_limit_cooldown, probe.block_cooldown, probe.max_cooldown) < 0:
        raise ValueError("Config error: probe cooldowns must not be negative")
    if probe.backoff_factor < 1:
        raise ValueError("Config error: probe.backoff_factor must be at least 1")

    search = config.search
    if not 1 < search.max_version < search.extended_max_version <= MAX_VERSION_LIMIT:
        raise ValueError(
            "Config error: versions must satisfy "
            f"1 < max_version < extended_max_version <= {MAX_VERSION_LIMIT}"
        )
    for low, high, name in (
        (search.delay_min, search.delay_max, "delay"),
        (search.item_delay_min, search.item_delay_max, "item_delay"),
    ):
        if low < 0 or low > high:
            raise ValueError(
                f"Config error: search.{name}_min/{name}_max must satisfy 0 <= min <= max"
            )

    logger.info(
        "Config validated: %s, versions 1-%d (extended to %d), checkpoint -> %s",
        config.site.base_url,
        search.max_version,
        search.extended_max_version,
        config.paths.checkpoint_file,
    )
