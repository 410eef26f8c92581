"""
Settings loader and typed configuration.

``load_settings()`` reads ``settings.yaml`` (deep-merged over DEFAULT_SETTINGS)
on every call so operators can retune limits between runs. ``load_config()``
turns that mapping into frozen dataclasses that jobs receive explicitly.
"""
import copy
import os
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import yaml

from constants import CONFIG_FILE, DEFAULT_SETTINGS, SECRET_ENV_OVERRIDES, CATALOGUE_SOURCES, OFFER_REGIONS
from exceptions import ConfigurationException
from utils import to_int, to_float

logger = logging.getLogger("main")


def deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _set_path(data: dict, path: Tuple[str, ...], value):
    node = data
    for part in path[:-1]:
        node = node.setdefault(part, {})
    node[path[-1]] = value


def _get_path(data: dict, path: Tuple[str, ...]):
    node = data
    for part in path:
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def apply_env_overrides(settings: dict, environ=None) -> dict:
    """Fill secrets from the environment when the file leaves them empty"""
    environ = os.environ if environ is None else environ
    for path, names in SECRET_ENV_OVERRIDES.items():
        if _get_path(settings, path):
            continue
        for name in names:
            value = environ.get(name)
            if value and value.strip():
                _set_path(settings, path, value.strip())
                break
    return settings


def load_settings(config_file=CONFIG_FILE, environ=None):
    """Read the settings file merged with defaults. Not cached."""
    file_settings = {}
    if config_file and os.path.exists(config_file):
        logger.debug(f"Reading configuration file: {config_file}")
        with open(config_file, "r") as yaml_file:
            try:
                file_settings = yaml.safe_load(yaml_file) or {}
            except yaml.YAMLError as e:
                raise ConfigurationException(f"Invalid settings file {config_file}: {e}")
        if not isinstance(file_settings, dict):
            raise ConfigurationException(f"Settings file {config_file} must hold a mapping.")

    settings = deep_merge(DEFAULT_SETTINGS, file_settings)
    return apply_env_overrides(settings, environ)


@dataclass(frozen=True)
class SourceConfig:
    key: str
    enabled: bool = True
    limit: Optional[int] = None
    always_fetch: bool = False
    min_score: Optional[float] = None
    min_user_reviews: Optional[int] = None
    offset: int = 0
    families: Tuple[str, ...] = ()
    platforms: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    local_file: Optional[str] = None
    timeout: int = 10

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "SourceConfig":
        data = data or {}
        limit = to_int(data.get("limit"))
        return cls(
            key=key,
            enabled=bool(data.get("enabled", True)),
            limit=limit if limit and limit > 0 else None,
            always_fetch=bool(data.get("always_fetch", False)),
            min_score=to_float(data.get("min_score")),
            min_user_reviews=to_int(data.get("min_user_reviews")),
            offset=max(0, to_int(data.get("offset")) or 0),
            families=tuple(_as_list(data.get("families") or data.get("family"))),
            platforms=tuple(_as_list(data.get("platforms"))),
            categories=tuple(_as_list(data.get("categories"))),
            api_key=data.get("api_key") or None,
            base_url=data.get("base_url") or None,
            local_file=data.get("local_file") or None,
            timeout=to_int(data.get("timeout")) or 10,
        )


@dataclass(frozen=True)
class CatalogueConfig:
    trending_seed_limit: int = 7
    window_days: int = 7
    skip_verify_links: bool = False
    sources: Dict[str, SourceConfig] = field(default_factory=dict)

    def source(self, key: str) -> SourceConfig:
        return self.sources.get(key) or SourceConfig(key=key, enabled=False)

    def ordered_sources(self) -> List[SourceConfig]:
        """Declared order first, then any extra sources from the settings file"""
        keys = [k for k in CATALOGUE_SOURCES if k in self.sources]
        keys += [k for k in self.sources if k not in keys]
        return [self.sources[k] for k in keys]


@dataclass(frozen=True)
class ProviderLimit:
    max_rps: float = 1.0
    burst: int = 1


@dataclass(frozen=True)
class ProvidersConfig:
    limits: Dict[str, ProviderLimit] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    daily_quotas: Dict[str, int] = field(default_factory=dict)

    def limit_for(self, provider: str) -> ProviderLimit:
        return self.limits.get(provider, ProviderLimit())


@dataclass(frozen=True)
class PricingProviderConfig:
    key: str
    enabled: bool = False
    api_key: Optional[str] = None
    token: Optional[str] = None
    base_url: Optional[str] = None
    timeout: int = 10
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PricingConfig:
    providers: Dict[str, PricingProviderConfig] = field(default_factory=dict)
    stores: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    regions: Tuple[str, ...] = tuple(OFFER_REGIONS)

    def provider(self, key: str) -> Optional[PricingProviderConfig]:
        return self.providers.get(key)

    def is_enabled(self, key: str) -> bool:
        provider = self.providers.get(key)
        return bool(provider and provider.enabled)


@dataclass(frozen=True)
class MediaProviderConfig:
    key: str
    enabled: bool = True
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MediaConfig:
    providers: Dict[str, MediaProviderConfig] = field(default_factory=dict)
    http_timeout: int = 20
    cache_ttl: int = 3600


@dataclass(frozen=True)
class SweepConfig:
    window_days: int = 14
    daily_budget: int = 1800
    chunk_size: int = 25


@dataclass(frozen=True)
class DiscoveryConfig:
    enabled: bool = False
    start_id: int = 1
    batch_size: int = 200
    max_id: Optional[int] = None
    use_private_key: bool = True
    requests_per_run: int = 1


@dataclass(frozen=True)
class TheGamesDbConfig:
    base_url: str = "https://api.thegamesdb.net/v1"
    public_key: Optional[str] = None
    private_key: Optional[str] = None
    user_agent: Optional[str] = None
    timeout: int = 20
    fields: Optional[str] = None
    include: Optional[str] = "boxart,platforms"
    games: Tuple[Dict[str, Any], ...] = ()
    sweep: SweepConfig = field(default_factory=SweepConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)

    @property
    def has_credentials(self) -> bool:
        return bool((self.public_key or "").strip() or (self.private_key or "").strip())


@dataclass(frozen=True)
class AppConfig:
    catalogue: CatalogueConfig = field(default_factory=CatalogueConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    thegamesdb: TheGamesDbConfig = field(default_factory=TheGamesDbConfig)

    def with_source(self, key: str, **changes) -> "AppConfig":
        """Copy of this config with one catalogue source retargeted"""
        sources = dict(self.catalogue.sources)
        sources[key] = replace(self.catalogue.source(key), **changes)
        return replace(self, catalogue=replace(self.catalogue, sources=sources))

    def only_sources(self, *keys: str) -> "AppConfig":
        """Copy of this config where only ``keys`` stay enabled"""
        sources = {
            k: replace(v, enabled=v.enabled and k in keys)
            for k, v in self.catalogue.sources.items()
        }
        return replace(self, catalogue=replace(self.catalogue, sources=sources))

    @classmethod
    def from_dict(cls, settings: Dict[str, Any]) -> "AppConfig":
        catalogue = settings.get("catalogue") or {}
        providers = settings.get("providers") or {}
        pricing = settings.get("pricing") or {}
        media = settings.get("media") or {}
        tgdb = settings.get("thegamesdb") or {}

        return cls(
            catalogue=CatalogueConfig(
                trending_seed_limit=to_int(catalogue.get("trending_seed_limit")) or 7,
                window_days=to_int(catalogue.get("window_days")) or 7,
                skip_verify_links=bool(catalogue.get("skip_verify_links", False)),
                sources={
                    key: SourceConfig.from_dict(key, value)
                    for key, value in (catalogue.get("sources") or {}).items()
                },
            ),
            providers=ProvidersConfig(
                limits={
                    key: ProviderLimit(
                        max_rps=to_float(value.get("max_rps")) or 1.0,
                        burst=max(1, to_int(value.get("burst")) or 1),
                    )
                    for key, value in (providers.get("limits") or {}).items()
                    if isinstance(value, dict)
                },
                weights={k: to_float(v) or 0.0 for k, v in (providers.get("weights") or {}).items()},
                daily_quotas={k: to_int(v) or 0 for k, v in (providers.get("daily_quotas") or {}).items()},
            ),
            pricing=PricingConfig(
                providers={
                    key: _pricing_provider(key, value or {})
                    for key, value in (pricing.get("providers") or {}).items()
                },
                stores=dict(pricing.get("stores") or {}),
                regions=tuple(_as_list(pricing.get("regions")) or OFFER_REGIONS),
            ),
            media=MediaConfig(
                providers={
                    key: _media_provider(key, value or {})
                    for key, value in (media.get("providers") or {}).items()
                },
                http_timeout=to_int(media.get("http_timeout")) or 20,
                cache_ttl=to_int(media.get("cache_ttl")) or 3600,
            ),
            thegamesdb=_thegamesdb(tgdb),
        )


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return []


def _pricing_provider(key: str, data: dict) -> PricingProviderConfig:
    known = {"enabled", "api_key", "token", "base_url", "timeout"}
    return PricingProviderConfig(
        key=key,
        enabled=bool(data.get("enabled", False)),
        api_key=data.get("api_key") or None,
        token=data.get("token") or None,
        base_url=data.get("base_url") or None,
        timeout=to_int(data.get("timeout")) or 10,
        options={k: v for k, v in data.items() if k not in known},
    )


def _media_provider(key: str, data: dict) -> MediaProviderConfig:
    known = {"enabled", "api_key", "base_url"}
    return MediaProviderConfig(
        key=key,
        enabled=bool(data.get("enabled", True)),
        api_key=data.get("api_key") or None,
        base_url=data.get("base_url") or None,
        options={k: v for k, v in data.items() if k not in known},
    )


def _format_fields(fields) -> Optional[str]:
    items = _as_list(fields)
    return ",".join(dict.fromkeys(items)) if items else None


def _thegamesdb(data: dict) -> TheGamesDbConfig:
    sweep = data.get("sweep") or {}
    discovery = data.get("discovery") or {}
    return TheGamesDbConfig(
        base_url=data.get("base_url") or TheGamesDbConfig.base_url,
        public_key=data.get("public_key") or None,
        private_key=data.get("private_key") or None,
        user_agent=data.get("user_agent") or None,
        timeout=to_int(data.get("timeout")) or 20,
        fields=_format_fields(data.get("fields")),
        include=_format_fields(data.get("include")),
        games=tuple(g for g in (data.get("games") or []) if isinstance(g, dict)),
        sweep=SweepConfig(
            window_days=max(1, to_int(sweep.get("window_days")) or 14),
            daily_budget=max(1, to_int(sweep.get("daily_budget")) or 1800),
            chunk_size=max(1, to_int(sweep.get("chunk_size")) or 25),
        ),
        discovery=DiscoveryConfig(
            enabled=bool(discovery.get("enabled", False)),
            start_id=max(1, to_int(discovery.get("start_id")) or 1),
            batch_size=max(1, to_int(discovery.get("batch_size")) or 200),
            max_id=to_int(discovery.get("max_id")),
            use_private_key=bool(discovery.get("use_private_key", True)),
            requests_per_run=max(1, to_int(discovery.get("requests_per_run")) or 1),
        ),
    )


def load_config(config_file=CONFIG_FILE, environ=None) -> AppConfig:
    """Typed configuration, read fresh at job-invocation time"""
    return AppConfig.from_dict(load_settings(config_file, environ))
