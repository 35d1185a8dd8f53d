"""
Configuration Management

Loads configuration from YAML files with environment variable resolution.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


class InfluenceConfig(BaseModel):
    """Influence score component weights and caps."""
    role_scores: dict[str, int] = Field(default_factory=lambda: {
        "ceo": 30,
        "chief executive": 30,
        "cto": 25,
        "chief technology": 25,
        "cfo": 25,
        "chief financial": 25,
        "vp": 20,
        "svp": 20,
        "evp": 20,
        "vice president": 20,
        "director": 15,
        "manager": 10,
    })
    default_role_score: int = 5
    deal_points: float = 10.0
    deal_cap: float = 20.0
    strong_edge_threshold: float = 0.7
    strong_edge_points: float = 3.0
    strong_edge_cap: float = 20.0
    recency_window_days: int = 90
    recency_points: float = 2.0
    recency_cap: float = 15.0
    centrality_points: float = 1.5
    centrality_cap: float = 15.0

    def role_rules(self) -> list[tuple[tuple[str, ...], int]]:
        """Ordered (keywords, points) rules, highest points first.

        Keywords sharing a score are grouped; ties keep mapping order.
        """
        grouped: dict[int, list[str]] = {}
        for keyword, points in self.role_scores.items():
            grouped.setdefault(points, []).append(keyword.lower())
        return [
            (tuple(keywords), points)
            for points, keywords in sorted(grouped.items(), key=lambda kv: kv[0], reverse=True)
        ]


class StrengthConfig(BaseModel):
    """Interaction-driven relationship strength increments."""
    increments: dict[str, float] = Field(default_factory=lambda: {
        "call": 0.02,
        "meeting": 0.04,
        "email": 0.01,
    })
    default_increment: float = 0.005
    long_call_minutes: float = 30
    long_call_bonus: float = 0.03
    completion_multiplier: float = 1.2


class ImportConfig(BaseModel):
    """Importer edge weights and default source."""
    provider: str = "native"
    reports_to_strength: float = 0.9
    works_at_strength: float = 1.0
    belongs_to_strength: float = 1.0
    decision_maker_strength: float = 0.95
    influencer_strength: float = 0.7
    hubspot: dict[str, Any] = Field(default_factory=lambda: {
        "base_url": "http://localhost:3000/api/hubspot",
        "api_key": None,
        "page_size": 100,
        "include_interactions": True,
    })


class EnrichmentConfig(BaseModel):
    """Profile enrichment configuration."""
    enabled: bool = False
    provider: str = "linkedin"
    base_url: str = "http://localhost:3000/api/linkedin"
    api_key_env: str = "LINKEDIN_API_KEY"
    timeout_seconds: float = 30.0
    batch_size: int = 5

    def get_api_key(self) -> Optional[str]:
        """Get API key from environment variable."""
        return os.environ.get(self.api_key_env) if self.api_key_env else None


class QueryConfig(BaseModel):
    """Graph query configuration."""
    max_path_depth: int = 3
    strengthen_min_influence: int = 70
    strengthen_max_strength: float = 0.7
    engage_min_influence: int = 60


class DealHealthConfig(BaseModel):
    """Deal health orchestrator configuration."""
    stage_days: dict[str, float] = Field(default_factory=lambda: {
        "new": 3,
        "contacted": 5,
        "qualified": 7,
        "proposal": 10,
        "negotiation": 14,
        "closed": 0,
    })
    default_stage_days: float = 7
    stalling_multiplier: float = 1.5
    ghosting_days: int = 7
    momentum_window_hours: int = 24
    high_value_threshold: float = 200_000
    max_hot_leads: int = 5
    max_risks: int = 5
    max_actions: int = 5
    max_actions_per_deal: int = 3


class CacheConfig(BaseModel):
    """Enrichment lookup caching configuration."""
    enabled: bool = True
    path: str = ".cache/enrichment.db"
    ttl_days: int = 7
    max_size_mb: int = 100


class OutputConfig(BaseModel):
    """Output generation configuration."""
    directory: str = "./outputs"
    formats: list[str] = Field(default_factory=lambda: ["csv", "markdown", "json"])
    timestamp_filenames: bool = True
    markdown: dict[str, Any] = Field(default_factory=lambda: {
        "include_methodology": True,
        "max_items_per_section": 20,
    })


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    timestamps: bool = True


class Config(BaseModel):
    """Root configuration object."""
    influence: InfluenceConfig = Field(default_factory=InfluenceConfig)
    strength: StrengthConfig = Field(default_factory=StrengthConfig)
    importer: ImportConfig = Field(default_factory=ImportConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    deal_health: DealHealthConfig = Field(default_factory=DealHealthConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _resolve_env_vars(data: Any) -> Any:
    """Recursively resolve environment variables in config values.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.
    """
    if isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_expr = data[2:-1]
            if ":-" in var_expr:
                var_name, default = var_expr.split(":-", 1)
                return os.environ.get(var_name, default)
            return os.environ.get(var_expr, data)
        return data
    elif isinstance(data, dict):
        return {k: _resolve_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars(item) for item in data]
    return data


def load_config(
    config_path: Optional[Path] = None,
    local_config_path: Optional[Path] = None,
) -> Config:
    """Load configuration from YAML files.

    Args:
        config_path: Path to main config file (default: config.yaml)
        local_config_path: Path to local overrides (default: config.local.yaml)

    Returns:
        Merged and validated Config object
    """
    project_root = Path(__file__).parent.parent.parent

    if config_path is None:
        config_path = project_root / "config.yaml"
    if local_config_path is None:
        local_config_path = project_root / "config.local.yaml"

    config_data: dict[str, Any] = {}

    if config_path.exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

    if local_config_path.exists():
        with open(local_config_path) as f:
            local_data = yaml.safe_load(f) or {}
            config_data = _deep_merge(config_data, local_data)

    config_data = _resolve_env_vars(config_data)

    return Config(**config_data)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
