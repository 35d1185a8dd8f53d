"""
Utility Modules

Configuration loading and caching utilities.
"""

from dealgraph.utils.config import load_config, Config
from dealgraph.utils.cache import EnrichmentCache

__all__ = ["load_config", "Config", "EnrichmentCache"]
