from datastore_mcp.config.descriptors import (
    DescriptorLoader,
    descriptor_loader,
    discover_descriptor_files,
    load_descriptor_sources,
    parse_descriptor_source,
    read_descriptor_source,
)
from datastore_mcp.config.loader import (
    get_platform_config_path,
    load_settings,
    resolve_config_path,
)
from datastore_mcp.config.settings import (
    DiscoveryConfig,
    LimitsConfig,
    Settings,
    TimeoutsConfig,
)

__all__ = [
    "DescriptorLoader",
    "DiscoveryConfig",
    "LimitsConfig",
    "Settings",
    "TimeoutsConfig",
    "descriptor_loader",
    "discover_descriptor_files",
    "get_platform_config_path",
    "load_descriptor_sources",
    "load_settings",
    "parse_descriptor_source",
    "read_descriptor_source",
    "resolve_config_path",
]
