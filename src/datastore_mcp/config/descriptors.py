"""Discovery and loading of connection descriptor files.

Each JSON file is one descriptor source, identified by its path. A file holds
an array of descriptors, a single descriptor object, or nothing at all.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from datastore_mcp.config.settings import DiscoveryConfig, Settings
from datastore_mcp.errors import ConfigurationError
from datastore_mcp.models import ConnectionDescriptor, DescriptorSource

logger = logging.getLogger(__name__)

DescriptorLoader = Callable[[], Sequence[DescriptorSource]]


def discover_descriptor_files(discovery: DiscoveryConfig) -> list[Path]:
    """Return descriptor files matched in the workspace folders plus explicit files."""
    found: list[Path] = []
    seen: set[Path] = set()

    def _add(path: Path) -> None:
        key = path.resolve()
        if key not in seen:
            seen.add(key)
            found.append(path)

    for folder in discovery.workspace_folders:
        if not folder.is_dir():
            logger.warning("Workspace folder %s does not exist; skipping", folder)
            continue
        for pattern in discovery.patterns:
            for path in sorted(folder.glob(pattern)):
                if path.is_file():
                    _add(path)

    for path in discovery.files:
        _add(path)

    return found


def _summarize_validation(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "descriptor"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def parse_descriptor_source(data: Any, *, name: str) -> DescriptorSource:
    """Validate already-decoded JSON from one source into descriptors."""
    if data is None:
        items: list[Any] = []
    elif isinstance(data, dict):
        items = [data]
    elif isinstance(data, list):
        items = data
    else:
        raise ConfigurationError(
            f"Connection file {name} must contain a descriptor object or an array of them."
        )

    descriptors: list[ConnectionDescriptor] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ConfigurationError(f"Entry #{index} in {name} is not a JSON object.")
        try:
            descriptor = ConnectionDescriptor.model_validate(item)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid connection descriptor #{index} in {name}: {_summarize_validation(e)}"
            ) from e
        descriptors.append(descriptor.model_copy(update={"source": name}))

    return DescriptorSource(name=name, descriptors=tuple(descriptors))


def read_descriptor_source(path: Path) -> DescriptorSource:
    """Read one descriptor file.

    Unreadable files and malformed JSON are logged and yield an empty source so
    the remaining files still load.
    """
    name = str(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Could not read connection file %s: %s", name, e)
        return DescriptorSource(name=name)

    if not text.strip():
        return DescriptorSource(name=name)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Connection file %s is not valid JSON: %s", name, e)
        return DescriptorSource(name=name)

    return parse_descriptor_source(data, name=name)


def load_descriptor_sources(settings: Settings) -> list[DescriptorSource]:
    """Discover and read every descriptor source configured in ``settings``."""
    paths = discover_descriptor_files(settings.discovery)
    logger.debug("Loading connection descriptors from %d file(s)", len(paths))
    return [read_descriptor_source(path) for path in paths]


def descriptor_loader(settings: Settings) -> DescriptorLoader:
    """Bind ``settings`` into a zero-argument loader that re-reads files on every call."""

    def _load() -> list[DescriptorSource]:
        return load_descriptor_sources(settings)

    return _load
