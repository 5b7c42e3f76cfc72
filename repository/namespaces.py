# repository/namespaces.py
"""
Namespace Registry.

Static, process-wide description of which key prefixes belong to which
application and which table segments each application owns. The registry
decides what keys are structurally valid; it is never mutated at runtime.
Registering a logical project only writes a descriptor into shared storage.
"""
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Final, Iterable, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from config.settings import settings
from util.errors import RegistryConfigError

logger = logging.getLogger(__name__)

SHARED_NAMESPACE: Final[str] = "shared"

# Shared table that holds one descriptor per registered project.
GLOBAL_CONFIG_TABLE: Final[str] = "globalConfig"
PROJECT_DESCRIPTOR_PREFIX: Final[str] = "project_"


class NamespaceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: str = Field(min_length=1)
    # Insertion order is the decode order for table segments.
    tables: Dict[str, str] = Field(default_factory=dict)


class SharedConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: str = Field(default="shared_", min_length=1)
    tables: Dict[str, str] = Field(default_factory=dict)


def _overlapping(items: Iterable[Tuple[str, str]]) -> Tuple[str, str] | None:
    """Return the first pair of names whose values nest (one is a prefix of the other)."""
    seen: list[Tuple[str, str]] = []
    for name, value in items:
        for other_name, other_value in seen:
            if value.startswith(other_value) or other_value.startswith(value):
                return other_name, name
        seen.append((name, value))
    return None


class NamespaceRegistry(BaseModel):
    """
    Ordered namespaces plus the shared area.

    Invariants checked on construction:
      - namespace prefixes and the shared prefix are pairwise prefix-disjoint
      - table segments inside one namespace (and inside the shared area) are
        pairwise prefix-disjoint and non-empty
      - the identifier "shared" is reserved
    """

    model_config = ConfigDict(frozen=True)

    namespaces: Dict[str, NamespaceConfig] = Field(default_factory=dict)
    shared: SharedConfig = Field(default_factory=SharedConfig)

    @model_validator(mode="after")
    def _check_disjoint(self) -> "NamespaceRegistry":
        if SHARED_NAMESPACE in self.namespaces:
            raise ValueError(f"'{SHARED_NAMESPACE}' is a reserved namespace identifier")

        prefixes = [(SHARED_NAMESPACE, self.shared.prefix)]
        prefixes += [(name, ns.prefix) for name, ns in self.namespaces.items()]
        clash = _overlapping(prefixes)
        if clash:
            raise ValueError(f"namespace prefixes overlap: {clash[0]} / {clash[1]}")

        scopes = [(SHARED_NAMESPACE, self.shared.tables)]
        scopes += [(name, ns.tables) for name, ns in self.namespaces.items()]
        for scope, tables in scopes:
            if any(not segment for segment in tables.values()):
                raise ValueError(f"empty table segment in {scope}")
            clash = _overlapping(tables.items())
            if clash:
                raise ValueError(
                    f"table segments overlap in {scope}: {clash[0]} / {clash[1]}"
                )
        return self

    @classmethod
    def from_mapping(cls, data: dict) -> "NamespaceRegistry":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RegistryConfigError(str(e)) from e

    def has_namespace(self, namespace: str) -> bool:
        return namespace in self.namespaces

    def get(self, namespace: str) -> NamespaceConfig | None:
        return self.namespaces.get(namespace)

    def names(self) -> list[str]:
        return list(self.namespaces)


DEFAULT_REGISTRY: Final[dict] = {
    "namespaces": {
        # Blood on the Clocktower script library
        "botc": {
            "prefix": "botc_",
            "tables": {
                "scripts": "script:",
                "characters": "character:",
                "users": "user:",
                "sessions": "session:",
            },
        },
        "project2": {
            "prefix": "proj2_",
            "tables": {
                "data": "data:",
                "config": "config:",
                "cache": "cache:",
            },
        },
        # Namespaces provisioned from the built-in project templates
        "basic": {
            "prefix": "basic_",
            "tables": {
                "users": "user:",
                "settings": "settings:",
                "logs": "log:",
                "schemas": "schema:",
            },
        },
        "shop": {
            "prefix": "shop_",
            "tables": {
                "products": "product:",
                "orders": "order:",
                "customers": "customer:",
                "inventory": "inventory:",
                "settings": "settings:",
                "schemas": "schema:",
            },
        },
        "blog": {
            "prefix": "blog_",
            "tables": {
                "posts": "post:",
                "categories": "category:",
                "comments": "comment:",
                "tags": "tag:",
                "settings": "settings:",
                "schemas": "schema:",
            },
        },
    },
    "shared": {
        "prefix": "shared_",
        "tables": {
            GLOBAL_CONFIG_TABLE: "shared_config:",
            "crossProjectData": "shared_data:",
        },
    },
}


def load_registry(path: str | Path | None = None) -> NamespaceRegistry:
    """Build a registry from a JSON file, or the built-in table when no path is given."""
    if path is None:
        return NamespaceRegistry.from_mapping(DEFAULT_REGISTRY)
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise RegistryConfigError(f"cannot read namespace config {path}: {e}") from e
    registry = NamespaceRegistry.from_mapping(raw)
    logger.info(
        "registry.loaded path=%s namespaces=%d", path, len(registry.namespaces)
    )
    return registry


@lru_cache(maxsize=1)
def get_registry() -> NamespaceRegistry:
    return load_registry(settings.NAMESPACE_CONFIG_FILE)
