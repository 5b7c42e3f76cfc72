from typing import Optional

from core.entities import ParsedKey
from repository.namespaces import SHARED_NAMESPACE, NamespaceRegistry, get_registry
from util.errors import UnknownNamespaceError, UnparseableKeyError


def _segment(tables: dict[str, str], table: str) -> str:
    # Unregistered tables still encode; they just can't be decoded back.
    return tables.get(table) or f"{table}:"


def namespace_prefix(namespace: str, registry: Optional[NamespaceRegistry] = None) -> str:
    reg = registry if registry is not None else get_registry()
    cfg = reg.get(namespace)
    if cfg is None:
        raise UnknownNamespaceError(namespace)
    return cfg.prefix


def encode_namespaced(
    namespace: str,
    table: str,
    local_key: str,
    registry: Optional[NamespaceRegistry] = None,
) -> str:
    """
    <namespace prefix><table segment><local key>
    Raises UnknownNamespaceError when the namespace is not registered.
    """
    reg = registry if registry is not None else get_registry()
    cfg = reg.get(namespace)
    if cfg is None:
        raise UnknownNamespaceError(namespace)
    return f"{cfg.prefix}{_segment(cfg.tables, table)}{local_key}"


def encode_shared(
    table: str, local_key: str, registry: Optional[NamespaceRegistry] = None
) -> str:
    reg = registry if registry is not None else get_registry()
    return f"{reg.shared.prefix}{_segment(reg.shared.tables, table)}{local_key}"


def decode(full_key: str, registry: Optional[NamespaceRegistry] = None) -> ParsedKey:
    """
    Reverse of encode_namespaced / encode_shared.

    Shared area first, then namespaces in registration order; inside a match,
    table segments in registration order. Registry validation keeps prefixes
    disjoint, so the first hit is the only hit.
    Raises UnparseableKeyError when nothing matches.
    """
    reg = registry if registry is not None else get_registry()

    if full_key.startswith(reg.shared.prefix):
        rest = full_key[len(reg.shared.prefix):]
        for table, segment in reg.shared.tables.items():
            if rest.startswith(segment):
                return ParsedKey(
                    namespace=SHARED_NAMESPACE,
                    table=table,
                    local_key=rest[len(segment):],
                    is_shared=True,
                )

    for namespace, cfg in reg.namespaces.items():
        if not full_key.startswith(cfg.prefix):
            continue
        rest = full_key[len(cfg.prefix):]
        for table, segment in cfg.tables.items():
            if rest.startswith(segment):
                return ParsedKey(
                    namespace=namespace,
                    table=table,
                    local_key=rest[len(segment):],
                    is_shared=False,
                )

    raise UnparseableKeyError(full_key)


def try_decode(
    full_key: str, registry: Optional[NamespaceRegistry] = None
) -> Optional[ParsedKey]:
    """decode() for bulk paths: None instead of raising."""
    try:
        return decode(full_key, registry)
    except UnparseableKeyError:
        return None


def decode_in_namespace(
    full_key: str, namespace: str, registry: Optional[NamespaceRegistry] = None
) -> Optional[ParsedKey]:
    """
    Decode a key known to live under `namespace`'s prefix.

    Registered segments win. Otherwise the key is read back the way the
    unknown-table fallback wrote it: table up to the first ':', local key after.
    Returns None for keys outside the namespace or with no table part, and for
    fallback-shaped keys naming a registered table (they would not re-encode
    to the same key).
    Raises UnknownNamespaceError when the namespace is not registered.
    """
    reg = registry if registry is not None else get_registry()
    prefix = namespace_prefix(namespace, reg)
    if not full_key.startswith(prefix):
        return None

    parsed = try_decode(full_key, reg)
    if parsed is not None and parsed.namespace == namespace:
        return parsed

    table, sep, local_key = full_key[len(prefix):].partition(":")
    if not sep or not table or table in reg.namespaces[namespace].tables:
        return None
    return ParsedKey(
        namespace=namespace, table=table, local_key=local_key, is_shared=False
    )
