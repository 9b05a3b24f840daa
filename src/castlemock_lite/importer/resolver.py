"""
CastleMock Lite Schema Resolver

Dereferences local ``$ref`` pointers (``#/components/schemas/Pet``) against
the document they live in. Cycles are detected by pointer name: every ref
being expanded is carried in ``visited``, and a repeat yields a placeholder
object instead of recursing forever.
"""

from typing import Any, Dict, Optional, Tuple

_MISSING = object()


def circular_placeholder(ref: str) -> Dict[str, Any]:
    """Stand-in object returned for a ref that is already being expanded."""
    return {'type': 'object', 'description': f"[Circular: {ref.split('/')[-1]}]"}


def _lookup_pointer(root: Any, ref: str) -> Any:
    """Follow a ``#/a/b/c`` pointer through root, or return _MISSING."""
    current = root
    for raw in ref[2:].split('/'):
        segment = raw.replace('~1', '/').replace('~0', '~')
        if isinstance(current, dict):
            current = current.get(segment, _MISSING)
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            current = _MISSING
        if current is _MISSING:
            return _MISSING
    return current


def resolve_refs(node: Any, root: Any, visited: Tuple[str, ...] = ()) -> Any:
    """
    Recursively resolve ``$ref`` pointers in node against root.

    Args:
        node: Any JSON value (dicts and lists are walked)
        root: Document that ``#/...`` pointers are looked up in
        visited: Refs currently being expanded on this branch

    Returns:
        A new value with resolvable refs replaced. Sibling keys next to a
        ``$ref`` override the referenced content. Unresolvable refs are kept
        as-is. Inputs are never mutated.
    """
    if isinstance(node, list):
        return [resolve_refs(item, root, visited) for item in node]

    if not isinstance(node, dict):
        return node

    ref = node.get('$ref')
    if isinstance(ref, str):
        if ref in visited:
            return circular_placeholder(ref)

        if ref.startswith('#/'):
            target = _lookup_pointer(root, ref)
            if target is not _MISSING:
                resolved = resolve_refs(target, root, visited + (ref,))
                if isinstance(resolved, dict):
                    siblings = {
                        k: resolve_refs(v, root, visited)
                        for k, v in node.items() if k != '$ref'
                    }
                    return {**resolved, **siblings}
                return resolved

    return {key: resolve_refs(value, root, visited) for key, value in node.items()}


def resolve_endpoint_docs(
    docs: Optional[Dict[str, Any]],
    components: Optional[Dict[str, Any]]
) -> Optional[Dict[str, Any]]:
    """
    Resolve an endpoint's stored documentation for display.

    Imported endpoints keep their docs unresolved so shared schemas aren't
    copied into every endpoint; this expands them against the project's
    ``components`` section on demand.

    Args:
        docs: Endpoint docs as stored at import time
        components: The owning project's OpenAPI ``components``

    Returns:
        Docs with ``#/components/...`` refs expanded, or None if docs is None
    """
    if docs is None:
        return None
    return resolve_refs(docs, {'components': components or {}})
