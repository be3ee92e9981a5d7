from typing import Any, Sequence

from pulse_form.path import Segment


def _is_index(seg: Segment) -> bool:
    return isinstance(seg, int) and not isinstance(seg, bool)


def get_in(root: Any, segments: Sequence[Segment]) -> Any:
    """Read the value at `segments`, or `None` as soon as a step is missing.

    String segments index mappings, int segments index lists. Never raises on
    a missing or mistyped intermediate node.
    """
    node = root
    for seg in segments:
        if _is_index(seg):
            if not isinstance(node, list) or not 0 <= seg < len(node):  # type: ignore[operator]
                return None
            node = node[seg]  # type: ignore[index]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(seg)
        if node is None:
            return None
    return node


def _ensure_slot(container: list, index: int) -> None:
    while len(container) <= index:
        container.append(None)


def _child(parent: Any, seg: Segment, next_is_index: bool) -> Any:
    # Fetch the child container, replacing it when missing or of the wrong kind
    wanted = list if next_is_index else dict
    if isinstance(parent, list):
        _ensure_slot(parent, seg)  # type: ignore[arg-type]
        child = parent[seg]  # type: ignore[index]
    else:
        child = parent.get(seg)
    if not isinstance(child, wanted):
        child = parent[seg] = wanted()
    return child


def set_in(root: Any, segments: Sequence[Segment], value: Any) -> None:
    """Assign `value` at `segments`, mutating `root` in place.

    Intermediate containers are created on demand: a list when the next
    segment is an index, a dict otherwise. Lists are padded with `None` up to
    the index being written. `root` itself must already be a container of the
    kind the first segment needs.
    """
    if not segments:
        return
    node = root
    for i, seg in enumerate(segments[:-1]):
        node = _child(node, seg, _is_index(segments[i + 1]))

    last = segments[-1]
    if isinstance(node, list):
        _ensure_slot(node, last)  # type: ignore[arg-type]
    node[last] = value


def deep_copy(obj: Any) -> Any:
    "Copy the dict/list skeleton of a value graph, sharing the leaves."
    if isinstance(obj, dict):
        return {k: deep_copy(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [deep_copy(v) for v in obj]
    return obj


def deep_merge(base: Any, override: Any) -> Any:
    """Merge `override` over `base` into a new value graph.

    Dicts merge key by key, recursively. Anything else in `override`,
    lists included, replaces the value from `base` wholesale.
    """
    if isinstance(base, dict) and isinstance(override, dict):
        merged = deep_copy(base)
        for key, value in override.items():
            merged[key] = deep_merge(base.get(key), value)
        return merged
    return deep_copy(override)
