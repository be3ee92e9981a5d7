import re
from typing import Sequence

Segment = str | int
PathLike = str | Sequence[Segment]

# A run of non-bracket characters, or a bracketed integer index.
_TOKEN = re.compile(r"([^\[]+)|\[(\d+)\]")


def to_path(name: PathLike) -> list[Segment]:
    """Split a field path into its segments.

    `"a.b"` gives `["a", "b"]` and `"addresses.[0].street"` gives
    `["addresses", 0, "street"]`. The index may also be attached to its owner
    without the dot (`"addresses[0].street"`), which decodes the same way.
    Index segments are always ints; bracket contents that are not digits never
    become indices. A list of segments is returned as-is.
    """
    if isinstance(name, list):
        return name
    if isinstance(name, tuple):
        return list(name)

    parts: list[Segment] = []
    for chunk in str(name).split("."):
        for match in _TOKEN.finditer(chunk):
            key, index = match.groups()
            if key:
                parts.append(key)
            if index:
                parts.append(int(index))
    return parts


def to_string(segments: Sequence[Segment]) -> str:
    "Render segments in the canonical dotted form, indices as `[N]`."
    return ".".join(
        f"[{seg}]" if isinstance(seg, int) and not isinstance(seg, bool) else str(seg)
        for seg in segments
    )
