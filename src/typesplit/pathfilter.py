"""Compile requested type names into a single path filter."""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PathFilter:
    """Matches every path strictly below <source_path>/<type>/ for the given types."""

    pattern: str
    source_path: str
    types: tuple[str, ...]

    @property
    def regex(self) -> re.Pattern[str]:
        return re.compile(self.pattern)

    @property
    def pathspec(self) -> str:
        """Directory to narrow tree listings to before the pattern is applied."""
        return self.source_path

    def matches(self, path: str) -> bool:
        return self.regex.match(path) is not None

    def relocate(self, path: str, dest_path: str) -> str:
        """Move a matching path from the source type path to dest_path."""
        return dest_path + path[len(self.source_path):]


def validate_type_name(name: str) -> None:
    """Reject names that cannot denote a single type directory."""
    if not name or name in (".", "..") or "/" in name or "\0" in name:
        raise ValueError(f"Invalid type name: {name!r}")


def compile_filter(types: list[str], source_path: str) -> PathFilter:
    """
    Build the filter pattern for a set of type names.

    The pattern is anchored at the start of the path and requires a path
    separator after the type name, so `foo` never matches `foobar/...`.
    Duplicate names are kept as redundant alternatives.
    """
    if not types:
        raise ValueError("At least one type name is required")
    for name in types:
        validate_type_name(name)

    source_path = source_path.strip("/")
    prefix = "/".join(re.escape(part) for part in source_path.split("/") if part)
    alternatives = "|".join(re.escape(name) for name in types)
    pattern = f"^{prefix}/({alternatives})/"

    return PathFilter(pattern=pattern, source_path=source_path, types=tuple(types))
