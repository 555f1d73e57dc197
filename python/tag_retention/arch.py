"""
Architecture suffix handling for image tags.

Multi-arch builds push the same image as ``<tag>``, ``<tag>-amd64`` and
``<tag>-arm64``. The canonical name is the tag without its arch suffix and is
what branch lookups, system-tag matching and date deduplication work on.
"""

from typing import Iterable, List, Sequence

DEFAULT_ARCH_SUFFIXES = ("amd64", "arm64")


def normalize_tag(tag: str, arch_suffixes: Sequence[str] = DEFAULT_ARCH_SUFFIXES) -> str:
    """Strip a trailing ``-<arch>`` from a tag.

    Only one suffix is ever removed, so ``x-arm64-amd64`` becomes ``x-arm64``.

    Args:
        tag: Tag name, e.g. "release-20220320-arm64"
        arch_suffixes: Arch names without the leading dash

    Returns:
        Canonical tag name, e.g. "release-20220320"
    """
    for arch in arch_suffixes:
        if not arch:
            continue
        suffix = f"-{arch}"
        if tag.endswith(suffix) and len(tag) > len(suffix):
            return tag[:-len(suffix)]
    return tag


def canonical_tags(tags: Iterable[str], arch_suffixes: Sequence[str] = DEFAULT_ARCH_SUFFIXES) -> List[str]:
    """Return the distinct canonical names of tags, in first-seen order."""
    result: List[str] = []
    seen = set()
    for tag in tags:
        canonical = normalize_tag(tag, arch_suffixes)
        if canonical not in seen:
            seen.add(canonical)
            result.append(canonical)
    return result


def parse_arch_suffixes(value: str) -> List[str]:
    """Parse a comma separated arch list such as "amd64,arm64"."""
    return [arch.strip() for arch in value.split(",") if arch.strip()]
