"""Source/target topology of a copy or mirror.

    TYPE_A  one object to one explicit destination key
    TYPE_B  one object into a container, keyed by its base name
    TYPE_C  one tree into a container, keeping relative paths
    TYPE_D  several trees merged under one target
"""

from enum import Enum
from typing import Optional, Sequence

from mcpy.exceptions import InvalidCopyCombinationError, UnsupportedProtocolError
from mcpy.storage import denotes_container, is_recursive


class CopyType(Enum):
    TYPE_A = "A"
    TYPE_B = "B"
    TYPE_C = "C"
    TYPE_D = "D"
    INVALID = "invalid"


def classify(sources: Optional[Sequence[str]], target: Optional[str]) -> CopyType:
    """Decide the copy topology for ``sources`` and ``target``. Performs no I/O."""
    if not sources or target is None or not target.strip():
        return CopyType.INVALID

    if len(sources) > 1:
        if not all(is_recursive(source) for source in sources):
            return CopyType.INVALID
        return CopyType.TYPE_D

    source = sources[0]
    if not source or not source.strip():
        return CopyType.INVALID
    if is_recursive(source):
        return CopyType.TYPE_C

    try:
        container = denotes_container(target)
    except UnsupportedProtocolError:
        return CopyType.INVALID
    return CopyType.TYPE_B if container else CopyType.TYPE_A


def check_copy_syntax(sources: Optional[Sequence[str]], target: Optional[str]) -> CopyType:
    """Like classify, but raise with a reason for invalid combinations.

    Raises:
        InvalidCopyCombinationError: If the URLs cannot form a copy
    """
    copy_type = classify(sources, target)
    if copy_type != CopyType.INVALID:
        return copy_type

    if not sources:
        raise InvalidCopyCombinationError("No source URL given.")
    if target is None or not target.strip():
        raise InvalidCopyCombinationError("Target URL cannot be empty.")
    if any(not s or not s.strip() for s in sources):
        raise InvalidCopyCombinationError("Source URL cannot be empty.")
    if len(sources) > 1:
        plain = [s for s in sources if not is_recursive(s)]
        raise InvalidCopyCombinationError(
            "Multiple sources must all be recursive, got "
            + ", ".join(f"'{s}'" for s in plain)
            + "."
        )
    raise InvalidCopyCombinationError(f"Invalid target URL '{target}'.")
