"""Pattern exclusion filter - decides which paths never become events."""

import logging
import os
from functools import partial
from typing import Callable, Iterable, Sequence

from wcmatch import glob

from ..logs import TRACE

logger = logging.getLogger(__name__)

# ``**`` spans directories, ``{a,b}`` expands, a leading ``!`` negates
GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.NEGATE | glob.NEGATEALL


def validate_patterns(patterns: Iterable[str]) -> None:
    """
    Check that every exclude pattern can be compiled.

    Raises:
        ValueError: For an empty, bare ``!`` or otherwise unusable pattern
    """
    for pattern in patterns:
        if not isinstance(pattern, str) or pattern.strip() in ("", "!"):
            raise ValueError(f"Invalid exclude pattern: {pattern!r}")
        try:
            glob.translate(pattern, flags=GLOB_FLAGS)
        except Exception as e:
            raise ValueError(f"Invalid exclude pattern {pattern!r}: {e}") from e


def is_match(path: str, patterns: Iterable[str]) -> bool:
    """
    Check whether a path matches at least one glob pattern.

    Each pattern is evaluated on its own, so ``*.log`` only matches at the
    top level, ``**/*.log`` at any depth, ``**/*.{tmp,log}`` either
    extension, and ``!**/*.md`` every path that is not markdown. A pattern
    the matcher rejects is skipped; the others still apply. An empty
    pattern set never matches.
    """
    for pattern in patterns:
        try:
            if glob.globmatch(path, pattern, flags=GLOB_FLAGS):
                return True
        except (TypeError, ValueError) as e:
            logger.debug(f"Skipping exclude pattern {pattern!r}: {e}")
    return False


def should_exclude(path: str, patterns: Sequence[str], log=None) -> bool:
    """
    Decide whether ``path`` should be suppressed.

    Every call is evaluated independently against the given patterns; no
    result is cached. Input the matcher cannot handle evaluates to False.

    Args:
        path: Path as reported by the event source
        patterns: Exclude glob patterns
        log: Logger receiving the trace diagnostics (module logger if None)

    Returns:
        True if the path matches any pattern
    """
    log = log or logger
    log.log(TRACE, f"Checking if {path} should be ignored.")

    try:
        matched = bool(path) and is_match(os.fspath(path), patterns)
    except TypeError as e:
        log.debug(f"Could not match {path!r} against exclude patterns: {e}")
        matched = False

    if matched:
        log.log(TRACE, f"{path} matches exclude pattern.")
        return True

    log.log(TRACE, f"{path} does not match the exclude pattern.")
    return False


def build_exclusion_predicate(
    patterns: Sequence[str],
    log=None,
) -> Callable[[str], bool]:
    """Bind a resolved pattern set into the predicate used by event sources."""
    return partial(should_exclude, patterns=tuple(patterns), log=log)
