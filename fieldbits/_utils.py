import linecache
import re


__all__ = ["final", "get_linter_options", "warning_enabled"]


def final(cls):
    """Forbid subclassing ``cls``."""
    def __init_subclass__(subcls, **kwargs):
        raise TypeError(f"Subclassing {cls.__module__}.{cls.__qualname__} is not supported")
    cls.__init_subclass__ = classmethod(__init_subclass__)
    return cls


_LINTER_COMMENT = re.compile(r"#\s*fieldbits:\s*(\w+=\w+(?:\s*,\s*\w+=\w+)*)\s*$")


def get_linter_options(filename):
    """Options set by a ``# fieldbits: Name=value, ...`` comment on the first line of a file."""
    match = _LINTER_COMMENT.match(linecache.getline(filename, 1))
    if match is None:
        return {}
    return dict(option.strip().split("=") for option in match.group(1).split(","))


def warning_enabled(filename, category):
    """Whether warnings of ``category`` issued for code in ``filename`` should be shown.

    A warning is disabled with ``<Category>=no`` (or ``0``, or ``disable``) in the linter comment.
    """
    return get_linter_options(filename).get(category.__qualname__) not in ("0", "no", "disable")
