from pathlib import Path


def clamp(value: int, min: int, max: int) -> int:
    return sorted((min, value, max))[1]


def split_path(name: str, levels: int) -> Path:
    """
    Spread `name` over `levels` single character subdirectories.

    E.g., `split_path('abcdef', 2)` is `a/b/cdef`. `levels` is clamped so that
    at least one character is left for the file name itself.
    """
    levels = clamp(levels, 0, len(name) - 1)
    subdirectories = list(name[:levels]) + [name[levels:]]
    return Path(*subdirectories)
