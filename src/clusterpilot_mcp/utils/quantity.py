# ABOUTME: Kubernetes resource quantity parsing and human-readable formatting
# ABOUTME: Converts "250m", "512Mi", "2G" into floats and back into display strings

"""
Kubernetes resource quantities.

The API reports CPU and memory as strings with a suffix:

    cpu:    "2", "250m", "1500000n"
    memory: "512Mi", "16Gi", "2G", "129300Ki"

Binary suffixes (Ki, Mi, ...) are powers of 1024, decimal suffixes (k, M, ...)
are powers of 1000, and n/u/m are fractions.
"""

from __future__ import annotations

import re

_SUFFIXES: dict[str, float] = {
    "n": 1e-9,
    "u": 1e-6,
    "m": 1e-3,
    "": 1.0,
    "k": 1e3,
    "M": 1e6,
    "G": 1e9,
    "T": 1e12,
    "P": 1e15,
    "E": 1e18,
    "Ki": 2.0**10,
    "Mi": 2.0**20,
    "Gi": 2.0**30,
    "Ti": 2.0**40,
    "Pi": 2.0**50,
    "Ei": 2.0**60,
}

_QUANTITY = re.compile(r"^([+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)([A-Za-z]*)$")

_BYTE_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]


def parse_quantity(value: str | int | float | None) -> float:
    """
    Parse a quantity string into a float in base units.

    Args:
        value: Quantity such as "250m" or "512Mi". None and "" count as zero.

    Returns:
        Cores for CPU quantities, bytes for memory quantities.

    Raises:
        ValueError: The string is not a valid quantity.

    Example:
        >>> parse_quantity("250m")
        0.25
        >>> parse_quantity("1Ki")
        1024.0
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    match = _QUANTITY.match(value.strip())
    if not match:
        raise ValueError(f"Invalid quantity: {value!r}")
    number, suffix = match.groups()
    if suffix not in _SUFFIXES:
        raise ValueError(f"Unknown quantity suffix {suffix!r} in {value!r}")
    return float(number) * _SUFFIXES[suffix]


def format_bytes(num_bytes: float) -> str:
    """
    Format a byte count using 1024-based units.

    >>> format_bytes(0)
    '0 B'
    >>> format_bytes(1536)
    '1.50 KB'
    """
    if num_bytes <= 0:
        return "0 B"
    size = float(num_bytes)
    index = 0
    while size >= 1024 and index < len(_BYTE_UNITS) - 1:
        size /= 1024
        index += 1
    return f"{size:.2f} {_BYTE_UNITS[index]}"


def format_cores(cores: float) -> str:
    return f"{cores:.2f} cores"


def percentage(used: float, total: float) -> float:
    """Utilization in percent, 0.0 when the total is unknown."""
    if total <= 0:
        return 0.0
    return round(used / total * 100, 1)
