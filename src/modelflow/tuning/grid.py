"""
Hyperparameter grid construction.
"""

import itertools
from typing import Any

import numpy as np


def expand_grid(params: dict[str, list[Any]]) -> list[dict[str, Any]]:
    """
    Cartesian product of parameter values.

    Combinations are enumerated in declared key order with the first key
    varying fastest, matching R's expand.grid.

    Raises:
        ValueError: If a parameter has no candidate values.
    """
    empty = [name for name, values in params.items() if len(values) == 0]
    if empty:
        msg = f"Parameters without candidate values: {empty}"
        raise ValueError(msg)

    names = list(params)
    reversed_values = [params[name] for name in reversed(names)]
    return [
        dict(zip(names, reversed(combo), strict=True))
        for combo in itertools.product(*reversed_values)
    ]


def regular_grid(
    ranges: dict[str, tuple[float, float]],
    levels: int | dict[str, int] = 3,
    *,
    log10: tuple[str, ...] = (),
    integer: tuple[str, ...] = (),
) -> list[dict[str, Any]]:
    """
    Evenly spaced candidates over each parameter range.

    Args:
        ranges: Parameter -> (low, high). For names in ``log10`` the bounds
            are exponents (e.g. (-10, -1) spans 1e-10 .. 0.1).
        levels: Candidates per parameter, either shared or per name.
        log10: Parameters spaced on a log10 scale.
        integer: Parameters rounded to integers (duplicates removed).

    Returns:
        List of parameter combinations (see expand_grid for ordering).
    """
    values: dict[str, list[Any]] = {}
    for name, (low, high) in ranges.items():
        n = levels[name] if isinstance(levels, dict) else levels
        if n < 1:
            msg = f"levels for '{name}' must be >= 1, got {n}"
            raise ValueError(msg)
        points = np.linspace(low, high, n)
        if name in log10:
            points = 10.0**points
        if name in integer:
            values[name] = list(dict.fromkeys(int(round(p)) for p in points))
        else:
            values[name] = [float(p) for p in points]
    return expand_grid(values)
