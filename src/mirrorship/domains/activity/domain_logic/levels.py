"""Heatmap intensity levels: count -> 0..4.

``level = min(max_level, count // divisor + 1)``, with ``count == 0`` mapped to
level 0 when ``zero_floor`` is set. Sources differ only in their
``LevelConfig``; the thresholds live in ``sources.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass

MAX_LEVEL = 4


@dataclass(frozen=True)
class LevelConfig:
    """Thresholds for one source."""

    divisor: int
    max_level: int = MAX_LEVEL
    zero_floor: bool = True

    def __post_init__(self) -> None:
        if self.divisor < 1:
            raise ValueError(f"divisor must be >= 1, got {self.divisor}")
        if not 1 <= self.max_level <= MAX_LEVEL:
            raise ValueError(f"max_level must be in 1..{MAX_LEVEL}, got {self.max_level}")


GITHUB_LEVELS = LevelConfig(divisor=4)
LEETCODE_LEVELS = LevelConfig(divisor=2)
YOUTUBE_LEVELS = LevelConfig(divisor=2, zero_floor=False)


def map_level(count: int, config: LevelConfig = GITHUB_LEVELS) -> int:
    """Map a day's count to a heatmap level.

    Monotonic non-decreasing in ``count`` and always within ``0..max_level``.

    Raises:
        ValueError: If ``count`` is negative.
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if count == 0 and config.zero_floor:
        return 0
    return min(config.max_level, count // config.divisor + 1)
