"""Motivational message selection from today's count and current streak."""

from __future__ import annotations

from mirrorship.domains.activity.domain_logic.models import Motivation

DEFAULT_DAILY_GOAL = 15

_ACTION_START = "Start practicing"
_ACTION_CONTINUE = "Keep going"
_ACTION_REVIEW = "Review progress"


def select_motivation(
    todays_count: int,
    current_streak: int,
    daily_goal: int = DEFAULT_DAILY_GOAL,
) -> Motivation:
    """Pick the urgency tier for today's progress toward ``daily_goal``.

    Tiers (goal 15 shown in brackets):
        critical  nothing done today                       [0]
        high      under a third of the goal                [1-4]
        medium    under two thirds of the goal             [5-9]
        low       short of the goal                        [10-14]
        success   goal met                                 [15+]

    Raises:
        ValueError: If ``daily_goal < 1`` or a count is negative.
    """
    if daily_goal < 1:
        raise ValueError(f"daily_goal must be >= 1, got {daily_goal}")
    if todays_count < 0 or current_streak < 0:
        raise ValueError("todays_count and current_streak must be non-negative")

    remaining = max(daily_goal - todays_count, 0)

    if todays_count == 0:
        if current_streak > 0:
            message = f"Your {current_streak}-day streak is at risk"
        else:
            message = "Nothing logged today"
        return Motivation(
            message=message,
            description=f"Solve at least one problem today. Goal: {daily_goal}.",
            action=_ACTION_START,
            urgency="critical",
        )

    streak_note = f" ({current_streak}-day streak)" if current_streak > 0 else ""

    if todays_count * 3 < daily_goal:
        return Motivation(
            message=f"Warming up{streak_note}",
            description=f"{todays_count} done, {remaining} to go for today's goal.",
            action=_ACTION_CONTINUE,
            urgency="high",
        )
    if todays_count * 3 < daily_goal * 2:
        return Motivation(
            message=f"Halfway there{streak_note}",
            description=f"{todays_count} done, {remaining} to go for today's goal.",
            action=_ACTION_CONTINUE,
            urgency="medium",
        )
    if todays_count < daily_goal:
        return Motivation(
            message=f"Almost there{streak_note}",
            description=f"Only {remaining} left to hit {daily_goal} today.",
            action=_ACTION_CONTINUE,
            urgency="low",
        )
    return Motivation(
        message=f"Daily goal reached{streak_note}",
        description=f"{todays_count} of {daily_goal} done. Great work.",
        action=_ACTION_REVIEW,
        urgency="success",
    )
