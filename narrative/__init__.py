"""Narrative system: risk, outcome resolution, prompts, interpretation, calendar."""

from .interpreter import Interpretation, colorize, interpret, is_too_similar, with_retry
from .outcome import Resolution, resolve, success_probability
from .progression import (
    calendar_position,
    close_week,
    dominant_outcome,
    follower_delta,
    match_stats_from_narrative,
)
from .prompts import Prompt, PromptComposer, emotional_context
from .risk import classify_risk, relevant_attribute

__all__ = [
    "Interpretation",
    "Prompt",
    "PromptComposer",
    "Resolution",
    "calendar_position",
    "classify_risk",
    "close_week",
    "colorize",
    "dominant_outcome",
    "emotional_context",
    "follower_delta",
    "interpret",
    "is_too_similar",
    "match_stats_from_narrative",
    "relevant_attribute",
    "resolve",
    "success_probability",
    "with_retry",
]
