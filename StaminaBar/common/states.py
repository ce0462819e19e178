"""Workout state enumerations and helpers.

This module centralises the state values used throughout the application.
:class:`SessionState` is the controller's own lifecycle, while
:class:`PlatformState` mirrors the states the health-data service reports
for a live session.  :class:`ActivityKind` enumerates the selectable
workouts together with the label and icon the start screen shows.
"""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle of a workout as seen by the session controller."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    PAUSED = "paused"
    ENDING = "ending"
    ENDED = "ended"


# States in which a session handle is held and counts as active.
ACTIVE_STATES = frozenset({SessionState.STARTING, SessionState.RUNNING, SessionState.PAUSED})


class PlatformState(str, Enum):
    """States reported by the health-data service for a live session."""

    NOT_STARTED = "notStarted"
    PREPARED = "prepared"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    ENDED = "ended"


class ActivityKind(str, Enum):
    """Selectable workout types."""

    OTHER = "other"
    WALKING = "walking"
    YOGA = "yoga"
    RUNNING = "running"
    CYCLING = "cycling"
    HIKING = "hiking"
    TRADITIONAL_STRENGTH_TRAINING = "traditionalStrengthTraining"
    HIGH_INTENSITY_INTERVAL_TRAINING = "highIntensityIntervalTraining"

    @property
    def label(self) -> str:
        return ACTIVITY_LABELS[self]

    @property
    def image_name(self) -> str:
        return ACTIVITY_IMAGES[self]

    @classmethod
    def parse(cls, value: str) -> "ActivityKind":
        """Return the kind for ``value`` matching either the value or member name.

        Raises :class:`ValueError` for unknown names.
        """

        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for kind in cls:
            if text == kind.value or text.upper() == kind.name:
                return kind
        raise ValueError(f"Unknown activity: {value!r}")


ACTIVITY_LABELS: dict[ActivityKind, str] = {
    ActivityKind.OTHER: "Stamina Bar",
    ActivityKind.WALKING: "Walk",
    ActivityKind.YOGA: "Yoga",
    ActivityKind.RUNNING: "Run",
    ActivityKind.CYCLING: "Bike",
    ActivityKind.HIKING: "Hike",
    ActivityKind.TRADITIONAL_STRENGTH_TRAINING: "Weights",
    ActivityKind.HIGH_INTENSITY_INTERVAL_TRAINING: "HIIT",
}

ACTIVITY_IMAGES: dict[ActivityKind, str] = {
    ActivityKind.OTHER: "custom.StaminaBar",
    ActivityKind.WALKING: "custom.walk",
    ActivityKind.YOGA: "custom.yoga",
    ActivityKind.RUNNING: "custom.run",
    ActivityKind.CYCLING: "custom.bike",
    ActivityKind.HIKING: "custom.hike",
    ActivityKind.TRADITIONAL_STRENGTH_TRAINING: "custom.strengthTraining",
    ActivityKind.HIGH_INTENSITY_INTERVAL_TRAINING: "custom.hiit",
}


def list_activities() -> list[dict[str, str]]:
    """Return the start screen's activity list in display order."""

    return [{"activity": kind.value, "label": kind.label, "image": kind.image_name} for kind in ActivityKind]


__all__ = [
    "SessionState",
    "ACTIVE_STATES",
    "PlatformState",
    "ActivityKind",
    "ACTIVITY_LABELS",
    "ACTIVITY_IMAGES",
    "list_activities",
]
