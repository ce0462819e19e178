"""Health data kinds, their units and the sample record."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class DataKind(str, Enum):
    """Data types known to the health-data service."""

    HEART_RATE = "heartRate"
    HEART_RATE_VARIABILITY_SDNN = "heartRateVariabilitySDNN"
    ACTIVE_ENERGY_BURNED = "activeEnergyBurned"
    BASAL_ENERGY_BURNED = "basalEnergyBurned"
    DISTANCE_WALKING_RUNNING = "distanceWalkingRunning"
    DISTANCE_CYCLING = "distanceCycling"
    STEP_COUNT = "stepCount"
    VO2_MAX = "vo2Max"
    WORKOUT = "workout"
    DATE_OF_BIRTH = "dateOfBirth"
    ACTIVITY_SUMMARY = "activitySummary"


# Values are stored and returned in these units.
UNITS: dict[DataKind, str] = {
    DataKind.HEART_RATE: "count/min",
    DataKind.HEART_RATE_VARIABILITY_SDNN: "ms",
    DataKind.ACTIVE_ENERGY_BURNED: "kcal",
    DataKind.BASAL_ENERGY_BURNED: "kcal",
    DataKind.DISTANCE_WALKING_RUNNING: "mi",
    DataKind.DISTANCE_CYCLING: "mi",
    DataKind.STEP_COUNT: "count",
    DataKind.VO2_MAX: "ml/kg*min",
}

DISTANCE_KINDS = frozenset({DataKind.DISTANCE_WALKING_RUNNING, DataKind.DISTANCE_CYCLING})


@dataclass(frozen=True)
class Sample:
    """A single quantity sample covering ``[start, end]``."""

    kind: DataKind
    value: float
    start: datetime
    end: datetime


__all__ = ["DataKind", "UNITS", "DISTANCE_KINDS", "Sample"]
