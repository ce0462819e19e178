"""Workout routes.

JSON view of the live workout: the session state, the metric snapshot and
the stamina bar band for the current heart rate, plus the actions a wearer
triggers with taps and long presses on the watch.  Requests are forwarded to
the :class:`~StaminaBar.runtime.WorkoutRuntime` stored on
``current_app.extensions["workout_runtime"]``.
"""

from __future__ import annotations

import logging
import math

from flask import Blueprint, current_app, jsonify, request

from StaminaBar.common.states import ActivityKind, list_activities
from zone_mapper import describe_zone

logger = logging.getLogger(__name__)

workout_bp = Blueprint("workout", __name__)

ACTIONS = {
    "pause": "pause",
    "resume": "resume",
    "toggle": "toggle_pause",
    "end": "end_workout",
    "dismiss": "dismiss_summary",
    "authorize": "request_authorization",
}


def _runtime():
    return current_app.extensions["workout_runtime"]


def _error(message: str, status: int = 400):
    return jsonify({"error": message}), status


@workout_bp.get("/status")
def workout_status():
    return jsonify(_runtime().status())


@workout_bp.get("/activities")
def activities():
    return jsonify(list_activities())


@workout_bp.post("/start")
def start_workout():
    payload = request.get_json(silent=True) or {}
    name = payload.get("activity") or request.form.get("activity")
    if not name:
        return _error("activity is required")
    try:
        activity = ActivityKind.parse(name)
    except ValueError as exc:
        return _error(str(exc))
    logger.info("Start requested for %s", activity.value)
    return jsonify(_runtime().start_workout(activity))


@workout_bp.post("/<action>")
def workout_action(action: str):
    method = ACTIONS.get(action)
    if method is None:
        return _error(f"unknown action: {action}", 404)
    return jsonify(_runtime().action(method))


@workout_bp.get("/zone/<bpm>")
def zone_for(bpm: str):
    try:
        value = float(bpm)
    except ValueError:
        return _error(f"invalid heart rate: {bpm}")
    if not math.isfinite(value) or value < 0:
        return _error(f"invalid heart rate: {bpm}")
    return jsonify(describe_zone(value))


__all__ = ["workout_bp"]
