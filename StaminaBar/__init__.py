"""StaminaBar package.

Workout session control, live metric collection and the health-store
contract.  Submodules such as :mod:`StaminaBar.metrics` and
:mod:`StaminaBar.common.states` have no side effects and can be imported on
their own.
"""

from .common.states import ActivityKind, SessionState
from .metrics import MetricSnapshot, MetricStore
from .session_controller import WorkoutController

__all__ = ["ActivityKind", "SessionState", "MetricSnapshot", "MetricStore", "WorkoutController"]
