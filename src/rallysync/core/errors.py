"""Error taxonomy for RallySync.

Calculation errors are raised straight to the caller with a message that can
be shown to players as-is. Render and transport failures are raised by the
voice layer and isolated per timer by the orchestrator.
"""


class RallySyncError(Exception):
    """Base class for all RallySync errors."""


class InvalidInputError(RallySyncError, ValueError):
    """Raised when caller-supplied values fail boundary validation."""


class EmptyInputError(RallySyncError):
    """Raised when a calculation is requested with no actors."""


class GroupNotFoundError(RallySyncError):
    """Raised when an attack group filter matches no actors."""

    def __init__(self, attack_group: int):
        self.attack_group = attack_group
        super().__init__(f"No players found in attack group {attack_group}")


class TimerNotActiveError(RallySyncError):
    """Raised when a deadline schedule is computed against a timer that is not running."""

    def __init__(self, timer_name: str, message: str = ""):
        self.timer_name = timer_name
        super().__init__(message or f"Rally {timer_name} has not been started yet")


class NoOutputSinkError(RallySyncError):
    """Raised when a countdown is scheduled on a context without a connected sink."""


class InvalidStateError(RallySyncError):
    """Raised when a session transition is requested from the wrong state."""


class RenderFailure(RallySyncError):
    """Raised when an announcement could not be rendered."""

    def __init__(self, text: str, message: str):
        self.text = text
        super().__init__(f"Failed to render '{text}': {message}")


class TransportFailure(RallySyncError):
    """Raised when a rendered announcement could not be delivered to the sink."""

    def __init__(self, context_id: str, message: str):
        self.context_id = context_id
        super().__init__(f"Delivery to {context_id} failed: {message}")
