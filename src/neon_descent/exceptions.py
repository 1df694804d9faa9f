class NeonDescentError(Exception):
    """Base exception for the Neon Descent project."""


class ConfigError(NeonDescentError):
    """Raised when balance configuration cannot be loaded or validated."""


class IllegalActionError(NeonDescentError):
    """Raised when a player action cannot be performed in the current state.

    The run state machine catches these and leaves the state untouched.
    """


class InvalidStateError(IllegalActionError):
    """Raised when an action arrives while the run is in the wrong status."""


class InsufficientCreditsError(IllegalActionError):
    """Raised when the player cannot afford a purchase."""


class StackLimitError(IllegalActionError):
    """Raised when buying a module that is already at its stack cap."""


class ContractCapacityError(IllegalActionError):
    """Raised when signing a contract while the active slots are full."""


class UnknownOptionError(IllegalActionError):
    """Raised when a choice, node index, or item id does not exist."""


class AdvisorError(NeonDescentError):
    """Raised when the tactical advisor request fails."""
