# tabletop_engine/exceptions.py
from typing import Optional


class EngineError(Exception):
    """Base class for engine-specific errors."""
    pass


class ValidationError(EngineError):
    """Raised when a Check, CheckResult or effect payload is malformed."""
    pass


class FormulaError(ValidationError):
    """Raised when an arithmetic formula contains anything outside the whitelist."""
    pass


class ConfigurationError(EngineError):
    """Raised when the settings file cannot be read or decoded."""
    pass


class CapacityError(EngineError):
    """Raised when a stackable effect is already at its maximum stack count."""

    def __init__(self, stack_id: str, max_stacks: int, current_stacks: int, effect_name: Optional[str] = None):
        self.stack_id = stack_id
        self.max_stacks = max_stacks
        self.current_stacks = current_stacks
        self.effect_name = effect_name
        label = effect_name or stack_id
        super().__init__(f"Cannot add more stacks of {label} (max: {max_stacks})")


class HookError(EngineError):
    """Wraps an exception raised by a registered hook callback."""

    def __init__(self, hook_key: str, callback_name: str, original: BaseException):
        self.hook_key = hook_key
        self.callback_name = callback_name
        self.original = original
        super().__init__(f"Hook '{hook_key}' callback '{callback_name}' failed: {original}")


class CollaboratorError(EngineError):
    """Raised when the die roller or the document store rejects an operation."""
    pass
