# tabletop_engine/game/rules/hooks.py
"""
Typed publish/subscribe hooks for the check pipeline and the effect processor.

HookBus holds long-lived listeners per HookEvent. HookRegistry holds one-shot
callbacks keyed by check id that are discarded once run. Both order callbacks by
descending priority; equal priorities keep registration order.
"""
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from tabletop_engine.config import HookErrorMode
from tabletop_engine.exceptions import HookError
from tabletop_engine.game.models.check_models import Check, CheckResult, ItemData, RenderSection
from tabletop_engine.game.models.effect_models import EffectData, EffectInstance, ApplyEffectOptions

logger = logging.getLogger(__name__)

HookCallback = Callable[[Any], Union[Any, Awaitable[Any]]]


class HookEvent(str, Enum):
    PREPARE_CHECK = "prepareCheck"
    PROCESS_CHECK = "processCheck"
    RENDER_CHECK = "renderCheck"
    PRE_PROCESS_EFFECT = "preProcessEffect"
    PRE_CREATE_EFFECT = "preCreateEffect"
    POST_CREATE_EFFECT = "postCreateEffect"


@dataclass
class PrepareCheckPayload:
    check: Check
    actor: Any
    item: Optional[ItemData] = None
    # register(callback, priority=0) queues a one-shot callback for this check only
    register: Optional[Callable[..., None]] = None


@dataclass
class ProcessCheckPayload:
    result: CheckResult
    actor: Any
    item: Optional[ItemData] = None


@dataclass
class RenderCheckPayload:
    result: CheckResult
    actor: Any
    item: Optional[ItemData] = None
    sections: List[RenderSection] = field(default_factory=list)
    flags: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EffectHookPayload:
    actor: Any
    effect_data: EffectData
    options: ApplyEffectOptions
    prevented: bool = False


@dataclass
class PostCreateEffectPayload:
    actor: Any
    effect: EffectInstance
    options: ApplyEffectOptions


PAYLOAD_TYPES: Dict[HookEvent, type] = {
    HookEvent.PREPARE_CHECK: PrepareCheckPayload,
    HookEvent.PROCESS_CHECK: ProcessCheckPayload,
    HookEvent.RENDER_CHECK: RenderCheckPayload,
    HookEvent.PRE_PROCESS_EFFECT: EffectHookPayload,
    HookEvent.PRE_CREATE_EFFECT: EffectHookPayload,
    HookEvent.POST_CREATE_EFFECT: PostCreateEffectPayload,
}


@dataclass
class _Registration:
    callback: HookCallback
    priority: int = 0


def _callback_name(callback: HookCallback) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


async def invoke_callback(hook_key: str, callback: HookCallback, payload: Any, error_mode: HookErrorMode) -> Any:
    """
    Runs one callback, awaiting it if it is a coroutine.

    In lenient mode a failing callback is logged with its traceback and None is
    returned. In strict mode the failure is re-raised as HookError.
    """
    try:
        outcome = callback(payload)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome
    except Exception as e:
        name = _callback_name(callback)
        if error_mode == HookErrorMode.STRICT:
            raise HookError(hook_key, name, e) from e
        logger.exception(f"Hooks: Callback '{name}' for '{hook_key}' failed; continuing.")
        return None


def _insert_sorted(registrations: List[_Registration], registration: _Registration) -> None:
    registrations.append(registration)
    # list.sort is stable, so equal priorities keep insertion order
    registrations.sort(key=lambda r: r.priority, reverse=True)


class HookBus:
    """Long-lived listeners per HookEvent."""

    def __init__(self, error_mode: HookErrorMode = HookErrorMode.LENIENT):
        self.error_mode = error_mode
        self._listeners: Dict[HookEvent, List[_Registration]] = {}

    def on(self, event: HookEvent, callback: HookCallback, priority: int = 0) -> Callable[[], None]:
        """Subscribes a callback. Returns a function that unsubscribes it."""
        event = HookEvent(event)
        registration = _Registration(callback=callback, priority=priority)
        _insert_sorted(self._listeners.setdefault(event, []), registration)
        logger.debug(f"HookBus: Registered '{_callback_name(callback)}' on '{event.value}' (priority {priority}).")

        def unsubscribe() -> None:
            listeners = self._listeners.get(event, [])
            if registration in listeners:
                listeners.remove(registration)

        return unsubscribe

    def off(self, event: HookEvent, callback: HookCallback) -> bool:
        listeners = self._listeners.get(HookEvent(event), [])
        for registration in listeners:
            if registration.callback is callback:
                listeners.remove(registration)
                return True
        return False

    def listener_count(self, event: HookEvent) -> int:
        return len(self._listeners.get(HookEvent(event), []))

    def _check_payload(self, event: HookEvent, payload: Any) -> None:
        expected = PAYLOAD_TYPES[event]
        if not isinstance(payload, expected):
            raise TypeError(f"Hook '{event.value}' expects {expected.__name__}, got {type(payload).__name__}.")

    async def call_all(self, event: HookEvent, payload: Any) -> None:
        """Runs every listener in order. Return values are ignored."""
        event = HookEvent(event)
        self._check_payload(event, payload)
        for registration in list(self._listeners.get(event, [])):
            await invoke_callback(event.value, registration.callback, payload, self.error_mode)

    async def call(self, event: HookEvent, payload: Any) -> bool:
        """
        Runs listeners in order until one vetoes.

        A listener vetoes by returning False or by setting ``payload.prevented``.
        Returns False if vetoed, True otherwise.
        """
        event = HookEvent(event)
        self._check_payload(event, payload)
        for registration in list(self._listeners.get(event, [])):
            outcome = await invoke_callback(event.value, registration.callback, payload, self.error_mode)
            if outcome is False or getattr(payload, "prevented", False):
                if hasattr(payload, "prevented"):
                    payload.prevented = True
                logger.info(f"HookBus: '{event.value}' prevented by '{_callback_name(registration.callback)}'.")
                return False
        return True


class HookRegistry:
    """
    One-shot callbacks keyed by an id (a check id). run_all discards the key's
    callbacks after running them.
    """

    def __init__(self, error_mode: HookErrorMode = HookErrorMode.LENIENT):
        self.error_mode = error_mode
        self._callbacks: Dict[str, List[_Registration]] = {}

    def register(self, key: str, callback: HookCallback, priority: int = 0) -> None:
        _insert_sorted(self._callbacks.setdefault(key, []), _Registration(callback=callback, priority=priority))

    def pending(self, key: str) -> int:
        return len(self._callbacks.get(key, []))

    def discard(self, key: str) -> None:
        """Drops any callbacks still queued for key without running them."""
        self._callbacks.pop(key, None)

    def __len__(self) -> int:
        return len(self._callbacks)

    async def run_all(self, key: str, payload: Any) -> None:
        registrations = self._callbacks.pop(key, [])
        for registration in registrations:
            await invoke_callback(key, registration.callback, payload, self.error_mode)
