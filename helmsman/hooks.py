"""
Helmsman hook pipeline: before/after/on-error hooks around one invocation.

States
    IDLE → RUNNING_BEFORE → INVOKING → RUNNING_AFTER  → DONE
                       ↘            ↘ RUNNING_ON_ERROR → DONE

Ordering
- Hooks are collected along the command path and the action:
  • BEFORE: root command first, inner commands next, the action last;
  • AFTER and ON_ERROR: the action first, then commands inner to outer.
- Each phase is then stably sorted by `order` (lower first, ties keep the
  collection order).

Failure semantics
- A failing BEFORE hook aborts the phase, the action is never invoked and
  ON_ERROR runs with a HookError.
- A failing action runs ON_ERROR with an ActionFault.
- A failing AFTER hook stops the AFTER phase and ON_ERROR runs with its
  HookError.
- ON_ERROR hooks all run; one that fails is logged and attached to the fault
  as a note. A truthy return value marks the fault handled.
- An unhandled fault is re-raised once ON_ERROR is over.

Cancellation
- The Cancellation is checked before every hook and before the invocation.
  Once observed the rest of the phase is skipped and DispatchCancelled is
  raised. ON_ERROR does not run for cancellations.
"""
import enum
import logging
import time
from dataclasses import dataclass, field

from .faults import ActionFault, DispatchCancelled, HookError
from .registry import Phase
from .utils import Unset, settle

logger = logging.getLogger(__name__)


class Cancellation:
    """
    Cooperative cancellation signal with an optional deadline.

    - cancel(reason): request cancellation (idempotent, the first reason stays).
    - cancelled: True once cancel() was called or the deadline has passed.
    - raise_if_cancelled(): raise DispatchCancelled when cancelled.
    - Cancellation.after(seconds): a signal that trips on its own after a timeout.
    """

    def __init__(self, deadline=None):
        self._deadline = deadline
        self._reason = None
        self._cancelled = False

    @classmethod
    def after(cls, seconds, /):
        if seconds is None:
            return cls()
        return cls(time.monotonic() + seconds)

    @property
    def deadline(self):
        return self._deadline

    @property
    def cancelled(self):
        if not self._cancelled and self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("timed out")
        return self._cancelled

    @property
    def reason(self):
        return self._reason if self.cancelled else None

    def cancel(self, reason=None):
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason or "cancelled"

    def raise_if_cancelled(self):
        if self.cancelled:
            raise DispatchCancelled(
                f"dispatch {self._reason}",
                reason=self._reason,
            )

    def __repr__(self):
        return f"Cancellation(cancelled={self.cancelled!r}, reason={self._reason!r})"


class PipelineState(enum.Enum):
    IDLE = "idle"
    RUNNING_BEFORE = "running-before"
    INVOKING = "invoking"
    RUNNING_AFTER = "running-after"
    RUNNING_ON_ERROR = "running-on-error"
    DONE = "done"


@dataclass(slots=True)
class HookContext:
    """
    What every hook receives as its first argument.

    - command: command path names, root first.
    - action: the action name.
    - argv: the raw arguments of the dispatch.
    - arguments: the BoundArguments of the action.
    - data: a dict shared by every hook and the dispatch (free for hook use).
    - cancellation: the dispatch Cancellation.
    - phase / result / fault: where the pipeline stands when the hook runs.
    """
    command: tuple
    action: str
    argv: tuple = ()
    arguments: object = None
    data: dict = field(default_factory=dict)
    cancellation: Cancellation = field(default_factory=Cancellation)
    phase: Phase | None = None
    result: object = Unset
    fault: BaseException | None = None

    def cancel(self, reason=None):
        """
        Request cancellation; the next hook (or the invocation) will not run.
        """
        self.cancellation.cancel(reason)


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    """
    Result of a pipeline run that did not raise.

    - result: the action's return value (Unset when it never completed).
    - completed: the action returned normally.
    - fault: the handled fault, or None on a clean run.
    - failures: ON_ERROR hook failures that were recorded.
    """
    result: object = Unset
    completed: bool = False
    fault: BaseException | None = None
    failures: tuple = ()

    @property
    def handled(self):
        return self.fault is not None


def collect(path, action, /):
    """
    Gather and order the HookBindings of a command path and its action.

    Returns a dict Phase → tuple of HookBindings in execution order.
    """
    outer = [binding for command in path for binding in command.hooks]
    inner = [binding for command in reversed(path) for binding in command.hooks]

    phases = {
        Phase.BEFORE: [*outer, *action.hooks],
        Phase.AFTER: [*action.hooks, *inner],
        Phase.ON_ERROR: [*action.hooks, *inner],
    }
    return {
        phase: tuple(sorted(
            (binding for binding in bindings if binding.phase is phase),
            key=lambda binding: binding.order,
        ))
        for phase, bindings in phases.items()
    }


class HookPipeline:
    """
    Runs ordered hooks around one invocation (see the module docstring).

    - HookPipeline(hooks): `hooks` maps Phase → ordered HookBindings, as
      returned by collect().
    - await pipeline.run(context, invoke): `invoke` is a zero-argument
      callable returning the action result (or an awaitable of it).
    - pipeline.state / pipeline.transitions: the current state and every
      state entered so far, for tracing.
    """

    def __init__(self, hooks):
        self.hooks = {phase: tuple(hooks.get(phase, ())) for phase in Phase}
        self.state = PipelineState.IDLE
        self.transitions = [PipelineState.IDLE]

    @classmethod
    def of(cls, path, action, /):
        return cls(collect(path, action))

    def _enter(self, state):
        logger.debug("pipeline %s → %s", self.state.value, state.value)
        self.state = state
        self.transitions.append(state)

    async def _call(self, binding, context, *arguments):
        context.cancellation.raise_if_cancelled()
        logger.debug("running %s hook %s", binding.phase.value, binding.name)
        try:
            return await settle(binding.hook(context, *arguments))
        except DispatchCancelled:
            raise
        except Exception as error:
            raise HookError(
                f"{binding.phase.value} hook {binding.name!r} failed: {error}",
                phase=binding.phase,
                hook=binding.name,
                cause=error,
            ) from error

    async def _recover(self, context, fault):
        self._enter(PipelineState.RUNNING_ON_ERROR)
        context.phase, context.fault = Phase.ON_ERROR, fault

        handled = False
        failures = []
        for binding in self.hooks[Phase.ON_ERROR]:
            try:
                if await self._call(binding, context, fault):
                    handled = True
            except HookError as failure:
                logger.warning("on-error hook %s failed: %r", binding.name, failure.cause)
                fault.add_note(f"on-error hook {binding.name!r} also failed: {failure.cause!r}")
                failures.append(failure)
            except DispatchCancelled as cancelled:
                self._enter(PipelineState.DONE)
                raise cancelled from fault

        self._enter(PipelineState.DONE)
        if not handled:
            raise fault
        logger.debug("fault handled by an on-error hook: %s", fault.message)
        return tuple(failures)

    async def run(self, context, invoke):
        """
        Run the pipeline once.

        Returns
        - PipelineOutcome (clean run, or a fault handled by an ON_ERROR hook).

        Raises
        - HookError / ActionFault when unhandled.
        - DispatchCancelled when cancellation was observed.
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError("a hook pipeline runs only once")

        self._enter(PipelineState.RUNNING_BEFORE)
        context.phase = Phase.BEFORE
        try:
            for binding in self.hooks[Phase.BEFORE]:
                await self._call(binding, context)
        except HookError as fault:
            failures = await self._recover(context, fault)
            return PipelineOutcome(fault=fault, failures=failures)
        except DispatchCancelled:
            self._enter(PipelineState.DONE)
            raise

        self._enter(PipelineState.INVOKING)
        context.phase = None
        try:
            context.cancellation.raise_if_cancelled()
            result = await settle(invoke())
        except DispatchCancelled:
            self._enter(PipelineState.DONE)
            raise
        except Exception as error:
            fault = ActionFault(
                f"action {context.action!r} failed: {error}",
                action=context.action,
                cause=error,
            )
            fault.__cause__ = error
            failures = await self._recover(context, fault)
            return PipelineOutcome(fault=fault, failures=failures)

        self._enter(PipelineState.RUNNING_AFTER)
        context.phase, context.result = Phase.AFTER, result
        try:
            for binding in self.hooks[Phase.AFTER]:
                await self._call(binding, context, result)
        except HookError as fault:
            failures = await self._recover(context, fault)
            return PipelineOutcome(result, True, fault, failures)
        except DispatchCancelled:
            self._enter(PipelineState.DONE)
            raise

        self._enter(PipelineState.DONE)
        return PipelineOutcome(result, True)


__all__ = (
    "Cancellation",
    "PipelineState",
    "HookContext",
    "PipelineOutcome",
    "HookPipeline",
    "collect",
)
