"""
Helmsman dispatcher: argv → exit code.

Orchestration
    tokenize → detach global options → resolve → bind → hook pipeline +
    invocation → exit code

Outcome mapping
- ResolutionError                → COMMAND_NOT_FOUND (127)
- BindingError                   → USAGE_ERROR (64), with a usage line
- unhandled HookError/ActionFault → RUNTIME_ERROR (1), unless an exception
  type of the cause is mapped in `exit_codes` (action first, then commands
  inner to outer) or the cause is itself a CommandException
- DispatchCancelled, asyncio.CancelledError, KeyboardInterrupt → CANCELLED (130)
- success (or a fault handled by an ON_ERROR hook) → OK, or the action's
  result when it is an int (and not a bool)

'--help' / '-h' anywhere before '--' renders help and returns OK, unless the
selected action declares an option with that name itself.

Dependency resolution
- An action with an `owner` gets `provider.resolve(owner)` as first argument.
  The default provider instantiates the owner with no arguments.

Global options
- The registry's global options are pulled out of argv before resolution,
  so they may appear before the command name or between any two tokens.
  They are bound for every action; actions flagged `globals` receive the
  built object as keyword 'globals'.
"""
import asyncio
import logging
import sys

from rich.console import Console

from . import faults
from .binder import bind, bind_globals, detach
from .config import Settings, configure_logging
from .faults import (
    ActionFault,
    BindingError,
    CommandException,
    DispatchCancelled,
    ExitCode,
    HookError,
    ResolutionError,
    trigger,
)
from .helper import render, usage
from .hooks import Cancellation, HookContext, HookPipeline
from .registry import ParameterKind
from .resolver import locate, resolve
from .tokens import LongOption, ShortOption, Terminator, tokenize

logger = logging.getLogger(__name__)


class DefaultProvider:
    """
    Dependency provider that builds owners by calling them with no arguments.
    """

    def resolve(self, owner, /):
        return owner()


def _asks_help(action, tokens):
    declared = set()
    if action is not None:
        for parameter, _ in action.surface:
            if parameter.kind is ParameterKind.NAMED:
                declared.update(parameter.names)
                declared.add(parameter.short)

    for token in tokens:
        if isinstance(token, Terminator):
            return False
        if isinstance(token, LongOption) and token.name == "help" and "help" not in declared:
            return True
        if isinstance(token, ShortOption) and token.letter == "h" and "h" not in declared:
            return True
    return False


class Dispatcher:
    """
    Entry point that turns an argument vector into an exit code.

    Construction
    - Dispatcher(registry, provider=None, environ=None, console=None,
      output=None, settings=None, **options)
      • provider: object with resolve(owner) → instance (DefaultProvider).
      • environ: mapping used for option env fallbacks (os.environ).
      • console: rich Console for faults (stderr); output: for help (stdout).
      • settings: a Settings; **options override its fields (prog, fancy,
        colorful, styles, codes, log_level, timeout).

    Methods
    - dispatch(argv) → int: runs an event loop (not usable inside one).
    - await dispatch_async(argv) → int.
    - main(argv=None): dispatch sys.argv[1:] and exit the process.
    """

    def __init__(self, registry, /, *, provider=None, environ=None, console=None, output=None, settings=None, **options):
        self.registry = registry
        self.provider = provider or DefaultProvider()
        self.environ = environ
        self.console = console or faults.console
        self.output = output or Console()
        if settings is None:
            settings = Settings.load(**options)
        elif options:
            settings = settings.replace(**options)
        self.settings = settings

    def _report(self, fault, **options):
        logger.debug("dispatch failed: %r", fault, exc_info=fault)
        trigger(
            fault,
            console=self.console,
            prog=self.settings.prog,
            fancy=self.settings.fancy,
            colorful=self.settings.colorful,
            styles=self.settings.styles,
            codes=self.settings.codes,
            **options,
        )

    def _help(self, path, action=None, *, implicit=False):
        self.output.print(render(
            self.registry,
            path,
            action,
            implicit=implicit,
            prog=self.settings.prog,
            colorful=self.settings.colorful,
            fancy=self.settings.fancy,
            styles=self.settings.styles,
        ))
        return ExitCode.OK

    def _exit_code(self, resolved, fault):
        cause = fault.cause
        for mapping in (resolved.action.exit_codes, *(command.exit_codes for command in reversed(resolved.path))):
            for exception, code in mapping.items():
                if isinstance(cause, exception):
                    return code
        if isinstance(cause, CommandException):
            return cause.exit_code
        return fault.exit_code

    def _invoke(self, resolved, arguments, cancellation):
        action = resolved.action
        kwargs = arguments.kwargs
        if action.cancellable:
            kwargs["cancellation"] = cancellation
        if action.globals:
            kwargs["globals"] = arguments.globals
        if action.owner is not None:
            return action.callback(self.provider.resolve(action.owner), **kwargs)
        return action.callback(**kwargs)

    async def _dispatch(self, argv, cancellation):
        shared, tokens = detach(self.registry.globals, tokenize(argv))
        logger.debug("tokens: %s", " ".join(map(str, tokens)))

        try:
            resolved = resolve(self.registry, tokens)
        except ResolutionError as fault:
            path, _, index = locate(self.registry, tokens)
            if _asks_help(None, tokens[index:]):
                return self._help(path)
            self._report(fault)
            return fault.exit_code

        action = resolved.action
        if _asks_help(action, resolved.remaining):
            return self._help(resolved.path, action, implicit=resolved.implicit)

        try:
            globals = bind_globals(self.registry.globals, shared, environ=self.environ)
            arguments = bind(action.parameters, resolved.remaining, environ=self.environ, globals=globals)
        except BindingError as fault:
            self._report(fault, usage=usage(resolved.names, action))
            return fault.exit_code

        context = HookContext(
            resolved.names,
            action.name,
            argv,
            arguments,
            cancellation=cancellation,
        )
        pipeline = HookPipeline.of(resolved.path, action)
        try:
            outcome = await pipeline.run(context, lambda: self._invoke(resolved, arguments, cancellation))
        except DispatchCancelled as fault:
            self._report(fault)
            return fault.exit_code
        except (HookError, ActionFault) as fault:
            self._report(fault)
            return self._exit_code(resolved, fault)

        result = outcome.result if outcome.completed else None
        if isinstance(result, int) and not isinstance(result, bool):
            return result
        return ExitCode.OK

    async def dispatch_async(self, argv, /):
        """
        Dispatch `argv` (program name excluded) and return the exit code.
        """
        argv = tuple(map(str, argv))
        cancellation = Cancellation.after(self.settings.timeout)
        try:
            return await self._dispatch(argv, cancellation)
        except (asyncio.CancelledError, KeyboardInterrupt):
            cancellation.cancel("interrupted")
            self._report(DispatchCancelled("dispatch interrupted", reason="interrupted"))
            return ExitCode.CANCELLED

    def dispatch(self, argv, /):
        """
        Synchronous wrapper around dispatch_async().
        """
        try:
            return asyncio.run(self.dispatch_async(argv))
        except KeyboardInterrupt:
            self._report(DispatchCancelled("dispatch interrupted", reason="interrupted"))
            return ExitCode.CANCELLED

    def main(self, argv=None, /):
        """
        Dispatch sys.argv[1:] (or `argv`) and exit the process with the code.
        """
        configure_logging(self.settings.log_level)
        sys.exit(int(self.dispatch(sys.argv[1:] if argv is None else argv)))


def dispatch(registry, argv, /, **options):
    """
    One-shot helper: Dispatcher(registry, **options).dispatch(argv).
    """
    return Dispatcher(registry, **options).dispatch(argv)


__all__ = (
    "DefaultProvider",
    "Dispatcher",
    "dispatch",
)
