"""
Helmsman faults (errors, exit codes) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing fault.
  Codes are grouped by the stage that raises them (lexing, resolution, binding,
  execution) so logs and searches stay predictable.
- ExitCode: the process exit codes the dispatcher maps every outcome to.
- CommandException: base type carrying a message plus options; it knows how to
  render itself with rich (header, message, one clear hint).
- The taxonomy:
  • LexError (declared for completeness, lexing is total and never raises it)
  • ResolutionError → UnknownCommandError, UnknownActionError
  • BindingError → MissingArgumentError, UnexpectedArgumentError,
    UnknownOptionError, MissingOptionValueError, InvalidValueError
  • HookError (a hook's own failure, with phase and hook name)
  • ActionFault (the invoked action's own failure)
  • DispatchCancelled (cooperative cancellation was observed)
- RegistryInvalid: fatal registry construction problem (a ValueError, never a
  per-dispatch fault).
- trigger(): render a fault with runtime options (console, prog, fancy, colorful).

UX goals
- Short titles, one-sentence bodies, a single actionable hint.
- Lowercased tone with readable styling (configurable via __styles__ in __main__).

Payload
- Faults keep their structured payload in `options`; the commonly used fields
  (parameter, name, raw, expected, phase, hook, action, cause, ...) are exposed
  as read-only properties on the concrete classes.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce, rename

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - lexing (110xx): MALFORMED_TOKEN (reserved, the lexer is total)
    - resolution (111xx): UNKNOWN_COMMAND, UNKNOWN_ACTION
    - binding (112xx): UNKNOWN_OPTION, MISSING_OPTION_VALUE, INVALID_VALUE,
      MISSING_ARGUMENT, UNEXPECTED_ARGUMENT
    - execution (113xx): HOOK_FAILURE, ACTION_FAILURE, CANCELLED

    normalize() lets the host remap codes to custom labels through a __codes__
    mapping in __main__ while the numeric values stay stable.
    """
    # --- lexing (110xx) ---
    MALFORMED_TOKEN             = 11001

    # --- resolution (111xx) ---
    UNKNOWN_COMMAND             = 11101
    UNKNOWN_ACTION              = 11102

    # --- binding (112xx) ---
    UNKNOWN_OPTION              = 11201
    MISSING_OPTION_VALUE        = 11202
    INVALID_VALUE               = 11203
    MISSING_ARGUMENT            = 11211
    UNEXPECTED_ARGUMENT         = 11212

    # --- execution (113xx) ---
    HOOK_FAILURE                = 11301
    ACTION_FAILURE              = 11302
    CANCELLED                   = 11311

    def normalize(self, codes=Unset):
        """
        return a host-normalized string for this code.

        `codes` (or, when omitted, a __codes__ mapping in __main__) may map
        codes to friendlier labels; otherwise the numeric value is used.
        """
        if codes is Unset:
            codes = getattr(__import__("__main__"), "__codes__", {})
        return str(codes.get(self, self.value))


class ExitCode(IntEnum):
    """
    process exit codes produced by dispatch.

    values follow common shell conventions (sysexits' EX_USAGE, the shell's
    "command not found" and "terminated by Ctrl-C"); they are stable and
    pairwise distinct.
    """
    OK                          = 0
    RUNTIME_ERROR               = 1
    USAGE_ERROR                 = 64
    COMMAND_NOT_FOUND           = 127
    CANCELLED                   = 130


def _field(name):
    """
    internal: read-only property over one entry of the fault's options.
    """

    @rename(name)
    def getter(self):
        return self.options.get(name)

    return property(getter)


_STYLES = {
    # header parts
    "prog-name": "bold #E6E6F0",  # near-white program name
    "code": "bold #00E5FF",  # neon cyan fault code
    "error-title": "bold #FF4DA6",  # friendly pinky title

    # body
    "error-message": "#C8C8D0",  # soft light gray message
    "hint-arrow": "#9CE19C dim",  # gentle green arrow
    "hint": "italic #9CE19C",  # gentle green hint text
    "usage": "bold #E6E6F0",
}


class CommandException(Exception):
    """
    base class of every dispatch fault.

    construction
    - CommandException(message, **options): options carry the structured
      payload plus rendering metadata (title, hint, code, prog, fancy,
      colorful, styles, console).

    class-level defaults
    - title: short, lowercased title used in the rendered header.
    - code: FaultCode for this family.
    - exit_code: ExitCode the dispatcher reports for this fault.
    """
    title = "command failure"
    code = FaultCode.ACTION_FAILURE
    exit_code = ExitCode.RUNTIME_ERROR

    def __init__(self, message, /, **options):
        assert isinstance(message, str)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    hint = _field("hint")

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, _STYLES | getattr(main, "__styles__", {}) | dict(self.options.get("styles", {})))
        colorful = self.options.get("colorful", True)
        fancy = self.options.get("fancy", False)

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style if colorful else "")

        prog = text(self.options.get("prog") or getattr(main, "__prog__", "helmsman"), styler("prog-name"))
        code = coalesce(self.options.get("code", Unset), type(self).code)
        title = self.options.get("title") or type(self).title

        header = Text.assemble(
            "[ ",
            prog,
            " - ",
            text(FaultCode(code).normalize(self.options.get("codes", Unset)), styler("code")),
            " | ",
            text(title.title(), styler("error-title")),
            " ]"
        )
        body = [text(self.message, styler("error-message"))]
        if self.hint:
            body.append(Text.assemble(text(" → ", styler("hint-arrow")), text(self.hint, styler("hint"))))
        if usage := self.options.get("usage"):
            body.append(Text.assemble(text("usage: ", styler("usage")), text(usage)))

        if fancy:
            return Panel(Group(*body), title=header, title_align="left")
        return Group(header, *body)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        clone = type(self)(self.message, **{**self.options, **overrides})
        clone.__cause__ = self.__cause__
        clone.__traceback__ = self.__traceback__
        return clone

    def __trigger__(self):
        self.options.get("console", console).print(self)


class LexError(CommandException):
    """
    declared for a complete taxonomy; tokenize() is total and never raises it.
    """
    title = "malformed token"
    code = FaultCode.MALFORMED_TOKEN
    exit_code = ExitCode.USAGE_ERROR


class ResolutionError(CommandException):
    title = "unresolved command"
    code = FaultCode.UNKNOWN_COMMAND
    exit_code = ExitCode.COMMAND_NOT_FOUND

    input = _field("input")
    suggestions = property(lambda self: tuple(self.options.get("suggestions", ())))


class UnknownCommandError(ResolutionError):
    title = "unknown command"
    code = FaultCode.UNKNOWN_COMMAND


class UnknownActionError(ResolutionError):
    title = "unknown action"
    code = FaultCode.UNKNOWN_ACTION

    command = _field("command")


class BindingError(CommandException):
    title = "bad usage"
    code = FaultCode.INVALID_VALUE
    exit_code = ExitCode.USAGE_ERROR

    parameter = _field("parameter")


class MissingArgumentError(BindingError):
    title = "missing argument"
    code = FaultCode.MISSING_ARGUMENT


class UnexpectedArgumentError(BindingError):
    title = "unexpected argument"
    code = FaultCode.UNEXPECTED_ARGUMENT

    input = _field("input")


class UnknownOptionError(BindingError):
    title = "unknown option"
    code = FaultCode.UNKNOWN_OPTION

    name = _field("name")
    suggestions = property(lambda self: tuple(self.options.get("suggestions", ())))


class MissingOptionValueError(BindingError):
    title = "missing option value"
    code = FaultCode.MISSING_OPTION_VALUE

    name = _field("name")


class InvalidValueError(BindingError):
    title = "invalid value"
    code = FaultCode.INVALID_VALUE

    raw = _field("raw")
    expected = _field("expected")


class HookError(CommandException):
    """
    a hook failed; wraps the hook's own exception (also chained as __cause__).
    """
    title = "hook failure"
    code = FaultCode.HOOK_FAILURE

    phase = _field("phase")
    hook = _field("hook")
    cause = _field("cause")


class ActionFault(CommandException):
    """
    the invoked action failed; wraps the action's own exception.
    """
    title = "action failure"
    code = FaultCode.ACTION_FAILURE

    action = _field("action")
    cause = _field("cause")


class DispatchCancelled(CommandException):
    title = "cancelled"
    code = FaultCode.CANCELLED
    exit_code = ExitCode.CANCELLED

    reason = _field("reason")


class RegistryInvalid(ValueError):
    """
    the registry violates its invariants; fatal, raised before any dispatch.

    `problems` lists every violation found, in discovery order.
    """

    def __init__(self, problems, /):
        self.problems = tuple(problems)
        super().__init__("invalid registry: " + "; ".join(self.problems))


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see CommandException).
    - options are merged into a copy of the fault before it renders itself.
    - typical options: console, prog, fancy, colorful, styles, codes, usage, hint.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "FaultCode",
    "ExitCode",
    "CommandException",
    "LexError",
    "ResolutionError",
    "UnknownCommandError",
    "UnknownActionError",
    "BindingError",
    "MissingArgumentError",
    "UnexpectedArgumentError",
    "UnknownOptionError",
    "MissingOptionValueError",
    "InvalidValueError",
    "HookError",
    "ActionFault",
    "DispatchCancelled",
    "RegistryInvalid",
    "trigger",
)
