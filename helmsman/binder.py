"""
Helmsman binder: remaining tokens → typed keyword arguments for an action.

Binding runs over the flat parameter surface (CONTAINER groups expanded
depth-first in declaration order) in two passes:

1. named pass
   - LongOption / ShortOption are matched by name, alias or short letter;
     unknown names raise UnknownOptionError (they are never ignored).
   - boolean switches become True when given without an inline value;
     '--flag=false' style inline values are parsed as booleans.
   - other types take their inline value, or consume the next token when it
     is a Positional, otherwise MissingOptionValueError.
   - a repeated option keeps its last value; `multiple` options accumulate
     every occurrence, one value per occurrence whether inline or spaced
     ('--tag=a,b' is the single value 'a,b').
   - the Terminator is skipped, every token after it is positional.
2. positional pass
   - leftover Positional tokens fill POSITIONAL parameters in order; a
     trailing `multiple` positional takes the rest.
   - leftovers raise UnexpectedArgumentError.

Unmatched parameters then fall back to their environment variable (named
parameters with `env`; a `multiple` option splits its variable on commas),
then to their default (explicit, or the implicit None / False / () fallbacks).
A required parameter still unmatched raises MissingArgumentError. Exactly one
BindingError escapes, the first one found.

Global options
- detach() pulls the tokens of a registry's global options out of the
  vector before resolution, wherever they appear ahead of the terminator.
- bind_globals() binds them like an inline Options group and returns the
  object built by the group's factory.
"""
import logging
import os
from collections.abc import Mapping

from .converters import convert
from .faults import (
    InvalidValueError,
    MissingArgumentError,
    MissingOptionValueError,
    UnexpectedArgumentError,
    UnknownOptionError,
)
from .registry import ParameterDescriptor, ParameterKind, flatten
from .tokens import LongOption, Positional, ShortOption, Terminator
from .utils import Unset, freeze, ordinal, suggest

logger = logging.getLogger(__name__)


class BoundArguments(Mapping):
    """
    Read-only mapping dest → bound value, ready to be splatted into a callback.

    `sources` tells where each top-level value came from: 'cli', 'env' or
    'default' (for a group, the strongest source among its members).
    `globals` holds the bound global options object, or None.
    """

    def __init__(self, values, sources=None, globals=None):
        self._values = freeze(values)
        self.sources = freeze(sources or {})
        self.globals = globals

    def __getitem__(self, key):
        return self._values[key]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return "BoundArguments(%s)" % ", ".join("%s=%r" % item for item in self._values.items())

    @property
    def kwargs(self):
        """
        A fresh dict of the bound values (safe to mutate).
        """
        return dict(self._values)


def _lookup(surface):
    longs, shorts = {}, {}
    for index, (parameter, _) in enumerate(surface):
        if parameter.kind is not ParameterKind.NAMED:
            continue
        for name in parameter.names:
            longs.setdefault(name, index)
        if parameter.short:
            shorts.setdefault(parameter.short, index)
    return longs, shorts


def _unknown(token, longs, shorts):
    candidates = [f"--{name}" for name in longs] + [f"-{letter}" for letter in shorts]
    suggestions = suggest(token.spelling, candidates)
    return UnknownOptionError(
        f"unknown option {token.spelling!r}",
        parameter=token.name,
        name=token.name,
        suggestions=suggestions,
        hint="did you mean %s?" % " or ".join(suggestions) if suggestions else "remove it or check --help",
    )


def _accept(parameter, raw, *, split=False):
    if parameter.multiple and split:
        return [convert(parameter, piece) for piece in raw.split(",")]
    return [convert(parameter, raw)]


def _named_pass(surface, tokens):
    longs, shorts = _lookup(surface)
    matched = {}
    positionals = []

    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1

        if isinstance(token, Positional):
            positionals.append(token.text)
            continue
        if isinstance(token, Terminator):
            positionals.extend(str(token) for token in tokens[index:])
            break

        if isinstance(token, LongOption):
            slot = longs.get(token.name)
        elif isinstance(token, ShortOption):
            slot = shorts.get(token.letter)
        else:
            raise TypeError(f"cannot bind token {token!r}")
        if slot is None:
            raise _unknown(token, longs, shorts)

        parameter, _ = surface[slot]
        if parameter.switch:
            matched[slot] = [True] if token.value is None else _accept(parameter, token.value)
            continue

        raw = token.value
        if raw is None:
            if index < len(tokens) and isinstance(tokens[index], Positional):
                raw = tokens[index].text
                index += 1
            else:
                raise MissingOptionValueError(
                    f"option {token.spelling!r} requires a value",
                    parameter=parameter.name,
                    name=token.name,
                    hint=f"use {token.spelling} VALUE or --{parameter.name}=VALUE",
                )

        values = _accept(parameter, raw)
        if parameter.multiple:
            matched.setdefault(slot, []).extend(values)
        else:
            matched[slot] = values

    return matched, positionals


def _positional_pass(surface, positionals, matched):
    slots = [slot for slot, (parameter, _) in enumerate(surface) if parameter.kind is ParameterKind.POSITIONAL]
    rest = list(positionals)

    for slot in slots:
        if not rest:
            break
        parameter, _ = surface[slot]
        if parameter.multiple:
            matched[slot] = [convert(parameter, raw) for raw in rest]
            rest = []
        else:
            matched[slot] = [convert(parameter, rest.pop(0))]

    if rest:
        count = len(slots)
        raise UnexpectedArgumentError(
            f"unexpected argument {rest[0]!r}",
            parameter=None,
            input=rest[0],
            hint=(
                f"this action takes at most {count} positional argument{'s' if count != 1 else ''}"
                if count else "this action takes no positional arguments"
            ) + " (use '--' before values starting with '-')",
        )


def _environment(parameter, environ):
    if parameter.kind is not ParameterKind.NAMED or not parameter.env:
        return Unset
    raw = environ.get(parameter.env)
    if raw is None:
        return Unset
    try:
        values = _accept(parameter, raw, split=True)
    except InvalidValueError as error:
        raise error.__replace__(hint=f"check the {parameter.env} environment variable") from error.__cause__
    return tuple(values) if parameter.multiple else values[-1]


def _missing(parameter, position):
    if parameter.kind is ParameterKind.POSITIONAL:
        return MissingArgumentError(
            f"missing {ordinal(position)} argument {parameter.spelling}",
            parameter=parameter.name,
            hint=f"provide a value for {parameter.spelling}",
        )
    return MissingArgumentError(
        f"missing required option {parameter.spelling}",
        parameter=parameter.name,
        hint=f"pass {parameter.spelling} VALUE" + (f" or set {parameter.env}" if parameter.env else ""),
    )


_RANK = {"default": 0, "env": 1, "cli": 2}


def _record(sources, dest, source):
    if _RANK[source] >= _RANK.get(sources.get(dest), -1):
        sources[dest] = source


def _assemble(parameters, values):
    result = {}
    for parameter in parameters:
        if parameter.kind is ParameterKind.CONTAINER:
            members = _assemble(parameter.group.members, values)
            try:
                result[parameter.dest] = parameter.group.factory(**members)
            except Exception as error:
                raise InvalidValueError(
                    f"invalid {parameter.group.name}: {error}",
                    parameter=parameter.name,
                    raw=None,
                    expected=parameter.group.name,
                ) from error
        else:
            result[parameter.dest] = next(values)
    return result


def bind(parameters, tokens, /, *, environ=None, globals=None):
    """
    Bind `tokens` to `parameters` (an action's ParameterDescriptors).

    Parameters
    - parameters: ordered ParameterDescriptors, containers included.
    - tokens: the tokens left over by the resolver.
    - environ: mapping consulted for `env` fallbacks (defaults to os.environ).
    - globals: the already bound global options object, kept on the result.

    Returns
    - BoundArguments keyed by dest, groups materialized through their factory.

    Raises
    - BindingError (exactly one, the first encountered).
    """
    environ = os.environ if environ is None else environ
    parameters = tuple(parameters)
    tokens = tuple(tokens)
    surface = flatten(parameters)

    matched, positionals = _named_pass(surface, tokens)
    _positional_pass(surface, positionals, matched)

    values, sources = [], {}
    position = 0
    for slot, (parameter, containers) in enumerate(surface):
        if parameter.kind is ParameterKind.POSITIONAL:
            position += 1
        root = containers[0].dest if containers else parameter.dest

        if slot in matched:
            found = matched[slot]
            values.append(tuple(found) if parameter.multiple else found[-1])
            _record(sources, root, "cli")
            continue

        if (value := _environment(parameter, environ)) is not Unset:
            values.append(value)
            _record(sources, root, "env")
            continue

        if (value := parameter.fallback) is Unset:
            raise _missing(parameter, position)
        values.append(value)
        _record(sources, root, "default")

    arguments = BoundArguments(_assemble(parameters, iter(values)), sources, globals)
    logger.debug("bound %r", arguments)
    return arguments


def detach(group, tokens, /):
    """
    Split `tokens` into (global option tokens, everything else).

    Global options are recognized anywhere ahead of the terminator: before
    the command name, between command and action, or among the action's
    own arguments. A non-switch global option without an inline value takes
    the following Positional token with it. Without a group nothing is
    detached.
    """
    tokens = tuple(tokens)
    if group is None:
        return (), tokens

    surface = flatten(group.members)
    longs, shorts = _lookup(surface)
    detached, rest = [], []

    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1

        if isinstance(token, Terminator):
            rest.extend(tokens[index - 1:])
            break
        if isinstance(token, LongOption):
            slot = longs.get(token.name)
        elif isinstance(token, ShortOption):
            slot = shorts.get(token.letter)
        else:
            slot = None
        if slot is None:
            rest.append(token)
            continue

        detached.append(token)
        parameter, _ = surface[slot]
        if not parameter.switch and token.value is None and index < len(tokens) and isinstance(tokens[index], Positional):
            detached.append(tokens[index])
            index += 1

    return tuple(detached), tuple(rest)


def bind_globals(group, tokens, /, *, environ=None):
    """
    Bind detached global option tokens to `group` (an OptionsGroup, or None).

    Returns the object built by the group's factory, or None without a group.
    Raises BindingError like bind().
    """
    if group is None:
        return None
    container = ParameterDescriptor(group.name, ParameterKind.CONTAINER, group=group, dest="globals")
    return bind((container,), tokens, environ=environ)["globals"]


__all__ = (
    "BoundArguments",
    "bind",
    "detach",
    "bind_globals",
)
