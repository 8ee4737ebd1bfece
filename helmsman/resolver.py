"""
Helmsman resolver: leading positional tokens → (command path, action).

Algorithm
- Top level: the first token must be a Positional matching a command name or
  alias exactly (case-sensitive), otherwise UnknownCommandError.
- Inside a command, peek the next token:
  • a nested command matching it wins and resolution recurses;
  • otherwise an action matching it is selected and resolution stops;
  • otherwise the command's primary action is selected and the peeked token
    is left in the stream for binding;
  • otherwise UnknownActionError.
- Options, terminators and end of input never match a name.
- No backtracking: once a name matched it stays matched.

Errors carry "did you mean" suggestions for the mistyped name.
"""
import logging
from dataclasses import dataclass

from .faults import UnknownActionError, UnknownCommandError
from .registry import ActionDescriptor, CommandDescriptor
from .tokens import Positional
from .utils import suggest

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedAction:
    """
    Resolution result.

    - path: the command chain, root command first.
    - action: the selected ActionDescriptor.
    - remaining: tokens left for the binder, in their original order.
    - implicit: the action is the primary one, selected without its name.
    """
    path: tuple[CommandDescriptor, ...]
    action: ActionDescriptor
    remaining: tuple
    implicit: bool = False

    @property
    def command(self):
        return self.path[-1]

    @property
    def names(self):
        """
        The command path names, root first (e.g. ('git', 'remote')).
        """
        return tuple(command.name for command in self.path)


def _peek(tokens, index):
    if index < len(tokens) and isinstance(tokens[index], Positional):
        return tokens[index].text
    return None


def _children(command):
    return tuple(name for child in command.commands for name in child.names) + \
        tuple(name for action in command.actions for name in action.names)


def _hint(suggestions, choices):
    if suggestions:
        return "did you mean %s?" % " or ".join(map(repr, suggestions))
    if choices:
        return "choose one of: %s" % ", ".join(choices)
    return None


def locate(registry, tokens, /):
    """
    Walk `tokens` as far as the registry allows, without raising.

    Returns (path, action, index):
    - path: matched commands, root first (empty when no command matched);
    - action: the selected action, or None when resolution stopped short;
    - index: position of the first token not consumed.
    """
    tokens = tuple(tokens)

    name = _peek(tokens, 0)
    if name is None or (command := registry.command(name)) is None:
        return (), None, 0

    path = [command]
    index = 1
    while True:
        name = _peek(tokens, index)
        if name is not None and (child := command.command(name)) is not None:
            path.append(command := child)
            index += 1
            continue
        if name is not None and (action := command.action(name)) is not None:
            return tuple(path), action, index + 1
        return tuple(path), command.primary, index


def resolve(registry, tokens, /):
    """
    Resolve `tokens` (the lexer output) against `registry`.

    Returns
    - ResolvedAction

    Raises
    - UnknownCommandError: no positional first token, or no command of that name.
    - UnknownActionError: no nested command, action or primary action matches.
    """
    tokens = tuple(tokens)
    path, action, index = locate(registry, tokens)

    if not path:
        name = _peek(tokens, 0)
        suggestions = suggest(name, registry.names)
        logger.debug("unknown command %r (suggestions: %s)", name, suggestions)
        raise UnknownCommandError(
            f"unknown command {name!r}" if name is not None else "no command given",
            input=name,
            suggestions=suggestions,
            hint=_hint(suggestions, tuple(command.name for command in registry.commands)),
        )

    if action is None:
        command = path[-1]
        name = _peek(tokens, index)
        where = " ".join(command.name for command in path)
        suggestions = suggest(name, _children(command))
        logger.debug("unknown action %r in %r (suggestions: %s)", name, where, suggestions)
        raise UnknownActionError(
            f"unknown action {name!r} for command {where!r}" if name is not None else f"command {where!r} expects an action",
            input=name,
            command=where,
            suggestions=suggestions,
            hint=_hint(suggestions, tuple(child.name for child in (*command.commands, *command.actions))),
        )

    # the primary action consumed no token of its own
    resolved = ResolvedAction(path, action, tokens[index:], implicit=index == len(path))
    logger.debug("resolved %s → %s (%d tokens left)", " ".join(resolved.names), action.name, len(resolved.remaining))
    return resolved


__all__ = (
    "ResolvedAction",
    "locate",
    "resolve",
)
