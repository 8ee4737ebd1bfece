"""
Helmsman command registry: the static, read-only description of a CLI.

What this module provides
- ParameterDescriptor: one positional argument, named option, or container of
  options (a reference to an OptionsGroup merged into the binding surface).
- OptionsGroup: a reusable set of parameters materialized through a factory.
- HookBinding: a hook callable attached to a phase (BEFORE, AFTER, ON_ERROR)
  with an integer order.
- ActionDescriptor: an invokable operation with its parameters, hooks and
  callback.
- CommandDescriptor: a named grouping of actions and nested commands.
- Registry: the validated root of the tree, optionally carrying a group of
  global options bound for every action. Construction checks every
  invariant and raises RegistryInvalid listing all violations at once.

Lifecycle
- Descriptors are built once at startup, read for the process lifetime and
  never mutated: containers are frozen on construction and every field is
  exposed through a read-only property.
- Shape errors (wrong types, malformed names) raise TypeError/ValueError
  right where the descriptor is built. Relational invariants (unique names,
  a single primary action, unique short names) are checked by Registry.

Quick start
    from helmsman.registry import *

    add = ActionDescriptor(
        "add",
        lambda a, b: print(a + b),
        (ParameterDescriptor("a", type=int), ParameterDescriptor("b", type=int)),
        primary=True,
    )
    registry = Registry((CommandDescriptor("calc", (add,)),))
"""
import enum
import re
import types
import typing
from collections.abc import Iterable, Mapping

from .faults import RegistryInvalid
from .utils import *


class ParameterKind(enum.Enum):
    POSITIONAL = "positional"
    NAMED = "named"
    CONTAINER = "container"


class Phase(enum.Enum):
    BEFORE = "before"
    AFTER = "after"
    ON_ERROR = "on-error"


def _view(name):
    """
    internal: read-only property over the private backing field '_<name>'.
    """

    @rename(name)
    def getter(self):
        return getattr(self, "_" + name)

    return property(getter)


class DescriptorType(type):
    """
    Metaclass shared by every descriptor.

    Responsibilities
    - Derive a human-friendly __typename__ from the class name
      (ActionDescriptor → "action-descriptor") for messages.
    - Expose each name listed in __introspectable__ as a read-only property
      backed by '_<name>'.
    - Provide a compact __repr__ and a __rich_repr__ for pretty printers.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                field: _view(field) for field in namespace.get("__introspectable__", ())
            },
        )

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for field in type(self).__introspectable__:
                yield field, getattr(self, field)
        self.__rich_repr__ = __rich_repr__

        @rename("__repr__")
        def __repr__(self):
            return "%s(%s)" % (type(self).__typename__, ", ".join(
                "%s=%r" % pair for pair in self.__rich_repr__() if pair[0] in ("name", "kind", "phase", "order")
            ))
        self.__repr__ = __repr__

        return self


def _sanitize_name(cls, name, *, field="name"):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} {field!r} must be a string")
    if not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} {field!r} must be a non-empty string")
    if name.startswith("-") or any(char.isspace() for char in name):
        raise ValueError(f"{cls.__typename__} {field} {name!r} cannot start with '-' or contain spaces")
    return name


def _sanitize_names(cls, names, *, field="aliases"):
    if isinstance(names, str) or not isinstance(names, Iterable):
        raise TypeError(f"{cls.__typename__} {field!r} must be an iterable of strings")
    return tuple(_sanitize_name(cls, name, field=field) for name in names)


def _sanitize_description(cls, description):
    if description is None:
        return None
    if not isinstance(description, str):
        raise TypeError(f"{cls.__typename__} 'description' must be a string")
    return description.strip() or None


def _sanitize_exit_codes(cls, exit_codes):
    if exit_codes is None:
        return freeze({})
    if not isinstance(exit_codes, Mapping):
        raise TypeError(f"{cls.__typename__} 'exit_codes' must be a mapping of exception types to integers")
    for exception, code in exit_codes.items():
        if not isinstance(exception, type) or not issubclass(exception, BaseException):
            raise TypeError(f"{cls.__typename__} 'exit_codes' keys must be exception types")
        if not isinstance(code, int) or isinstance(code, bool):
            raise TypeError(f"{cls.__typename__} 'exit_codes' values must be integers")
    return freeze(exit_codes)


def _sanitize_items(cls, items, kind, *, field):
    if isinstance(items, str) or not isinstance(items, Iterable):
        raise TypeError(f"{cls.__typename__} {field!r} must be an iterable")
    items = tuple(items)
    for item in items:
        if not isinstance(item, kind):
            raise TypeError(f"{cls.__typename__} {field!r} items must be {kind.__name__} instances")
    return items


def unwrap(annotation, /):
    """
    Split an annotation into (base type, nullable).

    `int | None` and `Optional[int]` give (int, True); `int` gives (int, False).
    Unions with more than one non-None member are rejected.
    """
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        members = [member for member in typing.get_args(annotation) if member is not type(None)]
        if len(members) != 1:
            raise TypeError(f"unsupported union type {annotation!r}, only 'T | None' is accepted")
        return members[0], len(members) != len(typing.get_args(annotation))
    return annotation, False


class Descriptor(metaclass=DescriptorType):
    """
    Common base of every registry descriptor (see DescriptorType).
    """


class ParameterDescriptor(Descriptor):
    """
    A single binding slot of an action: positional, named, or container.

    Properties
    - name: CLI-facing name (long option spelling without '--', or the
      metavar of a positional).
    - kind: ParameterKind.
    - type: the base type after unwrapping `T | None` (str, bool, int, float,
      an Enum subclass, or any callable converter).
    - nullable: True when declared as `T | None`.
    - default: declared default, or Unset. Container defaults are frozen
      deeply (lists become tuples, dicts read-only mappings) so the registry
      never shares a mutable object with a callback.
    - short: single-letter short option (named parameters only), or None.
    - aliases: alternative long names (named parameters only).
    - env: environment variable consulted when a named parameter is absent.
    - multiple: repeatable option / trailing greedy positional, bound to a tuple.
    - description: help text.
    - dest: keyword used when calling the callback.
    - group: the OptionsGroup of a container parameter.
    - validators: callables run on every converted value; see
      helmsman.validators.
    """

    __introspectable__ = (
        "name",
        "kind",
        "type",
        "nullable",
        "default",
        "short",
        "aliases",
        "env",
        "multiple",
        "description",
        "dest",
        "group",
        "validators",
    )

    def __init__(
            self,
            name,
            /,
            kind=ParameterKind.POSITIONAL,
            type=str,
            *,
            default=Unset,
            short=None,
            aliases=(),
            env=None,
            multiple=False,
            description=None,
            dest=None,
            group=None,
            validators=(),
    ):
        cls = self.__class__
        if not isinstance(kind, ParameterKind):
            raise TypeError(f"{cls.__typename__} 'kind' must be a ParameterKind")

        self._name = _sanitize_name(cls, name)
        self._kind = kind
        self._description = _sanitize_description(cls, description)
        self._dest = self._name.replace("-", "_") if dest is None else dest
        if not isinstance(self._dest, str) or not self._dest.isidentifier():
            raise ValueError(f"{cls.__typename__} 'dest' {self._dest!r} must be a valid identifier")

        if kind is ParameterKind.CONTAINER:
            if not isinstance(group, OptionsGroup):
                raise TypeError(f"{cls.__typename__} container {self._name!r} must reference an OptionsGroup")
            if short is not None or aliases or env is not None or multiple or default is not Unset or validators:
                raise TypeError(f"{cls.__typename__} container {self._name!r} only accepts 'group', 'description' and 'dest'")
            self._group = group
            self._validators = ()
            self._type = group.factory
            self._nullable = False
            self._default = Unset
            self._short = None
            self._aliases = ()
            self._env = None
            self._multiple = False
            return

        if group is not None:
            raise TypeError(f"{cls.__typename__} {self._name!r} cannot reference a group unless it is a container")
        self._group = None

        self._type, self._nullable = unwrap(type)
        if not callable(self._type):
            raise TypeError(f"{cls.__typename__} {self._name!r} 'type' must be callable")
        self._default = freeze(default, deep=True)
        self._multiple = bool(multiple)

        if isinstance(validators, str) or not isinstance(validators, Iterable):
            raise TypeError(f"{cls.__typename__} {self._name!r} 'validators' must be an iterable of callables")
        self._validators = tuple(validators)
        if not all(map(callable, self._validators)):
            raise TypeError(f"{cls.__typename__} {self._name!r} 'validators' must be an iterable of callables")

        if kind is ParameterKind.POSITIONAL and (short is not None or aliases or env is not None):
            raise TypeError(f"{cls.__typename__} positional {self._name!r} cannot have 'short', 'aliases' or 'env'")

        if short is not None and (not isinstance(short, str) or len(short) != 1 or not short.isalpha()):
            raise ValueError(f"{cls.__typename__} {self._name!r} 'short' must be a single letter")
        self._short = short
        self._aliases = _sanitize_names(cls, aliases)
        if env is not None and (not isinstance(env, str) or not env.strip()):
            raise ValueError(f"{cls.__typename__} {self._name!r} 'env' must be a non-empty string")
        self._env = env

    @property
    def switch(self):
        """
        True for a boolean named parameter (presence sets it to True).
        """
        return self._kind is ParameterKind.NAMED and self._type is bool and not self._multiple

    @property
    def names(self):
        """
        Every long name this parameter answers to (name first, then aliases).
        """
        return (self._name, *self._aliases)

    @property
    def fallback(self):
        """
        The value used when nothing binds the parameter, or Unset.

        - an explicit default wins;
        - nullable parameters fall back to None;
        - boolean switches fall back to False;
        - multiple parameters fall back to an empty tuple.
        """
        if self._default is not Unset:
            return self._default
        if self._nullable:
            return None
        if self.switch:
            return False
        if self._multiple:
            return ()
        return Unset

    @property
    def required(self):
        return self._kind is not ParameterKind.CONTAINER and self.fallback is Unset

    @property
    def spelling(self):
        """
        How the parameter is written on the command line ('--name' or 'NAME').
        """
        if self._kind is ParameterKind.NAMED:
            return f"--{self._name}"
        return self._name.upper()


class OptionsGroup(Descriptor):
    """
    A reusable set of parameters bound as if declared inline.

    The members (positional, named, or further containers) are flattened into
    the owning action's binding surface, depth-first in declaration order. Once
    bound, `factory(**values)` builds the object handed to the action.
    """

    __introspectable__ = (
        "name",
        "members",
        "factory",
        "description",
    )

    def __init__(self, name, members, /, factory=types.SimpleNamespace, *, description=None):
        cls = type(self)
        self._name = _sanitize_name(cls, name)
        self._members = _sanitize_items(cls, members, ParameterDescriptor, field="members")
        if not callable(factory):
            raise TypeError(f"{cls.__typename__} 'factory' must be callable")
        self._factory = factory
        self._description = _sanitize_description(cls, description)


class HookBinding(Descriptor):
    """
    A hook attached to a lifecycle phase.

    Hook signatures (plain functions or coroutine functions)
    - BEFORE:   hook(context)
    - AFTER:    hook(context, result)
    - ON_ERROR: hook(context, fault) -> truthy to mark the fault handled
    """

    __introspectable__ = (
        "hook",
        "phase",
        "order",
        "name",
    )

    def __init__(self, hook, phase, /, order=0, *, name=None):
        cls = type(self)
        if not callable(hook):
            raise TypeError(f"{cls.__typename__} 'hook' must be callable")
        if not isinstance(phase, Phase):
            raise TypeError(f"{cls.__typename__} 'phase' must be a Phase")
        if not isinstance(order, int) or isinstance(order, bool):
            raise TypeError(f"{cls.__typename__} 'order' must be an integer")
        self._hook = hook
        self._phase = phase
        self._order = order
        self._name = name or getattr(hook, "__qualname__", None) or repr(hook)


class ActionDescriptor(Descriptor):
    """
    An invokable operation within a command.

    Properties
    - name / aliases: how the action is selected on the command line.
    - callback: the invocation capability, called with the bound arguments as
      keywords (preceded by the owner instance when `owner` is set).
    - parameters: ordered ParameterDescriptors.
    - primary: selected when the command is invoked without an action name.
    - hooks: action-level HookBindings (run inside the command's hooks).
    - exit_codes: exception type → exit code, checked before the command's.
    - owner: type identifier resolved through the dependency provider.
    - cancellable: pass the dispatch Cancellation as keyword 'cancellation'.
    - globals: pass the registry's bound global options as keyword 'globals'.
    """

    __introspectable__ = (
        "name",
        "callback",
        "parameters",
        "primary",
        "hooks",
        "aliases",
        "description",
        "exit_codes",
        "owner",
        "cancellable",
        "globals",
    )

    def __init__(
            self,
            name,
            callback,
            parameters=(),
            /,
            *,
            primary=False,
            hooks=(),
            aliases=(),
            description=None,
            exit_codes=None,
            owner=None,
            cancellable=False,
            globals=False,
    ):
        cls = type(self)
        if not callable(callback):
            raise TypeError(f"{cls.__typename__} 'callback' must be callable")
        self._name = _sanitize_name(cls, name)
        self._callback = callback
        self._parameters = _sanitize_items(cls, parameters, ParameterDescriptor, field="parameters")
        self._primary = bool(primary)
        self._hooks = _sanitize_items(cls, hooks, HookBinding, field="hooks")
        self._aliases = _sanitize_names(cls, aliases)
        self._description = _sanitize_description(cls, description)
        self._exit_codes = _sanitize_exit_codes(cls, exit_codes)
        self._owner = owner
        self._cancellable = bool(cancellable)
        self._globals = bool(globals)
        self._surface = flatten(self._parameters)

    @property
    def names(self):
        return (self._name, *self._aliases)

    @property
    def surface(self):
        """
        The flat binding surface: (parameter, containers) pairs, depth-first.

        `containers` is the tuple of CONTAINER parameters enclosing the
        parameter, outermost first (empty for parameters declared inline).
        """
        return self._surface


class CommandDescriptor(Descriptor):
    """
    A named grouping of actions and nested commands.

    Hooks declared here are inherited by every action of this command and of
    its nested commands; exit code mappings likewise apply to all of them.
    """

    __introspectable__ = (
        "name",
        "actions",
        "commands",
        "hooks",
        "aliases",
        "description",
        "exit_codes",
    )

    def __init__(
            self,
            name,
            actions=(),
            commands=(),
            /,
            *,
            hooks=(),
            aliases=(),
            description=None,
            exit_codes=None,
    ):
        cls = type(self)
        self._name = _sanitize_name(cls, name)
        self._actions = _sanitize_items(cls, actions, ActionDescriptor, field="actions")
        self._commands = _sanitize_items(cls, commands, CommandDescriptor, field="commands")
        self._hooks = _sanitize_items(cls, hooks, HookBinding, field="hooks")
        self._aliases = _sanitize_names(cls, aliases)
        self._description = _sanitize_description(cls, description)
        self._exit_codes = _sanitize_exit_codes(cls, exit_codes)

        # first declaration wins here; Registry reports the duplicates
        self._lookup_commands = {}
        for command in self._commands:
            for alias in command.names:
                self._lookup_commands.setdefault(alias, command)
        self._lookup_actions = {}
        for action in self._actions:
            for alias in action.names:
                self._lookup_actions.setdefault(alias, action)

    @property
    def names(self):
        return (self._name, *self._aliases)

    @property
    def primary(self):
        """
        The primary action, or None when the command declares none.
        """
        return next((action for action in self._actions if action.primary), None)

    def command(self, token, /):
        """
        Nested command named (or aliased) exactly `token`, or None.
        """
        return self._lookup_commands.get(token)

    def action(self, token, /):
        """
        Action named (or aliased) exactly `token`, or None.
        """
        return self._lookup_actions.get(token)


def flatten(parameters, /, containers=()):
    """
    Expand CONTAINER parameters into their members, depth-first.

    Returns a tuple of (parameter, containers) pairs; see ActionDescriptor.surface.
    """
    surface = []
    for parameter in parameters:
        if parameter.kind is ParameterKind.CONTAINER:
            surface.extend(flatten(parameter.group.members, (*containers, parameter)))
        else:
            surface.append((parameter, containers))
    return tuple(surface)


def _duplicates(names):
    seen = set()
    for name in names:
        if name in seen:
            yield name
        seen.add(name)


def _check_parameters(where, parameters, problems):
    for dest in _duplicates(parameter.dest for parameter in parameters):
        problems.append(f"{where} declares the keyword {dest!r} more than once")
    for parameter in parameters:
        if parameter.kind is ParameterKind.CONTAINER:
            _check_parameters(f"{where} group {parameter.group.name!r}", parameter.group.members, problems)


def _check_names(where, named, problems):
    for name in _duplicates(name for parameter in named for name in parameter.names):
        problems.append(f"{where} declares the option '--{name}' more than once")
    for short in _duplicates(parameter.short for parameter in named if parameter.short):
        problems.append(f"{where} declares the short option '-{short}' more than once")


def _check_globals(globals, problems):
    where = f"global options {globals.name!r}"
    _check_parameters(where, globals.members, problems)
    surface = flatten(globals.members)
    for parameter, _ in surface:
        if parameter.kind is not ParameterKind.NAMED:
            problems.append(f"{where} member {parameter.name!r} must be a named option")
    _check_names(where, [parameter for parameter, _ in surface if parameter.kind is ParameterKind.NAMED], problems)


def _check_action(where, action, problems, globals=None):
    where = f"{where} action {action.name!r}"
    _check_parameters(where, action.parameters, problems)

    named = [parameter for parameter, _ in action.surface if parameter.kind is ParameterKind.NAMED]
    positional = [parameter for parameter, _ in action.surface if parameter.kind is ParameterKind.POSITIONAL]

    _check_names(where, named, problems)

    if globals is not None:
        shared = [parameter for parameter, _ in flatten(globals.members) if parameter.kind is ParameterKind.NAMED]
        longs = {name for parameter in shared for name in parameter.names}
        shorts = {parameter.short for parameter in shared if parameter.short}
        for parameter in named:
            for name in parameter.names:
                if name in longs:
                    problems.append(f"{where} option '--{name}' collides with a global option")
            if parameter.short in shorts:
                problems.append(f"{where} short option '-{parameter.short}' collides with a global option")
    elif action.globals:
        problems.append(f"{where} asks for global options but the registry declares none")

    dests = {parameter.dest for parameter in action.parameters}
    for keyword, flag in (("cancellation", action.cancellable), ("globals", action.globals)):
        if flag and keyword in dests:
            problems.append(f"{where} keyword {keyword!r} is reserved")

    optional = None
    for index, parameter in enumerate(positional):
        if parameter.multiple and index != len(positional) - 1:
            problems.append(f"{where} positional {parameter.name!r} takes multiple values and must be the last positional")
        if not parameter.required:
            optional = optional or parameter
        elif optional:
            problems.append(f"{where} required positional {parameter.name!r} cannot follow optional positional {optional.name!r}")


def _check_command(where, command, problems, globals=None):
    where = f"{where} {command.name!r}" if where else f"command {command.name!r}"

    if not command.actions and not command.commands:
        problems.append(f"{where} declares no actions and no commands")
    for name in _duplicates(name for action in command.actions for name in action.names):
        problems.append(f"{where} declares the action name {name!r} more than once")
    primaries = [action.name for action in command.actions if action.primary]
    if len(primaries) > 1:
        problems.append(f"{where} declares more than one primary action ({', '.join(map(repr, primaries))})")

    for action in command.actions:
        _check_action(where, action, problems, globals)
    for child in command.commands:
        _check_command(f"{where} command", child, problems, globals)


class Registry(Descriptor):
    """
    The validated, immutable root of all commands.

    Construction validates the whole tree and raises RegistryInvalid listing
    every violation found:
    - command names and aliases are unique across the whole registry, at
      every depth, ignoring case;
    - action names are unique within their command;
    - at most one primary action per command;
    - long and short option names are unique within an action's flattened
      surface together with the global options, and keywords are unique
      per level;
    - a `multiple` positional is the last positional, and no required
      positional follows an optional one;
    - every command declares at least one action or nested command.

    `globals` is an OptionsGroup of named options accepted anywhere on the
    command line, for every action; actions flagged `globals` receive the
    built object.
    """

    __introspectable__ = (
        "commands",
        "description",
        "globals",
    )

    def __init__(self, commands, /, *, description=None, globals=None):
        cls = type(self)
        self._commands = _sanitize_items(cls, commands, CommandDescriptor, field="commands")
        self._description = _sanitize_description(cls, description)
        if globals is not None and not isinstance(globals, OptionsGroup):
            raise TypeError(f"{cls.__typename__} 'globals' must be an OptionsGroup")
        self._globals = globals

        problems = []
        if not self._commands:
            problems.append("registry declares no commands")
        if globals is not None:
            _check_globals(globals, problems)

        declared = {}
        for path, command in self.walk():
            route = " ".join(step.name for step in path)
            for name in command.names:
                declared.setdefault(name.casefold(), []).append((name, route))
        for declarations in declared.values():
            if len(declarations) > 1:
                routes = ", ".join(f"{name!r} at {route!r}" for name, route in declarations)
                problems.append(f"registry declares the command name {declarations[0][0]!r} more than once ({routes})")

        for command in self._commands:
            _check_command("", command, problems, globals)
        if problems:
            raise RegistryInvalid(problems)

        self._lookup = {}
        for command in self._commands:
            for alias in command.names:
                self._lookup[alias] = command

    def command(self, token, /):
        """
        Top-level command named (or aliased) exactly `token`, or None.
        """
        return self._lookup.get(token)

    @property
    def names(self):
        """
        Every top-level name and alias, in declaration order.
        """
        return tuple(self._lookup)

    def walk(self):
        """
        Yield (path, command) for every command, depth-first, root commands first.
        """
        stack = [((command,), command) for command in reversed(self._commands)]
        while stack:
            path, command = stack.pop()
            yield path, command
            stack.extend(((*path, child), child) for child in reversed(command.commands))


__all__ = (
    "ParameterKind",
    "Phase",
    "ParameterDescriptor",
    "OptionsGroup",
    "HookBinding",
    "ActionDescriptor",
    "CommandDescriptor",
    "Registry",
    "flatten",
    "unwrap",
)
