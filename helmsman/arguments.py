r"""
Helmsman declarative registry construction.

Overview
- Specs (used as parameter defaults in action signatures)
  • Argument: positional argument (optionally `multiple`, greedy trailing).
  • Option: named option with its spellings, e.g. Option("-o", "--output").
    A bool option is a switch.
  • Options: container of options built from a factory (a dataclass, a class
    or a function whose own signature declares Argument/Option defaults).

- Decorators
  • @command(name=None, ...): on a class, a command whose @action methods are
    its actions and whose nested @command classes are its subcommands; on a
    function, a command with that function as its primary action.
  • @action(name=None, primary=False, ...): marks a method as an action.
  • @before(hook, order=0), @after(hook, order=0), @on_error(hook, order=0):
    attach a hook to an action method or to a command (class or function).

- build(*commands, description=None, globals=None) → Registry
  • globals: an OptionsGroup, or a factory turned into one with group(), of
    options accepted anywhere on the command line.

Signature rules
- Parameters whose default is a marker take their kind from the marker.
- Other positional parameters are required/optional arguments, other
  keyword-only parameters are options; their plain default is kept.
- The type comes from the marker, then the annotation, then the default's type,
  and falls back to str. `T | None` makes the parameter nullable;
  `tuple[T, ...]` / `list[T]` annotations on `multiple` parameters give T.
- The first parameter of an action method is the owner instance (self); the
  class is resolved through the dispatcher's dependency provider.
- A `cancellation` parameter of a cancellable action receives the dispatch
  Cancellation instead of a command-line value.
- Likewise a `globals` parameter of an action declared with globals=True
  receives the bound global options object.

Quick example:
    >>> from helmsman.arguments import *
    >>> @command("calc", description="tiny calculator")
    ... class Calc:
    ...     @action(primary=True)
    ...     def add(self, a: int, b: int, /, *, verbose: bool = Option("-v")):
    ...         print(a + b)
    >>> registry = build(Calc)
"""
import builtins
import functools
import inspect
import typing
from inspect import Parameter

from .registry import (
    ActionDescriptor,
    CommandDescriptor,
    HookBinding,
    OptionsGroup,
    ParameterDescriptor,
    ParameterKind,
    Phase,
    Registry,
)
from .utils import *


def _sanitize_spellings(cls, names):
    short, longs = None, []
    for name in names:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__name__.lower()} names must be strings")
        if len(name) == 2 and name[0] == "-" and name[1].isalpha():
            if short is not None:
                raise ValueError(f"{cls.__name__.lower()} accepts a single short name, got {short!r} and {name!r}")
            short = name[1]
        elif name.startswith("--") and len(name) > 2:
            longs.append(name[2:])
        else:
            raise ValueError(f"{cls.__name__.lower()} name {name!r} must look like '-x' or '--name'")
    return short, longs


def _element(annotation, multiple):
    if multiple and typing.get_origin(annotation) in (tuple, list):
        arguments = typing.get_args(annotation)
        return arguments[0] if arguments else str
    return annotation


def _infer(type, annotation, default, multiple):
    if type is not Unset:
        return type
    if annotation is not Unset:
        return _element(annotation, multiple)
    if default is not Unset and default is not None and not multiple:
        return builtins.type(default)
    return str


class Argument:
    """
    Positional argument marker.

    Argument(type=Unset, *, default=Unset, multiple=False, description=None, metavar=None, validators=())
    - metavar: CLI-facing name (defaults to the parameter name).
    - validators: callables checking each converted value (see helmsman.validators).
    """

    def __init__(self, type=Unset, /, *, default=Unset, multiple=False, description=None, metavar=None, validators=()):
        if type is not Unset and not callable(type):
            raise TypeError("argument 'type' must be callable")
        self.type = type
        self.default = default
        self.multiple = multiple
        self.description = description
        self.metavar = metavar
        self.validators = validators

    def __parameter__(self, name, annotation=Unset, default=Unset):
        default = coalesce(self.default, default)
        return ParameterDescriptor(
            self.metavar or name.replace("_", "-").strip("-"),
            ParameterKind.POSITIONAL,
            _infer(self.type, annotation, default, self.multiple),
            default=default,
            multiple=self.multiple,
            description=self.description,
            dest=name,
            validators=self.validators,
        )

    def __repr__(self):
        return f"Argument(type={self.type!r}, default={self.default!r})"


class Option:
    """
    Named option marker.

    Option(*names, type=Unset, default=Unset, env=None, multiple=False, description=None, validators=())
    - names: '-x' (at most one) and/or '--name' spellings. The first long
      name is the option name, the others are aliases. Without long names
      the parameter name is used.
    """

    def __init__(self, *names, type=Unset, default=Unset, env=None, multiple=False, description=None, validators=()):
        if type is not Unset and not callable(type):
            raise TypeError("option 'type' must be callable")
        self.short, self.longs = _sanitize_spellings(builtins.type(self), names)
        self.type = type
        self.default = default
        self.env = env
        self.multiple = multiple
        self.description = description
        self.validators = validators

    def __parameter__(self, name, annotation=Unset, default=Unset):
        default = coalesce(self.default, default)
        longs = self.longs or [name.replace("_", "-").strip("-")]
        return ParameterDescriptor(
            longs[0],
            ParameterKind.NAMED,
            _infer(self.type, annotation, default, self.multiple),
            default=default,
            short=self.short,
            aliases=longs[1:],
            env=self.env,
            multiple=self.multiple,
            description=self.description,
            dest=name,
            validators=self.validators,
        )

    def __repr__(self):
        return "Option(%s)" % ", ".join(map(repr, ([f"-{self.short}"] if self.short else []) + [f"--{name}" for name in self.longs]))


class Options:
    """
    Container marker: the factory's parameters are bound as if declared inline,
    then `factory(**values)` is passed to the action.

    Options(factory=Unset, *, description=None, name=None)
    - factory: defaults to the parameter annotation.
    """

    def __init__(self, factory=Unset, /, *, description=None, name=None):
        if factory is not Unset and not callable(factory):
            raise TypeError("options 'factory' must be callable")
        self.factory = factory
        self.description = description
        self.name = name

    def __parameter__(self, name, annotation=Unset, default=Unset):
        factory = coalesce(self.factory, annotation)
        if factory is Unset:
            raise TypeError(f"options parameter {name!r} needs a factory or an annotation")
        return ParameterDescriptor(
            name.replace("_", "-").strip("-"),
            ParameterKind.CONTAINER,
            group=group(factory, name=self.name, description=self.description),
            description=self.description,
            dest=name,
        )

    def __repr__(self):
        return f"Options({self.factory!r})"


def _adapter(callback, positional):
    """
    internal: let a callback with positional-only parameters be called by keyword.
    """
    if not positional:
        return callback

    @functools.wraps(callback)
    def adapter(*args, **kwargs):
        return callback(*args, *[kwargs.pop(name) for name in positional], **kwargs)

    return adapter


def _scan(callback, *, skip=0, reserved=()):
    """
    internal: turn a callable's signature into ParameterDescriptors.

    Returns (descriptors, positional-only names).
    """
    try:
        signature = inspect.signature(callback, eval_str=True)
    except (TypeError, ValueError, NameError):
        raise TypeError(f"cannot inspect the signature of {callback!r}") from None

    descriptors, positional = [], []
    for parameter in list(signature.parameters.values())[skip:]:
        name = parameter.name
        if name in reserved:
            continue
        if parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD):
            raise TypeError(f"{callback.__qualname__}() parameter {name!r} cannot be variadic")

        annotation = Unset if parameter.annotation is Parameter.empty else parameter.annotation
        default = Unset if parameter.default is Parameter.empty else parameter.default

        if hasattr(default, "__parameter__") and callable(default.__parameter__):
            marker, default = default, Unset
        elif parameter.kind is Parameter.KEYWORD_ONLY:
            marker = Option()
        else:
            marker = Argument()

        descriptors.append(marker.__parameter__(name, annotation, default))
        if parameter.kind is Parameter.POSITIONAL_ONLY:
            positional.append(name)
    return tuple(descriptors), tuple(positional)


def group(factory, /, *, name=None, description=None):
    """
    Build an OptionsGroup from a factory's signature.
    """
    members, positional = _scan(factory)
    return OptionsGroup(
        name or getattr(factory, "__name__", "options").lower(),
        members,
        _adapter(factory, positional),
        description=description or None,
    )


def _hooks(object):
    return tuple(getattr(object, "__hooks__", ()))


def _hooker(phase):
    def decorator(hook, /, order=0, *, name=None):
        binding = HookBinding(hook, phase, order, name=name)

        def wrapper(object):
            # outer decorators run last but are declared first
            object.__hooks__ = (binding, *_hooks(object))
            return object

        return rename(wrapper, phase.name.lower())

    return decorator


before = rename(_hooker(Phase.BEFORE), "before")
before.__doc__ = "Attach hook(context) to run before the action or command."

after = rename(_hooker(Phase.AFTER), "after")
after.__doc__ = "Attach hook(context, result) to run after a successful invocation."

on_error = rename(_hooker(Phase.ON_ERROR), "on_error")
on_error.__doc__ = "Attach hook(context, fault) to run on failure; a truthy return handles the fault."


def action(name=None, /, *, primary=False, aliases=(), description=None, exit_codes=None, cancellable=False, globals=False):
    """
    Mark a method of a @command class as an action.
    """
    if callable(name):
        return action()(name)

    def wrapper(callback):
        callback.__action__ = {
            "name": name or callback.__name__.replace("_", "-").strip("-"),
            "primary": primary,
            "aliases": aliases,
            "description": description or inspect.getdoc(callback),
            "exit_codes": exit_codes,
            "cancellable": cancellable,
            "globals": globals,
        }
        return callback

    return wrapper


def command(name=None, /, *, aliases=(), description=None, exit_codes=None, **options):
    """
    Declare a command from a class (actions as methods) or from a function
    (a single primary action). `options` are forwarded to that primary action
    (cancellable, exit_codes of the action, ...).
    """
    if callable(name):
        return command()(name)

    def wrapper(object):
        object.__command__ = {
            "name": name or object.__name__.lower().replace("_", "-").strip("-"),
            "aliases": aliases,
            "description": description or inspect.getdoc(object),
            "exit_codes": exit_codes,
            "options": options,
        }
        return object

    return wrapper


def _describe_action(callback, metadata, owner):
    reserved = [keyword for keyword, flag in (("cancellation", metadata["cancellable"]), ("globals", metadata["globals"])) if flag]
    parameters, positional = _scan(callback, skip=1 if owner is not None else 0, reserved=reserved)
    return ActionDescriptor(
        metadata["name"],
        _adapter(callback, positional),
        parameters,
        primary=metadata["primary"],
        hooks=_hooks(callback),
        aliases=metadata["aliases"],
        description=metadata["description"],
        exit_codes=metadata["exit_codes"],
        owner=owner,
        cancellable=metadata["cancellable"],
        globals=metadata["globals"],
    )


def describe(object, /):
    """
    Build the CommandDescriptor of a @command-decorated class or function.
    """
    metadata = getattr(object, "__command__", None)
    if metadata is None:
        raise TypeError(f"{object!r} is not a @command")

    if inspect.isclass(object):
        actions, commands = [], []
        for member in vars(object).values():
            if isinstance(member, (staticmethod, classmethod)) and hasattr(member.__func__, "__action__"):
                raise TypeError(f"@command {metadata['name']!r} actions must be plain methods")
            if inspect.isclass(member) and hasattr(member, "__command__"):
                commands.append(describe(member))
            elif inspect.isfunction(member) and hasattr(member, "__action__"):
                actions.append(_describe_action(member, member.__action__, object))
    else:
        actions = [_describe_action(object, {
            "name": metadata["name"],
            "primary": True,
            "aliases": (),
            "description": None,
            "exit_codes": None,
            "cancellable": False,
            "globals": False,
        } | metadata["options"], None)]
        commands = []

    return CommandDescriptor(
        metadata["name"],
        actions,
        commands,
        hooks=_hooks(object) if inspect.isclass(object) else (),
        aliases=metadata["aliases"],
        description=metadata["description"],
        exit_codes=metadata["exit_codes"],
    )


def build(*commands, description=None, globals=None):
    """
    Build and validate a Registry from @command classes and functions.
    """
    if globals is not None and not isinstance(globals, OptionsGroup):
        globals = group(globals, name="globals")
    return Registry(tuple(map(describe, commands)), description=description, globals=globals)


__all__ = (
    "Argument",
    "Option",
    "Options",
    "group",
    "command",
    "action",
    "before",
    "after",
    "on_error",
    "describe",
    "build",
)
