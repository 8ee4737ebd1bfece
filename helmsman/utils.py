"""
Helmsman utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the registry, the binder, the hook pipeline
  and the dispatcher so every layer agrees on the same semantics.

Overview
- UnsetType / Unset
  • Singleton sentinel for “value not provided”, distinct from None.
  • Falsey, printable as "Unset", non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default; None/0/""/() are preserved.

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated callables.

- freeze(object, deep=False)
  • Read-only snapshot for containers (tuple, MappingProxyType, frozenset),
    optionally recursive.

- ordinal(number)
  • Human-friendly 1-based ordinal ("first", "second", ..., "21st").

- suggest(word, candidates)
  • "Did you mean" candidates, closest first (difflib based).

- settle(object)
  • Await the object when it is awaitable; return it unchanged otherwise.

Usage guidance
- Prefer Unset for defaults when None is a meaningful user value; materialize with coalesce().
"""
import builtins
import difflib
import functools
import inspect
from collections.abc import Sequence, Mapping, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Used where None is a legitimate value (a nullable parameter's default, a
    hook result) and the engine still needs to tell “not provided” apart.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Non-subclassable and a per-process singleton.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Returns object unless it is Unset, in which case default is returned.
    Falsey values like None, 0, "" or () are returned as-is.
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable
    - rename(name) -> decorator
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def freeze(object, /, *, deep=False):
    """
    Read-only snapshot of a container.

    Freezing rules
    - Sequence (non-string) → tuple; tuple subclasses such as named tuples
                             are returned as-is
    - Mapping              → MappingProxyType over a private copy
    - Set                  → frozenset
    - anything else        → returned as-is

    With `deep`, nested containers are frozen too.
    """
    def inner(item):
        return freeze(item, deep=True) if deep else item

    if isinstance(object, tuple) and type(object) is not tuple:
        return object
    if isinstance(object, Sequence) and not isinstance(object, (str, bytes, bytearray)):
        return tuple(map(inner, object))
    if isinstance(object, Mapping):
        return MappingProxyType({key: inner(value) for key, value in object.items()})
    if isinstance(object, Set):
        return frozenset(map(inner, object))
    return object


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with the right English suffix.
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    # 11th, 12th, 13th (and 111th, 112th, 113th, …)
    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def suggest(word, candidates, /, limit=3):
    """
    Return up to `limit` candidates close to `word`, best match first.

    Matching is case-insensitive; the original spelling of each candidate is
    returned. An empty tuple means nothing is close enough to be worth
    suggesting.
    """
    if not isinstance(word, str) or not word:
        return ()
    folded = {}
    for candidate in candidates:
        folded.setdefault(candidate.lower(), candidate)
    matches = difflib.get_close_matches(word.lower(), folded.keys(), limit, 0.6)
    return tuple(folded[match] for match in matches)


async def settle(object, /):
    """
    Await `object` when it is awaitable, otherwise hand it back unchanged.

    Lets hooks and actions be plain functions or coroutine functions without
    the pipeline having to know which one it is calling.
    """
    if inspect.isawaitable(object):
        return await object
    return object


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

Notes
- Singleton: there is only one Unset instance.
- Distinct from None; falsey; materialize with coalesce().
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "freeze",
    "ordinal",
    "suggest",
    "settle",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
