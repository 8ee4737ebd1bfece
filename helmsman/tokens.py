"""
Helmsman token lexer.

Splits a raw argument vector into a structured stream of tokens. The lexer is
pure and total: it never raises and never looks at the registry, so the same
argv always produces the same tokens.

Token kinds
- Positional(text)                 → anything that is not an option
- LongOption(name, value=None)     → '--name' or '--name=value'
- ShortOption(letter, value=None)  → '-x', '-xvalue' or '-x=value'
- Terminator()                     → a lone '--'; every later token is Positional

Rules
- '--' followed by a non-empty name is a long option. '--=x' has no name and
  degrades to a positional.
- '-' followed by exactly one letter (and optionally an attached value) is a
  short option. '-', '-5' or '-.5' are positionals, which keeps negative
  numbers usable as values. '-inf', '-infinity' and '-nan' (any case) are
  positionals too, for the same reason.
- Inline values may be empty ('--name=' carries ''), the binder decides
  whether that is acceptable for the parameter type.

Example
    >>> tokenize(["add", "--to=bob", "-v", "--", "-x"])
    (Positional(text='add'), LongOption(name='to', value='bob'),
     ShortOption(letter='v', value=None), Terminator(), Positional(text='-x'))
"""
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Positional:
    text: str

    def __str__(self):
        return self.text


@dataclass(frozen=True, slots=True)
class LongOption:
    name: str
    value: str | None = None

    def __str__(self):
        return f"--{self.name}" if self.value is None else f"--{self.name}={self.value}"

    @property
    def spelling(self):
        return f"--{self.name}"


@dataclass(frozen=True, slots=True)
class ShortOption:
    letter: str
    value: str | None = None

    def __str__(self):
        return f"-{self.letter}" if self.value is None else f"-{self.letter}{self.value}"

    @property
    def name(self):
        return self.letter

    @property
    def spelling(self):
        return f"-{self.letter}"


@dataclass(frozen=True, slots=True)
class Terminator:
    def __str__(self):
        return "--"


_SPECIAL_NUMBERS = frozenset({"-inf", "-infinity", "-nan"})


def _classify(arg):
    if arg.startswith("--"):
        name, separator, value = arg[2:].partition("=")
        if not name:
            return Positional(arg)
        return LongOption(name, value if separator else None)

    if arg.lower() in _SPECIAL_NUMBERS:
        return Positional(arg)

    if arg.startswith("-") and len(arg) >= 2 and arg[1].isalpha():
        letter, rest = arg[1], arg[2:]
        if not rest:
            return ShortOption(letter)
        # '-x=value' and '-xvalue' both attach 'value'
        return ShortOption(letter, rest[1:] if rest.startswith("=") else rest)

    return Positional(arg)


def tokenize(args, /):
    """
    Turn an argument vector (program name excluded) into a tuple of tokens.

    Parameters
    - args: Iterable[str]
      raw arguments in order; non-string items are converted with str().

    Returns
    - tuple[Positional | LongOption | ShortOption | Terminator, ...]
    """
    tokens = []
    terminated = False
    for arg in args:
        arg = str(arg)
        if terminated:
            tokens.append(Positional(arg))
        elif arg == "--":
            tokens.append(Terminator())
            terminated = True
        else:
            tokens.append(_classify(arg))
    return tuple(tokens)


__all__ = (
    "Positional",
    "LongOption",
    "ShortOption",
    "Terminator",
    "tokenize",
)
