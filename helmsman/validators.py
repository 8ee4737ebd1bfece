"""
Helmsman value validators: checks run on a parameter's converted values.

Overview
- A validator is any callable taking the converted value; it raises
  ValueError (or any other exception) to reject it. The exception text
  completes the fault message: "invalid value '0' for --port: <text>".
- An optional `expected` attribute describes what the validator accepts;
  it is reported as the fault's expected value and hint.
- Validators run after conversion, once per value (every element of a
  `multiple` parameter), for command-line and environment values alike.
  Defaults are trusted and never validated. None is always accepted.

Built-in validators
- Range(minimum=None, maximum=None): inclusive numeric bounds.
- Pattern(pattern, message=None, flags=0): regular expression searched in
  str(value); anchor it with ^...$ to match the whole value.
- FileExists(message=None) / DirectoryExists(message=None): path checks for
  str or os.PathLike values.

Usage
    port: int = Option("--port", validators=(Range(1, 65535),))
"""
import os
import re


class Range:
    """
    Accept numbers between `minimum` and `maximum` (both inclusive, either may
    be omitted).
    """

    def __init__(self, minimum=None, maximum=None):
        if minimum is None and maximum is None:
            raise TypeError("range needs a minimum, a maximum, or both")
        if minimum is not None and maximum is not None and minimum > maximum:
            raise ValueError(f"range minimum ({minimum}) cannot be greater than its maximum ({maximum})")
        self.minimum = minimum
        self.maximum = maximum

    @property
    def bounds(self):
        if self.minimum is None:
            return f"at most {self.maximum}"
        if self.maximum is None:
            return f"at least {self.minimum}"
        return f"between {self.minimum} and {self.maximum}"

    @property
    def expected(self):
        return f"a value {self.bounds}"

    def __call__(self, value):
        if value is None:
            return
        if (self.minimum is not None and value < self.minimum) or (self.maximum is not None and value > self.maximum):
            raise ValueError(f"must be {self.bounds}")

    def __repr__(self):
        return f"Range({self.minimum!r}, {self.maximum!r})"


class Pattern:
    """
    Accept values whose text contains a match of `pattern`.
    """

    def __init__(self, pattern, /, message=None, flags=0):
        if not isinstance(pattern, str) or not pattern.strip():
            raise ValueError("pattern must be a non-empty string")
        self.pattern = re.compile(pattern, flags)
        self.message = message

    @property
    def expected(self):
        return f"a value matching {self.pattern.pattern!r}"

    def __call__(self, value):
        if value is None:
            return
        if not self.pattern.search(str(value)):
            raise ValueError(self.message or f"does not match {self.pattern.pattern!r}")

    def __repr__(self):
        return f"Pattern({self.pattern.pattern!r})"


def _path(cls, value):
    if not isinstance(value, (str, os.PathLike)):
        raise TypeError(f"{cls.__name__} only applies to paths, got {type(value).__name__}")
    return os.fspath(value)


class FileExists:
    """
    Accept paths naming an existing file.
    """
    expected = "the path of an existing file"

    def __init__(self, message=None):
        self.message = message

    def __call__(self, value):
        if value is None:
            return
        if not os.path.isfile(path := _path(type(self), value)):
            raise ValueError(self.message or f"file {path!r} does not exist")

    def __repr__(self):
        return "FileExists()"


class DirectoryExists:
    """
    Accept paths naming an existing directory.
    """
    expected = "the path of an existing directory"

    def __init__(self, message=None):
        self.message = message

    def __call__(self, value):
        if value is None:
            return
        if not os.path.isdir(path := _path(type(self), value)):
            raise ValueError(self.message or f"directory {path!r} does not exist")

    def __repr__(self):
        return "DirectoryExists()"


__all__ = (
    "Range",
    "Pattern",
    "FileExists",
    "DirectoryExists",
)
