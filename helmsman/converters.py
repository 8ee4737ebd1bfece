"""
Helmsman value conversion: raw command-line strings → typed values.

Conversion is locale-invariant and strict:
- str     → the raw text, unchanged
- int     → [+-]?[0-9]+ (no grouping separators, no whitespace)
- float   → decimal or exponent notation, 'inf', 'infinity', 'nan'
- bool    → true/false, 1/0, yes/no, on/off (case-insensitive)
- Enum    → member name (case-insensitive), then str(member.value)
- other   → any callable taking the raw string; any exception raised by it
            (KeyError from a lookup table, TypeError, ...) is reported as an
            invalid value

A failure raises InvalidValueError(parameter, raw, expected). The empty string
is never turned into None: nullable parameters are None only when absent.

Validators declared on the parameter run on the converted value; a failure is
reported the same way, with the validator text completing the message.

Negative special floats ("-inf", "-nan") are lexed as values, not as short
options, so "--low -inf" binds as expected.
"""
import enum
import logging
import re

from .faults import InvalidValueError

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?[0-9]+")
_FLOAT = re.compile(
    r"[+-]?(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)

TRUTHY = frozenset({"true", "1", "yes", "on"})
FALSY = frozenset({"false", "0", "no", "off"})


def describe(type, /):
    """
    Return the human-readable name of what a type accepts (used in messages).
    """
    if type is str:
        return "a string"
    if type is bool:
        return "a boolean (true/false, yes/no, on/off, 1/0)"
    if type is int:
        return "an integer"
    if type is float:
        return "a number"
    if isinstance(type, enum.EnumMeta):
        return "one of: " + ", ".join(member.name.lower() for member in type)
    return "a valid %s" % getattr(type, "__name__", "value").lower()


def _to_int(raw):
    if not _INTEGER.fullmatch(raw):
        raise ValueError(raw)
    return int(raw)


def _to_float(raw):
    if not _FLOAT.fullmatch(raw):
        raise ValueError(raw)
    return float(raw)


def _to_bool(raw):
    folded = raw.lower()
    if folded in TRUTHY:
        return True
    if folded in FALSY:
        return False
    raise ValueError(raw)


def _to_enum(type, raw):
    folded = raw.lower()
    for member in type:
        if member.name.lower() == folded:
            return member
    for member in type:
        if str(member.value) == raw:
            return member
    raise ValueError(raw)


def parse(type, raw, /):
    """
    Convert `raw` to `type`, raising ValueError (or whatever the converter
    raises) when it does not fit.
    """
    if type is str:
        return raw
    if type is bool:
        return _to_bool(raw)
    if type is int:
        return _to_int(raw)
    if type is float:
        return _to_float(raw)
    if isinstance(type, enum.EnumMeta):
        return _to_enum(type, raw)
    return type(raw)


def convert(parameter, raw, /):
    """
    Convert one raw value for `parameter` (a ParameterDescriptor), then run
    the parameter's validators on the result.

    Raises
    - InvalidValueError carrying the parameter name, the raw text and the
      expected type description (or the failing validator's `expected`).
    """
    try:
        value = parse(parameter.type, raw)
    except Exception as error:
        logger.debug("conversion of %r for %s failed: %r", raw, parameter.name, error)
        expected = describe(parameter.type)
        raise InvalidValueError(
            f"invalid value {raw!r} for {parameter.spelling}, expected {expected}",
            parameter=parameter.name,
            raw=raw,
            expected=expected,
            hint=f"pass {expected} to {parameter.spelling}",
        ) from error

    for validator in parameter.validators:
        try:
            validator(value)
        except Exception as error:
            logger.debug("validation of %r for %s failed: %r", raw, parameter.name, error)
            expected = getattr(validator, "expected", None) or describe(parameter.type)
            raise InvalidValueError(
                f"invalid value {raw!r} for {parameter.spelling}: {error}",
                parameter=parameter.name,
                raw=raw,
                expected=expected,
                hint=f"pass {expected} to {parameter.spelling}",
            ) from error
    return value


__all__ = (
    "TRUTHY",
    "FALSY",
    "describe",
    "parse",
    "convert",
)
