"""
Binder tests.

Scope
- Named and positional passes, switch semantics, repeated options.
- Strict, locale-invariant conversion and its faults.
- Environment fallbacks, defaults and container groups.

Conventions
- Test method names follow CamelCase per project convention.
- Tokens are produced with tokenize() so inputs read like command lines.
"""

from __future__ import annotations

import enum
import types
import unittest
from dataclasses import dataclass
from unittest import TestCase

from helmsman.binder import bind, bind_globals, detach
from helmsman.faults import (
    ExitCode,
    InvalidValueError,
    MissingArgumentError,
    MissingOptionValueError,
    UnexpectedArgumentError,
    UnknownOptionError,
)
from helmsman.registry import OptionsGroup, ParameterDescriptor, ParameterKind
from helmsman.tokens import LongOption, Positional, ShortOption, Terminator, tokenize

POSITIONAL = ParameterKind.POSITIONAL
NAMED = ParameterKind.NAMED
CONTAINER = ParameterKind.CONTAINER


class Color(enum.Enum):
    RED = "red"
    GREEN = "green"


def run(parameters, *args, environ=None):
    return bind(parameters, tokenize(args), environ=environ or {})


class TestNamedPass(TestCase):
    """Options, switches and their faults."""

    def setUp(self):
        self.parameters = (
            ParameterDescriptor("to", NAMED, default="world"),
            ParameterDescriptor("verbose", NAMED, bool, short="v"),
            ParameterDescriptor("count", NAMED, int, short="n", default=1),
        )

    def testRoundTrip(self):
        bound = run(self.parameters, "--to", "bob", "-v", "-n3")
        self.assertEqual(dict(bound), {"to": "bob", "verbose": True, "count": 3})

    def testInlineAndSpacedValuesAgree(self):
        self.assertEqual(run(self.parameters, "--to=bob"), run(self.parameters, "--to", "bob"))

    def testSwitchAbsentIsFalse(self):
        self.assertIs(run(self.parameters)["verbose"], False)

    def testSwitchPresentIsTrue(self):
        self.assertIs(run(self.parameters, "--verbose")["verbose"], True)

    def testSwitchInlineValue(self):
        self.assertIs(run(self.parameters, "--verbose=off")["verbose"], False)

    def testSwitchNeverConsumesNextToken(self):
        parameters = self.parameters + (ParameterDescriptor("file"),)
        bound = run(parameters, "-v", "false")
        self.assertIs(bound["verbose"], True)
        self.assertEqual(bound["file"], "false")

    def testLastValueWins(self):
        self.assertEqual(run(self.parameters, "--to=a", "--to=b")["to"], "b")

    def testMissingOptionValueAtEnd(self):
        with self.assertRaises(MissingOptionValueError) as context:
            run(self.parameters, "--to")
        self.assertEqual(context.exception.parameter, "to")
        self.assertEqual(context.exception.exit_code, ExitCode.USAGE_ERROR)

    def testMissingOptionValueBeforeOption(self):
        with self.assertRaises(MissingOptionValueError):
            run(self.parameters, "--to", "-v")

    def testMissingOptionValueBeforeTerminator(self):
        with self.assertRaises(MissingOptionValueError):
            run(self.parameters, "--to", "--", "bob")

    def testUnknownOption(self):
        with self.assertRaises(UnknownOptionError) as context:
            run(self.parameters, "--bogus")
        self.assertEqual(context.exception.name, "bogus")

    def testUnknownOptionSuggestions(self):
        with self.assertRaises(UnknownOptionError) as context:
            run(self.parameters, "--verbos")
        self.assertIn("--verbose", context.exception.suggestions)

    def testUnknownShortOption(self):
        with self.assertRaises(UnknownOptionError):
            run(self.parameters, "-x")

    def testAliases(self):
        parameters = (ParameterDescriptor("output", NAMED, aliases=("out",)),)
        self.assertEqual(run(parameters, "--out=x")["output"], "x")

    def testMultipleAccumulates(self):
        parameters = (ParameterDescriptor("tag", NAMED, multiple=True, short="t"),)
        self.assertEqual(run(parameters, "--tag=a", "--tag", "b", "-t", "c", "-tc")["tag"], ("a", "b", "c", "c"))

    def testMultipleKeepsCommasInEitherForm(self):
        parameters = (ParameterDescriptor("tag", NAMED, multiple=True),)
        self.assertEqual(run(parameters, "--tag=a,b")["tag"], ("a,b",))
        self.assertEqual(run(parameters, "--tag=a,b"), run(parameters, "--tag", "a,b"))

    def testMultipleAbsentIsEmpty(self):
        parameters = (ParameterDescriptor("tag", NAMED, multiple=True),)
        self.assertEqual(run(parameters)["tag"], ())

    def testRequiredOptionMissing(self):
        parameters = (ParameterDescriptor("token", NAMED),)
        with self.assertRaises(MissingArgumentError) as context:
            run(parameters)
        self.assertEqual(context.exception.parameter, "token")

    def testOptionValueMayLookNegative(self):
        self.assertEqual(run(self.parameters, "--count", "-5")["count"], -5)

    def testOptionValueMayBeNegativeInfinity(self):
        parameters = (ParameterDescriptor("low", NAMED, float), ParameterDescriptor("high", NAMED, float))
        bound = run(parameters, "--low", "-inf", "--high", "-NaN")
        self.assertEqual(bound["low"], float("-inf"))
        self.assertNotEqual(bound["high"], bound["high"])


class TestPositionalPass(TestCase):
    """Positional filling, terminator handling and ordering of faults."""

    def setUp(self):
        self.parameters = (ParameterDescriptor("a", type=int), ParameterDescriptor("b", type=int))

    def testFillsInOrder(self):
        self.assertEqual(dict(run(self.parameters, "10", "5")), {"a": 10, "b": 5})

    def testMissingArgumentNamesFirstUnfilled(self):
        with self.assertRaises(MissingArgumentError) as context:
            run(self.parameters, "10")
        self.assertEqual(context.exception.parameter, "b")
        self.assertIn("second", context.exception.message)

    def testUnexpectedArgument(self):
        with self.assertRaises(UnexpectedArgumentError) as context:
            run(self.parameters, "1", "2", "3")
        self.assertEqual(context.exception.input, "3")

    def testTerminator(self):
        parameters = (ParameterDescriptor("pattern"),)
        self.assertEqual(run(parameters, "--", "--to")["pattern"], "--to")

    def testGreedyTrailingPositional(self):
        parameters = (ParameterDescriptor("target"), ParameterDescriptor("files", multiple=True))
        bound = run(parameters, "out", "a", "b", "--", "-c")
        self.assertEqual(bound["target"], "out")
        self.assertEqual(bound["files"], ("a", "b", "-c"))

    def testOptionalPositional(self):
        parameters = (ParameterDescriptor("name", default="world"),)
        self.assertEqual(run(parameters)["name"], "world")

    def testNamedErrorsComeFirst(self):
        parameters = self.parameters + (ParameterDescriptor("verbose", NAMED, bool),)
        with self.assertRaises(UnknownOptionError):
            run(parameters, "x", "--bogus")

    def testInterleavedOptions(self):
        parameters = self.parameters + (ParameterDescriptor("verbose", NAMED, bool, short="v"),)
        self.assertEqual(dict(run(parameters, "1", "-v", "2")), {"a": 1, "b": 2, "verbose": True})


class TestConversion(TestCase):
    """Locale-invariant conversion."""

    def convert(self, type, raw):
        return run((ParameterDescriptor("value", NAMED, type),), f"--value={raw}")["value"]

    def testIntegers(self):
        self.assertEqual(self.convert(int, "+5"), 5)
        self.assertEqual(self.convert(int, "-12"), -12)
        for raw in ("1_000", " 1", "1.0", "١٢", "", "0x10"):
            with self.subTest(raw=raw), self.assertRaises(InvalidValueError) as context:
                self.convert(int, raw)
            self.assertEqual(context.exception.raw, raw)
            self.assertEqual(context.exception.parameter, "value")

    def testFloats(self):
        self.assertEqual(self.convert(float, "1e3"), 1000.0)
        self.assertEqual(self.convert(float, ".5"), 0.5)
        self.assertEqual(self.convert(float, "-inf"), float("-inf"))
        for raw in ("1,5", "1_0.0", "", "one"):
            with self.subTest(raw=raw), self.assertRaises(InvalidValueError):
                self.convert(float, raw)

    def testBooleans(self):
        for raw in ("true", "YES", "1", "On"):
            with self.subTest(raw=raw):
                self.assertIs(self.convert(bool, raw), True)
        for raw in ("false", "no", "0", "OFF"):
            with self.subTest(raw=raw):
                self.assertIs(self.convert(bool, raw), False)
        with self.assertRaises(InvalidValueError):
            self.convert(bool, "maybe")

    def testEnums(self):
        self.assertIs(self.convert(Color, "red"), Color.RED)
        self.assertIs(self.convert(Color, "GREEN"), Color.GREEN)
        with self.assertRaises(InvalidValueError) as context:
            self.convert(Color, "blue")
        self.assertIn("red", context.exception.expected)

    def testCallableConverter(self):
        self.assertEqual(self.convert(lambda raw: raw[::-1], "abc"), "cba")

    def testConverterLookupFailure(self):
        levels = {"low": 1, "high": 2}
        self.assertEqual(self.convert(levels.__getitem__, "high"), 2)
        with self.assertRaises(InvalidValueError) as context:
            self.convert(levels.__getitem__, "zzz")
        self.assertEqual(context.exception.raw, "zzz")
        self.assertIsInstance(context.exception.__cause__, KeyError)

    def testConverterAnyException(self):
        def explode(raw):
            raise RuntimeError("backend unavailable")

        with self.assertRaises(InvalidValueError):
            self.convert(explode, "x")

    def testNullableNeverFromEmptyString(self):
        parameters = (ParameterDescriptor("count", NAMED, int | None),)
        self.assertIsNone(run(parameters)["count"])
        with self.assertRaises(InvalidValueError):
            run(parameters, "--count=")

    def testEmptyStringIsAValidString(self):
        self.assertEqual(self.convert(str, ""), "")


class TestFallbacks(TestCase):
    """Environment variables and defaults."""

    def setUp(self):
        self.parameters = (
            ParameterDescriptor("token", NAMED, env="APP_TOKEN"),
            ParameterDescriptor("retries", NAMED, int, env="APP_RETRIES", default=3),
            ParameterDescriptor("tag", NAMED, multiple=True, env="APP_TAGS"),
        )

    def testEnvironmentFillsAbsentOption(self):
        bound = run(self.parameters, environ={"APP_TOKEN": "secret", "APP_TAGS": "a,b"})
        self.assertEqual(bound["token"], "secret")
        self.assertEqual(bound["retries"], 3)
        self.assertEqual(bound["tag"], ("a", "b"))
        self.assertEqual(bound.sources["token"], "env")
        self.assertEqual(bound.sources["retries"], "default")

    def testCommandLineWinsOverEnvironment(self):
        bound = run(self.parameters, "--token=cli", "--retries=5", environ={"APP_TOKEN": "env", "APP_RETRIES": "9"})
        self.assertEqual(bound["token"], "cli")
        self.assertEqual(bound["retries"], 5)
        self.assertEqual(bound.sources["token"], "cli")

    def testEnvironmentWinsOverDefault(self):
        bound = run(self.parameters, environ={"APP_TOKEN": "x", "APP_RETRIES": "9"})
        self.assertEqual(bound["retries"], 9)

    def testInvalidEnvironmentValue(self):
        with self.assertRaises(InvalidValueError) as context:
            run(self.parameters, environ={"APP_TOKEN": "x", "APP_RETRIES": "many"})
        self.assertIn("APP_RETRIES", context.exception.hint)

    def testMissingWithoutEnvironment(self):
        with self.assertRaises(MissingArgumentError) as context:
            run(self.parameters)
        self.assertIn("APP_TOKEN", context.exception.hint)


class TestGroups(TestCase):
    """Container parameters and their factories."""

    def testDefaultFactoryIsNamespace(self):
        group = OptionsGroup("connection", (
            ParameterDescriptor("host", NAMED, short="H"),
            ParameterDescriptor("port", NAMED, int, default=22),
        ))
        parameters = (
            ParameterDescriptor("target"),
            ParameterDescriptor("connection", CONTAINER, group=group),
        )
        bound = run(parameters, "box", "-H", "example.org")
        self.assertEqual(bound["target"], "box")
        self.assertEqual(bound["connection"], types.SimpleNamespace(host="example.org", port=22))

    def testCustomFactoryAndNesting(self):
        @dataclass
        class Retry:
            attempts: int

        @dataclass
        class Client:
            url: str
            retry: Retry

        retry = OptionsGroup("retry", (ParameterDescriptor("attempts", NAMED, int, default=1),), Retry)
        client = OptionsGroup("client", (
            ParameterDescriptor("url", NAMED),
            ParameterDescriptor("retry", CONTAINER, group=retry),
        ), Client)

        bound = run((ParameterDescriptor("client", CONTAINER, group=client),), "--url=http://x", "--attempts=4")
        self.assertEqual(bound["client"], Client("http://x", Retry(4)))

    def testFactoryValueErrorIsInvalidValue(self):
        def positive(amount):
            if amount <= 0:
                raise ValueError("amount must be positive")
            return amount

        group = OptionsGroup("money", (ParameterDescriptor("amount", NAMED, int),), positive)
        with self.assertRaises(InvalidValueError):
            run((ParameterDescriptor("money", CONTAINER, group=group),), "--amount=-1")

    def testFactoryTypeErrorIsInvalidValue(self):
        def strict(*, host):
            return host

        group = OptionsGroup("connection", (
            ParameterDescriptor("host", NAMED, default="localhost"),
            ParameterDescriptor("port", NAMED, int, default=22),
        ), strict)
        with self.assertRaises(InvalidValueError) as context:
            run((ParameterDescriptor("connection", CONTAINER, group=group),))
        self.assertIn("connection", context.exception.message)
        self.assertIsInstance(context.exception.__cause__, TypeError)

    def testGroupMembersMissing(self):
        group = OptionsGroup("connection", (ParameterDescriptor("host", NAMED),))
        with self.assertRaises(MissingArgumentError) as context:
            run((ParameterDescriptor("connection", CONTAINER, group=group),))
        self.assertEqual(context.exception.parameter, "host")


class TestGlobals(TestCase):
    """Detaching and binding registry-level options."""

    def setUp(self):
        self.group = OptionsGroup("shared", (
            ParameterDescriptor("verbose", NAMED, bool, short="v"),
            ParameterDescriptor("config", NAMED, default="app.json", env="APP_CONFIG"),
        ))

    def testDetachAnywhereBeforeTerminator(self):
        detached, rest = detach(self.group, tokenize(["--verbose", "tool", "--config", "x.json", "run", "file", "--", "-v"]))
        self.assertEqual(detached, (LongOption("verbose"), LongOption("config"), Positional("x.json")))
        self.assertEqual(rest, (Positional("tool"), Positional("run"), Positional("file"), Terminator(), Positional("-v")))

    def testDetachKeepsUnrelatedOptions(self):
        detached, rest = detach(self.group, tokenize(["-v", "run", "--force", "-n3"]))
        self.assertEqual(detached, (ShortOption("v"),))
        self.assertEqual(rest, (Positional("run"), LongOption("force"), ShortOption("n", "3")))

    def testSwitchDoesNotTakeNextToken(self):
        detached, rest = detach(self.group, tokenize(["-v", "false"]))
        self.assertEqual(detached, (ShortOption("v"),))
        self.assertEqual(rest, (Positional("false"),))

    def testDetachWithoutGroup(self):
        tokens = tokenize(["--verbose", "run"])
        self.assertEqual(detach(None, tokens), ((), tokens))

    def testBindDefaults(self):
        bound = bind_globals(self.group, (), environ={})
        self.assertEqual(bound, types.SimpleNamespace(verbose=False, config="app.json"))

    def testBindValuesAndEnvironment(self):
        bound = bind_globals(self.group, tokenize(["-v"]), environ={"APP_CONFIG": "env.json"})
        self.assertEqual(bound, types.SimpleNamespace(verbose=True, config="env.json"))

    def testBindWithoutGroup(self):
        self.assertIsNone(bind_globals(None, ()))

    def testBindFaults(self):
        with self.assertRaises(MissingOptionValueError):
            bind_globals(self.group, tokenize(["--config"]), environ={})

    def testBoundArgumentsCarryGlobals(self):
        shared = bind_globals(self.group, (), environ={})
        bound = bind((ParameterDescriptor("name"),), tokenize(["x"]), environ={}, globals=shared)
        self.assertIs(bound.globals, shared)
        self.assertNotIn("globals", bound)


class TestBoundArguments(TestCase):
    """Read-only result mapping."""

    def testReadOnly(self):
        bound = run((ParameterDescriptor("name"),), "x")
        with self.assertRaises(TypeError):
            bound["name"] = "y"  # type: ignore[index]
        kwargs = bound.kwargs
        kwargs["name"] = "y"
        self.assertEqual(bound["name"], "x")

    def testDest(self):
        bound = run((ParameterDescriptor("dry-run", NAMED, bool),), "--dry-run")
        self.assertEqual(dict(bound), {"dry_run": True})


if __name__ == "__main__":
    unittest.main()
