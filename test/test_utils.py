"""
Utility tests (sentinel, small helpers).

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import asyncio
import collections
import pickle
import unittest
from types import MappingProxyType
from unittest import TestCase

from helmsman.utils import Unset, UnsetType, coalesce, freeze, ordinal, rename, settle, suggest


class TestUnset(TestCase):
    """The sentinel itself."""

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)
        self.assertFalse(Unset)
        self.assertEqual(repr(Unset), "Unset")

    def testNotSubclassable(self):
        with self.assertRaises(TypeError):
            type("Other", (UnsetType,), {})

    def testCoalesce(self):
        self.assertEqual(coalesce(Unset, 3), 3)
        self.assertIsNone(coalesce(Unset))
        for value in (None, 0, "", ()):
            self.assertIs(coalesce(value, 3), value)


class TestHelpers(TestCase):
    """rename, freeze, ordinal, suggest, settle."""

    def testRename(self):
        @rename("renamed")
        def original():
            pass

        self.assertEqual((original.__name__, original.__qualname__), ("renamed", "renamed"))
        with self.assertRaises(TypeError):
            rename(1, "x")
        with self.assertRaises(TypeError):
            rename()

    def testFreeze(self):
        self.assertEqual(freeze([1, 2]), (1, 2))
        self.assertEqual(freeze({1, 2}), frozenset({1, 2}))
        self.assertEqual(freeze("text"), "text")

        source = {"a": 1}
        frozen = freeze(source)
        self.assertIsInstance(frozen, MappingProxyType)
        source["b"] = 2
        self.assertNotIn("b", frozen)

    def testDeepFreeze(self):
        self.assertEqual(freeze([1, [2, {3}]]), (1, [2, {3}]))
        self.assertEqual(freeze([1, [2, {3}]], deep=True), (1, (2, frozenset({3}))))
        nested = freeze({"tags": ["a"]}, deep=True)
        self.assertEqual(nested["tags"], ("a",))

        Point = collections.namedtuple("Point", "x y")
        self.assertIs(type(freeze(Point(1, 2), deep=True)), Point)

    def testOrdinal(self):
        self.assertEqual([ordinal(number) for number in (1, 2, 3, 10)], ["first", "second", "third", "tenth"])
        self.assertEqual([ordinal(number) for number in (11, 12, 13, 21, 22, 23, 101, 112)], [
            "11th", "12th", "13th", "21st", "22nd", "23rd", "101st", "112th",
        ])

    def testSuggest(self):
        self.assertEqual(suggest("stats", ["status", "push", "pull"]), ("status",))
        self.assertEqual(suggest("STATUS", ["Status"]), ("Status",))
        self.assertEqual(suggest("zzz", ["status"]), ())
        self.assertEqual(suggest("", ["status"]), ())
        self.assertEqual(suggest(None, ["status"]), ())

    def testSettle(self):
        async def coroutine():
            return 5

        self.assertEqual(asyncio.run(settle(coroutine())), 5)
        self.assertEqual(asyncio.run(settle(4)), 4)


if __name__ == "__main__":
    unittest.main()
