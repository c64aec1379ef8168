"""
Tests for the internal helpers (Unset sentinel, coalesce, rename, mirror).

Conventions
- Test method names follow CamelCase per project convention.
"""
import copy
import unittest
from unittest import TestCase

from commandtree.utils import Unset, UnsetType, coalesce, mirror, rename


class UnsetTest(TestCase):

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)

    def testFalsy(self):
        self.assertFalse(Unset)
        self.assertEqual(repr(Unset), "Unset")

    def testFinalClass(self):
        with self.assertRaises(TypeError):
            type("Subclass", (UnsetType,), {})


class HelpersTest(TestCase):

    def testCoalescePreservesFalseyValues(self):
        self.assertEqual(coalesce(Unset, True), True)
        self.assertIs(coalesce(None, True), None)
        self.assertIs(coalesce(False, True), False)

    def testRenameForms(self):
        def work():
            pass

        self.assertEqual(rename(work, "job").__name__, "job")
        self.assertEqual(rename("task")(work).__qualname__, "task")
        with self.assertRaises(TypeError):
            rename(1, "job")

    def testMirrorReturnsCopies(self):
        class Holder:
            items = mirror("items")

            def __init__(self):
                self._items = {"a": 1}

        holder = Holder()
        holder.items["b"] = 2
        self.assertEqual(holder.items, {"a": 1})


if __name__ == "__main__":
    unittest.main()
