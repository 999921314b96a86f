"""
Smoke tests for the demo command tree in main.py.
"""
import io
import unittest
from unittest import TestCase, mock

from rich.console import Console

import main
from helmsman import ShowUsage, invoke


class TestDemo(TestCase):
    def setUp(self) -> None:
        self.output = Console(file=io.StringIO(), width=120, color_system=None)
        patcher = mock.patch.object(main, "console", self.output)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.args = main.Arguments()
        self.root = main.build(self.args, "demo")

    def printed(self):
        return self.output.file.getvalue()

    def testIsolatedCommand(self):
        self.root.run(["foo", "-delta", "2", "-echo", "hi"])
        self.assertEqual(self.printed().split(), ["hi", "hi"])

    def testInheritedCommand(self):
        self.root.run(["bar", "-alpha", "1", "cities", "-bravo"])
        self.assertIn("Balikpapan", self.printed())
        self.assertEqual(self.args.bar.alpha, 1)

    def testDestOverride(self):
        self.root.run(["bar", "oof", "-chuck", "mingus"])
        self.assertIn("'mingus' is 42 years old", self.printed())

    def testForcedUsage(self):
        with self.assertRaises(ShowUsage) as context:
            self.root.run(["bar", "oof", "-bravo"])
        self.assertEqual(str(context.exception), "demo force show usage")

    def testNestedError(self):
        with self.assertRaises(RuntimeError):
            self.root.run(["bar", "nested", "bravo"])
        self.assertIn("called bar.nested.bravo", self.printed())
        self.assertIs(self.root.delegator.selected.selected, self.root.delegator.selected.children["nested"])

    def testVerboseHook(self):
        self.root.run(["-verbose", "bar", "nested", "alfa"])
        self.assertIn("dispatching", self.printed())
        self.assertIn("called bar.nested.alfa", self.printed())

    def testExitStatuses(self):
        tests = [
            ("foo -h", 1),
            ("bar cities -h", 1),
            ("bar oof -bravo", 1),
            ("foo -nope", 2),
        ]
        for prompt, status in tests:
            with self.subTest(prompt=prompt):
                with self.assertRaises(SystemExit) as context:
                    invoke(main.build(main.Arguments(), "demo"), prompt)
                self.assertEqual(context.exception.code, status)


if __name__ == "__main__":
    unittest.main()
