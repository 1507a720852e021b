r"""
Commands module behavioral tests (the dispatch sequence).

Scope
- Validate the end-to-end scenario: bind, then run the default entry point.
- Validate action selection, the init hook and the fixed ordering of the phases.
- Validate the reserved switches: dry-run installs the interception, verbose traces.
- Validate fault surfacing: raised without shell, rendered with usage and exit 1 in shell mode.
- Validate that action failures propagate untouched.

Conventions
- Test method names follow CamelCase per project convention.
- Every dispatcher gets its own Variables and is rooted in a temporary directory.
"""

from __future__ import annotations

import io
import os
import shutil
import sys
import tempfile
import unittest
from unittest import TestCase, mock

from loguru import logger
from rich.console import Console

import bosun.commands as commands
import bosun.faults as faults
import bosun.proxy as proxy
from bosun import Dispatcher, Runner, Variables, invoke, parse
from bosun.faults import (
    CommandExit,
    MissingArgumentError,
    MissingEntryPointError,
    UnknownActionError,
    UnknownOptionError,
    WrongFormatError,
)

VERSION = r"--version-number=([0-9]+\.[0-9]+\.[0-9]+)"


class RecordingRunner(Runner):
    """Runner that records commands instead of running them."""

    def __init__(self, *, trace=False):
        super().__init__(trace=trace)
        self.calls = []

    def execute(self, command, args, /, **options):
        self.calls.append([command, *args])
        return 0


class DispatcherTestCase(TestCase):
    def setUp(self) -> None:
        self.addCleanup(os.chdir, os.getcwd())
        self.root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.root, ignore_errors=True)

        patcher = mock.patch.dict(os.environ)
        patcher.start()
        self.addCleanup(patcher.stop)
        os.environ.pop(proxy.DRYRUN, None)
        os.environ.pop(proxy.EXECUTABLE, None)

        patcher = mock.patch.object(proxy, "_runner", Runner())
        patcher.start()
        self.addCleanup(patcher.stop)

        self.variables = Variables()
        self.runner = RecordingRunner()
        self.events = []

    def dispatcher(self, definitions=(VERSION,), **options):
        options = {
            "name": "release.py",
            "root": self.root,
            "runner": self.runner,
            "variables": self.variables,
            "shell": False,
            "colorful": False,
        } | options
        return Dispatcher(definitions, **options)


class TestDispatchEndToEnd(DispatcherTestCase):
    """The version-number scenario."""

    def setUp(self) -> None:
        super().setUp()
        self.tool = self.dispatcher()

        @self.tool.main
        def main(argv):
            self.events.append(("main", argv))
            return "done"

    def testBindsAndRunsDefaultEntryPoint(self):
        self.assertEqual(self.tool.run(["--version-number=1.2.3"]), "done")
        self.assertEqual(self.variables.get("VERSION_NUMBER"), "1.2.3")
        self.assertEqual(self.events, [("main", ["--version-number=1.2.3"])])

    def testWrongFormat(self):
        with self.assertRaises(WrongFormatError):
            self.tool.run(["--version-number=abc"])
        self.assertEqual(self.events, [])

    def testMissing(self):
        with self.assertRaises(MissingArgumentError) as context:
            self.tool.run([])
        self.assertIn("version-number", context.exception.message)
        self.assertEqual(self.events, [])

    def testUnknownOption(self):
        with self.assertRaises(UnknownOptionError):
            self.tool.run(["--version-number=1.2.3", "--force"])

    def testFaultCarriesUsage(self):
        with self.assertRaises(MissingArgumentError) as context:
            self.tool.run([])
        self.assertEqual(
            context.exception.options["usage"],
            "usage: release.py " + " ".join([VERSION, *commands.RESERVED, r"[--action=[\w-]+]"]),
        )
        self.assertIs(context.exception.options["tool"], self.tool)

    def testRootsWorkingDirectory(self):
        self.tool.run(["--version-number=1.2.3"])
        self.assertEqual(os.path.realpath(os.getcwd()), os.path.realpath(self.root))

    def testInvoke(self):
        self.assertEqual(invoke(self.tool, ["--version-number=1.2.3"]), "done")

    def testInvokeRequiresInvocable(self):
        with self.assertRaises(TypeError):
            invoke(object())

    def testDefaultsToSysArgv(self):
        with mock.patch.object(sys, "argv", ["release.py", "--version-number=2.0.0"]):
            self.tool.run()
        self.assertEqual(self.events, [("main", ["--version-number=2.0.0"])])

    def testBindsIntoProcessWideVariablesByDefault(self):
        scope = Variables()
        with mock.patch.object(commands, "_variables", scope):
            tool = self.dispatcher(variables=commands.Unset)
            tool.main(lambda argv: None)
            tool.run(["--version-number=1.2.3"])
        self.assertIs(tool.variables, scope)
        self.assertEqual(scope.get("VERSION_NUMBER"), "1.2.3")

    def testUsageComesFromTheParsedSpecs(self):
        with self.assertRaises(MissingArgumentError) as context:
            self.tool.run([])
        specs = parse([VERSION, *commands.RESERVED, r"[--action=[\w-]+]"])
        self.assertEqual(self.tool.usage, specs.usage("release.py"))
        self.assertEqual(context.exception.options["usage"], self.tool.usage)

    def testLeavesHostLoggingAlone(self):
        messages = []
        sink = logger.add(messages.append, format="{message}")
        self.addCleanup(logger.remove, sink)
        self.tool.run(["--version-number=1.2.3"])
        logger.warning("configured by the host")
        self.assertTrue(any("configured by the host" in message for message in messages))


class TestDispatchActions(DispatcherTestCase):
    """Action selection, the init hook and ordering."""

    def setUp(self) -> None:
        super().setUp()
        self.tool = self.dispatcher(["--action=(prepare|publish)", VERSION])

        @self.tool.init
        def init(argv):
            self.events.append("init")

        @self.tool.action
        def prepare(argv):
            self.events.append("prepare")

        @self.tool.action("publish")
        def publishing(argv):
            self.events.append("publish")
            return argv

    def testInitThenAction(self):
        argv = ["--action=publish", "--version-number=1.2.3"]
        self.assertEqual(self.tool.run(argv), argv)
        self.assertEqual(self.events, ["init", "publish"])
        self.assertEqual(self.variables.get("ACTION"), "publish")

    def testActionsRegistry(self):
        self.assertEqual(self.tool.actions, ("prepare", "publish"))

    def testActionIsRequiredWhenDeclared(self):
        with self.assertRaises(MissingArgumentError):
            self.tool.run(["--version-number=1.2.3"])

    def testDuplicateActionName(self):
        with self.assertRaises(ValueError):
            @self.tool.action(name="prepare")
            def other(argv):
                pass

    def testActionMustBeCallable(self):
        with self.assertRaises(TypeError):
            self.tool.action("name")(3)

    def testUnregisteredActionMatchingPattern(self):
        tool = self.dispatcher(["--action=(prepare|publish)"])
        tool.action(lambda argv: None, name="prepare")
        with self.assertRaises(UnknownActionError):
            tool.run(["--action=publish"])

    def testUndeclaredActionSelectorIsAlwaysRecognized(self):
        def dispatch(*argv):
            tool = self.dispatcher([VERSION], variables=Variables())
            tool.action(lambda argv: self.events.append("deploy"), name="deploy")
            tool.main(lambda argv: self.events.append("main"))
            tool.run(["--version-number=1.2.3", *argv])

        dispatch("--action=deploy")
        dispatch()
        self.assertEqual(self.events, ["deploy", "main"])
        with self.assertRaises(UnknownActionError):
            dispatch("--action=nope")

    def testActionDoesNotCarryOverToTheNextRun(self):
        tool = self.dispatcher([VERSION])
        tool.action(lambda argv: self.events.append("publish"), name="publish")
        tool.main(lambda argv: self.events.append("main"))
        tool.run(["--version-number=1.2.3", "--action=publish"])
        tool.run(["--version-number=1.2.4"])
        self.assertEqual(self.events, ["publish", "main"])
        self.assertEqual(dict(self.variables), {"VERSION_NUMBER": "1.2.4"})

    def testFailedRunLeavesVariablesUntouched(self):
        tool = self.dispatcher([VERSION])
        tool.main(lambda argv: self.events.append("main"))
        with self.assertRaises(UnknownOptionError):
            tool.run(["--version-number=1.2.3", "--bogus=1"])
        self.assertEqual(dict(self.variables), {})
        self.assertEqual(self.events, [])

    def testMissingEntryPointAfterInit(self):
        tool = self.dispatcher([VERSION])
        tool.init(lambda argv: self.events.append("init"))
        with self.assertRaises(MissingEntryPointError):
            tool.run(["--version-number=1.2.3"])
        self.assertEqual(self.events, ["init"])

    def testActionFailurePropagates(self):
        tool = self.dispatcher([])

        @tool.main
        def main(argv):
            sys.exit(4)

        with self.assertRaises(SystemExit) as context:
            tool.run([])
        self.assertEqual(context.exception.code, 4)

    def testActionExceptionIsNotTranslated(self):
        tool = self.dispatcher([])
        tool.main(mock.Mock(side_effect=OSError("copy failed")))
        with self.assertRaises(OSError):
            tool.run([])


class TestDispatchReservedSwitches(DispatcherTestCase):
    """Dry-run and verbose switches."""

    EXECUTABLE = "/opt/git/bin/git"

    def setUp(self) -> None:
        super().setUp()
        self.tool = self.dispatcher([])

        @self.tool.main
        def main(argv):
            self.events.append("main")
            self.tool.runner("git", "push", "origin", "master")

        patcher = mock.patch.object(commands, "setup_logging")
        self.logging = patcher.start()
        self.addCleanup(patcher.stop)

        self.console = Console(file=io.StringIO(), width=400, color_system=None)
        patcher = mock.patch.object(proxy, "console", self.console)
        patcher.start()
        self.addCleanup(patcher.stop)

    def install(self, runner=commands.Unset):
        """stand-in for proxy.install() that records when it ran"""
        installed = proxy.DryRunProxy("git", self.EXECUTABLE, runner=runner)

        def install():
            self.events.append("install")
            proxy._runner = installed
            return installed

        return mock.patch.object(proxy, "install", side_effect=install)

    def testDryRunWrapsInjectedRunner(self):
        with self.install() as install:
            self.tool.run(["--git-push-dryrun=true"])
        install.assert_called_once_with()
        self.assertEqual(self.events, ["install", "main"])
        self.assertEqual(self.runner.calls, [[self.EXECUTABLE, "push", "origin", "master", "--dry-run", "--porcelain"]])
        self.assertIs(self.tool.runner.inner, self.runner)
        self.assertIn(proxy.START, self.console.file.getvalue())

    def testRepeatedDryRunsWrapOnce(self):
        with self.install():
            self.tool.run(["--git-push-dryrun=true"])
            self.tool.run(["--git-push-dryrun=true"])
        flagged = [self.EXECUTABLE, "push", "origin", "master", "--dry-run", "--porcelain"]
        self.assertEqual(self.runner.calls, [flagged, flagged])

    def testDryRunUsesProcessWideProxyWithoutInjectedRunner(self):
        tool = self.dispatcher([], runner=commands.Unset)
        tool.main(lambda argv: tool.runner("git", "push", "origin", "master"))
        with self.install(self.runner):
            tool.run(["--git-push-dryrun=true"])
        self.assertIs(tool.runner, proxy.runner())
        self.assertEqual(self.runner.calls, [[self.EXECUTABLE, "push", "origin", "master", "--dry-run", "--porcelain"]])

    def testBareDryRunIsAffirmative(self):
        with self.install() as install:
            self.tool.run(["--git-push-dryrun"])
        install.assert_called_once_with()

    def testDryRunFalse(self):
        with mock.patch.object(proxy, "install") as install:
            self.tool.run(["--git-push-dryrun=false"])
        install.assert_not_called()
        self.assertIs(self.tool.runner, self.runner)
        self.assertEqual(self.runner.calls, [["git", "push", "origin", "master"]])

    def testDryRunAbsent(self):
        with mock.patch.object(proxy, "install") as install:
            self.tool.run([])
        install.assert_not_called()

    def testDryRunInherited(self):
        os.environ[proxy.DRYRUN] = "true"
        with self.install() as install:
            self.tool.run([])
        install.assert_called_once_with()

    def testVerboseTraces(self):
        with mock.patch.object(proxy, "trace") as trace:
            self.tool.run(["--verbose=true"])
        trace.assert_called_once_with(True)
        self.assertTrue(self.runner.trace)
        self.logging.assert_called_once_with(verbose=True)

    def testQuietByDefault(self):
        with mock.patch.object(proxy, "trace") as trace:
            self.tool.run(["--verbose=false"])
        trace.assert_not_called()
        self.logging.assert_not_called()
        self.assertFalse(self.runner.trace)
        self.assertEqual(self.events, ["main"])


class TestDispatchShell(DispatcherTestCase):
    """Fault rendering in shell mode."""

    def setUp(self) -> None:
        super().setUp()
        self.console = Console(file=io.StringIO(), width=400, color_system=None)
        patcher = mock.patch.object(faults, "console", self.console)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.tool = self.dispatcher(["--first=.+", "--second=.+", VERSION], shell=True)
        self.tool.main(lambda argv: self.events.append("main"))

    @property
    def output(self):
        return self.console.file.getvalue()

    def testWrongFormatExitsWithUsage(self):
        with self.assertRaises(SystemExit) as context:
            self.tool.run(["--first=a", "--second=b", "--version-number=abc"])
        self.assertEqual(context.exception.code, 1)
        self.assertIn("Wrong Format", self.output)
        self.assertIn("wrong format for '--version-number'", self.output)
        self.assertIn("usage: release.py --first=.+ --second=.+ " + VERSION, self.output)
        self.assertEqual(self.events, [])

    def testEveryMissingArgumentIsRendered(self):
        with self.assertRaises(SystemExit) as context:
            self.tool.run(["--second=b"])
        self.assertEqual(context.exception.code, 1)
        self.assertIn("missing: '--first'", self.output)
        self.assertIn("missing: '--version-number'", self.output)
        self.assertEqual(self.output.count("usage: release.py"), 1)

    def testFancyPanel(self):
        tool = self.dispatcher([VERSION], shell=True, fancy=True)
        with self.assertRaises(SystemExit):
            tool.run([])
        self.assertIn("Missing Argument", self.output)

    def testSuccessPrintsNothing(self):
        self.tool.run(["--first=a", "--second=b", "--version-number=1.2.3"])
        self.assertEqual(self.output, "")
        self.assertEqual(self.events, ["main"])


class TestDispatcherConstruction(TestCase):
    def testDefinitionsMustBeASequence(self):
        with self.assertRaises(TypeError):
            Dispatcher("--name=x")

    def testVariablesMustBeVariables(self):
        with self.assertRaises(TypeError):
            Dispatcher([], variables={})

    def testRunnerMustBeCallable(self):
        with self.assertRaises(TypeError):
            Dispatcher([], runner=3)

    def testUsageBeforeRun(self):
        tool = Dispatcher([VERSION], name="release.py")
        self.assertEqual(tool.usage, "usage: release.py " + " ".join([VERSION, *commands.RESERVED]))

    def testRunnerDefaultsToProcessWide(self):
        self.assertIs(Dispatcher([]).runner, proxy.runner())

    def testReadOnlyProperties(self):
        tool = Dispatcher([VERSION], name="release.py", shell=False)
        self.assertEqual(tool.definitions, [VERSION])
        self.assertFalse(tool.shell)
        with self.assertRaises(AttributeError):
            tool.name = "other"


if __name__ == "__main__":
    unittest.main()
