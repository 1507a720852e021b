"""
Command runners and the "git push" dry-run interception proxy.

Every external command a bosun script starts goes through a runner: a callable
runner(command, *args) -> int that executes the command and hands back its exit
status. The process-wide runner is a plain Runner until install() replaces it with
a DryRunProxy.

DryRunProxy semantics (for the intercepted command only, "git" by default)
- "push"   → "--dry-run --porcelain" are appended, and the call is wrapped in a
             START/END banner that echoes the effective argument vector.
- "commit" → the argument vector is echoed for auditing, then run unmodified.
- anything else passes through unmodified and silently.
The real command always runs; its exit status is returned unchanged.

Process-tree inheritance
install() resolves the real executable first (or reuses the one an ancestor already
resolved, exported as BOSUN_GIT_BIN, so the shim never resolves to itself), then
writes an executable "git" shim into a private temporary directory, prepends that
directory to PATH and exports BOSUN_GIT_PUSH_DRYRUN=true. Any descendant process that
runs "git" by bare name reaches the shim, which re-enters this module through
`python -m bosun.shim`. Nested bosun scripts see BOSUN_GIT_PUSH_DRYRUN and install
the proxy in-process as well.
"""
import atexit
import os
import shlex
import shutil
import stat
import subprocess
import sys
import tempfile
import textwrap

from loguru import logger
from rich.console import Console

from .utils import *

DRYRUN = "BOSUN_GIT_PUSH_DRYRUN"
EXECUTABLE = "BOSUN_GIT_BIN"

START = "####### START GIT PUSH DRYRUN #######"
END = "####### END GIT PUSH DRYRUN #######"

# arguments are echoed verbatim: no markup, no highlighting, no wrapping
console = Console(highlight=False, markup=False, soft_wrap=True)
tracer = Console(stderr=True, highlight=False, markup=False, soft_wrap=True)


class Runner:
    """
    Run external commands synchronously and return their exit status.

    In trace mode every command is echoed as "+ command args" to stderr before it runs.
    """

    def __init__(self, *, trace=False):
        self.trace = bool(trace)

    def resolve(self, command, /):
        """the executable actually started for `command`"""
        return command

    def execute(self, command, args, /, **options):
        argv = [self.resolve(command), *args]
        if self.trace:
            tracer.print("+ " + shlex.join([command, *args]))
        logger.debug("running {}", shlex.join(argv))
        return subprocess.run(argv, **options).returncode

    def __call__(self, command, /, *args, **options):
        """
        run `command` with `args`; options (cwd, env, ...) are forwarded to subprocess.run.
        """
        if not isinstance(command, str):
            raise TypeError("runner first argument must be a string")
        return self.execute(command, list(args), **options)

    def __repr__(self):
        return "%s(trace=%r)" % (type(self).__name__, self.trace)


class DryRunProxy(Runner):
    """
    Runner that forces the mutating subcommand of one command into a dry run.

    parameters
    - command: the intercepted command name ("git").
    - executable: absolute path of the real command; resolved with shutil.which when Unset.
    - mutating: the subcommand that gains the safety flags ("push").
    - recording: the subcommand whose argument vector is echoed ("commit").
    - flags: the safety flags appended to the mutating subcommand.
    - runner: an inner runner that executes the (augmented) commands; the real
      executable is handed to it in place of the intercepted name. When Unset,
      commands run through subprocess.run like any Runner.
    """

    def __init__(
            self,
            command="git",
            executable=Unset,
            /,
            *,
            mutating="push",
            recording="commit",
            flags=("--dry-run", "--porcelain"),
            trace=False,
            runner=Unset,
    ):
        super().__init__(trace=trace)
        if runner is not Unset and not callable(runner):
            raise TypeError("DryRunProxy() 'runner' must be callable")
        if executable is Unset:
            executable = shutil.which(command)
        if executable is None:
            raise FileNotFoundError(f"cannot intercept {command!r}: command not found")
        self.command = command
        self.executable = executable
        self.mutating = mutating
        self.recording = recording
        self.flags = tuple(flags)
        self.inner = runner

    def resolve(self, command, /):
        return self.executable if command == self.command else command

    def execute(self, command, args, /, **options):
        if self.inner is Unset:
            return super().execute(command, args, **options)
        if self.trace:
            tracer.print("+ " + shlex.join([command, *args]))
        return self.inner(os.fspath(self.resolve(command)), *args, **options)

    def wrap(self, runner, /):
        """the same interception around another runner"""
        return type(self)(
            self.command,
            self.executable,
            mutating=self.mutating,
            recording=self.recording,
            flags=self.flags,
            trace=self.trace,
            runner=runner,
        )

    def __call__(self, command, /, *args, **options):
        if command != self.command:
            return super().__call__(command, *args, **options)

        args = list(args)
        subcommand = args[0] if args else None

        if subcommand == self.mutating:
            args.extend(self.flags)
            console.print(START)
            console.print(shlex.join([command, *args]))
            try:
                return self.execute(command, args, **options)
            finally:
                console.print(END)

        if subcommand == self.recording:
            console.print(shlex.join([command, *args]))

        return self.execute(command, args, **options)

    def __repr__(self):
        return "%s(%r, %r, mutating=%r, recording=%r, flags=%r, trace=%r, runner=%r)" % (
            type(self).__name__, self.command, self.executable, self.mutating, self.recording, self.flags, self.trace,
            self.inner,
        )


_runner = Runner()


def runner():
    """the process-wide runner (a DryRunProxy once install() ran)"""
    return _runner


def run(command, /, *args, **options):
    """run a command through the process-wide runner and return its exit status"""
    return _runner(command, *args, **options)


def installed():
    """whether the dry-run interception is active in this process"""
    return isinstance(_runner, DryRunProxy)


def inherited():
    """whether an ancestor process requested the dry-run interception"""
    return os.environ.get(DRYRUN, "").lower() == "true"


def trace(enabled=True, /):
    """switch the process-wide runner into (or out of) trace mode"""
    _runner.trace = bool(enabled)


def _write_shim(command, directory):
    # the package parent goes first on PYTHONPATH so the shim works without installation
    package = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    shim = os.path.join(directory, command)
    with open(shim, "w") as file:
        file.write(textwrap.dedent(f"""\
            #!/bin/sh
            PYTHONPATH={shlex.quote(package)}${{PYTHONPATH:+:$PYTHONPATH}}
            export PYTHONPATH
            exec {shlex.quote(sys.executable)} -m bosun.shim {shlex.quote(command)} "$@"
        """))
    os.chmod(shim, os.stat(shim).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return shim


def install(command="git", /):
    """
    install the dry-run interception for the rest of this process and its descendants.

    order matters: the real executable is resolved before the shim shadows the bare
    name. When an ancestor already installed the interception, its resolved
    executable (BOSUN_GIT_BIN) is reused and no new shim is written.

    returns the installed DryRunProxy; calling install() again is a no-op.
    """
    global _runner

    if isinstance(_runner, DryRunProxy) and _runner.command == command:
        return _runner

    if inherited() and (executable := os.environ.get(EXECUTABLE)):
        logger.debug("reusing inherited {} interception ({})", command, executable)
    else:
        if (executable := shutil.which(command)) is None:
            raise FileNotFoundError(f"cannot intercept {command!r}: command not found")
        directory = tempfile.mkdtemp(prefix="bosun-")
        atexit.register(shutil.rmtree, directory, ignore_errors=True)
        shim = _write_shim(command, directory)
        os.environ["PATH"] = directory + os.pathsep + os.environ.get("PATH", "")
        os.environ[EXECUTABLE] = executable
        os.environ[DRYRUN] = "true"
        logger.debug("installed {} interception shim at {} (real executable: {})", command, shim, executable)

    _runner = DryRunProxy(command, executable, trace=_runner.trace)
    return _runner


__all__ = (
    "Runner",
    "DryRunProxy",
    "runner",
    "run",
    "installed",
    "inherited",
    "trace",
    "install",
)
