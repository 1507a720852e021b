r"""
Bosun command layer: declare arguments, register actions, dispatch.

What this module provides
- Dispatcher: wraps a script's argument definitions and its functions into an
  executable CLI:
  • Definitions are the "--name=pattern" / "[--name=pattern]" strings of arguments.
  • @dispatcher.init registers the initialization hook.
  • @dispatcher.action registers a function selectable with --action=<name>.
  • @dispatcher.main registers the default entry point (used without --action).
- invoke(dispatcher, argv): convenience runner.

Dispatch sequence (fixed order)
1. chdir into the script's root directory (the directory of the __main__ script by default).
2. append the reserved optional specs (dry-run for "git push", verbose), and
   an "--action" selector when the script does not declare one.
3. parse the definitions, validate and bind the arguments into variables.
4. dry-run requested (or inherited from an ancestor): install the interception proxy.
5. verbose requested: trace every command and log every phase.
6. call the init hook with the original arguments, if registered.
7. call the selected action, or the default entry point, with the original arguments.

Usage faults detected during steps 2-7 are surfaced once, at the top level, with a
usage line listing every definition. The init hook and the actions run outside of
that handler: whatever they raise (SystemExit included) propagates untouched.

Quick start
    from bosun import Dispatcher, getvar, run

    dispatcher = Dispatcher([
        "--action=(prepare|publish)",
        r"--version-number=([0-9]+\.[0-9]+\.[0-9]+)",
    ])

    @dispatcher.action
    def prepare(argv):
        run("git", "tag", "v" + getvar("VERSION_NUMBER"))

    @dispatcher.action
    def publish(argv):
        run("git", "push", "origin", "v" + getvar("VERSION_NUMBER"))

    if __name__ == "__main__":
        dispatcher.run()
"""
import builtins
import os
import os.path
import sys
from collections.abc import Iterable

from loguru import logger

from . import proxy
from .arguments import RESERVED, parse
from .binding import ACTION, bind
from .faults import *
from .logs import setup_logging
from .utils import *
from .variables import Variables, variables as _variables

DRYRUN = varname("git-push-dryrun")
VERBOSE = varname("verbose")


def _affirmative(variables, name):
    # a bare "--name" binds the empty value and reads as affirmative
    return name in variables and variables[name].lower() != "false"


class Dispatcher:
    """
    High-level dispatcher that binds a definition list to a script's functions.

    Responsibilities
    - Registration: init hook, named actions and the default entry point.
    - Dispatch: the fixed sequence documented in the module docstring.
    - Rendering: usage faults are rendered with rich in shell mode, raised otherwise.

    Parameters
    - definitions: Iterable[str]
      The script's own argument definitions (reserved ones are appended).
    - name: str | Unset
      Program name used in usage lines (defaults to basename of sys.argv[0]).
    - root: str | PathLike | Unset
      Directory to chdir into before anything else (defaults to the script's directory).
    - runner: Runner | Unset
      Injected command runner; defaults to the process-wide one of bosun.proxy.
    - variables: Variables | Unset
      Where arguments are bound; defaults to the process-wide bosun.variables.variables.
    - shell: bool
      Render usage faults and exit with status 1 (True), or raise them (False).
    - fancy, colorful: bool
      Panel chrome and colors for rendered faults (colorful defaults to not NO_COLOR).
    """

    name = mirror("name")
    definitions = mirror("definitions")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")

    def __init__(
            self,
            definitions=(),
            /,
            *,
            name=Unset,
            root=Unset,
            runner=Unset,
            variables=Unset,
            shell=True,
            fancy=False,
            colorful=Unset,
    ):
        if isinstance(definitions, str) or not isinstance(definitions, Iterable):
            raise TypeError("Dispatcher() argument must be a sequence of definition strings")
        if not isinstance(variables, Variables | Unset):
            raise TypeError("Dispatcher() 'variables' must be a variables mapping")
        if runner is not Unset and not callable(runner):
            raise TypeError("Dispatcher() 'runner' must be callable")

        self._definitions = list(definitions)
        self._name = coalesce(name, os.path.basename(sys.argv[0]) or "bosun")
        self._root = root
        self._runner = runner
        self._proxy = Unset
        self._variables = coalesce(variables, _variables)
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(coalesce(colorful, "NO_COLOR" not in os.environ))
        self._init = Unset
        self._main = Unset
        self._actions = {}
        self._specs = Unset

    @property
    def actions(self):
        """registered action names, in registration order"""
        return tuple(self._actions)

    @property
    def variables(self):
        return self._variables

    @property
    def runner(self):
        """
        the runner actions should use.

        the injected runner (wrapped by the dry-run interception when it is active),
        or the process-wide one (a DryRunProxy once installed).
        """
        return coalesce(self._proxy, coalesce(self._runner, proxy.runner()))

    @property
    def usage(self):
        specs = self._specs if self._specs is not Unset else parse([*self._definitions, *RESERVED])
        return specs.usage(self._name)

    def init(self, callback, /):
        """register the initialization hook, called with the original arguments before any action"""
        if not builtins.callable(callback):
            raise TypeError("@init must be applied to a callable")
        self._init = callback
        return callback

    def main(self, callback, /):
        """register the default entry point, called when no --action is given"""
        if not builtins.callable(callback):
            raise TypeError("@main must be applied to a callable")
        self._main = callback
        return callback

    def action(self, source=Unset, /, name=Unset):
        """
        register an action selectable with --action=<name>.

        forms
        - @dispatcher.action                 → name is the function's __name__
        - @dispatcher.action("publish")      → explicit name
        - @dispatcher.action(name="publish") → explicit name
        """
        if isinstance(source, str):
            source, name = Unset, source

        @rename("action")
        def wrapper(callback, /):
            if not builtins.callable(callback):
                raise TypeError("@action must be applied to a callable")
            key = coalesce(name, getattr(callback, "__name__", Unset))
            if not isinstance(key, str) or not key:
                raise TypeError("@action name must be a non-empty string")
            if self._actions.setdefault(key, callback) is not callback:
                raise ValueError(f"action name {key!r} is already in use")
            return callback

        return wrapper(source) if source is not Unset else wrapper

    def trigger(self, fault, /, **options):
        trigger(
            fault,
            **options,
            tool=self,
            shell=self.shell,
            fancy=self.fancy,
            colorful=self.colorful,
            usage=self.usage,
        )

    def _rootdir(self):
        if self._root is not Unset:
            return resolvedir(self._root)
        if script := getattr(sys.modules.get("__main__"), "__file__", None):
            return os.path.dirname(resolvedir(script))
        return os.getcwd()

    def _prepare(self, argv):
        # 1. root the working directory
        os.chdir(root := self._rootdir())
        logger.debug("{}: working directory is {}", self.name, root)

        # 2. reserved specs
        definitions = [*self._definitions, *RESERVED]
        specs = parse(definitions)
        if ACTION not in specs:
            specs = parse([*definitions, r"[--action=[\w-]+]"])
        self._specs = specs

        # 3. validate and bind
        bind(specs, argv, actions=self._actions, variables=self._variables)
        action = self._variables.get(ACTION)
        logger.debug("{}: bound {}", self.name, dict(self._variables))

        # 4. dry-run interception, before anything may run git
        self._proxy = Unset
        if _affirmative(self._variables, DRYRUN) or proxy.inherited():
            installed = proxy.install()
            if self._runner is not Unset:
                self._proxy = installed.wrap(self._runner)
            logger.debug("{}: git push dry-run interception installed", self.name)

        # 5. verbose tracing
        if _affirmative(self._variables, VERBOSE):
            setup_logging(verbose=True)
            proxy.trace(True)
            if hasattr(self.runner, "trace"):
                self.runner.trace = True
            logger.debug("{}: verbose tracing enabled", self.name)
        return action

    def run(self, argv=Unset, /):
        """
        dispatch with argv (sys.argv[1:] when Unset).

        returns whatever the selected action (or entry point) returns.
        """
        argv = list(coalesce(argv, sys.argv[1:]))

        try:
            action = self._prepare(argv)
        except (CommandException, CommandExit) as fault:
            return self.trigger(fault)

        # 6. initialization hook
        if self._init is not Unset:
            logger.debug("{}: running init hook", self.name)
            self._init(argv)

        # 7. action or default entry point
        if action:
            callback = self._actions[action]
        elif self._main is not Unset:
            action, callback = "main", self._main
        else:
            return self.trigger(MissingEntryPointError(
                "no --action given and no default entry point registered",
                title="missing entry point",
                code=FaultCode.MISSING_ENTRY_POINT,
                hint="pass --action=<%s>" % "|".join(self._actions) if self._actions else "register a @main entry point",
                docs=getdoc(FaultCode.MISSING_ENTRY_POINT),
            ))

        logger.debug("{}: dispatching to {}", self.name, action)
        return callback(argv)

    def __invoke__(self, argv=Unset, /):
        return self.run(argv)

    def __repr__(self):
        return "%s(%r, name=%r, actions=%r)" % (type(self).__name__, self._definitions, self._name, self.actions)

    def __rich_repr__(self):
        yield "definitions", self.definitions
        yield "name", self.name
        yield "actions", self.actions
        yield "shell", self.shell
        yield "fancy", self.fancy
        yield "colorful", self.colorful


def invoke(object, argv=Unset, /):
    """
    Convenience runner for dispatchers.

    - object: an instance providing __invoke__(argv).
    - argv: Unset (sys.argv[1:]) or an iterable of argument strings.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(argv)

    target = "argument" if argv is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Dispatcher",
    "invoke",
)
