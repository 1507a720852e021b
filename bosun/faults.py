"""
Bosun faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing usage error.
- SpecificationError: the script author declared a malformed argument definition.
  This is a programmer error; it is a plain ValueError and is never rendered as usage.
- CommandException: base type for usage errors. Carries a message plus options and
  knows how to render itself (header, message, hint, usage line, docs footer).
- CommandExit: a group of usage errors surfaced together (e.g., several missing arguments).
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Integration
- The binder raises faults as soon as it detects them; the dispatcher catches them
  at the top level and calls trigger(fault, **ctx).
- In non-shell mode, exceptions are raised; in shell mode, they are rendered via rich
  to stderr and the process exits with status 1.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • UNKNOWN_ACTION, MISSING_ENTRY_POINT
    - arguments (1111x/1112x)
      • MALFORMED_ARGUMENT, UNKNOWN_OPTION, DUPLICATED_ARGUMENT,
        WRONG_FORMAT, MISSING_ARGUMENT
    """
    # --- routing errors (11xxx) ---
    UNKNOWN_ACTION              = 11101
    MISSING_ENTRY_POINT         = 11102

    # --- argument errors (11xxx) ---
    MALFORMED_ARGUMENT          = 11111
    UNKNOWN_OPTION              = 11112
    DUPLICATED_ARGUMENT         = 11115
    WRONG_FORMAT                = 11124
    MISSING_ARGUMENT            = 11125

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class SpecificationError(ValueError):
    """
    an argument definition does not have the shape --name=pattern or [--name=pattern].

    raised while parsing the definition list declared by the script itself, so it
    is not a usage error: it aborts the process with a traceback.
    """


def _palette(defaults, colorful):
    styles = defaultdict(str, defaults | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    return styler, text


def _progname(options):
    tool = options.get("tool")
    return getattr(__import__("__main__"), "__prog__", getattr(tool, "name", None) or "bosun")


class CommandException(Exception):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        styler, text = _palette({
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",

            # body
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
            "usage": "#8A8FA0",
            "docs": "dim #8A8FA0",
        }, self.options.get("colorful", False))

        fancy = self.options.get("fancy", False)
        code = self.options.get("code")

        header = Text.assemble(
            "[ ",
            text(_progname(self.options), styler("prog-name")),
            " — ",
            text(code.normalize() if code else "", styler("code")),
            " | ",
            text(self.options.get("title", "usage error").title(), styler("error-title")),
            " ]"
        )
        parts = [text(self.message, styler("error-message"))]
        if hint := self.options.get("hint"):
            parts.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))
        if usage := self.options.get("usage"):
            parts.append(text(usage, styler("usage")))
        if docs := self.options.get("docs"):
            parts.append(text(docs, styler("docs")))

        if fancy:
            try:
                width = int((console.width - 4) * self.options["ratio"])
            except KeyError:
                width = None
            return Panel(Group(*parts), title=header, title_align="left", width=width)

        return Group(header, *parts)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class MalformedArgumentError(CommandException): ...
class UnknownOptionError(CommandException): ...
class WrongFormatError(CommandException): ...
class UnknownActionError(CommandException): ...
class DuplicatedArgumentError(CommandException): ...
class MissingArgumentError(CommandException): ...
class MissingEntryPointError(CommandException): ...


class CommandExit(ExceptionGroup[CommandException]):
    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad exit", exceptions)

    def __init__(self, exceptions, **options):
        super().__init__("bad exit", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __rich__(self):
        styler, text = _palette({
            "prog-name": "bold #E6E6F0",
            "title": "bold #FF4DA6",
            "usage": "#8A8FA0",
        }, self.options.get("colorful", False))

        header = Text.assemble(
            "[ ", text(_progname(self.options), styler("prog-name")), " — ", text(self.message.title(), styler("title")), " ]"
        )

        # members render without their own usage line, the group prints it once
        renders = [copy.replace(exception, ratio=2/3, usage=None) for exception in self.exceptions]
        if usage := self.options.get("usage"):
            renders.append(text(usage, styler("usage")))

        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        options = {**self.options, **overrides}
        # the rendering context is shared by every member of the group
        exceptions = [copy.replace(exception, **overrides) for exception in self.exceptions]
        return type(self)(exceptions, **options)


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console and the process exits with 1;
      otherwise the fault is raised.

    typical options
    - tool, shell, fancy, colorful, usage, and any per-fault context already carried
      by the fault itself (title, code, hint, name, value, ...).
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code from a __docs__ mapping in __main__.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be an fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "SpecificationError",
    "CommandException",
    "MalformedArgumentError",
    "UnknownOptionError",
    "WrongFormatError",
    "UnknownActionError",
    "DuplicatedArgumentError",
    "MissingArgumentError",
    "MissingEntryPointError",
    "CommandExit",
    "FaultCode",
    "trigger",
    "getdoc",
)
