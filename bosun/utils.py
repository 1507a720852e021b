"""
Bosun utilities (internal helpers, carefully exposed)

Scope
- Core building blocks shared by the arguments, binding and commands layers.

Overview
- UnsetType / Unset
  • Singleton sentinel to represent “value not provided” without conflating with None.
  • Falsey (bool(Unset) is False), printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default, but preserve legitimate falsey values like None/0/""/[].

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated wrappers for clean tracebacks.

- mirror("attr")
  • Read-only property factory exposing a private backing field (self._attr) with
    fresh copies for containers.

- varname(name)
  • Canonical variable name of an argument: "version-number" → "VERSION_NUMBER".

- resolvedir(path)
  • Absolute, normalized directory path resolved against the current directory.

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> varname("--Version-number")
    'VERSION_NUMBER'
"""
import builtins
import functools
import os.path
import re
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset" for friendly diagnostics.
    - Non-subclassable: this type is sealed; do not subclass.
    - Singleton per process: UnsetType() always yields the same instance.
    """

    def __or__(self, other, /):
        """
        Support PEP 604 unions in annotations (e.g., str | UnsetType).
        """
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve an internal Unset sentinel to a concrete default.

    Falsey values like None, 0, "" or [] are preserved as-is; only Unset is replaced.

    Examples
    - coalesce("name", "fallback") -> "name"
    - coalesce(Unset, "fallback")  -> "fallback"
    - coalesce(None, "fallback")   -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable (updated in place)
    - rename(name) -> decorator
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _immortalize(object):
    """
    Recursively copy container values (sequence → list, mapping → dict, set → set).
    Strings and scalars are returned as-is.
    """
    if isinstance(object, Sequence) and not isinstance(object, str):
        return list(map(_immortalize, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_immortalize, object.values())))
    elif isinstance(object, Set):
        return set(map(_immortalize, object))
    else:
        return coalesce(object)


def mirror(name, /):
    """
    Define a read-only property that mirrors a private backing attribute "_{name}".

    Containers are handed out as fresh copies so callers cannot mutate the
    backing state through the public API.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _immortalize(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def varname(name, /):
    """
    Canonical variable name for an argument name.

    Rules
    - leading dashes are dropped ("--version-number" and "version-number" agree).
    - letters are upper-cased.
    - every run of non-alphanumeric characters collapses into a single "_".
    - leading/trailing joiners are stripped.

    Examples
    - varname("version-number")  -> "VERSION_NUMBER"
    - varname("Version__Number") -> "VERSION_NUMBER"
    - varname("git-push-dryrun") -> "GIT_PUSH_DRYRUN"
    """
    if not isinstance(name, str):
        raise TypeError("varname() argument must be a string")
    if not (normalized := re.sub(r"[^A-Z0-9]+", "_", name.upper()).strip("_")):
        raise ValueError("varname() argument must contain at least one alphanumeric character")
    return normalized


def resolvedir(path, /):
    """
    Return the absolute, normalized form of a directory path.

    Relative paths are resolved against the current working directory, which the
    dispatcher roots at the script's own directory before any hook runs, so
    resolvedir("../../build") is stable regardless of where the script was called from.
    """
    if not isinstance(path, str | os.PathLike):
        raise TypeError("resolvedir() argument must be a path")
    return os.path.normpath(os.path.abspath(os.fspath(path)))


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

Use Unset as a default when None is a valid, user-meaningful value but you still
need to distinguish “no input” from “explicitly passed None”.
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "varname",
    "resolvedir",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
