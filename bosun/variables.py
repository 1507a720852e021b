"""
Named variables whose names are computed at runtime.

The binder does not know argument names in advance: it derives a variable name
from each declared argument (see utils.varname) and stores the validated value
under it. Variables is the ordered string-to-string mapping that holds them.

Semantics
- get(name) never fails: unknown names read as "" (or the given default).
- set(name, value) creates or overwrites; values are opaque strings and are
  never re-interpreted (whitespace, quotes, "$" and newlines are preserved).
- The process-wide instance `variables` is what the dispatcher binds into when
  no explicit instance is injected; getvar()/setvar() operate on it.

Example
    >>> scope = Variables()
    >>> scope.set("VERSION_NUMBER", "1.2.3")
    >>> scope.get("VERSION_NUMBER"), scope.get("UNKNOWN")
    ('1.2.3', '')
"""
import os
from collections.abc import MutableMapping


class Variables(MutableMapping):
    """
    Ordered mapping of variable name to string value.
    """

    __slots__ = ("_values",)

    def __init__(self, values=(), /, **kwargs):
        self._values = {}
        self.update(values, **kwargs)

    def get(self, name, default="", /):
        if not isinstance(name, str):
            raise TypeError("get() argument must be a string")
        return self._values.get(name, default)

    def set(self, name, value, /):
        if not isinstance(name, str):
            raise TypeError("set() first argument must be a string")
        if not isinstance(value, str):
            raise TypeError("set() second argument must be a string")
        self._values[name] = value

    def export(self, environ=os.environ, /):
        """
        copy every variable into an environment mapping (os.environ by default),
        so that scripts started as subprocesses observe the same bound values.
        """
        environ.update(self._values)
        return environ

    def __getitem__(self, name):
        return self._values[name]

    def __setitem__(self, name, value):
        self.set(name, value)

    def __delitem__(self, name):
        del self._values[name]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self._values)

    def __rich_repr__(self):
        yield from self._values.items()


variables = Variables()


def getvar(name, /):
    """value of the process-wide variable `name`, or "" when unset"""
    return variables.get(name)


def setvar(name, value, /):
    """assign the process-wide variable `name`, creating it if absent"""
    variables.set(name, value)


__all__ = (
    "Variables",
    "getvar",
    "setvar",
)
