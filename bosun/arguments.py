r"""
Bosun argument specifications.

Overview
- ArgumentSpec: one declared parameter, parsed from a definition string.
  • "--name=pattern"   → required argument whose value must fully match pattern.
  • "[--name=pattern]" → optional argument, same validation when given.
- SpecSet: the ordered, read-only collection of specs in force for one dispatch,
  keyed by normalized variable name (see utils.varname), remembering which
  names are required (in declaration order) and the original definitions.
- parse(definitions): build a SpecSet from a list of definition strings.

Specification errors
- A definition that does not have one of the two shapes, whose pattern is not a
  valid regular expression, or whose name collides (after normalization) with an
  earlier one, raises SpecificationError. These are mistakes of the script author;
  they are not reported as usage.

Reserved definitions
- RESERVED holds the optional specs every dispatcher appends to the script's own
  list: the dry-run switch for "git push" and the verbose switch. Their values are
  "true", "false" or empty ("--verbose" alone reads as affirmative).

Quick example:
    >>> specs = parse([
    ...     "--action=(prepare|publish)",
    ...     r"--version-number=([0-9]+\.[0-9]+\.[0-9]+)",
    ...     "[--remote=[a-z]+]",
    ... ])
    >>> specs.required
    ('ACTION', 'VERSION_NUMBER')
    >>> specs["REMOTE"].optional
    True
"""
import functools
import operator
import re
from collections.abc import Iterable, Mapping

from .faults import SpecificationError
from .utils import *

# The whole structural grammar of a definition: an optional pair of brackets around
# "--name=pattern". The closing bracket is only consumed when the opening one matched.
DEFINITION = re.compile(r"(?P<bracket>\[)?--(?P<name>[^\W\d_][\w-]*)=(?P<pattern>.+)(?(bracket)\])", re.DOTALL)

RESERVED = (
    "[--git-push-dryrun=(true|false)?]",
    "[--verbose=(true|false)?]",
)


class ArgumentType(type):
    """
    Metaclass that turns specs into introspectable, read-only descriptors.

    - Exposes every name in __introspectable__ as a read-only property (via mirror()).
    - Provides stable __repr__/__rich_repr__ implementations for diagnostics.
    - __typename__ is derived from the class name (camel-case split with hyphens).
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


class ArgumentSpec(metaclass=ArgumentType):
    """
    A single declared argument: name, optionality and validation pattern.

    Instances are immutable; build them with ArgumentSpec.parse(definition).
    """
    __introspectable__ = (
        "name",
        "varname",
        "optional",
        "pattern",
        "definition",
    )
    __slots__ = ("_name", "_varname", "_optional", "_pattern", "_definition")

    def __init__(self, name, pattern, /, optional=False, *, definition=Unset):
        if not isinstance(name, str) or not re.fullmatch(r"[^\W\d_][\w-]*", name):
            raise SpecificationError(f"{type(self).__typename__} name {name!r} is not a valid argument name")
        if isinstance(pattern, str):
            try:
                pattern = re.compile(pattern)
            except re.error as error:
                raise SpecificationError(
                    f"{type(self).__typename__} pattern {pattern!r} for {name!r} is not a valid regular expression ({error})"
                ) from None
        elif not isinstance(pattern, re.Pattern):
            raise SpecificationError(f"{type(self).__typename__} pattern for {name!r} must be a string")

        self._name = name
        self._varname = varname(name)
        self._optional = bool(optional)
        self._pattern = pattern
        self._definition = coalesce(
            definition, ("[--%s=%s]" if optional else "--%s=%s") % (name, pattern.pattern)
        )

    @classmethod
    def parse(cls, definition, /):
        """
        parse one definition string ("--name=pattern" or "[--name=pattern]").

        raises SpecificationError when the definition does not have either shape.
        """
        if not isinstance(definition, str):
            raise SpecificationError(f"{cls.__typename__} definition must be a string, not {type(definition).__name__}")
        if not (match := DEFINITION.fullmatch(definition)):
            raise SpecificationError(
                f"{cls.__typename__} definition {definition!r} must look like --name=pattern or [--name=pattern]"
            )
        return cls(match["name"], match["pattern"], bool(match["bracket"]), definition=definition)

    def matches(self, value, /):
        """whether value fully matches the pattern (anchored at both ends)"""
        return self._pattern.fullmatch(value) is not None

    def __eq__(self, other):
        if not isinstance(other, ArgumentSpec):
            return NotImplemented
        return (self._name, self._optional, self._pattern.pattern) == (other._name, other._optional, other._pattern.pattern)

    def __hash__(self):
        return hash((self._name, self._optional, self._pattern.pattern))


class SpecSet(Mapping):
    """
    Ordered, read-only mapping of normalized variable name to ArgumentSpec.

    Attributes
    - required: varnames of required specs, in declaration order.
    - optionals: varnames of optional specs, in declaration order.
    - definitions: the original definition strings, in declaration order.
    """
    __slots__ = ("_specs", "_required", "_optionals", "_definitions")

    def __init__(self, specs=(), /):
        self._specs = {}
        self._required = []
        self._optionals = []
        self._definitions = []
        for spec in specs:
            self._add(spec)

    def _add(self, spec):
        if not isinstance(spec, ArgumentSpec):
            raise TypeError("spec-set items must be argument specs")
        if (previous := self._specs.setdefault(spec.varname, spec)) is not spec:
            raise SpecificationError(
                f"argument {spec.name!r} is declared twice (already declared as {previous.definition!r})"
            )
        (self._optionals if spec.optional else self._required).append(spec.varname)
        self._definitions.append(spec.definition)

    required = property(lambda self: tuple(self._required))
    optionals = property(lambda self: tuple(self._optionals))
    definitions = property(lambda self: tuple(self._definitions))

    def lookup(self, name, /):
        """spec for an argument name in any spelling ("version-number", "VERSION_NUMBER"), or None"""
        try:
            return self._specs.get(varname(name))
        except ValueError:
            return None

    def usage(self, prog, /):
        return " ".join(["usage:", prog, *self._definitions])

    def __getitem__(self, name):
        return self._specs[name]

    def __iter__(self):
        return iter(self._specs)

    def __len__(self):
        return len(self._specs)

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, list(self._specs.values()))

    def __rich_repr__(self):
        yield from self._specs.values()


def parse(definitions, /):
    """
    parse an ordered sequence of definition strings into a SpecSet.

    behavior
    - each definition is parsed with ArgumentSpec.parse (fail fast on the first bad one).
    - names are unique after normalization; a repeated name is a SpecificationError.
    - a bare string is rejected: definitions must be given as a sequence.
    """
    if isinstance(definitions, str) or not isinstance(definitions, Iterable):
        raise SpecificationError("parse() argument must be a sequence of definition strings")
    return SpecSet(map(ArgumentSpec.parse, definitions))


__all__ = (
    "ArgumentSpec",
    "SpecSet",
    "RESERVED",
    "parse",
)
