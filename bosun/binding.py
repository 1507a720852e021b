"""
Validate invocation arguments against a SpecSet and bind them into variables.

For every actual argument, in order:
1. shape: "--name=value" or "--name" (empty value); anything else → MalformedArgumentError.
2. lookup: the name must be declared (any spelling that normalizes the same) → UnknownOptionError.
3. format: the value must fully match the declared pattern → WrongFormatError.
4. action: the value of "--action" must name a registered action → UnknownActionError.
5. uniqueness: the same argument given twice → DuplicatedArgumentError.
6. stage: keep the value under the argument's normalized variable name.

Afterwards every required spec must be bound. A single missing argument is raised
as MissingArgumentError; several are raised together as a CommandExit group so all
of them are reported in one run.

Every failure is terminal and leaves the target variables untouched. On success the
staged values replace whatever an earlier bind left under any declared name, so the
target holds exactly what this invocation gave for the arguments of the spec set.
"""
import difflib
import functools
import re

from .arguments import SpecSet
from .faults import *
from .utils import *
from .variables import Variables

ARGUMENT = re.compile(r"--(?P<name>[^\W\d_][\w-]*)(=(?P<value>.*))?", re.DOTALL)

ACTION = varname("action")


@functools.cache
def _ordinal(number):
    """
    human-friendly ordinal label for a 1-based position ("first", ..., "tenth", "11th", "22nd").
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def _split(argument, index):
    """
    split one raw argument into (name, value); a bare "--name" has the empty value.
    """
    if not isinstance(argument, str):
        raise TypeError("bind() arguments must be strings")
    if not (match := ARGUMENT.fullmatch(argument)):
        raise MalformedArgumentError(
            "bad form of argument %r at %s position" % (argument, _ordinal(index)),
            title="malformed argument",
            code=FaultCode.MALFORMED_ARGUMENT,
            hint="arguments are spelled --name=value (or --name for an empty value)",
            argument=argument,
            index=index,
            docs=getdoc(FaultCode.MALFORMED_ARGUMENT),
        )
    return match["name"], match["value"] or ""


def _lookup(specs, name, index):
    if (spec := specs.lookup(name)) is not None:
        return spec

    names = [specs[key].name for key in specs]
    suggestions = difflib.get_close_matches(name, names, 5)
    try:
        hint = "did you mean '--%s'?" % suggestions[0]
    except IndexError:
        hint = "see the usage line below for every accepted option"
    raise UnknownOptionError(
        "unknown option '--%s' at %s position" % (name, _ordinal(index)),
        title="unknown option",
        code=FaultCode.UNKNOWN_OPTION,
        hint=hint,
        name=name,
        index=index,
        suggestions=suggestions,
        docs=getdoc(FaultCode.UNKNOWN_OPTION),
    )


def bind(specs, argv, /, *, actions=(), variables=Unset):
    """
    validate argv against specs and bind every value into variables.

    parameters
    - specs: SpecSet
      the full spec set in force (script specs plus reserved ones).
    - argv: Iterable[str]
      the actual invocation arguments, without the program name.
    - actions: Container[str]
      registered action names; "--action" values must be one of them.
    - variables: Variables | Unset
      where to bind; a fresh Variables is created when Unset.

    returns
    - the Variables instance holding one entry per bound argument.

    raises
    - a CommandException subclass on the first per-argument fault.
    - MissingArgumentError, or CommandExit for several, when required ones are absent.
    """
    if not isinstance(specs, SpecSet):
        raise TypeError("bind() first argument must be a spec-set")
    variables = coalesce(variables, Variables())
    if not isinstance(variables, Variables):
        raise TypeError("bind() 'variables' must be a variables mapping")

    seen = {}
    bound = Variables()

    for index, argument in enumerate(argv, 1):
        name, value = _split(argument, index)
        spec = _lookup(specs, name, index)

        if not spec.matches(value):
            raise WrongFormatError(
                "wrong format for '--%s' at %s position: %r does not match %r" % (
                    spec.name, _ordinal(index), value, spec.pattern.pattern
                ),
                title="wrong format",
                code=FaultCode.WRONG_FORMAT,
                hint="the value of '--%s' must fully match %s" % (spec.name, spec.pattern.pattern),
                name=spec.name,
                value=value,
                index=index,
                docs=getdoc(FaultCode.WRONG_FORMAT),
            )

        if spec.varname == ACTION and value not in actions:
            suggestions = difflib.get_close_matches(value, list(actions), 5)
            raise UnknownActionError(
                "no such action %r at %s position" % (value, _ordinal(index)),
                title="unknown action",
                code=FaultCode.UNKNOWN_ACTION,
                hint="available actions: %s" % (", ".join(actions) or "none"),
                name=spec.name,
                value=value,
                index=index,
                suggestions=suggestions,
                docs=getdoc(FaultCode.UNKNOWN_ACTION),
            )

        if spec.varname in seen:
            raise DuplicatedArgumentError(
                "argument '--%s' at %s position was already given at %s position" % (
                    spec.name, _ordinal(index), _ordinal(seen[spec.varname])
                ),
                title="duplicated argument",
                code=FaultCode.DUPLICATED_ARGUMENT,
                hint="give '--%s' only once" % spec.name,
                name=spec.name,
                index=index,
                docs=getdoc(FaultCode.DUPLICATED_ARGUMENT),
            )

        seen[spec.varname] = index
        bound.set(spec.varname, value)

    missing = [
        MissingArgumentError(
            "missing: '--%s'" % specs[key].name,
            title="missing argument",
            code=FaultCode.MISSING_ARGUMENT,
            hint="add %s" % specs[key].definition,
            name=specs[key].name,
            docs=getdoc(FaultCode.MISSING_ARGUMENT),
        )
        for key in specs.required if key not in seen
    ]
    if len(missing) == 1:
        raise missing[0]
    if missing:
        raise CommandExit(missing)

    # values left over from an earlier bind of the same specs are dropped
    for key in specs:
        variables.pop(key, None)
    variables.update(bound)
    return variables


__all__ = (
    "bind",
)
