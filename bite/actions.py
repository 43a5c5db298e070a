"""
Action adapter: turn ordinary handler functions into command actions.

What this module provides
- classify(handler, count): inspect the handler's parameters and return annotation
  against the number of currently set options and produce an immutable Descriptor.
- bind(descriptor, handler, options, ...): build the ordered invocation frame from the
  live option set, collecting every mismatch before failing (fail-slow).
- fill(descriptor, frame, context, arguments): write the context and positional
  arguments into the slots the descriptor reserved, at execution time.
- invoke(handler, frame, descriptor, context): call the handler and dispatch what it
  returned (error propagation, info text, structured output).
- Action / action(...): a handler bound to an option set, runnable as
  action(context, arguments); check_arity() for positional argument ranges.

Supported shapes (examples)
    def run() -> None
    def run(context: Context, arguments: list[str]) -> Exception | None
    def run(arguments: list[str]) -> str
    def run(name: str, age: int, verbose: bool) -> tuple[object, Exception | None]
    def run(context: Context, name: str, port: UInt16, rest: list[str]) -> tuple[str, Exception | None]

Parameter rules
- Only positional parameters are bound; keyword-only parameters with defaults are left alone.
- When the parameter count differs from the number of set options, the first parameter
  may be the context (annotated Context) or the positional arguments (list[str]), and the
  last parameter may be the positional arguments. A Context first parameter is always
  the context, and a single list[str] parameter is always the positional arguments,
  whatever the option count.
- Set options fill the remaining parameters in declaration order; kinds must match the
  annotations exactly (see Kind.accepts).

Return rules
- None: nothing to dispatch; a missing annotation is handled like any other object.
- An exception type (optionally `| None`): a returned exception is raised as-is.
- str: printed through print_info.
- anything else: rendered through print_object (table, JSON or YAML).
- tuple[X, E]: X as above, E must be an exception type; a returned E wins over X.
"""
import functools
import inspect
import typing
from collections import namedtuple
from collections.abc import Sequence
from enum import IntEnum
from inspect import Parameter

from .context import Context
from .faults import (
    ActionException,
    ArgumentKindError,
    ArityError,
    FaultCode,
    ShapeError,
    UnboundArgumentsError,
    friendly,
    trigger,
)
from .kinds import Kind, extract, unwrap
from .options import OptionSet, check_required
from .outputs import print_info, print_object
from .utils import Unset, coalesce, mirror, rename


class ReturnKind(IntEnum):
    NONE = 0
    ERROR = 1
    TEXT = 2
    OBJECT = 3


class Descriptor(namedtuple("Descriptor", (
    "first_is_context",
    "first_is_positional",
    "last_is_positional",
    "no_params",
    "first_return",
    "second_is_error",
    "no_returns",
))):
    """
    immutable classification of one (handler, set-option count) pair.
    """
    __slots__ = ()

    @property
    def reserves_first(self):
        return self.first_is_context or self.first_is_positional


def _name(handler):
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or type(handler).__name__


def _signature(handler):
    if not callable(handler):
        raise ShapeError("bad type of action handler, a callable is required", code=FaultCode.INVALID_HANDLER)
    try:
        return inspect.signature(handler, eval_str=True)
    except (TypeError, ValueError, NameError) as error:
        raise ShapeError(f"cannot inspect handler {_name(handler)}: {error}", code=FaultCode.INVALID_HANDLER) from error


def _parameters(handler, signature):
    """
    the positional parameters taking part in binding.
    """
    parameters = []
    for parameter in signature.parameters.values():
        match parameter.kind:
            case Parameter.POSITIONAL_ONLY | Parameter.POSITIONAL_OR_KEYWORD:
                parameters.append(parameter)
            case Parameter.KEYWORD_ONLY if parameter.default is not Parameter.empty:
                continue
            case _:
                raise ShapeError(
                    f"handler {_name(handler)} parameter {parameter.name!r} ({parameter.kind.description}) cannot be bound",
                    code=FaultCode.UNSUPPORTED_PARAMETER,
                )
    return parameters


def _is_context(annotation):
    annotation = unwrap(annotation)
    return isinstance(annotation, type) and issubclass(annotation, Context)


def _is_arguments(annotation):
    annotation = unwrap(annotation)
    origin, members = typing.get_origin(annotation), typing.get_args(annotation)
    if origin in (list, Sequence):
        return members == (str,)
    return origin is tuple and members == (str, Ellipsis)


def _is_error(annotation):
    annotation = unwrap(annotation)
    if typing.get_origin(annotation) in (typing.Union, type(int | str)):
        return all(_is_error(member) for member in typing.get_args(annotation))
    return isinstance(annotation, type) and issubclass(annotation, BaseException)


def _is_text(annotation):
    annotation = unwrap(annotation)
    return isinstance(annotation, type) and issubclass(annotation, str)


def _returns(handler, signature):
    """
    (first_return, second_is_error, no_returns) of a handler's return annotation.
    """
    annotation = signature.return_annotation
    if annotation in (None, type(None), typing.NoReturn, typing.Never):
        return ReturnKind.NONE, False, True

    members = (annotation,)
    if typing.get_origin(annotation) is tuple and Ellipsis not in typing.get_args(annotation):
        members = typing.get_args(annotation)

    if not members:
        return ReturnKind.NONE, False, True
    if len(members) > 2:
        raise ShapeError(
            f"handler {_name(handler)} has {len(members)} outputs, at most 2 are supported"
            " (an error, a string or an object, optionally followed by an error)",
            code=FaultCode.TOO_MANY_OUTPUTS,
        )

    second_is_error = False
    if len(members) == 2:
        if not _is_error(members[1]):
            raise ShapeError(
                f"handler {_name(handler)} second output is not an error type",
                code=FaultCode.INVALID_SECOND_OUTPUT,
            )
        second_is_error = True

    first = members[0]
    if _is_error(first):
        return ReturnKind.ERROR, second_is_error, False
    if _is_text(first):
        return ReturnKind.TEXT, second_is_error, False
    return ReturnKind.OBJECT, second_is_error, False


def classify(handler, count, /):
    """
    signature classifier: describe how `handler` binds against `count` set options.

    rules
    - no parameters: no_params.
    - parameter count equal to `count`: parameters bind 1:1 to options, except that a
      Context first parameter, or a single list[str] parameter, keeps its contextual role.
    - otherwise the first parameter may be the context or the positional arguments and
      the last one may be the positional arguments; when none applies the shapes do not
      match and ShapeError is raised.
    - outputs: see module documentation; more than two, or a second output that is not
      an error type, raise ShapeError.
    """
    if not isinstance(count, int) or count < 0:
        raise TypeError("classify() count must be a non-negative integer")
    signature = _signature(handler)
    parameters = _parameters(handler, signature)
    first_return, second_is_error, no_returns = _returns(handler, signature)

    first_is_context = first_is_positional = last_is_positional = False
    if parameters:
        got = len(parameters)
        contextual = got != count or got == 1
        if _is_context(parameters[0].annotation):
            first_is_context = True
        elif contextual and _is_arguments(parameters[0].annotation):
            first_is_positional = True
        if contextual and _is_arguments(parameters[-1].annotation):
            last_is_positional = True
        if got != count and not (first_is_context or first_is_positional or last_is_positional):
            raise ShapeError(
                f"handler {_name(handler)} input arguments and flags not matched,"
                f" expected {count} but got {got} input arguments",
                code=FaultCode.SHAPE_MISMATCH,
            )

    return Descriptor(
        first_is_context=first_is_context,
        first_is_positional=first_is_positional,
        last_is_positional=last_is_positional,
        no_params=not parameters,
        first_return=first_return,
        second_is_error=second_is_error,
        no_returns=no_returns,
    )


@functools.lru_cache(maxsize=256)
def _memoized(handler, count):
    return classify(handler, count)


def describe(handler, count, /):
    """
    classify() memoized per (handler, count); unhashable handlers are classified each time.
    """
    try:
        return _memoized(handler, count)
    except TypeError:
        if not isinstance(count, int):
            raise
        return classify(handler, count)


def _typename(annotation):
    annotation = unwrap(annotation)
    if annotation is Parameter.empty:
        return "any"
    return annotation.__name__ if isinstance(annotation, type) else str(annotation)


def bind(descriptor, handler, options, /, context=Unset, arguments=Unset):
    """
    argument binder: build the invocation frame of `handler` from the live `options`.

    behavior
    - no_params: an empty frame.
    - slot 0 (context/positional) and the last slot (positional) are reserved when the
      descriptor asks for them; set options fill the other slots in declaration order.
    - every problem is collected: kind mismatches, unsupported kinds, options left
      without a parameter (unless the handler takes the context, through which it can
      read any option), parameters left without an option and without a default.
      they are raised together as UnboundArgumentsError; nothing is returned partially.
    - `context` / `arguments`, when given, are written into the reserved slots (see fill()).
    """
    if descriptor.no_params:
        return []

    parameters = _parameters(handler, _signature(handler))
    frame = [Unset] * len(parameters)
    reserved = set()
    if descriptor.reserves_first:
        reserved.add(0)
    if descriptor.last_is_positional:
        reserved.add(len(parameters) - 1)

    slots = (slot for slot in range(len(parameters)) if slot not in reserved)
    mismatches = []

    for option in options.visit():
        if (slot := next(slots, None)) is None:
            if descriptor.first_is_context:
                continue
            mismatches.append(ArgumentKindError(
                f"flag '{option.name}' has no input argument left to bind to",
                slot=len(parameters),
                expected=str(option.kind),
                flag=option.name,
                code=FaultCode.NO_PARAMETER_LEFT,
            ))
            continue

        annotation = parameters[slot].annotation
        if not isinstance(option.kind, Kind) or (value := extract(option)) is Unset:
            mismatches.append(ArgumentKindError(
                f"input argument[{slot}] bound with flag '{option.name}' has an unsupported kind '{option.kind}'",
                slot=slot,
                expected=_typename(annotation),
                flag=option.name,
                code=FaultCode.UNSUPPORTED_KIND,
            ))
            continue
        if not option.kind.accepts(annotation):
            mismatches.append(ArgumentKindError(
                f"input argument[{slot}] bound with flag '{option.name}' has invalid kind of type,"
                f" expected: {_typename(annotation)} but got: {option.kind}",
                slot=slot,
                expected=_typename(annotation),
                flag=option.name,
            ))
            continue
        frame[slot] = value

    for slot in slots:
        parameter = parameters[slot]
        if parameter.default is not Parameter.empty:
            frame[slot] = parameter.default
            continue
        mismatches.append(ArgumentKindError(
            f"input argument[{slot}] '{parameter.name}' expected a {_typename(parameter.annotation)} flag but none was set",
            slot=slot,
            expected=_typename(parameter.annotation),
            flag=Unset,
            code=FaultCode.MISSING_ARGUMENT,
        ))

    if mismatches:
        raise UnboundArgumentsError(mismatches)

    if context is not Unset or arguments is not Unset:
        fill(descriptor, frame, context, arguments)
    return frame


def fill(descriptor, frame, context=Unset, arguments=Unset, /):
    """
    write the live context and positional arguments into the reserved slots of `frame`.
    """
    if not frame:
        return frame
    arguments = list(coalesce(arguments, []))
    if descriptor.first_is_context:
        frame[0] = context
    elif descriptor.first_is_positional:
        frame[0] = arguments
    if descriptor.last_is_positional:
        frame[-1] = arguments
    return frame


def _raise(error, handler):
    if not isinstance(error, BaseException):
        raise ShapeError(
            f"handler {_name(handler)} returned {type(error).__name__} where an error was expected",
            code=FaultCode.INVALID_SECOND_OUTPUT,
        )
    raise error


def invoke(handler, frame, descriptor, /, context=Unset):
    """
    invoker / result dispatcher: call `handler` with `frame` and dispatch its outputs.

    - no_returns, or nothing returned: success, nothing written.
    - a returned error (first or second output) is raised unchanged; a second-output
      error wins over the first output, which is then never printed.
    - text goes through print_info, objects through print_object; None is "nothing
      to output".
    """
    outputs = handler(*frame)
    if descriptor.no_returns or outputs is None:
        return

    first, second = outputs, None
    if descriptor.second_is_error:
        if not isinstance(outputs, tuple) or len(outputs) != 2:
            raise ShapeError(
                f"handler {_name(handler)} must return a pair (result, error), got {type(outputs).__name__}",
                code=FaultCode.INVALID_SECOND_OUTPUT,
            )
        first, second = outputs
        if second is not None:
            _raise(second, handler)

    if first is None:
        return

    context = coalesce(context) or Context()
    match descriptor.first_return:
        case ReturnKind.ERROR:
            _raise(first, handler)
        case ReturnKind.TEXT:
            print_info(context, "%s", first)
        case ReturnKind.OBJECT:
            print_object(context, first)


def check_arity(name, arguments, minimum=0, maximum=0, /):
    """
    validate the number of positional arguments (0 disables a bound).
    """
    got = len(arguments)
    shown = str(got) if got else "nothing"

    if minimum + maximum > 0 and minimum == maximum and got != minimum:
        if minimum == 1:
            raise ArityError(f"{name} command expected only one argument but got {shown}")
        raise ArityError(f"{name} command expected exactly {minimum} arguments but got {shown}")

    if minimum > 0 and got < minimum:
        if maximum <= 0:
            if minimum == 1:
                raise ArityError(f"{name} command expected a single argument but got {shown}")
            raise ArityError(f"{name} command expected {minimum} arguments but got {shown}")
        if minimum == 1:
            raise ArityError(f"{name} command expected at least one argument")
        raise ArityError(f"{name} command expected at least {minimum} arguments but got {shown}")

    if maximum > 0 and got > maximum:
        raise ArityError(f"{name} command can not accept more than {maximum} arguments")


class Action:
    """
    A handler bound to an option set.

    Calling the action runs one execution: arity check, required flags, classify
    (memoized per set-option count), bind, fill and invoke. The option set is read
    again on every call, so repeated executions see fresh values.

    Metadata
    - name: command name used in messages (defaults to the handler's name).
    - min_args / max_args: positional argument range (0 disables a bound).
    - required: callable returning a name → value mapping checked by check_required().
    - example: usage example appended when every required flag is missing.

    Output shapes are validated at construction, so a handler returning more than two
    values fails when the action is declared rather than when it runs.
    """
    __introspectable__ = ("name", "handler", "options", "min_args", "max_args", "example")

    name = mirror("name")
    handler = mirror("handler")
    options = mirror("options")
    min_args = mirror("min_args")
    max_args = mirror("max_args")
    example = mirror("example")

    def __init__(self, handler, options=Unset, /, *, name=Unset, min_args=0, max_args=0, required=Unset, example=Unset):
        signature = _signature(handler)
        _parameters(handler, signature)
        _returns(handler, signature)

        if not isinstance(options, OptionSet | Unset):
            raise TypeError("action options must be an option set")
        if not isinstance(min_args, int) or not isinstance(max_args, int) or min_args < 0 or max_args < 0:
            raise TypeError("action 'min_args' and 'max_args' must be non-negative integers")
        if required is not Unset and not callable(required):
            raise TypeError("action 'required' must be callable")

        self._handler = handler
        self._options = OptionSet(getattr(handler, "__name__", Unset)) if options is Unset else options
        self._name = coalesce(name, getattr(handler, "__name__", "action")).strip()
        self._min_args = min_args
        self._max_args = max_args
        self._required = required
        self._example = coalesce(example, "")

    def describe(self):
        return describe(self._handler, self._options.count)

    def __call__(self, context=Unset, arguments=(), /):
        if context is Unset:
            context = Context(self._name, options=self._options)
        if isinstance(arguments, str):
            raise TypeError("action arguments must be an iterable of strings")
        arguments = list(arguments)
        if not all(isinstance(argument, str) for argument in arguments):
            raise TypeError("action arguments must be an iterable of strings")

        check_arity(self._name, arguments, self._min_args, self._max_args)
        if self._required is not Unset:
            check_required(self._required(), example=self._example)

        descriptor = self.describe()
        frame = bind(descriptor, self._handler, self._options, context, arguments)
        invoke(self._handler, frame, descriptor, context)

    def run(self, context=Unset, arguments=(), /):
        """
        top-level entry point: like calling the action, with fault presentation.

        errors are remapped through context.friendly; in shell mode they are printed
        on stderr (rich) and the process exits with status 1, otherwise they are raised.
        """
        if context is Unset:
            context = Context(self._name, options=self._options)
        try:
            self(context, arguments)
        except Exception as error:
            replacement = friendly(error, context.friendly)
            if not context.shell:
                if replacement is error:
                    raise
                raise replacement from error
            if not callable(getattr(replacement, "__trigger__", None)):
                replacement = ActionException(str(replacement) or type(replacement).__name__, title="error")
            trigger(replacement, shell=True, fancy=context.fancy, colorful=context.colorful, name=context.name)

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)

    def __repr__(self):
        return "action(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


def action(source=Unset, /, options=Unset, **metadata):
    """
    create an Action or return a decorator that builds one.

    forms
    - action(handler, options, name="echo")
    - @action(options, name="echo") / @action(options=options) / @action
    """
    if isinstance(source, OptionSet):
        source, options = Unset, source

    @rename("action")
    def wrapper(handler, /):
        if not callable(handler):
            raise TypeError("@action() must be applied to a callable")
        return Action(handler, options, **metadata)

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    "ReturnKind",
    "Descriptor",
    "classify",
    "describe",
    "bind",
    "fill",
    "invoke",
    "check_arity",
    "Action",
    "action",
)
