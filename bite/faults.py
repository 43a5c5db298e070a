"""
Bite faults (errors raised by the action adapter) and their rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every fault the adapter can
  raise on its own. Codes are grouped by domain so logs and searches stay predictable.
- ActionException and subclasses: carry a message plus presentation options and
  know how to render themselves through rich (header, message, hint).
- UnboundArgumentsError: the fail-slow binding report. Every mismatched or missing
  argument of one handler is collected and raised at once.
- trigger(): central entry point to surface a fault (shell mode prints, otherwise raises).
- friendly(): host remapping of fault codes to custom messages.

Taxonomy
- shape faults (211xx): the handler cannot be reconciled with its options.
- binding faults (212xx): live option values do not fit the handler parameters.
- rendering faults (214xx): marshaling or query evaluation failed.
- usage faults (215xx): positional argument arity, required flags.

Handler errors are not faults: whatever a handler returns or raises is propagated as-is.
"""
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce, pluralize

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the adapter (stable identifiers).

    the host application can provide a __codes__ mapping in __main__ to relabel
    codes; see normalize().
    """
    # --- shape faults (211xx) ---
    INVALID_HANDLER             = 21101
    SHAPE_MISMATCH              = 21102
    UNSUPPORTED_PARAMETER       = 21103
    TOO_MANY_OUTPUTS            = 21111
    INVALID_SECOND_OUTPUT       = 21112

    # --- binding faults (212xx) ---
    KIND_MISMATCH               = 21201
    UNSUPPORTED_KIND            = 21202
    NO_PARAMETER_LEFT           = 21203
    MISSING_ARGUMENT            = 21204
    UNBOUND_ARGUMENTS           = 21210

    # --- rendering faults (214xx) ---
    UNSERIALIZABLE_OBJECT       = 21401
    INVALID_QUERY               = 21402

    # --- usage faults (215xx) ---
    ARITY_MISMATCH              = 21501
    REQUIRED_FLAGS              = 21502
    DELEGATED_ERROR             = 21531

    def normalize(self):
        """
        return a host-normalized string for this code.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _styles(defaults):
    return defaultdict(str, defaults | getattr(__import__("__main__"), "__styles__", {}))


def _render(fault, header, body, styles):
    """
    shared rich layout for faults: a header line and a body, framed by a panel when fancy.
    """
    colorful = fault.options.get("colorful", True)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style] if colorful else "")

    prog = getattr(__import__("__main__"), "__prog__", fault.options.get("name") or "bite")
    title = Text.assemble("[ ", text(prog, "prog-name"), " — ", *header(text), " ]")

    if fault.options.get("fancy", False):
        return Panel(Group(*body(text)), title=title, title_align="left")
    return Group(title, *body(text))


class ActionException(Exception):
    """
    base class of adapter faults.

    subclasses declare a default `code`, `title` and `hint`; any of them can be
    overridden per instance through options (see __replace__).
    """
    code = FaultCode.DELEGATED_ERROR
    title = "action error"
    hint = Unset

    def __init__(self, message, /, **options):
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__}() message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)
        if "code" in options:
            self.code = FaultCode(options["code"])
        if "title" in options:
            self.title = options["title"]
        if "hint" in options:
            self.hint = options["hint"]

    def __str__(self):
        return self.message

    def __rich__(self):
        styles = _styles({
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        })

        def header(text):
            return text(self.code.normalize(), "code"), " | ", text(self.title.title(), "error-title")

        def body(text):
            yield text(self.message, "error-message")
            if hint := coalesce(self.hint):
                yield Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint"))

        return _render(self, header, body, styles)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ShapeError(ActionException):
    """the handler's parameters or outputs cannot be reconciled with its options."""
    code = FaultCode.SHAPE_MISMATCH
    title = "handler shape"
    hint = "change the handler signature or the declared flags"


class ArgumentKindError(ActionException):
    """
    one unbound handler argument: the slot, the kind it expected and the flag involved.

    instances are collected into UnboundArgumentsError rather than raised alone.
    """
    code = FaultCode.KIND_MISMATCH
    title = "argument kind"

    def __init__(self, message, /, slot=Unset, expected=Unset, flag=Unset, **options):
        super().__init__(message, slot=slot, expected=expected, flag=flag, **options)
        self.slot = slot
        self.expected = expected
        self.flag = flag


class ArityError(ActionException):
    code = FaultCode.ARITY_MISMATCH
    title = "positional arguments"


class RequiredFlagsError(ActionException):
    code = FaultCode.REQUIRED_FLAGS
    title = "required flags"


class RenderError(ActionException):
    code = FaultCode.UNSERIALIZABLE_OBJECT
    title = "output"


class QueryError(RenderError):
    code = FaultCode.INVALID_QUERY
    title = "query"
    hint = "check the jmespath expression given to --query"


def _summarize(exceptions):
    count = len(exceptions)
    lines = [f"{count} handler {pluralize('argument', count)} could not be bound:"]
    lines.extend(f"  - {exception}" for exception in exceptions)
    return "\n".join(lines)


class UnboundArgumentsError(ExceptionGroup):
    """
    fail-slow binding report: every ArgumentKindError found for one execution.
    """
    code = FaultCode.UNBOUND_ARGUMENTS
    title = "unbound arguments"

    def __new__(cls, exceptions, /, **options):
        exceptions = tuple(exceptions)
        return super().__new__(cls, _summarize(exceptions), exceptions)

    def __init__(self, exceptions, /, **options):
        exceptions = tuple(exceptions)
        super().__init__(_summarize(exceptions), exceptions)
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    @property
    def mismatches(self):
        """
        (slot, expected, flag) triples in the order they were found.
        """
        return [(exception.slot, exception.expected, exception.flag) for exception in self.exceptions]

    def derive(self, exceptions, /):
        return type(self)(exceptions, **self.options)

    def __rich__(self):
        styles = _styles({
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
        })

        def header(text):
            return text(self.code.normalize(), "code"), " | ", text(self.title.title(), "error-title")

        def body(text):
            for exception in self.exceptions:
                yield text(f"• {exception}", "error-message")

        return _render(self, header, body, styles)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode the fault is printed on stderr and the process exits with 1,
      otherwise it is raised.
    """
    if (
        not callable(getattr(fault, "__trigger__", None)) or
        not callable(getattr(fault, "__replace__", None))
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


def friendly(error, mapping, /):
    """
    replace an error by a host-provided message when its code is mapped.

    lookup
    - the error's `code` attribute (FaultCode or plain int, as exposed by host
      resource errors) is searched in `mapping`.
    - when found, a plain ActionException carrying the mapped message is returned,
      chained to the original error; otherwise the error is returned unchanged.
    """
    if not mapping:
        return error
    code = getattr(error, "code", Unset)
    if callable(code):
        code = code()
    if not isinstance(code, int) or code not in mapping:
        return error
    replacement = ActionException(mapping[code], title=getattr(error, "title", ActionException.title))
    replacement.__cause__ = error
    return replacement


__all__ = (
    "FaultCode",
    "ActionException",
    "ShapeError",
    "ArgumentKindError",
    "UnboundArgumentsError",
    "ArityError",
    "RequiredFlagsError",
    "RenderError",
    "QueryError",
    "trigger",
    "friendly",
)
