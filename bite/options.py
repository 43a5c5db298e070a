"""
Option set provider: the named, typed flags a handler is bound against.

What this module provides
- Option: one declared flag (name, kind, default) plus its live value and set/unset state.
- OptionSet: the ordered collection the action adapter reads. Parsers and file loaders
  write into it through set()/update(); the adapter only ever reads (is_set, kind, get,
  visit).
- check_required(pairs): manual required-flag check for values that may come from
  outside the command line (e.g. loaded from a file before the handler runs).

Ordering
- Options are kept in declaration order; visit() walks the set ones in that order, so
  binding is stable across executions.
"""
import re

from .faults import RequiredFlagsError
from .kinds import Kind, extract
from .utils import Unset, coalesce, mirror, pluralize


def _zero(kind):
    """
    the value an unset option reports: empty text/slice, false, zero, or Unset for ip kinds.
    """
    if not isinstance(kind, Kind):
        return Unset
    if kind.sliced:
        return []
    if kind in (Kind.IP, Kind.IP_MASK, Kind.IP_NET):
        return Unset
    return kind.cast("" if kind is Kind.STRING else 0)


class Option:
    """
    Named, typed flag with a default and a live value.

    Properties
    - name, kind, default, descr: declared metadata (read-only).
    - value: the parsed value when set, the default otherwise.
    - changed: True once a value has been set by a parser or loader.

    Unknown kinds (any name Kind does not know, e.g. "duration") are kept verbatim:
    such options can be declared and set, but the extractor yields Unset for them.
    """
    __introspectable__ = ("name", "kind", "default", "descr")

    name = mirror("name")
    kind = mirror("kind")
    default = mirror("default")
    descr = mirror("descr")

    def __init__(self, name, kind=Kind.STRING, default=Unset, *, descr=Unset):
        if not isinstance(name, str):
            raise TypeError("option name must be a string")
        if not re.fullmatch(r"[^\W\d_][\w-]*", name := name.strip().lstrip("-")):
            raise ValueError(f"invalid option name {name!r}")
        if not isinstance(descr, str | Unset):
            raise TypeError(f"option {name!r} 'descr' must be a string")

        resolved = Kind.infer(kind)
        if resolved is Unset:
            if not isinstance(kind, str) or not kind.strip():
                raise TypeError(f"option {name!r} has an unresolvable kind {kind!r}")
            resolved = kind.strip()

        if default is Unset:
            default = _zero(resolved)
        elif isinstance(resolved, Kind):
            default = resolved.cast(default)

        self._name = name
        self._kind = resolved
        self._default = default
        self._descr = coalesce(descr)
        self._value = Unset
        self._changed = False

    @property
    def value(self):
        return self._value if self._changed else self._default

    @property
    def changed(self):
        return self._changed

    def set(self, value, /):
        """
        store a live value; known kinds convert text and cast typed input.
        """
        if isinstance(self._kind, Kind):
            try:
                value = self._kind.cast(value)
            except (TypeError, ValueError) as error:
                raise ValueError(f"invalid value {value!r} for flag {self._name!r} ({self._kind}): {error}") from None
        self._value = value
        self._changed = True

    def reset(self):
        self._value = Unset
        self._changed = False

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)
        yield "changed", self._changed

    def __repr__(self):
        return "option(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


class OptionSet:
    """
    Ordered set of options, read by the action adapter.

    Reading
    - lookup(name) -> Option | None
    - is_set(name), kind(name), get(name) (typed value, Unset when unavailable)
    - visit(): set options only, in declaration order
    - visit_all(): every option, in declaration order
    - count: number of set options; len(): number of declared options

    Writing (parsers, loaders)
    - add(name, kind, default, descr=...), set(name, value), update(mapping), reset()
    """

    def __init__(self, name=Unset, /, *options):
        self.name = coalesce(name, "flags")
        self._options = {}
        for option in options:
            self.attach(option)

    def add(self, name, kind=Kind.STRING, default=Unset, *, descr=Unset):
        return self.attach(Option(name, kind, default, descr=descr))

    def attach(self, option, /):
        if not isinstance(option, Option):
            raise TypeError("attach() argument must be an option")
        if option.name in self._options:
            raise ValueError(f"{self.name}: flag redefined: {option.name}")
        self._options[option.name] = option
        return option

    def lookup(self, name, /):
        return self._options.get(name.lstrip("-"))

    def _require(self, name):
        if (option := self.lookup(name)) is None:
            raise KeyError(f"{self.name}: flag accessed but not defined: {name}")
        return option

    def is_set(self, name, /):
        return self._require(name).changed

    def kind(self, name, /):
        return self._require(name).kind

    def get(self, name, /):
        return extract(self._require(name))

    def set(self, name, value, /):
        self._require(name).set(value)

    def update(self, mapping=(), /, **values):
        """
        set many options at once; the same contract as set() for each pair.
        """
        for name, value in dict(mapping, **values).items():
            self.set(name, value)

    def reset(self):
        for option in self._options.values():
            option.reset()

    def visit(self):
        for option in self._options.values():
            if option.changed:
                yield option

    def visit_all(self):
        yield from self._options.values()

    @property
    def count(self):
        return sum(1 for _ in self.visit())

    def __len__(self):
        return len(self._options)

    def __iter__(self):
        return self.visit_all()

    def __contains__(self, name):
        return isinstance(name, str) and self.lookup(name) is not None

    def __repr__(self):
        return f"option-set(name={self.name!r}, options={list(self._options)!r})"


def _empty(value):
    return value is Unset or value is None or not value


def check_required(pairs, /, *, example=Unset):
    """
    raise RequiredFlagsError for every empty value in a name → value mapping.

    messages
    - one:  required flag "name" not set
    - many: required flags "a", "b" and "c" not set
    - when every listed flag is empty and an example is given, an "example:" block
      is appended so the user sees a complete invocation.
    """
    if not pairs:
        return
    missing = ['"%s"' % name for name, value in pairs.items() if _empty(value)]
    if not (count := len(missing)):
        return
    if count == 1:
        message = f"required flag {missing[0]} not set"
    else:
        message = f"required {pluralize('flag', count)} {', '.join(missing[:-1])} and {missing[-1]} not set"
    if count == len(pairs) and example:
        message = f"{message}\nexample:\n\t{example}"
    raise RequiredFlagsError(message, missing=tuple(name.strip('"') for name in missing))


__all__ = (
    "Option",
    "OptionSet",
    "check_required",
)
