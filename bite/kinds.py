"""
Option kinds and the option value extractor.

Overview
- Kind: the declared kind of an option ("string", "bool", "uint32", "stringSlice", "ipNet", ...).
  Values follow the names used by the common flag libraries so options declared
  elsewhere (parsers, file loaders) can be described with plain strings.
- Sized numbers: Int8..Int64, UInt..UInt64 (int subclasses) and Float32 (float subclass).
  Their constructors range-check, so a value declared "uint32" is a UInt32 at runtime,
  never a bare int.
- IP values: IPAddress/IPNetwork unions over the ipaddress types, plus IPMask for
  dotted IPv4 netmasks.
- extract(option): typed value of an option, or Unset when no value can be produced.

Matching
- Kind.accepts(annotation) decides whether a handler parameter annotated with
  `annotation` can receive a value of this kind. Matching is exact: `int` accepts
  int/count, `UInt32` only accepts uint32. Missing annotations, Any and object accept
  every kind; `X | None` is treated as `X`.
"""
import functools
import ipaddress
import math
import operator
import struct
import types
import typing
from collections import namedtuple
from collections.abc import Sequence
from enum import Enum
from inspect import Parameter

from .utils import Unset


class _Integer(int):
    """
    fixed-width integer; subclasses declare `bits` and `signed`.
    """
    bits = 64
    signed = True

    def __new__(cls, value=0, /):
        if isinstance(value, str):
            value = int(value.strip().replace("_", ""), 0)
        elif isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"{cls.__name__} cannot hold {value!r}")
            value = int(value)
        else:
            value = operator.index(value)
        if cls.signed:
            low, high = -(1 << (cls.bits - 1)), (1 << (cls.bits - 1)) - 1
        else:
            low, high = 0, (1 << cls.bits) - 1
        if not low <= value <= high:
            raise ValueError(f"{value} is out of range for {cls.__name__} [{low}, {high}]")
        return super().__new__(cls, value)

    def __repr__(self):
        return f"{type(self).__name__}({int(self)})"


class Int8(_Integer): bits, signed = 8, True
class Int16(_Integer): bits, signed = 16, True
class Int32(_Integer): bits, signed = 32, True
class Int64(_Integer): bits, signed = 64, True
class UInt(_Integer): bits, signed = 64, False
class UInt8(_Integer): bits, signed = 8, False
class UInt16(_Integer): bits, signed = 16, False
class UInt32(_Integer): bits, signed = 32, False
class UInt64(_Integer): bits, signed = 64, False


class Float32(float):
    """
    single precision float: the value is rounded through an IEEE 754 binary32 round-trip.
    """

    def __new__(cls, value=0.0, /):
        value = float(value.strip() if isinstance(value, str) else value)
        try:
            rounded, = struct.unpack("f", struct.pack("f", value))
        except OverflowError:
            rounded = math.inf
        if math.isinf(rounded) and not math.isinf(value):
            raise ValueError(f"{value!r} is out of range for Float32")
        return super().__new__(cls, rounded)

    def __repr__(self):
        return f"Float32({float(self)!r})"


class IPMask(ipaddress.IPv4Address):
    """
    dotted (255.255.255.0) or hexadecimal (ffffff00) IPv4 netmask.
    """

    def __init__(self, address):
        if isinstance(address, str) and len(address) == 8 and "." not in address:
            address = int(address, 16)
        super().__init__(address)
        inverted = ~int(self) & 0xFFFFFFFF
        if inverted & (inverted + 1):
            raise ValueError(f"{self} is not a contiguous netmask")

    @property
    def prefixlen(self):
        return bin(int(self)).count("1")


IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def _parse_bool(text):
    match text.strip():
        case "1" | "t" | "T" | "true" | "TRUE" | "True":
            return True
        case "0" | "f" | "F" | "false" | "FALSE" | "False":
            return False
    raise ValueError(f"invalid boolean value {text!r}")


def _parse_int(text):
    return int(text.strip().replace("_", ""), 0)


def _cast_bool(value):
    return _parse_bool(value) if isinstance(value, str) else bool(value)


def _cast_int(value):
    return _parse_int(value) if isinstance(value, str) else operator.index(value)


def _cast_float(value):
    return float(value.strip() if isinstance(value, str) else value)


def _cast_str(value):
    return value if isinstance(value, str) else str(value)


def _cast_ip(value):
    return ipaddress.ip_address(value.strip() if isinstance(value, str) else value)


def _cast_network(value):
    return ipaddress.ip_network(value.strip() if isinstance(value, str) else value, strict=False)


# type: what a value of the kind is at runtime (and the annotation that receives it)
# item: element cast for slice kinds, Unset otherwise
# cast: scalar cast from text or from a loosely typed value
_Spec = namedtuple("_Spec", ("type", "item", "cast"))


class Kind(Enum):
    """
    declared kind of an option.
    """
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    COUNT = "count"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING_SLICE = "stringSlice"
    INT_SLICE = "intSlice"
    UINT_SLICE = "uintSlice"
    BOOL_SLICE = "boolSlice"
    IP = "ip"
    IP_MASK = "ipMask"
    IP_NET = "ipNet"

    @property
    def type(self):
        """
        runtime type of values of this kind (list[...] for slices, a union for ip/ipNet).
        """
        return _SPECS[self].type

    @property
    def sliced(self):
        return _SPECS[self].item is not Unset

    def cast(self, value, /):
        """
        convert `value` (text or a loosely typed value) into this kind.

        slices accept comma separated text or any iterable; an empty text is an
        empty slice. raises ValueError/TypeError when the value does not fit.
        """
        spec = _SPECS[self]
        if spec.item is Unset:
            return spec.cast(value)
        if isinstance(value, str):
            value = value.split(",") if value.strip() else []
        return [spec.item(item) for item in value]

    def accepts(self, annotation, /):
        """
        whether a parameter annotated with `annotation` can receive a value of this kind.
        """
        annotation = unwrap(annotation)
        if annotation in (Parameter.empty, typing.Any, object):
            return True
        expected = self.type
        if self.sliced:
            origin = typing.get_origin(annotation)
            return origin in (list, Sequence) and typing.get_args(annotation) == typing.get_args(expected)
        if isinstance(expected, types.UnionType):
            return annotation == expected or annotation in typing.get_args(expected)
        return annotation is expected

    @classmethod
    def infer(cls, object, /):
        """
        resolve a Kind from a Kind, its name ("uint32") or a runtime type (UInt32, list[str]).

        returns Unset when nothing matches.
        """
        if isinstance(object, cls):
            return object
        if isinstance(object, str):
            try:
                return cls(object)
            except ValueError:
                return Unset
        for kind in cls:
            if kind.type == object:
                return kind
        return Unset

    def __str__(self):
        return self.value


_SPECS = {
    Kind.STRING: _Spec(str, Unset, _cast_str),
    Kind.BOOL: _Spec(bool, Unset, _cast_bool),
    Kind.INT: _Spec(int, Unset, _cast_int),
    Kind.COUNT: _Spec(int, Unset, _cast_int),
    Kind.INT8: _Spec(Int8, Unset, Int8),
    Kind.INT16: _Spec(Int16, Unset, Int16),
    Kind.INT32: _Spec(Int32, Unset, Int32),
    Kind.INT64: _Spec(Int64, Unset, Int64),
    Kind.UINT: _Spec(UInt, Unset, UInt),
    Kind.UINT8: _Spec(UInt8, Unset, UInt8),
    Kind.UINT16: _Spec(UInt16, Unset, UInt16),
    Kind.UINT32: _Spec(UInt32, Unset, UInt32),
    Kind.UINT64: _Spec(UInt64, Unset, UInt64),
    Kind.FLOAT32: _Spec(Float32, Unset, Float32),
    Kind.FLOAT64: _Spec(float, Unset, _cast_float),
    Kind.STRING_SLICE: _Spec(list[str], _cast_str, Unset),
    Kind.INT_SLICE: _Spec(list[int], _cast_int, Unset),
    Kind.UINT_SLICE: _Spec(list[UInt], UInt, Unset),
    Kind.BOOL_SLICE: _Spec(list[bool], _cast_bool, Unset),
    Kind.IP: _Spec(IPAddress, Unset, _cast_ip),
    Kind.IP_MASK: _Spec(IPMask, Unset, IPMask),
    Kind.IP_NET: _Spec(IPNetwork, Unset, _cast_network),
}


def unwrap(annotation, /):
    """
    drop `None` from an optional annotation (`X | None` → `X`, `Optional[X]` → `X`).
    """
    if typing.get_origin(annotation) not in (typing.Union, types.UnionType):
        return annotation
    members = [member for member in typing.get_args(annotation) if member is not type(None)]
    if not members:
        return annotation
    return functools.reduce(operator.or_, members)


def extract(option, /):
    """
    option value extractor: the live value of `option` typed after its declared kind.

    behavior
    - reads the option's backing value (its parsed value, or its default when unset).
    - the result's runtime type matches the declared kind exactly (uint32 → UInt32).
    - unknown kinds, missing values and values that cannot be cast yield Unset,
      which callers treat as "no binding available". no side effects.
    """
    kind = getattr(option, "kind", Unset)
    value = getattr(option, "value", Unset)
    if not isinstance(kind, Kind) or value is Unset:
        return Unset
    try:
        return kind.cast(value)
    except (TypeError, ValueError, OverflowError):
        return Unset


__all__ = (
    "Kind",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "UInt",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "Float32",
    "IPMask",
    "IPAddress",
    "IPNetwork",
    "extract",
    "unwrap",
)
