"""
Tabular rendering of handler results.

Row schemas
- A result type declares how it becomes a table row once, through @tabular(...) or
  register(cls, ...). Each keyword names an attribute and maps it to a Column (header
  plus directives) or to Embedded() (a nested row spliced inline). Column order is the
  keyword order; schemas are looked up by type (subclasses inherit their parent's).
- Column directives:
  • number: right-aligned, thousands-grouped integer ("1,234"); zero or unparsable
    values show the alternative value (or "0").
  • length: show the length of a collection (rendered as a number).
  • alternative: text shown when the cell would otherwise be empty.
  The compact tag grammar is accepted too: Column.parse("Tags,len,none").

Cells
- bool → "Yes"/"No"; int → number; float → two decimals, right-aligned;
  collections → length / alternative when empty / items joined with ", ";
  nested registered objects → their own cells, spliced inline; None → alternative or "".

Printers
- TablePrinter renders rows as a borderless rich Table with a header line. Values with
  no row schema are reported back (-1) so the caller can fall back to print_json(),
  which synthesizes rows from the decoded JSON document instead.
- TablePrinterCache keeps one printer per destination stream behind a ReadWriteLock.
"""
import inspect
import json
import threading
from collections.abc import Mapping, Set

from rich.box import SIMPLE_HEAD
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .utils import ReadWriteLock, Unset, coalesce, mirror


class Column:
    """
    display header and directives of one table column.
    """
    __introspectable__ = ("header", "number", "length", "alternative")

    header = mirror("header")
    number = mirror("number")
    length = mirror("length")
    alternative = mirror("alternative")

    def __init__(self, header, /, *, number=False, length=False, alternative=Unset):
        if not isinstance(header, str) or not header.strip():
            raise ValueError("column 'header' must be a non-empty string")
        if not isinstance(alternative, str | Unset):
            raise TypeError("column 'alternative' must be a string")
        self._header = header.strip()
        self._number = bool(number)
        self._length = bool(length)
        self._alternative = coalesce(alternative, "")

    @classmethod
    def parse(cls, tag, /):
        """
        build a column from a "Header[,number][,len][,alternative]" tag.
        """
        header, *directives = tag.split(",")
        metadata = {}
        for directive in directives:
            match directive:
                case "number":
                    metadata["number"] = True
                case "len":
                    metadata["length"] = True
                case _:
                    metadata["alternative"] = directive
        return cls(header, **metadata)

    def __repr__(self):
        return "column(%s)" % ", ".join(f"{name}={getattr(self, name)!r}" for name in type(self).__introspectable__)


class Embedded:
    """
    marks an attribute holding a nested row: its columns are spliced inline.

    `type` is only needed to name the headers when the attribute is None on the
    first element.
    """

    def __init__(self, type=Unset, /):
        self.type = type

    def __repr__(self):
        return f"embedded({coalesce(self.type, '')!r})"


_schemas = {}
_registering = threading.Lock()


def register(cls, /, **columns):
    """
    declare the row schema of `cls`; returns `cls`.

    values may be Column, Embedded or a tag string (see Column.parse).
    """
    if not isinstance(cls, type):
        raise TypeError("register() first argument must be a type")
    if not columns:
        raise TypeError(f"register() requires at least one column for {cls.__name__}")
    schema = []
    for attribute, column in columns.items():
        if isinstance(column, str):
            column = Column.parse(column)
        if not isinstance(column, Column | Embedded):
            raise TypeError(f"{cls.__name__}.{attribute} must be described by a column or embedded()")
        schema.append((attribute, column))
    with _registering:
        _schemas[cls] = tuple(schema)
    return cls


def tabular(**columns):
    """
    class decorator form of register().

        @tabular(name=Column("Name"), size=Column("Size", number=True))
        class Topic: ...
    """
    def wrapper(cls):
        return register(cls, **columns)
    return wrapper


def schema(cls, /):
    """
    row schema of `cls` (searched along its MRO), or None.
    """
    for base in getattr(cls, "__mro__", ()):
        if (found := _schemas.get(base)) is not None:
            return found
    return None


def _nested(value, column):
    """
    type whose schema should be spliced for this attribute, or None.
    """
    if isinstance(column, Embedded):
        return type(value) if value is not None else coalesce(column.type, None)
    if value is not None and schema(type(value)) is not None:
        return type(value)
    return None


def headers(value, /):
    """
    column headers of a registered object, embedded rows included.
    """
    result = []
    for attribute, column in schema(type(value)) or ():
        field = getattr(value, attribute, None)
        if (nested := _nested(field, column)) is not None:
            result.extend(headers(field) if field is not None else _type_headers(nested))
        elif isinstance(column, Column):
            result.append(column.header)
    return result


def _type_headers(cls):
    result = []
    for attribute, column in schema(cls) or ():
        if isinstance(column, Embedded):
            result.extend(_type_headers(column.type) if column.type is not Unset else ())
        else:
            result.append(column.header)
    return result


def _sequence(value):
    return isinstance(value, list | tuple | Set) and not isinstance(value, str | bytes)


def _cell(value, column):
    """
    display text of one value and whether it is right-aligned.
    """
    number = column.number
    right = False
    text = ""

    if isinstance(value, bool):
        text = "Yes" if value else "No"
        number = False
    elif isinstance(value, int):
        number = True
    elif isinstance(value, float):
        text = f"{value:,.2f}" if number else f"{value:.2f}"
        number = False
        right = True
    elif _sequence(value):
        if not value and column.alternative:
            text = column.alternative
        elif column.length:
            value = len(value)
            number = True
        else:
            text = ", ".join(map(str, value))
    elif value is not None:
        text = str(value)

    if number:
        try:
            integer = int(str(value).strip()) if not isinstance(value, int) else int(value)
        except (TypeError, ValueError):
            integer = 0
        text = f"{integer:,}" if integer else (column.alternative or "0")
        right = True

    return text or column.alternative, right


def row(value, /):
    """
    cells of a registered object and the indexes of its right-aligned cells.
    """
    cells = []
    right = []
    for attribute, column in schema(type(value)) or ():
        field = getattr(value, attribute, None)
        if (nested := _nested(field, column)) is not None:
            if field is None:
                cells.extend([""] * len(_type_headers(nested)))
                continue
            nested, aligned = row(field)
            right.extend(len(cells) + index for index in aligned)
            cells.extend(nested)
            continue
        if isinstance(column, Embedded):
            continue
        text, aligned = _cell(field, column)
        if aligned:
            right.append(len(cells))
        cells.append(text)
    return cells, right


def _accepts(predicate, element):
    """
    whether `predicate` is a usable row filter for elements like `element`.

    a filter takes exactly one positional parameter; an annotated parameter must match
    the element's type and an annotated return must be bool. anything else is ignored.
    """
    if not callable(predicate):
        return False
    try:
        signature = inspect.signature(predicate, eval_str=True)
    except (TypeError, ValueError, NameError):
        return False
    parameters = list(signature.parameters.values())
    if len(parameters) != 1 or parameters[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        return False
    annotation = parameters[0].annotation
    unannotated = annotation is inspect.Parameter.empty or annotation is object
    if not unannotated and isinstance(annotation, type) and not isinstance(element, annotation):
        return False
    return signature.return_annotation in (inspect.Signature.empty, bool)


def filters(element, candidates, /):
    """
    the subset of `candidates` usable as row filters for `element`.
    """
    return [predicate for predicate in candidates if _accepts(predicate, element)]


def _json_cell(value):
    if isinstance(value, bool):
        return "Yes" if value else "No", False
    if isinstance(value, int):
        return f"{value:,}", True
    if isinstance(value, float):
        return f"{value:.2f}", True
    if isinstance(value, list):
        return ", ".join(_json_cell(item)[0] for item in value), False
    if isinstance(value, Mapping):
        return json.dumps(value, separators=(",", ":")), False
    if value is None:
        return "", False
    return str(value), False


class TablePrinter:
    """
    renders rows for one destination stream.
    """

    def __init__(self, out, /, *, header_style="bold"):
        self.out = out
        self.header_style = header_style
        self.console = Console(file=out, highlight=False, emoji=False, soft_wrap=False)
        self._writing = threading.Lock()

    def print(self, value, /, *candidates):
        """
        print `value` (a registered object or a sequence of them) as a table.

        returns the number of printed rows, or -1 when the elements carry no row schema.
        """
        single = not _sequence(value)
        elements = [value] if single else list(value)
        if not elements:
            return 0

        first = elements[0]
        if first is None or schema(type(first)) is None:
            return -1

        header = headers(first)
        predicates = filters(first, candidates)
        rows = []
        right = Unset
        for element in elements:
            if element is None:
                rows.append([""] * len(header))
                continue
            cells, aligned = row(element)
            right = coalesce(right, aligned)
            if all(predicate(element) for predicate in predicates):
                rows.append(cells)

        self.render(header, rows, coalesce(right, []))
        return len(rows)

    def print_json(self, raw, /, *candidates):
        """
        print a JSON document as a table, synthesizing headers from its keys.

        - list of objects: union of keys (first-seen order) as headers, one row each.
        - object: its keys as headers, one row.
        - list of scalars / scalar: a single "value" column.
        """
        document = json.loads(raw) if isinstance(raw, str | bytes) else raw
        elements = document if isinstance(document, list) else [document]
        elements = [element for element in elements if element is not None]
        if not elements:
            return 0

        predicates = filters(elements[0], candidates)
        elements = [element for element in elements if all(predicate(element) for predicate in predicates)]

        if all(isinstance(element, Mapping) for element in elements):
            header = list(dict.fromkeys(key for element in elements for key in element))
            records = [[element.get(key) for key in header] for element in elements]
        else:
            header = ["value"]
            records = [[element] for element in elements]

        rows = []
        right = set()
        for record in records:
            cells = []
            for index, value in enumerate(record):
                text, aligned = _json_cell(value)
                if aligned:
                    right.add(index)
                cells.append(text)
            rows.append(cells)

        self.render(header, rows, sorted(right))
        return len(rows)

    def render(self, header, rows, right, /):
        header = list(header)
        if not header:
            return
        if len(rows) > 3:
            header[0] = f"{header[0]} ({len(rows)})"

        table = Table(
            box=SIMPLE_HEAD,
            show_edge=False,
            pad_edge=False,
            header_style=self.header_style,
        )
        for index, title in enumerate(header):
            table.add_column(Text(title), justify="right" if index in right else "left")
        for cells in rows:
            cells = list(cells) + [""] * (len(header) - len(cells))
            table.add_row(*map(Text, cells[:len(header)]))

        with self._writing:
            self.console.print(table)


class TablePrinterCache:
    """
    one TablePrinter per destination stream.

    lookups take the shared side of a ReadWriteLock; creating a printer for a new
    destination takes the exclusive side. printers are keyed by stream identity.
    """

    def __init__(self):
        self._printers = {}
        self._lock = ReadWriteLock()

    def get(self, out, /, *, header_style=Unset):
        with self._lock.reading():
            printer = self._printers.get(id(out))
        if printer is None or printer.out is not out:
            with self._lock.writing():
                printer = self._printers.get(id(out))
                if printer is None or printer.out is not out:
                    printer = self._printers[id(out)] = TablePrinter(out)
        if header_style is not Unset:
            printer.header_style = header_style
        return printer

    def clear(self):
        with self._lock.writing():
            self._printers.clear()

    def __contains__(self, out):
        with self._lock.reading():
            printer = self._printers.get(id(out))
        return printer is not None and printer.out is out

    def __len__(self):
        with self._lock.reading():
            return len(self._printers)

    def __bool__(self):
        return True


__all__ = (
    "Column",
    "Embedded",
    "register",
    "tabular",
    "schema",
    "headers",
    "row",
    "filters",
    "TablePrinter",
    "TablePrinterCache",
)
