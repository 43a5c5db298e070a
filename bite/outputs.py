"""
Structured output dispatcher: render handler results as a table, JSON or YAML.

What this module provides
- OutputMode: table | json | yaml, parsed case-insensitively (unknown → table).
- encode(value): convert a result into plain JSON/YAML data (mappings, lists, scalars).
- marshal_json(value, pretty, *transformers): JSON text, with post-marshal transformers.
- query(expression): a transformer applying a jmespath expression to the decoded document.
- write_json / write_yaml / render: write a result to a destination stream.
- print_info / print_object: context-aware printers used by the action adapter.
- output_options(): the shared "output" option set (--output, --no-pretty, --query, --silent).

Rendering rules
- JSON: two-space indent when pretty, compact otherwise; the query runs over the decoded
  document and the result is re-marshaled; empty documents ([] / {} / null) skip the
  query. Escaped <, > and & are restored before writing.
- YAML: the encoded value dumped as block-style YAML; no query support.
- Table: through the destination's cached TablePrinter; values without a row schema
  fall back to a table synthesized from their JSON document.

Errors
- marshaling failures raise RenderError, jmespath failures raise QueryError; whatever
  was written before a failure stays written.
"""
import dataclasses
import datetime
import enum
import ipaddress
import json
from collections.abc import Mapping, Set

import jmespath
import jmespath.exceptions
import yaml

from .faults import QueryError, RenderError
from .kinds import Kind
from .options import OptionSet
from .tables import TablePrinter, schema
from .utils import Unset, coalesce


class OutputMode(enum.Enum):
    TABLE = "table"
    JSON = "json"
    YAML = "yaml"

    @classmethod
    def parse(cls, value, /):
        """
        resolve an output mode from a mode or a string; anything unknown is TABLE.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.TABLE


def encode(value, /):
    """
    convert `value` into plain data made of dicts, lists and scalars.

    - int/float/str/bool subclasses (UInt32, Float32, ...) become their base type.
    - mappings keep their keys (as strings); lists, tuples and sets become lists.
    - enums become their value, ip addresses/networks and dates become strings.
    - dataclasses, objects with a row schema and plain objects become mappings of
      their public attributes.

    raises RenderError for anything else.
    """
    match value:
        case None:
            return None
        case bool():
            return bool(value)
        case enum.Enum():
            return encode(value.value)
        case int():
            return int(value)
        case float():
            return float(value)
        case str():
            return str(value)
        case bytes():
            return value.decode("utf-8", "replace")
        case Mapping():
            return {str(key): encode(item) for key, item in value.items()}
        case list() | tuple() | Set():
            return [encode(item) for item in value]
        case ipaddress.IPv4Address() | ipaddress.IPv6Address() | ipaddress.IPv4Network() | ipaddress.IPv6Network():
            return str(value)
        case datetime.date() | datetime.time():
            return value.isoformat()
        case datetime.timedelta():
            return value.total_seconds()

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {field.name: encode(getattr(value, field.name)) for field in dataclasses.fields(value)}
    if hasattr(value, "__dict__") and not isinstance(value, type):
        return {name: encode(item) for name, item in vars(value).items() if not name.startswith("_")}
    if (slots := getattr(type(value), "__slots__", Unset)) is not Unset:
        slots = (slots,) if isinstance(slots, str) else slots
        return {name: encode(getattr(value, name)) for name in slots if not name.startswith("_") and hasattr(value, name)}
    if schema(type(value)) is not None:
        return {attribute: encode(getattr(value, attribute, None)) for attribute, _ in schema(type(value))}
    raise RenderError(f"object of type {type(value).__name__} is not serializable")


def marshal_json(value, pretty=False, /, *transformers):
    """
    marshal `value` as JSON text and pass it through `transformers`.

    each transformer receives (document, pretty) and returns a replacement document,
    or an empty result to keep the current one. None transformers are skipped.
    """
    try:
        document = json.dumps(
            encode(value),
            indent=2 if pretty else None,
            separators=None if pretty else (",", ":"),
            ensure_ascii=False,
        )
    except (TypeError, ValueError) as error:
        raise RenderError(f"cannot marshal result: {error}") from error

    for transformer in transformers:
        if transformer is None:
            continue
        if not (result := transformer(document, pretty)):
            continue
        document = result

    return document.replace("\\u003c", "<").replace("\\u003e", ">").replace("\\u0026", "&")


def query(expression, /):
    """
    transformer applying a jmespath `expression` to a marshaled document.

    an empty expression or an empty document ([] / {} / null) leaves the document as is.
    """
    expression = coalesce(expression, "").strip()

    def transformer(document, pretty):
        if not expression or document.strip() in ("[]", "{}", "null"):
            return None
        try:
            result = jmespath.search(expression, json.loads(document))
        except jmespath.exceptions.JMESPathError as error:
            raise QueryError(f"invalid query {expression!r}: {error}") from error
        return marshal_json(result, pretty)

    return transformer


def write_json(out, value, pretty=True, expression="", /):
    document = marshal_json(value, pretty, query(expression))
    out.write(document + "\n")


def write_yaml(out, value, /):
    try:
        document = yaml.safe_dump(encode(value), sort_keys=False, allow_unicode=True, default_flow_style=False)
    except yaml.YAMLError as error:
        raise RenderError(f"cannot marshal result: {error}") from error
    out.write(document if document.endswith("\n") else document + "\n")


def render(out, value, mode=OutputMode.TABLE, pretty=True, expression="", /, *, filters=(), printers=Unset, header_style=Unset):
    """
    structured output dispatcher.

    parameters
    - out: destination stream.
    - value: the handler result.
    - mode: OutputMode or its name ("table", "JSON", ...); unknown names mean table.
    - pretty: indent JSON output.
    - expression: jmespath query for JSON output ("" disables it).
    - filters: row predicates, table mode only.
    - printers: TablePrinterCache to take the destination's printer from (a fresh
      printer is used when not given).
    - header_style: rich style for table headers.
    """
    match OutputMode.parse(mode):
        case OutputMode.JSON:
            return write_json(out, value, pretty, expression)
        case OutputMode.YAML:
            return write_yaml(out, value)

    if printers is Unset:
        printer = TablePrinter(out, header_style=coalesce(header_style, "bold"))
    else:
        printer = printers.get(out, header_style=header_style)

    if printer.print(value, *filters) == -1:
        # no row schema: show the JSON document as a table rather than nothing.
        printer.print_json(marshal_json(value, pretty, query(expression)), *filters)


def print_info(context, message, /, *args):
    """
    print an informational message to the context's destination.

    the silent switch wins when the command registered one; otherwise machine-friendly
    (json/yaml) output hides info messages. `args` are %-formatted into `message`.
    """
    enabled = not context.machine_friendly
    if context.silent is not Unset:
        enabled = not context.silent
    if not enabled:
        return
    text = message % args if args else message
    if not text.endswith("\n"):
        text += "\n"
    context.out.write(text)


def print_object(context, value, /, *filters):
    """
    render `value` with the context's mode, pretty/query settings and printer cache.
    """
    return render(
        context.out,
        value,
        context.mode,
        context.pretty,
        context.query,
        filters=filters,
        printers=context.printers,
        header_style=context.header_style,
    )


def output_options(*, silent=False):
    """
    option set holding the common output switches.

    - output: "table" | "json" | "yaml" (default "table")
    - no-pretty: disable JSON indentation
    - query: jmespath expression for JSON output
    - silent (when requested): hide info messages
    """
    options = OptionSet("output")
    options.add("output", Kind.STRING, "table", descr="TABLE, JSON or YAML results and hide all the info messages")
    options.add("no-pretty", Kind.BOOL, descr="disable the pretty format for JSON output of commands")
    options.add("query", Kind.STRING, descr="a jmespath query expression to filter the JSON output of commands")
    if silent:
        options.add("silent", Kind.BOOL, descr="run in silent mode, no info messages except errors")
    return options


__all__ = (
    "OutputMode",
    "encode",
    "marshal_json",
    "query",
    "write_json",
    "write_yaml",
    "render",
    "print_info",
    "print_object",
    "output_options",
)
