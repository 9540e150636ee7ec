import functools
import pprint
import warnings

import jschon

from .layout import Registry, Schema


__all__ = ["InvalidMetadata", "LayoutMetadata"]


class InvalidMetadata(Exception):
    """Exception raised by :meth:`LayoutMetadata.validate` when the JSON representation of
    a bit field layout does not conform to :data:`LayoutMetadata.schema`."""


@functools.lru_cache(maxsize=None)
def _layout_json_schema():
    # jschon's rfc3986 dependency issues a DeprecationWarning on import of some of its modules.
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=DeprecationWarning)
        catalog = jschon.create_catalog("2020-12")
        json_schema = jschon.JSONSchema(LayoutMetadata.schema, catalog=catalog)
        result = json_schema.validate()
    if not result.valid:
        raise AssertionError("Layout metadata schema is not a valid JSON Schema:\n" +
                             pprint.pformat(result.output("basic")["errors"], sort_dicts=False))
    return json_schema


class LayoutMetadata:
    """Bit field layout metadata.

    Layout metadata describes every parent field that has bit fields, and can be exported to
    JSON for use by other tools (e.g. debuggers or register map generators).

    Arguments
    ---------
    origin : :class:`.Registry`
        Layout described by this metadata instance.
    schema : :class:`.Schema` or ``None``
        Provides byte offsets and widths of parent fields; they are reported as ``null``
        without it.
    """

    #: :class:`dict`: Schema of layout metadata, expressed in the `JSON Schema`_ language.
    schema = {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$id": "urn:fieldbits:schema:layout:0.1",
        "$defs": {
            "field": {
                "type": "object",
                "properties": {
                    "name": { "type": "string" },
                    "start": {
                        "type": "integer",
                        "minimum": 0,
                        "maximum": 63,
                    },
                    "width": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": 64,
                    },
                    "type": { "enum": [ "bool", "int", "string", "raw", None ] },
                },
                "additionalProperties": False,
                "required": [
                    "name",
                    "start",
                    "width",
                    "type",
                ],
            },
            "parent": {
                "type": "object",
                "properties": {
                    "byte_offset": {
                        "type": [ "integer", "null" ],
                        "minimum": 0,
                    },
                    "width": {
                        "type": [ "integer", "null" ],
                        "minimum": 1,
                    },
                    "fields": {
                        "type": "array",
                        "items": { "$ref": "#/$defs/field" },
                    },
                },
                "additionalProperties": False,
                "required": [
                    "byte_offset",
                    "width",
                    "fields",
                ],
            },
        },
        "type": "object",
        "properties": {
            "parents": {
                "type": "object",
                "additionalProperties": { "$ref": "#/$defs/parent" },
            },
        },
        "additionalProperties": False,
        "required": [
            "parents",
        ],
    }

    def __init__(self, origin, schema=None):
        if not isinstance(origin, Registry):
            raise TypeError(f"Origin must be a Registry, not {origin!r}")
        if schema is not None and not isinstance(schema, Schema):
            raise TypeError(f"Schema must be a Schema, not {schema!r}")
        self._origin = origin
        self._schema = schema

    @property
    def origin(self):
        """Layout described by this metadata.

        Returns
        -------
        :class:`.Registry`
        """
        return self._origin

    @classmethod
    def validate(cls, instance):
        """Validate a JSON representation of layout metadata against :attr:`schema`.

        Raises
        ------
        :exc:`InvalidMetadata`
            If :py:`instance` doesn't conform to :attr:`schema`.
        """
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=DeprecationWarning)
            result = _layout_json_schema().evaluate(jschon.JSON(instance))
        if not result.valid:
            raise InvalidMetadata("Invalid layout metadata:\n" +
                                  pprint.pformat(result.output("basic")["errors"],
                                                 sort_dicts=False))

    def as_json(self):
        """Translate to JSON.

        Returns
        -------
        :class:`dict`
            JSON representation of :attr:`origin`, with bit fields grouped by parent field
            in declaration order.
        """
        parents = {}
        for name, field in self._origin:
            if field.parent not in parents:
                if self._schema is None:
                    byte_offset = width = None
                else:
                    byte_offset = self._schema.byte_offset(field.parent)
                    width = self._schema.storage_width_bits(field.parent)
                parents[field.parent] = {
                    "byte_offset": byte_offset,
                    "width": width,
                    "fields": [],
                }
            parents[field.parent]["fields"].append({
                "name": name,
                "start": field.start,
                "width": field.width,
                "type": None if field.type is None else field.type.value,
            })
        instance = {"parents": parents}
        self.validate(instance)
        return instance

    def __repr__(self):
        return f"<{type(self).__module__}.{type(self).__qualname__} for {self._origin!r}>"
