from fieldbits.layout import *
from fieldbits.meta import *

from .utils import *


class LayoutMetadataTestCase(FieldbitsTestCase):
    def setUp(self):
        builder = LayoutBuilder(MockSchema({"value": (4, 16), "flags": (6, 8)}))
        builder.declare("value", [("low", 12), ("high", 4)])
        builder.declare_typed("flags", {"revoked": (1, "bool"), "level": (3, "int")})
        self.registry = builder.build()

    def test_as_json(self):
        metadata = LayoutMetadata(self.registry, MockSchema({"value": (4, 16), "flags": (6, 8)}))
        self.assertEqual(metadata.as_json(), {
            "parents": {
                "value": {
                    "byte_offset": 4,
                    "width": 16,
                    "fields": [
                        {"name": "low", "start": 0, "width": 12, "type": None},
                        {"name": "high", "start": 12, "width": 4, "type": None},
                    ],
                },
                "flags": {
                    "byte_offset": 6,
                    "width": 8,
                    "fields": [
                        {"name": "revoked", "start": 0, "width": 1, "type": "bool"},
                        {"name": "level", "start": 1, "width": 3, "type": "int"},
                    ],
                },
            },
        })

    def test_as_json_without_schema(self):
        metadata = LayoutMetadata(self.registry)
        instance = metadata.as_json()
        self.assertEqual(list(instance["parents"]), ["value", "flags"])
        self.assertIsNone(instance["parents"]["value"]["byte_offset"])
        self.assertIsNone(instance["parents"]["flags"]["width"])

    def test_as_json_empty(self):
        self.assertEqual(LayoutMetadata(Registry()).as_json(), {"parents": {}})

    def test_validate(self):
        LayoutMetadata.validate(LayoutMetadata(self.registry).as_json())

    def test_validate_wrong(self):
        with self.assertRaises(InvalidMetadata):
            LayoutMetadata.validate({})
        with self.assertRaises(InvalidMetadata):
            LayoutMetadata.validate({
                "parents": {
                    "value": {
                        "byte_offset": 0,
                        "width": 8,
                        "fields": [
                            {"name": "a", "start": 0, "width": 65, "type": None},
                        ],
                    },
                },
            })
        with self.assertRaises(InvalidMetadata):
            LayoutMetadata.validate({
                "parents": {
                    "value": {
                        "byte_offset": 0,
                        "width": 8,
                        "fields": [
                            {"name": "a", "start": 0, "width": 1, "type": "float"},
                        ],
                    },
                },
            })

    def test_wrong_origin(self):
        with self.assertRaisesRegex(TypeError, r"^Origin must be a Registry, not 'foo'$"):
            LayoutMetadata("foo")
        with self.assertRaisesRegex(TypeError, r"^Schema must be a Schema, not 'bar'$"):
            LayoutMetadata(self.registry, "bar")

    def test_repr(self):
        metadata = LayoutMetadata(Registry([BitField("a", "value", 0, 4)]))
        self.assertEqual(repr(metadata),
            "<fieldbits.meta.LayoutMetadata for "
            "Registry([BitField('a', parent='value', start=0, width=4)])>")

    def test_validate_message(self):
        with self.assertRaisesRegex(InvalidMetadata, r"^Invalid layout metadata:\n"):
            LayoutMetadata.validate({"parents": []})
