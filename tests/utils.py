import unittest

from fieldbits.layout import Schema
from fieldbits.access import Storage, UnknownFieldError


__all__ = ["FieldbitsTestCase", "MockSchema", "MockStorage"]


class MockSchema(Schema):
    """Parent fields described as ``name -> (byte_offset, width_bits)``."""
    def __init__(self, members):
        self.members = dict(members)

    def byte_offset(self, name):
        if name not in self.members:
            return None
        return self.members[name][0]

    def storage_width_bits(self, name):
        if name not in self.members:
            return None
        return self.members[name][1]

    def __contains__(self, name):
        return name in self.members


class MockStorage(Storage):
    """Parent field values, with a log of every access."""
    def __init__(self, **values):
        self.values = dict(values)
        self.log = []

    def get(self, name):
        self.log.append(("get", name))
        if name not in self.values:
            raise UnknownFieldError(f"No field {name!r}")
        return self.values[name]

    def set(self, name, value):
        self.log.append(("set", name, value))
        if name not in self.values:
            raise UnknownFieldError(f"No field {name!r}")
        self.values[name] = value


class FieldbitsTestCase(unittest.TestCase):
    maxDiff = None

    def assertNoWrites(self, storage):
        self.assertEqual([entry for entry in storage.log if entry[0] == "set"], [])
