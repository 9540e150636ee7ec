import ctypes
import sys
import warnings
from functools import cached_property

from ._utils import warning_enabled
from .layout import Schema, Registry, LayoutBuilder, PredicateWarning
from .access import Storage, UnknownFieldError, read, write, read_bool
from .meta import LayoutMetadata


__all__ = [
    "StructSchema", "StructStorage",
    "BitStruct", "LittleEndianBitStruct", "BigEndianBitStruct",
]


# Type codes of the ctypes integer types (``c_int8`` through ``c_uint64``, ``c_long``, etc).
_INTEGER_TYPE_CODES = ("b", "B", "h", "H", "i", "I", "l", "L", "q", "Q")


def _is_integer_type(ctype):
    return (isinstance(ctype, type) and issubclass(ctype, ctypes._SimpleCData) and
            getattr(ctype, "_type_", None) in _INTEGER_TYPE_CODES)


class StructSchema(Schema):
    """Schema of a :class:`ctypes.Structure` subclass.

    Members are the entries of ``_fields_`` of the structure and of its base classes.
    """
    def __init__(self, struct):
        if not (isinstance(struct, type) and issubclass(struct, ctypes.Structure)):
            raise TypeError(f"Structure must be a subclass of ctypes.Structure, not {struct!r}")
        self._struct = struct

    @property
    def struct(self):
        return self._struct

    @cached_property
    def members(self):
        """Entries of ``_fields_``, by member name."""
        members = {}
        for cls in reversed(self._struct.__mro__):
            for member in cls.__dict__.get("_fields_", ()):
                members[member[0]] = member
        return members

    def __contains__(self, name):
        return name in self.members

    def byte_offset(self, name):
        if name not in self.members:
            return None
        return getattr(self._struct, name).offset

    def storage_width_bits(self, name):
        member = self.members.get(name)
        if member is None:
            return None
        ctype = member[1]
        if not _is_integer_type(ctype):
            raise TypeError(f"Member {name!r} of {self._struct.__name__} must have an integer "
                            f"type to hold bit fields, not {ctype.__name__}")
        if len(member) == 3:
            raise TypeError(f"Member {name!r} of {self._struct.__name__} is a ctypes bit field "
                            f"and cannot hold bit fields")
        return ctypes.sizeof(ctype) * 8

    def __repr__(self):
        return f"StructSchema({self._struct.__qualname__})"


class StructStorage(Storage):
    """Members of a :class:`ctypes.Structure` instance.

    Arguments
    ---------
    struct : :class:`ctypes.Structure`
        Instance to access.
    schema : :class:`StructSchema` or ``None``
        Schema of :py:`type(struct)`; created if not given.
    """
    def __init__(self, struct, schema=None):
        self._struct = struct
        self._schema = StructSchema(type(struct)) if schema is None else schema

    def _check_member(self, name):
        if name not in self._schema:
            raise UnknownFieldError(f"Structure {type(self._struct).__qualname__} does not have "
                                    f"a field {name!r}")

    def get(self, name):
        self._check_member(name)
        return getattr(self._struct, name)

    def set(self, name, value):
        self._check_member(name)
        setattr(self._struct, name, value)


def _make_predicate(cls, predicate_name, field_name):
    def predicate(self):
        return read_bool(type(self).bit_layout, self._bit_struct_storage(), field_name)
    predicate.__name__     = predicate_name
    predicate.__qualname__ = f"{cls.__qualname__}.{predicate_name}"
    predicate.__doc__      = f"Whether bit field ``{field_name}`` is set."
    return predicate


class _BitStructMeta(type(ctypes.Structure)):
    def __init__(cls, name, bases, namespace):
        super().__init__(name, bases, namespace)
        plain = namespace.get("_bit_fields_")
        typed = namespace.get("_typed_bit_fields_")
        if plain is None and typed is None:
            # Either a base class, or a structure without bit fields of its own; it shares
            # the layout of its base class.
            return
        if any(len(getattr(base, "bit_layout", ())) for base in bases):
            raise TypeError("Bit structure '{}' must either inherit or specify bit fields, "
                            "not both"
                            .format(name))

        frame = sys._getframe(1)
        src_loc = dict(filename=frame.f_code.co_filename, lineno=frame.f_lineno)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", PredicateWarning)
            builder = LayoutBuilder(cls._bit_struct_schema())
            for parent, fields in _declaration_pairs(name, "_bit_fields_", plain):
                builder.declare(parent, fields)
            for parent, fields in _declaration_pairs(name, "_typed_bit_fields_", typed):
                builder.declare_typed(parent, fields)
            cls.bit_layout = builder.build()
        for warning in caught:
            cls.__warn(warning.message, warning.category, src_loc)

        for predicate_name, field_name in cls.bit_layout.predicates.items():
            if hasattr(cls, predicate_name):
                cls.__warn(f"Predicate accessor for bit field {field_name!r} is not defined "
                           f"because '{name}.{predicate_name}' already exists",
                           PredicateWarning, src_loc)
                continue
            setattr(cls, predicate_name, _make_predicate(cls, predicate_name, field_name))

    def __warn(cls, message, category, src_loc):
        if issubclass(category, PredicateWarning):
            if not warning_enabled(src_loc["filename"], category):
                return
        warnings.warn_explicit(message, category, **src_loc)


def _declaration_pairs(name, attr, declarations):
    if declarations is None:
        return []
    pairs = []
    for declaration in declarations:
        try:
            parent, fields = declaration
        except (TypeError, ValueError) as e:
            raise TypeError(f"Entries of '{name}.{attr}' must be (parent, fields) pairs, "
                            f"not {declaration!r}") from e
        pairs.append((parent, fields))
    return pairs


def _bit_struct_meta(base):
    metacls = type(base)
    if issubclass(_BitStructMeta, metacls):
        return _BitStructMeta
    return type(f"_{base.__name__}BitStructMeta", (_BitStructMeta, metacls), {})


class _BitStructMixin:
    @classmethod
    def _bit_struct_schema(cls):
        # Not inherited; subclasses may add members.
        schema = cls.__dict__.get("_bit_struct_schema_")
        if schema is None:
            schema = StructSchema(cls)
            cls._bit_struct_schema_ = schema
        return schema

    def _bit_struct_storage(self):
        return StructStorage(self, type(self)._bit_struct_schema())

    @classmethod
    def bit_field_members(cls):
        """Bit field names grouped by parent field."""
        return cls.bit_layout.members_by_parent()

    @classmethod
    def bit_field_layout(cls):
        """Start bit and width of each bit field, grouped by parent field."""
        return cls.bit_layout.layout_details()

    @classmethod
    def bit_field_offsets(cls):
        """Offset of each bit field from the start of the structure, in bits."""
        return cls.bit_layout.bit_offsets(cls._bit_struct_schema())

    @classmethod
    def bit_field_metadata(cls):
        """JSON representation of the bit field layout; see :class:`.LayoutMetadata`."""
        return LayoutMetadata(cls.bit_layout, cls._bit_struct_schema()).as_json()

    def __getitem__(self, name):
        return read(type(self).bit_layout, self._bit_struct_storage(), name)

    def __setitem__(self, name, value):
        write(type(self).bit_layout, self._bit_struct_storage(), name, value)

    def read_bool(self, name):
        return read_bool(type(self).bit_layout, self._bit_struct_storage(), name)


class BitStruct(_BitStructMixin, ctypes.Structure, metaclass=_bit_struct_meta(ctypes.Structure)):
    """Structure with bit fields.

    Bit fields are declared with two class attributes, next to ``_fields_``:

    .. code::

        class Flags(BitStruct):
            _fields_ = [
                ("value", ctypes.c_uint8),
                ("flags", ctypes.c_uint8),
            ]
            _bit_fields_ = [
                ("value", [("read", 1), ("write", 1), ("execute", 1), ("unused", 5)]),
            ]
            _typed_bit_fields_ = [
                ("flags", {"revoked": (1, "bool"), "expired": (1, "bool"), "level": (4, "int")}),
            ]

    Each entry declares all bit fields of one member, from its least significant bit upwards.
    Both bit fields and members are accessed by indexing:

    .. code::

        >>> flags = Flags()
        >>> flags["write"] = 1
        >>> flags["value"]
        2
        >>> flags["level"] = -1
        >>> flags["level"]
        15

    Every single-bit ``"bool"`` field gets a predicate method, e.g. ``flags.is_revoked()``.

    Attributes
    ----------
    bit_layout : :class:`.Registry`
        Bit fields of the structure.
    """
    bit_layout = Registry()


class LittleEndianBitStruct(_BitStructMixin, ctypes.LittleEndianStructure,
                            metaclass=_bit_struct_meta(ctypes.LittleEndianStructure)):
    """Little-endian structure with bit fields; see :class:`BitStruct`."""
    bit_layout = Registry()


class BigEndianBitStruct(_BitStructMixin, ctypes.BigEndianStructure,
                         metaclass=_bit_struct_meta(ctypes.BigEndianStructure)):
    """Big-endian structure with bit fields; see :class:`BitStruct`."""
    bit_layout = Registry()
