from abc import ABCMeta, abstractmethod
from collections.abc import Mapping, Sequence
from enum import Enum
import warnings

from ._utils import final


__all__ = [
    "MAX_WIDTH",
    "FieldType", "BitField", "Schema", "Registry", "LayoutBuilder",
    "DuplicateParentError", "DuplicateFieldError", "WidthOverflowError", "AlreadyBuilt",
    "PredicateWarning",
]


#: Widest bit field, and widest declaration group, that can be described.
MAX_WIDTH = 64


class DuplicateParentError(ValueError):
    """Raised when a parent field that already has bit fields is declared again."""


class DuplicateFieldError(ValueError):
    """Raised when a bit field name is already in use within the layout."""


class WidthOverflowError(ValueError):
    """Raised when bit fields do not fit in their parent field."""


class AlreadyBuilt(Exception):
    """Raised when a layout builder is used after :meth:`LayoutBuilder.build` was called."""


class PredicateWarning(Warning):
    pass


class FieldType(Enum):
    """Semantic type of a bit field.

    The type does not change how a field is stored; it only drives generation of predicate
    accessors and is reported by introspection.
    """
    Bool   = "bool"
    Int    = "int"
    String = "string"
    Raw    = "raw"

    @staticmethod
    def cast(obj):
        """Cast ``obj`` to a :class:`FieldType`.

        Accepts a member of the enumeration or its name as a string (e.g. ``"bool"``).

        Raises
        ------
        TypeError
            If ``obj`` does not name a field type.
        """
        if isinstance(obj, FieldType):
            return obj
        if isinstance(obj, str):
            try:
                return FieldType(obj.lower())
            except ValueError:
                pass
        raise TypeError("Bit field type must be one of {}, not {!r}"
                        .format(", ".join(repr(member.value) for member in FieldType), obj))


@final
class BitField:
    """Description of a bit field.

    The :class:`BitField` class specifies the position of a named span of bits within a parent
    field. :class:`BitField` objects are immutable.

    Attributes
    ----------
    name : :class:`str`
        Name of the bit field.
    parent : :class:`str`
        Name of the parent field holding the bits.
    start : :class:`int`, >=0
        Index of the least significant bit of the field within the parent.
    width : :class:`int`, 1..64
        Amount of bits in the field.
    type : :class:`FieldType` or ``None``
        Semantic type, if the field was declared with one.
    """
    def __init__(self, name, parent, start, width, type=None):
        if not isinstance(name, str):
            raise TypeError(f"Bit field name must be a string, not {name!r}")
        if not isinstance(parent, str):
            raise TypeError(f"Parent field name must be a string, not {parent!r}")
        if not isinstance(start, int) or start < 0:
            raise TypeError(f"Bit field start must be a non-negative integer, not {start!r}")
        if not isinstance(width, int) or width < 1:
            raise TypeError(f"Bit field width must be a positive integer, not {width!r}")
        if start + width > MAX_WIDTH:
            raise WidthOverflowError(f"Bit field {name!r} occupies bits {start}..{start + width - 1} "
                                     f"of {parent!r}, which exceeds {MAX_WIDTH} bits")
        self._name   = name
        self._parent = parent
        self._start  = start
        self._width  = width
        self._type   = None if type is None else FieldType.cast(type)

    @property
    def name(self):
        return self._name

    @property
    def parent(self):
        return self._parent

    @property
    def start(self):
        return self._start

    @property
    def width(self):
        return self._width

    @property
    def type(self):
        return self._type

    @property
    def max_value(self):
        """Largest unsigned value that fits in the field, :py:`(1 << width) - 1`."""
        return (1 << self._width) - 1

    @property
    def mask(self):
        """Bits of the parent field occupied by this field."""
        return self.max_value << self._start

    def extract(self, raw):
        """Return the value of this field within the parent value ``raw``."""
        return (raw >> self._start) & self.max_value

    def insert(self, raw, value):
        """Return the parent value ``raw`` with the bits of this field replaced with ``value``.

        Only the low :attr:`width` bits of ``value`` are used; range checking is done by
        :func:`fieldbits.access.encode`.
        """
        return (raw & ~self.mask) | ((value & self.max_value) << self._start)

    def __eq__(self, other):
        return (isinstance(other, BitField) and
                self._name == other.name and
                self._parent == other.parent and
                self._start == other.start and
                self._width == other.width and
                self._type == other.type)

    def __hash__(self):
        return hash((self._name, self._parent, self._start, self._width, self._type))

    def __repr__(self):
        if self._type is None:
            return (f"BitField({self._name!r}, parent={self._parent!r}, start={self._start}, "
                    f"width={self._width})")
        return (f"BitField({self._name!r}, parent={self._parent!r}, start={self._start}, "
                f"width={self._width}, type={self._type.value!r})")


class Schema(metaclass=ABCMeta):
    """Geometry of the container that holds parent fields.

    A schema answers questions about parent fields of a container type (not of a particular
    instance). It is provided by the library that owns the memory layout; see
    :class:`fieldbits.struct.StructSchema` for the :mod:`ctypes` implementation.
    """

    @abstractmethod
    def byte_offset(self, name):
        """Offset of parent field ``name`` from the start of the container, in bytes.

        Returns ``None`` if the offset is unknown.
        """

    @abstractmethod
    def storage_width_bits(self, name):
        """Width of parent field ``name``, in bits.

        Returns ``None`` if the width is unknown, in which case bit fields declared within it are
        only limited by :data:`MAX_WIDTH`.
        """

    @abstractmethod
    def __contains__(self, name):
        """Whether the container has a field called ``name``."""


class Registry:
    """Bit field layout of a container type.

    A registry maps bit field names to :class:`BitField` descriptions, in declaration order.
    It is created by :meth:`LayoutBuilder.build` and is immutable afterwards.

    Iterating a registry yields ``(name, field)`` pairs, like iterating a layout.
    """
    def __init__(self, fields=(), types=None, predicates=None):
        self._fields = {}
        for field in fields:
            if not isinstance(field, BitField):
                raise TypeError(f"Registry fields must be bit fields, not {field!r}")
            if field.name in self._fields:
                raise DuplicateFieldError(f"Bit field {field.name!r} is declared more than once")
            self._fields[field.name] = field
        self._types      = dict(types or {})
        self._predicates = dict(predicates or {})

    def __iter__(self):
        return iter(self._fields.items())

    def __getitem__(self, name):
        return self._fields[name]

    def __contains__(self, name):
        return name in self._fields

    def __len__(self):
        return len(self._fields)

    def get(self, name, default=None):
        return self._fields.get(name, default)

    @property
    def parents(self):
        """Names of parent fields that have bit fields, in declaration order."""
        return tuple(dict.fromkeys(field.parent for field in self._fields.values()))

    @property
    def types(self):
        """Semantic types of the bit fields declared with one."""
        return dict(self._types)

    @property
    def predicates(self):
        """Predicate accessor names, mapped to the single-bit boolean fields they test."""
        return dict(self._predicates)

    def members_by_parent(self):
        """Bit field names grouped by parent field.

        Returns
        -------
        :class:`dict` of :class:`str` to :class:`list` of :class:`str`
        """
        result = {}
        for name, field in self._fields.items():
            result.setdefault(field.parent, []).append(name)
        return result

    def layout_details(self):
        """Start bit and width of each bit field, grouped by parent field.

        Returns
        -------
        :class:`dict` of :class:`str` to :class:`dict` of :class:`str` to :class:`dict`
            For example, :py:`{"flags": {"read": {"start": 0, "width": 1}}}`.
        """
        result = {}
        for name, field in self._fields.items():
            result.setdefault(field.parent, {})[name] = {"start": field.start, "width": field.width}
        return result

    def bit_offsets(self, schema):
        """Offset of each bit field from the start of the container, in bits.

        Fields whose parent has no known byte offset in ``schema`` are omitted.

        Returns
        -------
        :class:`dict` of :class:`str` to :class:`list` of (:class:`str`, :class:`int`)
        """
        result = {}
        for name, field in self._fields.items():
            byte_offset = None if schema is None else schema.byte_offset(field.parent)
            if byte_offset is None:
                continue
            result.setdefault(field.parent, []).append((name, byte_offset * 8 + field.start))
        return result

    def __eq__(self, other):
        return (isinstance(other, Registry) and
                list(self) == list(other) and
                self._types == other._types)

    def __repr__(self):
        return "Registry([{}])".format(", ".join(repr(field) for field in self._fields.values()))


class LayoutBuilder:
    """Declares bit fields and builds a :class:`Registry`.

    Each parent field can be declared once, with all of its bit fields. Bit fields are packed
    starting from bit 0 of the parent, in the order they are given, without gaps.

    Arguments
    ---------
    schema : :class:`Schema` or ``None``
        Used to check that bit fields fit in their parent field.
    """
    def __init__(self, schema=None):
        if schema is not None and not isinstance(schema, Schema):
            raise TypeError(f"Schema must be a Schema, not {schema!r}")
        self._schema     = schema
        self._fields     = []
        self._types      = {}
        self._predicates = {}
        self._built      = False

    @property
    def schema(self):
        return self._schema

    def declare(self, parent, fields):
        """Declare bit fields within ``parent``.

        Arguments
        ---------
        parent : :class:`str`
            Name of the parent field.
        fields : sequence of (:class:`str`, :class:`int`) or mapping of :class:`str` to :class:`int`
            Names and widths of the bit fields, starting from the least significant bit.

        Returns
        -------
        :class:`str`
            ``parent``.

        Raises
        ------
        :exc:`DuplicateParentError`
            If ``parent`` already has bit fields.
        :exc:`DuplicateFieldError`
            If a bit field name is already in use.
        :exc:`WidthOverflowError`
            If the bit fields do not fit in ``parent``.
        """
        if isinstance(fields, Mapping):
            fields = list(fields.items())
        elif isinstance(fields, Sequence) and not isinstance(fields, str):
            fields = list(fields)
        else:
            raise TypeError(f"Bit fields must be provided as a sequence of (name, width) pairs "
                            f"or a mapping, not {fields!r}")
        specs = []
        for spec in fields:
            try:
                name, width = spec
            except (TypeError, ValueError) as e:
                raise TypeError(f"Bit field must be a (name, width) pair, not {spec!r}") from e
            specs.append((name, width, None))
        self._add_group(parent, specs)
        return parent

    def declare_typed(self, parent, fields):
        """Declare bit fields within ``parent``, each with a semantic type.

        Works like :meth:`declare`, and also records the type of each field. Every single-bit
        field of type :attr:`FieldType.Bool` gets a predicate accessor called ``is_<name>``.

        Arguments
        ---------
        parent : :class:`str`
            Name of the parent field.
        fields : mapping of :class:`str` to (:class:`int`, :class:`FieldType` or :class:`str`)
            Widths and types of the bit fields, starting from the least significant bit.

        Returns
        -------
        :class:`str`
            ``parent``.
        """
        if not isinstance(fields, Mapping):
            raise TypeError(f"Typed bit fields must be provided as a mapping, not {fields!r}")
        specs = []
        for name, definition in fields.items():
            try:
                width, type = definition
            except (TypeError, ValueError) as e:
                raise TypeError(f"Typed bit field {name!r} must be defined as a (width, type) pair, "
                                f"not {definition!r}") from e
            specs.append((name, width, FieldType.cast(type)))
        self._add_group(parent, specs)
        return parent

    def build(self):
        """Freeze the builder and return the layout.

        Returns
        -------
        :class:`Registry`
        """
        self._check_not_built()
        self._built = True
        return Registry(self._fields, self._types, self._predicates)

    def _check_not_built(self):
        if self._built:
            raise AlreadyBuilt("Layout has already been built and cannot be changed")

    def _add_group(self, parent, specs):
        self._check_not_built()
        if not isinstance(parent, str):
            raise TypeError(f"Parent field name must be a string, not {parent!r}")

        declared_names   = {field.name for field in self._fields}
        declared_parents = {field.parent for field in self._fields}
        if parent in declared_parents:
            raise DuplicateParentError(f"Bit fields for {parent!r} are already declared")
        if parent in declared_names:
            raise DuplicateFieldError(f"Parent field {parent!r} is already declared as a bit field")

        group_names = set()
        total = 0
        for name, width, _type in specs:
            if not isinstance(name, str):
                raise TypeError(f"Bit field name must be a string, not {name!r}")
            if not isinstance(width, int) or isinstance(width, bool) or width < 1:
                raise TypeError(f"Width of bit field {name!r} must be a positive integer, "
                                f"not {width!r}")
            if width > MAX_WIDTH:
                raise WidthOverflowError(f"Width of bit field {name!r} is {width} bits, which "
                                         f"exceeds the maximum of {MAX_WIDTH} bits")
            if name in group_names or name in declared_names:
                raise DuplicateFieldError(f"Bit field {name!r} is already declared")
            if name == parent or name in declared_parents:
                raise DuplicateFieldError(f"Bit field {name!r} has the same name as a parent field")
            if self._schema is not None and name in self._schema:
                raise DuplicateFieldError(f"Bit field {name!r} has the same name as a field of "
                                          f"the container")
            group_names.add(name)
            total += width

        parent_bits = None if self._schema is None else self._schema.storage_width_bits(parent)
        if parent_bits is not None and total > parent_bits:
            raise WidthOverflowError(f"Bit width {total} exceeds {parent!r} size "
                                     f"({parent_bits} bits)")
        if total > MAX_WIDTH:
            raise WidthOverflowError(f"Bit width {total} of {parent!r} exceeds the maximum of "
                                     f"{MAX_WIDTH} bits")

        # A warning raised as an error must leave the builder unchanged.
        for name, width, type in specs:
            if type is FieldType.Bool and width != 1:
                warnings.warn(f"Boolean bit field {name!r} is {width} bits wide and will not "
                              f"have a predicate accessor",
                              PredicateWarning, stacklevel=3)

        start = 0
        for name, width, type in specs:
            self._fields.append(BitField(name, parent, start, width, type))
            start += width
            if type is None:
                continue
            self._types[name] = type
            if type is FieldType.Bool and width == 1:
                self._predicates[f"is_{name}"] = name
