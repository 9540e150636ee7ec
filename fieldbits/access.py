from abc import ABCMeta, abstractmethod


__all__ = [
    "Storage", "encode", "read", "write", "read_bool",
    "TypeMismatchError", "RangeError", "UnknownFieldError",
]


class TypeMismatchError(TypeError):
    """Raised when a value that is not an integer is written to a bit field."""


class RangeError(ValueError):
    """Raised when a value written to a bit field does not fit in it."""


class UnknownFieldError(LookupError):
    """Raised by storage when a field name is not part of the container."""


class Storage(metaclass=ABCMeta):
    """Parent field values of a single container instance.

    Storage is provided by the library that owns the memory; bit field accessors only ever
    read or replace whole parent fields through it.
    """

    @abstractmethod
    def get(self, name):
        """Return the value of field ``name``.

        Raises
        ------
        :exc:`UnknownFieldError`
            If the container has no field called ``name``.
        """

    @abstractmethod
    def set(self, name, value):
        """Replace the value of field ``name`` with ``value``.

        Raises
        ------
        :exc:`UnknownFieldError`
            If the container has no field called ``name``.
        """


def encode(field, value):
    """Convert ``value`` to the bit pattern stored in ``field``.

    Non-negative values are stored as-is. Negative values in the range
    :py:`-(1 << field.width)` to :py:`-1` are stored in two's complement: for a 4-bit field,
    :py:`-1` is stored as :py:`0b1111` and :py:`-8` as :py:`0b1000`.

    Returns
    -------
    :class:`int`
        A value between 0 and :py:`field.max_value`.

    Raises
    ------
    :exc:`TypeMismatchError`
        If ``value`` is not an :class:`int`.
    :exc:`RangeError`
        If ``value`` does not fit in the field.
    """
    if not isinstance(value, int):
        raise TypeMismatchError(f"Value written to bit field {field.name!r} must be an integer, "
                                f"not {value!r}")
    max_value = field.max_value
    if value < 0:
        min_value = -(1 << field.width)
        if value < min_value:
            raise RangeError(f"Value {value} is too small for bit field {field.name!r} of width "
                             f"{field.width}, minimum is {min_value}")
        value = max_value + value + 1
    elif value > max_value:
        raise RangeError(f"Value {value} is too large for bit field {field.name!r} of width "
                         f"{field.width}, maximum is {max_value}")
    return value


def read(registry, storage, name):
    """Read a bit field or, if ``name`` is not a bit field in ``registry``, a regular field."""
    field = registry.get(name)
    if field is None:
        return storage.get(name)
    return field.extract(storage.get(field.parent))


def write(registry, storage, name, value):
    """Write a bit field or, if ``name`` is not a bit field in ``registry``, a regular field.

    Writing a bit field reads its parent field, replaces the bits of the bit field, and writes
    the parent field back. This is not atomic; bit fields sharing a parent field must not be
    written concurrently.

    Returns
    -------
    :class:`int` or unspecified type
        For a bit field, the value now stored in it. For a regular field, ``value``.

    Raises
    ------
    :exc:`TypeMismatchError`, :exc:`RangeError`
        As for :func:`encode`. Storage is not modified in that case.
    """
    field = registry.get(name)
    if field is None:
        storage.set(name, value)
        return value
    value = encode(field, value)
    raw = storage.get(field.parent)
    storage.set(field.parent, field.insert(raw, value))
    return value


def read_bool(registry, storage, name):
    """Read a single-bit field as a :class:`bool`."""
    field = registry.get(name)
    if field is None:
        raise UnknownFieldError(f"{name!r} is not a bit field")
    if field.width != 1:
        raise TypeError(f"Bit field {name!r} is {field.width} bits wide and cannot be read as "
                        f"a boolean")
    return field.extract(storage.get(field.parent)) == 1
