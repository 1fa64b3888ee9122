"""
A Field is "fundamental" datatype from the format point of view, something directly
packable/unpackable: it knows its value, its binary representation and its size.

All the IFF datatypes are big-endian.
"""
import logging
import math
import struct
from enum import Enum

from bitstring import Bits, pack

from .meta import FieldBase
from .properties import Dependency
from .exceptions import IffException, InvariantException, MagicException, SizeMismatchException


class Field(FieldBase):
    """Base class to subclass from"""

    def __init__(self, *args, name=None, father=None, default=None, offset=None,
                 optional=False, is_magic=False):
        super().__init__()
        self.logger = logging.getLogger(self.__class__.__module__)
        self._frozen = False
        self.name = name
        self.father = father
        self.default = default
        self.offset = offset
        self.optional = optional
        self.is_magic = is_magic

        self.init()

    def init(self):
        self._value = self.value_from_default()

    def value_from_default(self):
        return self.default

    def __str__(self):
        return str(self.value)

    @property
    def required(self):
        '''A field must be explicitly given when building a chunk
        unless it's optional or it has a default.'''
        return not self.optional and self.default is None

    @property
    def is_present(self):
        return not (self.optional and self._get_value() is None)

    def invariant(self, message):
        return InvariantException(chain=[self.name] if self.name else [], message=message)

    def freeze(self):
        self._frozen = True

    def _set_value_checked(self, value):
        if self._frozen:
            raise AttributeError(f"field '{self.name}' is frozen")

        if value is None:
            if not self.optional:
                raise self.invariant('value is required')
            self._value = None
            return

        self._set_value(value)

    def _get_value(self):
        return self._value

    def _set_value(self, value):
        self._value = value

    value = property(
        fget=lambda self: self._get_value(),
        fset=lambda self, value: self._set_value_checked(value))

    def _get_size(self):
        raise NotImplementedError(f"method {self.__class__.__name__}._get_size() not implemented")

    size = property(
        fget=lambda self: self._get_size() if self.is_present else 0,
    )

    def _get_raw(self) -> bytes:
        raise NotImplementedError(f"method {self.__class__.__name__}._get_raw() not implemented")

    raw = property(
        fget=lambda self: self._get_raw() if self.is_present else b'',
    )

    def relayout(self, offset=0):
        self.offset = offset

        return self.size

    def pack(self, stream=None):
        if stream is None:
            return self.raw

        stream.write(self.raw)

    def unpack(self, stream):
        self.offset = stream.tell()
        self._unpack(stream)

    def _unpack(self, stream):
        raise NotImplementedError(f"method {self.__class__.__name__}._unpack() not implemented")

    def check_magic(self, value):
        if self.is_magic and value != self.default:
            raise MagicException(
                chain=[],
                message=f'expected {self.default!r}, found {value!r}',
                offset=self.offset,
            )


FORMAT_BY_WIDTH = {
    8:  'b',
    16: 'h',
    32: 'i',
    64: 'q',
}


class StructField(Field):
    """
    Simplest of the fields: mimic the behaviour of the struct module packing/unpacking
    integers to/from bytes.

    The main advantage is the possibility to indicate via the "enum" argument some subclass
    of enum.Enum so to have directly a representation of the integer value of the field itself;
    values outside of the enum are kept as plain integers.
    """

    def __init__(self, format, default=None, enum=None, **kw):
        self.format = format
        self.enum = enum
        super().__init__(default=default, **kw)

    @classmethod
    def from_width(cls, width, signed=True, **kw):
        try:
            format = FORMAT_BY_WIDTH[width]
        except KeyError:
            raise ValueError(f'there is no integer type of {width} bits')

        return cls(format if signed else format.upper(), **kw)

    def __repr__(self):
        if self.enum and isinstance(self.value, Enum):
            return f'<{self.__class__.__name__}({self.value!r})>'

        return '<%s(%s)>' % (self.__class__.__name__, hex(self.value))

    def __str__(self):
        width = self.size * 2  # we want to be as large as possible
        formatter = '0x%%0%dx' % width
        return formatter % (self.as_int(),)

    def value_from_default(self):
        default = 0 if self.default is None else self.default
        if self.optional and self.default is None:
            return None

        return self.to_enum(default)

    def get_format(self):
        return '>%s' % self.format

    def as_int(self):
        return self.value.value if isinstance(self.value, Enum) else self.value

    def to_enum(self, value):
        if not self.enum or isinstance(value, self.enum):
            return value

        try:
            return self.enum(value)
        except ValueError:
            self.logger.warning(f'enum {self.enum!r} doesn\'t have element with value 0x{value:x} in it')

        return value

    def _set_value(self, value) -> None:
        integer = value.value if isinstance(value, Enum) else value

        if isinstance(integer, bool) or not isinstance(integer, int):
            raise self.invariant(f'expected an integer, not {value!r}')

        try:
            struct.pack(self.get_format(), integer)
        except struct.error as e:
            raise self.invariant(f'{integer} does not fit: {e}')

        self._value = self.to_enum(value)

    def _get_size(self):
        return struct.calcsize(self.get_format())

    def _get_raw(self) -> bytes:
        return struct.pack(self.get_format(), self.as_int())

    def _unpack(self, stream):
        raw = stream.read(self._get_size())
        value = struct.unpack(self.get_format(), raw)[0]
        self.check_magic(value)
        self._value = self.to_enum(value)


class StringField(Field):
    """Represent a contiguous chunk of bytes.

    The length is either fixed (an integer) or a Dependency resolved
    at unpacking time; in the latter case the length is the one of the value."""

    def __init__(self, n=None, **kw):
        if n is None and kw.get('default') is None:
            raise ValueError(f"StringField must have 'n' or 'default' indicated!")

        self._length = n if n is not None else len(kw['default'])

        super().__init__(**kw)

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, repr(self.value))

    def __len__(self):
        return self.size

    @property
    def is_variable(self):
        return isinstance(self._length, Dependency)

    @property
    def length(self):
        if self.is_variable:
            return self._length.resolve(self)

        return self._length

    def value_from_default(self):
        if self.default is not None:
            return self.default

        if self.optional:
            return None

        return b'' if self.is_variable else b'\x00' * self._length

    def _set_value(self, value) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise self.invariant(f'expected bytes, not {value.__class__.__name__}')

        if not self.is_variable and len(value) != self._length:
            raise self.invariant(f'expected {self._length} bytes, got {len(value)}')

        self._value = bytes(value)

    def _get_size(self):
        return len(self.value)

    def _get_raw(self):
        return self.value

    def _unpack(self, stream):
        try:
            length = self.length
        except SizeMismatchException as e:
            e.offset = stream.tell()
            raise

        value = stream.read(length)
        self.check_magic(value)
        self._value = value


class IDField(StringField):
    """Four ASCII characters identifying a chunk (or a signature).

    Only the length is enforced when reading: the mapping from
    codes to chunks must be total, so any four bytes are accepted."""

    def __init__(self, **kw):
        super().__init__(n=4, **kw)

    def __str__(self):
        return self.value.decode('latin1')

    def _set_value(self, value) -> None:
        if isinstance(value, str):
            try:
                value = value.encode('ascii')
            except UnicodeEncodeError:
                raise self.invariant(f'{value!r} is not ASCII')

        if isinstance(value, (bytes, bytearray)) and any(_ > 0x7f for _ in value):
            raise self.invariant(f'{value!r} is not ASCII')

        super()._set_value(value)


class PStringField(Field):
    """Pascal-style string: one byte of length followed by the characters,
    plus a pad byte when needed to keep the total length even."""

    MAX_LENGTH = 0xff

    def __init__(self, default=None, **kw):
        super().__init__(default=default, **kw)

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, repr(self.value))

    def __str__(self):
        return self.value.decode('latin1')

    def value_from_default(self):
        if self.default is None and not self.optional:
            return b''

        return self.default

    @property
    def padding(self):
        return (1 + len(self.value)) % 2

    def _set_value(self, value) -> None:
        if isinstance(value, str):
            try:
                value = value.encode('latin1')
            except UnicodeEncodeError:
                raise self.invariant(f'{value!r} cannot be encoded as latin1')

        if not isinstance(value, (bytes, bytearray)):
            raise self.invariant(f'expected bytes, not {value.__class__.__name__}')

        if len(value) > self.MAX_LENGTH:
            raise self.invariant(f'a pstring holds at most {self.MAX_LENGTH} characters, not {len(value)}')

        self._value = bytes(value)

    def _get_size(self):
        return 1 + len(self.value) + self.padding

    def _get_raw(self):
        return bytes([len(self.value)]) + self.value + b'\x00' * self.padding

    def _unpack(self, stream):
        length = stream.read(1)[0]
        self._value = stream.read(length)

        if self.padding:
            stream.read(1)


class ExtendedField(Field):
    """80 bit IEEE 754 extended precision float, used for the sample rate.

    The original bytes are retained so that a value read from a stream is
    written back exactly; assigning a float encodes it anew.

    The layout is 1 bit of sign, 15 bits of exponent (bias 16383) and
    64 bits of mantissa with an explicit integer bit."""

    SIZE = 10
    BIAS = 16383
    FORMAT = 'uint:1, uint:15, uint:64'

    def __init__(self, default=None, **kw):
        super().__init__(default=default, **kw)

    def __repr__(self):
        return '<%s(%r)>' % (self.__class__.__name__, self.value)

    def value_from_default(self):
        if self.default is None:
            return None if self.optional else bytes(self.SIZE)

        return self.encode(self.default)

    @classmethod
    def decode(cls, raw):
        sign, exponent, mantissa = Bits(raw).unpack(cls.FORMAT)

        if exponent == 0 and mantissa == 0:
            return 0.0

        if exponent == 0x7fff:
            value = math.inf if mantissa == 0 else math.nan
        else:
            try:
                value = math.ldexp(float(mantissa), exponent - cls.BIAS - 63)
            except OverflowError:
                value = math.inf

        return -value if sign else value

    @classmethod
    def encode(cls, value):
        value = float(value)
        sign = 1 if math.copysign(1.0, value) < 0 else 0
        value = abs(value)

        if value == 0:
            exponent, mantissa = 0, 0
        elif math.isinf(value):
            exponent, mantissa = 0x7fff, 0
        else:
            fmant, exponent = math.frexp(value)
            exponent += cls.BIAS - 1
            mantissa = int(fmant * (1 << 64))

        return pack(cls.FORMAT, sign, exponent, mantissa).bytes

    def _get_value(self):
        if self._value is None:
            return None

        return self.decode(self._value)

    def _set_value(self, value) -> None:
        if isinstance(value, (bytes, bytearray)):
            if len(value) != self.SIZE:
                raise self.invariant(f'expected {self.SIZE} bytes, got {len(value)}')
            self._value = bytes(value)
            return

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.invariant(f'{value!r} is not a valid sample rate')

        try:
            value = float(value)
        except OverflowError:
            raise self.invariant('integer too large for a sample rate')

        if math.isnan(value):
            raise self.invariant('NaN is not a valid sample rate')

        self._value = self.encode(value)

    def _get_size(self):
        return self.SIZE

    def _get_raw(self):
        return self._value

    def _unpack(self, stream):
        self._value = stream.read(self.SIZE)


class ArrayField(Field):
    '''Un/Pack an array of Chunks.

    You can indicate an explicit number of elements via the parameter named "n",
    usually a Dependency on a counter field.

    Elements are always owned by the array: assigning or appending takes
    a copy, and dictionaries are turned into elements via their builder.
    '''

    def __init__(self, field_cls, n=0, **kw):
        self.field_cls = field_cls
        if not isinstance(n, (Dependency, int)):
            raise ValueError('n is \'%s\' must be of the right type' % n.__class__.__name__)

        self._n = n
        super().__init__(**kw)

    def __repr__(self):
        return f'<{self.__class__.__name__}({list(self.value)!r})>'

    def __getitem__(self, item):
        return self.value[item]

    def __iter__(self):
        return iter(self.value)

    def __len__(self):
        return len(self.value)

    @property
    def required(self):
        # an empty array is a legit value
        return False

    @property
    def n(self):
        if isinstance(self._n, Dependency):
            return self._n.resolve(self)

        return self._n

    def value_from_default(self):
        if isinstance(self._n, int):
            return [self.instance_element(_) for _ in range(self._n)]

        return []

    def instance_element(self, index):
        element = self.field_cls()
        element.father = self  # pass the father so that we don't lose the hierarchy
        element.name = str(index)
        return element

    def adopt_element(self, element, index):
        if isinstance(element, dict):
            element = self.field_cls.builder(**element).build()

        if not isinstance(element, self.field_cls):
            raise self.invariant(f'expected {self.field_cls.__name__}, not {element.__class__.__name__}')

        element = element.create(father=self)
        element.name = str(index)

        return element

    def _set_value(self, value):
        self._value = [self.adopt_element(element, idx) for idx, element in enumerate(value)]

    def append(self, element):
        if self._frozen:
            raise AttributeError(f"field '{self.name}' is frozen")

        self._value.append(self.adopt_element(element, len(self._value)))

    def freeze(self):
        for element in self._value:
            element.freeze()

        self._value = tuple(self._value)

        super().freeze()

    def _get_size(self):
        return sum(element.size for element in self.value)

    def _get_raw(self):
        return b''.join(element.raw for element in self.value)

    def relayout(self, offset=0):
        super().relayout(offset=offset)
        size = 0
        for element in self.value:
            size += element.relayout(offset=offset + size)

        return size

    def pack(self, stream=None):
        if stream is None:
            return self.raw

        for element in self.value:
            element.pack(stream)

    def _unpack(self, stream):
        self._value = []
        for idx in range(self.n):
            element = self.instance_element(idx)
            self.logger.debug('unpacking %s[%d]' % (self.name, idx))
            try:
                element.unpack(stream)
            except IffException as e:
                e.chain.insert(0, element.name)
                raise
            self._value.append(element)
