"""
Core module for the abstraction of a file format

"""
from typing import Tuple, List, Dict

from .fields import Field
from .meta import MetaChunk
from .streams import Stream
from .exceptions import IffException, InvariantException


class Chunk(Field, metaclass=MetaChunk):
    """
    Together with Field is the main class that defines a format: its fields are
    declared as class attributes and their order is the order on the wire, both
    when unpacking and when packing.

    A Chunk can contain sub-chunks, so it can be itself used as a field.

    Passing some data to the constructor unpacks it immediately

        class Dummy(Chunk):
            a = fields.StructField('I')
            b = fields.StructField('H')

        dummy = Dummy(b'\\x00\\x00\\x00\\x01\\x00\\x02')

    while chunks meant to be values are built and validated via builder().
    """
    # fields computed by derive() when the builder doesn't get them
    derived_fields = ()

    def __init__(self, data=None, **kwargs):
        super().__init__(**kwargs)

        if data is not None:
            stream = data if isinstance(data, Stream) else Stream(data)
            self.logger.debug('unpacking \'%s\' from %s' % (self.__class__.__name__, stream))
            self.unpack(stream)
        else:
            self.relayout()

    def get_ordered_fields_name(self) -> List[str]:
        return self._meta.fields

    def get_fields(self) -> List[Tuple[str, Field]]:
        '''It returns a list of couples (name, instance) for each field.'''
        return [(_, getattr(self, _)) for _ in self.get_ordered_fields_name()]

    def __repr__(self):
        msg = []
        for field_name, field in self.get_fields():
            msg.append('%s=%s' % (field_name, repr(field)))
        return '<%s(%s)>' % (self.__class__.__name__, ','.join(msg))

    def __str__(self):
        msg = ''
        for field_name, field in self.get_fields():
            msg += '%s: %s\n' % (field_name, repr(field))
        return msg

    def __eq__(self, other):
        '''Two chunks are equal when they are of the same kind and encode
        to the same bytes, whether decoded or built.'''
        if not isinstance(other, Chunk):
            return NotImplemented

        return self.__class__ is other.__class__ and self.raw == other.raw

    def __hash__(self):
        if not self._frozen:
            raise TypeError(f"unhashable '{self.__class__.__name__}': it's not frozen")

        return hash((self.__class__, self.raw))

    def init(self):
        self._value = None

    def _get_value(self) -> Dict:
        return {name: field.value for name, field in self.get_fields()}

    def _set_value(self, value: Dict) -> None:
        if not isinstance(value, dict):
            raise self.invariant(f'expected a {self.__class__.__name__} or a dict, not {value!r}')

        for name, field_value in value.items():
            if name not in self._meta.fields:
                raise InvariantException(chain=[name], message=f'{self.__class__.__name__} has no such field')
            setattr(self, name, field_value)

    @property
    def is_present(self):
        return True

    @property
    def required(self):
        return not self.optional

    def _get_size(self):
        '''the size MUST not be set but MUST be derived from the subchunks'''
        return sum(field.size for _, field in self.get_fields())

    def _get_raw(self):
        value = b''
        for field_name, field_instance in self.get_fields():
            value += field_instance.raw

        return value

    @property
    def layout(self) -> Dict[str, Tuple[int, int]]:
        result = {}
        for name, field in self.get_fields():
            result[name] = (field.offset, field.size)

        return result

    @property
    def is_frozen(self):
        return self._frozen

    def freeze(self):
        '''After this the chunk is a value: no field can be changed anymore.'''
        for _, field in self.get_fields():
            field.freeze()

        super().freeze()

    def relayout(self, offset=0):
        '''This method triggers the chunk's children to reset the offsets.'''
        self.offset = offset

        size = 0
        for field_name, field_instance in self.get_fields():
            size += field_instance.relayout(offset=offset + size)

        return size

    def pack(self, stream=None):
        '''Encode the fields in order; without a stream the bytes are returned.'''
        if stream is None:
            return self.raw

        for field_name, field_instance in self.get_fields():
            self.logger.debug('packing %s.%s at 0x%x' % (self.__class__.__name__, field_name, stream.tell()))
            field_instance.pack(stream)

    def unpack_field(self, field_name, field, stream):
        field.unpack(stream)

    def unpack(self, stream):
        '''This is one of the main APIs to take care of: its aim is to take a binary
        data and transform in the representation given by the class this method
        is implemented.

        Any failure is decorated with the name of the field that caused it so
        that the exception carries the whole path (chunk.field.subfield).
        '''
        self.offset = stream.tell()

        for field_name, field in self.get_fields():
            self.logger.debug('unpacking %s.%s at 0x%x' % (self.__class__.__name__, field_name, stream.tell()))

            try:
                self.unpack_field(field_name, field, stream)
            except IffException as e:
                e.chain.insert(0, field_name)
                raise

        self.validate()

    def validate(self):
        '''Cross-field checks, override in the subclasses: raise InvariantException.'''
        pass

    def derive(self, given):
        '''Hook to compute the fields that can be derived by the others
        when not given to the builder.'''
        pass

    @classmethod
    def builder(cls, **values):
        return Builder(cls, **values)


class Builder(object):
    '''Staging area for a chunk: collect the values, then build().

        marker = Marker.builder(marker_id=1, position=0).set('marker_name', b'A').build()

    build() complains about missing fields and inconsistent ones, the
    returned chunk is frozen.
    '''

    def __init__(self, chunk_cls, **values):
        self.chunk_cls = chunk_cls
        self._values = {}

        for name, value in values.items():
            self.set(name, value)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.chunk_cls.__name__}, {self._values!r})>'

    def _check_name(self, name):
        if name not in self.chunk_cls._meta.fields:
            raise InvariantException(chain=[name], message=f'{self.chunk_cls.__name__} has no such field')

    def set(self, name, value):
        self._check_name(name)
        self._values[name] = value

        return self

    def add(self, name, element):
        '''Append an element to an array field.'''
        self._check_name(name)
        self._values.setdefault(name, []).append(element)

        return self

    def build(self):
        chunk = self.chunk_cls()

        for name, field in chunk.get_fields():
            if name in self._values:
                setattr(chunk, name, self._values[name])
            elif field.required and name not in chunk.derived_fields:
                raise InvariantException(chain=[name], message='missing field')

        chunk.derive(set(self._values))
        chunk.validate()
        chunk.relayout()
        chunk.freeze()

        return chunk

