'''
# Interchange File Format

Generic container defined by Electronic Arts in 1985 ("EA IFF 85"): a file
is a FORM, that is a header followed by chunks. Every chunk starts with

  .-----------------------------.
  | ck_id   (4 ASCII chars)     |
  | ck_size (signed 32 bits BE) |
  | payload (ck_size bytes)     |
  | pad     (1 byte if odd)     |
  '-----------------------------'

so that a reader can always skip what it doesn't understand: here the chunks
not present in the dispatch table become UnknownChunk and are written back
verbatim.
'''
import io
import logging
from typing import Dict, Iterator, List, Tuple

from . import fields
from .core import Chunk, Builder
from .streams import Stream
from .properties import PayloadSize
from .exceptions import IffException, SizeMismatchException


logger = logging.getLogger(__name__)


HEADER_SIZE = 8


def normalize_id(ck_id) -> bytes:
    '''Chunk ids can be indicated as bytes, str or Enum with bytes value.'''
    ck_id = getattr(ck_id, 'value', ck_id)

    if isinstance(ck_id, str):
        ck_id = ck_id.encode('ascii')

    return ck_id


class IffChunk(Chunk):
    '''Base class for every chunk inside a FORM: the subclasses
    redefine ck_id with their own code and add the payload's fields.'''
    ck_id   = fields.IDField()
    ck_size = fields.StructField('i')

    derived_fields = ('ck_size',)

    @property
    def payload_size(self):
        '''the size of the payload as it would be written'''
        return self.size - HEADER_SIZE

    @property
    def pad_size(self):
        return self.ck_size.value % 2

    @property
    def physical_size(self):
        return self.size + self.pad_size

    def _get_raw(self):
        return super()._get_raw() + b'\x00' * self.pad_size

    def pack(self, stream=None):
        if stream is None:
            return self.raw

        super().pack(stream)
        stream.write(b'\x00' * self.pad_size)

    def payload_end(self):
        return self.offset + HEADER_SIZE + self.ck_size.value

    def unpack_field(self, field_name, field, stream):
        # optional fields are present only if the payload is not finished
        if field.optional and stream.tell() >= self.payload_end():
            self.logger.debug('optional field %s.%s not present' % (self.__class__.__name__, field_name))
            return

        super().unpack_field(field_name, field, stream)

    def unpack(self, stream):
        super().unpack(stream)

        consumed = stream.tell() - self.offset - HEADER_SIZE
        if consumed != self.ck_size.value:
            raise SizeMismatchException(
                chain=[],
                message=f'declared size is {self.ck_size.value} but the payload takes {consumed} bytes',
                ck_id=self.ck_id.value,
                offset=self.offset,
            )

        if self.pad_size:
            stream.read(self.pad_size)

    def derive(self, given):
        if 'ck_size' not in given:
            self.ck_size.value = self.payload_size
        elif self.ck_size.value != self.payload_size:
            raise SizeMismatchException(
                chain=['ck_size'],
                message=f'declared size is {self.ck_size.value} but the payload takes {self.payload_size} bytes',
                ck_id=self.ck_id.value,
            )


class UnknownChunk(IffChunk):
    '''Whatever chunk we don't understand: the payload is kept as it is.'''
    data = fields.StringField(PayloadSize())


class FormHeader(Chunk):
    ck_id     = fields.IDField(default=b'FORM', is_magic=True)
    ck_size   = fields.StructField('i')
    form_type = fields.IDField()


class IffReader(Stream):
    '''Sequential cursor over an IFF stream.

    Each read_*() consumes exactly the bytes of its type or raises
    StructuralException.'''

    def _read_field(self, field):
        field.unpack(self)
        return field.value

    def read_signed(self, width):
        return self._read_field(fields.StructField.from_width(width, signed=True))

    def read_unsigned(self, width):
        return self._read_field(fields.StructField.from_width(width, signed=False))

    def read_id(self):
        return self._read_field(fields.IDField())

    def read_pstring(self):
        return self._read_field(fields.PStringField())

    def read_extended(self):
        return self._read_field(fields.ExtendedField())

    def read_bytes(self, n):
        return self.read(n)

    def peek_id(self):
        self.save()
        try:
            return self.read_id()
        finally:
            self.restore()

    def read_chunk(self, chunk_types, default=UnknownChunk):
        offset = self.tell()
        ck_id = self.peek_id()

        chunk_cls = chunk_types.get(ck_id, default)
        logger.debug('chunk %r at 0x%x -> %s' % (ck_id, offset, chunk_cls.__name__))

        chunk = chunk_cls()
        try:
            chunk.unpack(self)
        except IffException as e:
            e.ck_id = ck_id if e.ck_id is None else e.ck_id
            e.offset = offset if e.offset is None else e.offset
            raise

        chunk.freeze()

        return chunk

    def read_form(self, form_cls=None):
        form_cls = Form if form_cls is None else form_cls

        header = FormHeader()
        header.unpack(self)
        header.freeze()

        form_type = header.form_type.value
        if form_cls.form_types and form_type not in form_cls.form_types:
            logger.warning(f'unexpected form type {form_type!r} for {form_cls.__name__}')

        end = header.offset + HEADER_SIZE + header.ck_size.value
        if self.tell() > end:
            raise SizeMismatchException(
                chain=['ck_size'],
                message=f'declared size {header.ck_size.value} cannot contain the form type',
                ck_id=header.ck_id.value,
                offset=header.offset,
            )

        chunks = []
        while self.tell() < end:
            chunk = self.read_chunk(form_cls.chunk_types, default=form_cls.default_chunk)

            if self.tell() > end:
                raise SizeMismatchException(
                    chain=[],
                    message=f'chunk ends at 0x{self.tell():x}, beyond the end of the form at 0x{end:x}',
                    ck_id=chunk.ck_id.value,
                    offset=chunk.offset,
                )

            chunks.append(chunk)

        trailing = self.read_all()
        if trailing:
            logger.warning(f'ignoring {len(trailing)} bytes after the end of the form')

        return form_cls(header, chunks)


class IffWriter(Stream):
    '''Sequential cursor over the output: the writes happen in call order.

    Without an object to write to, the bytes are accumulated in memory and
    available via getvalue().'''

    def __init__(self, obj=None):
        super().__init__(io.BytesIO() if obj is None else obj)

    def write_field(self, field, value):
        field.value = value
        field.pack(self)

    def write_signed(self, value, width):
        self.write_field(fields.StructField.from_width(width, signed=True), value)

    def write_unsigned(self, value, width):
        self.write_field(fields.StructField.from_width(width, signed=False), value)

    def write_id(self, value):
        self.write_field(fields.IDField(), value)

    def write_pstring(self, value):
        self.write_field(fields.PStringField(), value)

    def write_extended(self, value):
        self.write_field(fields.ExtendedField(), value)

    def write_bytes(self, data):
        self.write(bytes(data))

    def write_chunk(self, chunk):
        if chunk.ck_size.value != chunk.payload_size:
            raise SizeMismatchException(
                chain=['ck_size'],
                message=f'declared size is {chunk.ck_size.value} but the payload takes {chunk.payload_size} bytes',
                ck_id=chunk.ck_id.value,
                offset=self.tell(),
            )

        logger.debug('writing chunk %r at 0x%x' % (chunk.ck_id.value, self.tell()))
        chunk.pack(self)

    def write_form(self, form):
        declared = form.header.ck_size.value
        computed = form.computed_size()
        if declared != computed:
            raise SizeMismatchException(
                chain=['ck_size'],
                message=f'declared size is {declared} but the chunks take {computed} bytes',
                ck_id=form.header.ck_id.value,
                offset=self.tell(),
            )

        form.header.pack(self)
        for chunk in form.chunks:
            self.write_chunk(chunk)


class Form(object):
    '''The whole file: the header and the chunks, exposed as an ordered
    multi-valued mapping from chunk id to the chunks with that id.

    The keys are in first-seen order, the chunks of each key in encounter
    order; the overall encounter order is retained too and it's the one
    used for writing, so that interleaved chunks come back in place.'''

    # subclasses indicate which chunks they understand
    chunk_types: Dict[bytes, type] = {}
    default_chunk = UnknownChunk
    form_types: Tuple[bytes, ...] = ()

    def __init__(self, header, chunks):
        self.header = header
        self._chunks = tuple(chunks)

        mapping: Dict[bytes, List[IffChunk]] = {}
        for chunk in self._chunks:
            mapping.setdefault(chunk.ck_id.value, []).append(chunk)

        self._mapping = {ck_id: tuple(_) for ck_id, _ in mapping.items()}

    def __repr__(self):
        return '<%s(%s, [%s])>' % (
            self.__class__.__name__,
            self.form_type,
            ', '.join(_.decode('latin1') for _ in self._mapping),
        )

    def __getitem__(self, ck_id) -> Tuple[IffChunk, ...]:
        return self._mapping[normalize_id(ck_id)]

    def __contains__(self, ck_id):
        return normalize_id(ck_id) in self._mapping

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._mapping)

    def __len__(self):
        return len(self._mapping)

    def keys(self):
        return self._mapping.keys()

    def items(self):
        return self._mapping.items()

    def get(self, ck_id, default=()):
        return self._mapping.get(normalize_id(ck_id), default)

    def first(self, ck_id):
        '''The first chunk with the given id, None if there is not.'''
        chunks = self.get(ck_id)
        return chunks[0] if chunks else None

    @property
    def chunks(self) -> Tuple[IffChunk, ...]:
        return self._chunks

    @property
    def form_type(self):
        return self.header.form_type.value

    @property
    def ck_size(self):
        return self.header.ck_size.value

    def computed_size(self):
        return self.header.form_type.size + sum(_.physical_size for _ in self._chunks)

    @property
    def size(self):
        return HEADER_SIZE + self.computed_size()

    @classmethod
    def chunk_class_for(cls, ck_id):
        return cls.chunk_types.get(normalize_id(ck_id), cls.default_chunk)

    @classmethod
    def builder(cls, form_type=None):
        return FormBuilder(cls, form_type=form_type)

    @classmethod
    def unpack(cls, data):
        with IffReader(data) as reader:
            return reader.read_form(cls)

    def pack(self, stream=None):
        writer = IffWriter(stream)
        writer.write_form(self)

        return writer.getvalue() if stream is None else None


class FormBuilder(object):
    '''Build a form programmatically, chunk after chunk.'''

    def __init__(self, form_cls, form_type=None):
        self.form_cls = form_cls
        self.form_type = form_type
        self._chunks = []

    def add(self, chunk):
        if isinstance(chunk, Builder):
            chunk = chunk.build()

        if not isinstance(chunk, IffChunk):
            raise TypeError(f'{chunk.__class__.__name__} is not a chunk')

        if not chunk.is_frozen:
            chunk.derive({'ck_size'})
            chunk.validate()
            chunk.freeze()

        self._chunks.append(chunk)

        return self

    def build(self):
        form_type = self.form_type
        if form_type is None:
            form_type = self.form_cls.form_types[0] if self.form_cls.form_types else None

        header = FormHeader.builder(
            form_type=normalize_id(form_type),
            ck_size=fields.IDField().size + sum(_.physical_size for _ in self._chunks),
        ).build()

        return self.form_cls(header, self._chunks)
