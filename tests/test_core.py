import pytest

from iffstruct.core import Chunk
from iffstruct.exceptions import InvariantException, StructuralException
from iffstruct.fields import StructField, StringField, ArrayField, PStringField
from iffstruct.properties import Dependency


def test_chunk():
    """Check that building a Chunk from fields behaves correctly."""
    class Dummy(Chunk):
        a = StructField('I', default=0xbad)
        b = StringField(0x10)
        c = StructField('I', default=0xdeadbeef)

    dummy = Dummy()

    assert dummy.a.size == 4
    assert dummy.a.raw == b'\x00\x00\x0b\xad'
    assert dummy.a.value == 0xbad
    assert dummy.a.offset == 0x00
    assert dummy.a.father == dummy

    assert dummy.b.size == 0x10
    assert dummy.b.raw == b'\x00' * 0x10
    assert dummy.b.offset == 0x04

    assert dummy.c.size == 0x4
    assert dummy.c.raw == b'\xde\xad\xbe\xef'
    assert dummy.c.offset == 0x14

    assert dummy.size == 0x18
    assert len(dummy.raw) == dummy.size
    assert dummy.raw == (
        b'\x00\x00\x0b\xad' +
        b'\x00' * 0x10 +
        b'\xde\xad\xbe\xef'
    )
    assert dummy.layout == {
        'a': (0x00, 4),
        'b': (0x04, 0x10),
        'c': (0x14, 4),
    }


def test_chunk_fields_are_not_shared():
    class Dummy(Chunk):
        a = StructField('I')

    first, second = Dummy(), Dummy()
    first.a.value = 1

    assert second.a.value == 0
    assert first.a is not second.a


def test_inheritance():
    '''subclasses inherit fields, redefining one keeps its position'''
    class Father(Chunk):
        field_a = StringField(0x04)
        field_b = StructField('I')

    class Son(Father):
        field_a = StringField(0x04, default=b'SON!')
        field_c = StringField(0x08)

    son = Son(b'A' * 4 + b'\x01\x02\x03\x04' + b'ABCDEFGH')

    assert son.get_ordered_fields_name() == ['field_a', 'field_b', 'field_c']
    assert son.field_a.value == b'AAAA'
    assert son.field_b.value == 0x01020304
    assert son.field_c.value == b'ABCDEFGH'

    assert Son().field_a.value == b'SON!'


def test_reserved_field_name():
    with pytest.raises(AttributeError):
        class Wrong(Chunk):
            offset = StructField('I')


def test_unpacking_and_packing():
    class Dummy(Chunk):
        fieldA = StructField('I')
        fieldB = StructField('H')

    contents = b'\x01\x02\x03\x04\x0a\x0b'

    dummy = Dummy(contents)

    assert dummy.fieldA.value == 0x01020304
    assert dummy.fieldB.value == 0x0a0b
    assert dummy.pack() == contents


def test_chunk_w_dependencies():
    class Example(Chunk):
        sz = StructField('I')
        data = StringField(Dependency('.sz'))
        extra = StructField('H')

    example = Example(b'\x00\x00\x00\x05kebab\xca\xfe')

    assert example.data.value == b'kebab'
    assert example.data.offset == 4
    assert example.extra.value == 0xcafe
    assert example.extra.offset == 9


def test_unpack_error_chain():
    """The exception tells which field failed and where."""
    class Inner(Chunk):
        length = StructField('B')
        label = StringField(Dependency('.length'))

    class Outer(Chunk):
        count = StructField('B')
        entries = ArrayField(Inner, n=Dependency('.count'))

    with pytest.raises(StructuralException) as exc:
        Outer(b'\x02' b'\x01A' b'\x05AB')

    assert exc.value.chain == ['entries', '1', 'label']
    assert exc.value.offset == 4
    assert 'entries.1.label' in str(exc.value)


def test_sub_chunk_as_field():
    class Point(Chunk):
        x = StructField('h')
        y = StructField('h')

    class Segment(Chunk):
        start = Point()
        end = Point()

    segment = Segment(b'\x00\x01\x00\x02\xff\xff\x00\x04')

    assert segment.start.value == {'x': 1, 'y': 2}
    assert segment.end.value == {'x': -1, 'y': 4}
    assert segment.end.father is segment
    assert segment.size == 8


class Entry(Chunk):
    key = StructField('h')
    label = PStringField()


class Table(Chunk):
    count = StructField('H')
    entries = ArrayField(Entry, n=Dependency('.count'))

    def validate(self):
        if self.count.value != len(self.entries):
            raise self.count.invariant('count mismatch')


def test_builder():
    table = (
        Table.builder(count=2)
        .add('entries', Entry.builder(key=1, label=b'one').build())
        .add('entries', {'key': 2, 'label': 'two'})
        .build()
    )

    assert table.is_frozen
    assert [_.label.value for _ in table.entries] == [b'one', b'two']
    assert table.entries[1].father is table.entries
    assert table.raw == (
        b'\x00\x02'
        b'\x00\x01\x03one'
        b'\x00\x02\x03two'
    )
    assert table.layout == {
        'count': (0, 2),
        'entries': (2, 12),
    }


def test_builder_missing_field():
    with pytest.raises(InvariantException) as exc:
        Entry.builder(key=1).build()

    assert exc.value.chain == ['label']


def test_builder_unknown_field():
    with pytest.raises(InvariantException):
        Entry.builder(kye=1)


def test_builder_validates():
    with pytest.raises(InvariantException) as exc:
        Table.builder(count=3).add('entries', {'key': 1, 'label': b'x'}).build()

    assert exc.value.chain == ['count']


def test_built_chunk_is_frozen():
    entry = Entry.builder(key=1, label=b'x').build()

    with pytest.raises(AttributeError):
        entry.key = 2

    with pytest.raises(AttributeError):
        entry.key.value = 2

    table = Table.builder(count=1).add('entries', entry).build()

    with pytest.raises(AttributeError):
        table.entries.append(entry)


def test_builder_takes_copies():
    entry = Entry.builder(key=1, label=b'x').build()

    first = Table.builder(count=1, entries=[entry]).build()
    second = Table.builder(count=1, entries=[entry]).build()

    assert first.entries[0] is not second.entries[0]
    assert first.entries[0].father is first.entries
    assert second.entries[0].father is second.entries


def test_chunk_equality():
    built = Entry.builder(key=1, label=b'x').build()
    decoded = Entry(b'\x00\x01\x01x')

    assert built == decoded
    assert built != Entry.builder(key=2, label=b'x').build()
    assert built != Table.builder(count=0).build()

    assert hash(built) == hash(Entry.builder(key=1, label='x').build())
    assert len({built, Entry.builder(key=1, label=b'x').build()}) == 1

    with pytest.raises(TypeError):
        hash(decoded)
