'''
# Audio Interchange File Format

Format developed by Apple in 1988 on top of EA IFF 85: a FORM of type 'AIFF'
(or 'AIFC' for the compressed variant) with the following chunks

 1. COMM: number of channels, sample frames, sample size and rate (plus the
    compression type and name for AIFF-C)
 2. SSND: the sample frames
 3. MARK: positions in the sample data, referred by the instrument loops
 4. INST: how to play the sound as a musical instrument
 5. APPL: application specific data

all the others are kept as UnknownChunk.

Apple's description of the format is at <http://www-mmsp.ece.mcgill.ca/Documents/AudioFormats/AIFF/Docs/AIFF-1.3.pdf>.

    aiff = decode('/path/to/sound.aif')
    aiff.common_chunk.sample_rate.value  # 44100.0
    encode(aiff) == open('/path/to/sound.aif', 'rb').read()
'''
from enum import Enum

from iffstruct import fields
from iffstruct.core import Chunk
from iffstruct.iff import Form, IffChunk, UnknownChunk
from iffstruct.properties import Dependency, PayloadSize


class ChunkType(Enum):
    COMMON      = b'COMM'
    SOUND_DATA  = b'SSND'
    APPLICATION = b'APPL'
    MARKER      = b'MARK'
    INSTRUMENT  = b'INST'


class FormType(Enum):
    AIFF = b'AIFF'
    AIFC = b'AIFC'


class PlayMode(Enum):
    NO_LOOPING               = 0
    FORWARD_LOOPING          = 1
    FORWARD_BACKWARD_LOOPING = 2


class CommonChunk(IffChunk):
    '''
    The sample size is the number of bits of each sample point, the sample rate
    is the number of frames played per second.

    The AIFF-C version carries the compression type and its human readable
    name: they are present or missing together.
    '''
    ck_id             = fields.IDField(default=ChunkType.COMMON.value, is_magic=True)
    num_channels      = fields.StructField('h')
    num_sample_frames = fields.StructField('I')
    sample_size       = fields.StructField('h')
    sample_rate       = fields.ExtendedField()
    compression_type  = fields.IDField(optional=True)
    compression_name  = fields.PStringField(optional=True)

    def __str__(self):
        return '%dch %dbit %gHz %d frames' % (
            self.num_channels.value,
            self.sample_size.value,
            self.sample_rate.value,
            self.num_sample_frames.value,
        )

    def validate(self):
        codec, description = self.compression_type, self.compression_name
        if (codec.value is None) != (description.value is None):
            missing = codec if codec.value is None else description
            raise missing.invariant('compression type and name go together')


class SoundDataChunk(IffChunk):
    '''The offset (named data_offset here) indicates where the first sample
    frame starts inside the sample data, the block size is for block-aligned
    writing; both are usually zero.'''
    ck_id       = fields.IDField(default=ChunkType.SOUND_DATA.value, is_magic=True)
    data_offset = fields.StructField('I')
    block_size  = fields.StructField('I')
    sample_data = fields.StringField(PayloadSize())


class ApplicationChunk(IffChunk):
    ck_id                 = fields.IDField(default=ChunkType.APPLICATION.value, is_magic=True)
    application_signature = fields.IDField()
    data                  = fields.StringField(PayloadSize())


class Marker(Chunk):
    marker_id   = fields.StructField('h')
    position    = fields.StructField('I')
    marker_name = fields.PStringField()

    def __str__(self):
        return '#%d @%d %s' % (self.marker_id.value, self.position.value, self.marker_name)


class MarkerChunk(IffChunk):
    ck_id       = fields.IDField(default=ChunkType.MARKER.value, is_magic=True)
    num_markers = fields.StructField('H')
    markers     = fields.ArrayField(Marker, n=Dependency('.num_markers'))

    def validate(self):
        if self.num_markers.value != len(self.markers):
            raise self.num_markers.invariant(
                f'declares {self.num_markers.value} markers but {len(self.markers)} are present')


class Loop(Chunk):
    '''The loop points are marker ids.'''
    play_mode  = fields.StructField('h', enum=PlayMode)
    begin_loop = fields.StructField('h')
    end_loop   = fields.StructField('h')


class InstrumentChunk(IffChunk):
    '''
    Notes are MIDI note numbers, the detune is in cents (-50, +50), the gain
    in decibels.
    '''
    ck_id         = fields.IDField(default=ChunkType.INSTRUMENT.value, is_magic=True)
    base_note     = fields.StructField('b')
    detune        = fields.StructField('b')
    low_note      = fields.StructField('b')
    high_note     = fields.StructField('b')
    low_velocity  = fields.StructField('b')
    high_velocity = fields.StructField('b')
    gain          = fields.StructField('h')
    sustain_loop  = Loop()
    release_loop  = Loop()


type2chunk = {
    ChunkType.COMMON.value:      CommonChunk,
    ChunkType.SOUND_DATA.value:  SoundDataChunk,
    ChunkType.APPLICATION.value: ApplicationChunk,
    ChunkType.MARKER.value:      MarkerChunk,
    ChunkType.INSTRUMENT.value:  InstrumentChunk,
}


class Aiff(Form):
    chunk_types = type2chunk
    default_chunk = UnknownChunk
    form_types = (FormType.AIFF.value, FormType.AIFC.value)

    @property
    def common_chunk(self):
        return self.first(ChunkType.COMMON)

    @property
    def sound_data_chunk(self):
        return self.first(ChunkType.SOUND_DATA)

    @property
    def marker_chunk(self):
        return self.first(ChunkType.MARKER)

    @property
    def instrument_chunk(self):
        return self.first(ChunkType.INSTRUMENT)

    @property
    def application_chunks(self):
        return self.get(ChunkType.APPLICATION)

    @property
    def unknown_chunks(self):
        return tuple(_ for _ in self.chunks if isinstance(_, UnknownChunk))


def decode(data):
    '''Parse a whole AIFF from bytes, a path or a binary file object.'''
    return Aiff.unpack(data)


def encode(aiff, stream=None):
    '''Serialize the AIFF: the bytes are returned unless a writable
    binary file object is passed.'''
    return aiff.pack(stream)
