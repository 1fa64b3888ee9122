import logging
import os
import struct

import pytest


logging.basicConfig(level=logging.DEBUG if 'DEBUG' in os.environ else logging.INFO)


SAMPLE_RATE_44100 = b'\x40\x0e\xac\x44\x00\x00\x00\x00\x00\x00'

MARKER_PAYLOAD = (
    b'\x00\x02'
    b'\x00\x01' b'\x00\x00\x00\x00' b'\x01A'
    b'\x00\x02' b'\x00\x00\x00\x64' b'\x04Loop\x00'
)


def build_chunk(ck_id, payload):
    pad = b'\x00' if len(payload) % 2 else b''
    return ck_id + struct.pack('>i', len(payload)) + payload + pad


def build_form(chunks, form_type=b'AIFF'):
    content = form_type + b''.join(chunks)
    return b'FORM' + struct.pack('>i', len(content)) + content


@pytest.fixture
def make_chunk():
    return build_chunk


@pytest.fixture
def make_form():
    return build_form


@pytest.fixture
def comm_bytes():
    return build_chunk(b'COMM', (
        b'\x00\x01'          # mono
        b'\x00\x00\x00\x04'  # 4 frames
        b'\x00\x10'          # 16 bits
        + SAMPLE_RATE_44100
    ))


@pytest.fixture
def ssnd_bytes():
    return build_chunk(b'SSND', (
        b'\x00\x00\x00\x00'
        b'\x00\x00\x00\x00'
        b'\x00\x01\x7f\xff\x80\x00\xff\xff'
    ))


@pytest.fixture
def mark_bytes():
    return build_chunk(b'MARK', MARKER_PAYLOAD)


@pytest.fixture
def inst_bytes():
    return build_chunk(b'INST', (
        b'\x3c\x00\x00\x7f\x01\x7f'  # notes and velocities
        b'\x00\x00'                  # gain
        b'\x00\x01\x00\x01\x00\x02'  # sustain loop: forward from marker 1 to 2
        b'\x00\x00\x00\x00\x00\x00'  # release loop
    ))


@pytest.fixture
def appl_bytes():
    # odd payload, there is the pad byte
    return build_chunk(b'APPL', b'op-1' + b'{"x":1}')


@pytest.fixture
def unknown_bytes():
    return build_chunk(b'NAME', b'hello')


@pytest.fixture
def aiff_bytes(comm_bytes, mark_bytes, inst_bytes, appl_bytes, unknown_bytes, ssnd_bytes):
    '''A complete file with a second APPL after the sound data.'''
    return build_form([
        comm_bytes,
        mark_bytes,
        inst_bytes,
        appl_bytes,
        unknown_bytes,
        ssnd_bytes,
        build_chunk(b'APPL', b'test'),
    ])
