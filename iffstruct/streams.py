import io
import logging
import os

from .exceptions import StructuralException


logger = logging.getLogger(__name__)


class Stream(object):
    '''This is a simple wrapper around bytes/file object to
    uniform its properties: mainly we need a read() that never
    returns less than what was asked for.'''
    def __init__(self, obj=b''):
        '''Here we normalize the object in order to be accessed as a normal file object'''
        if isinstance(obj, os.PathLike):
            obj = os.fspath(obj)

        self._type = type(obj)
        self._owned = False
        self.obj = obj
        self.history = []

        init_method_name = 'init_%s' % self.obj.__class__.__name__

        init_method = getattr(self, init_method_name, self.init_file)

        init_method()

    def __getattr__(self, name):
        return getattr(self.obj, name)

    def __repr__(self):
        return '<%s(%s @ 0x%x)>' % (self.__class__.__name__, self._type.__name__, self.tell())

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def init_str(self):
        '''We think this is a path'''
        logger.debug('opening path \'%s\'' % self.obj)
        self.obj = open(self.obj, 'rb')
        self._owned = True

    def init_bytes(self):
        '''We think these are raw bytes'''
        self.obj = io.BytesIO(self.obj)

    def init_bytearray(self):
        self.obj = io.BytesIO(bytes(self.obj))

    def init_file(self):
        '''Anything else must behave like a binary file object'''
        if not hasattr(self.obj, 'read') and not hasattr(self.obj, 'write'):
            raise ValueError('\'%s\' cannot be used as a stream' % self._type.__name__)

    def close(self):
        # we close only what we opened
        if self._owned:
            self.obj.close()

    def tell(self):
        return self.obj.tell()

    def seek(self, offset):
        if not isinstance(offset, int):
            raise ValueError('\'%s\' is the wrong kind of offset to use' % offset.__class__.__name__)

        self.obj.seek(offset)

    def read(self, n):
        '''Read exactly n bytes or fail: a short read means the format
        is truncated and nothing after this point can be trusted.'''
        offset = self.obj.tell()
        data = self.obj.read(n)

        if len(data) != n:
            raise StructuralException(
                chain=[],
                message='expected %d bytes, only %d available' % (n, len(data)),
                offset=offset,
            )

        return data

    def read_all(self):
        return self.obj.read()

    def write(self, data):
        return self.obj.write(data)

    def getvalue(self):
        return self.obj.getvalue()

    def save(self):
        self.history.append(self.obj.tell())

    def restore(self):
        old_seek = self.history.pop()
        self.obj.seek(old_seek)
