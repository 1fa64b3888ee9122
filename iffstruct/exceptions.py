class IffException(Exception):
    '''Base class to extend in order to throw exception in iffstruct.

    It takes as first argument the chain of the fields that caused the
    exception (outermost first); the reader fills in the chunk id and the
    offset of the chunk in progress when they are known.
    '''

    def __init__(self, chain, message=None, ck_id=None, offset=None):
        self.chain = chain
        self.message = message
        self.ck_id = ck_id
        self.offset = offset
        super().__init__(message)

    def __str__(self):
        msg = self.message or self.__class__.__name__
        if self.chain:
            msg = '%s: %s' % ('.'.join(self.chain), msg)
        if self.ck_id is not None:
            msg = '[%s] %s' % (self.ck_id.decode('latin1'), msg)
        if self.offset is not None:
            msg = '%s (at offset 0x%x)' % (msg, self.offset)

        return msg


class StructuralException(IffException):
    '''The stream ended before a field could be read completely.'''
    pass


class MagicException(StructuralException):
    pass


class InvariantException(IffException):
    '''A field is missing or it's not consistent with the others.'''
    pass


class SizeMismatchException(IffException):
    '''The declared size of a chunk doesn't match what was read (or built).'''
    pass
