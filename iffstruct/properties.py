import logging

from .exceptions import SizeMismatchException


def get_root_from_chunk(instance):
    return get_instance_from_chunk(instance, condition=lambda x: x.father is None)


def get_instance_from_chunk(instance, condition):
    is_root = condition(instance)
    father = instance

    while not is_root:
        father = instance.father

        is_root = condition(father)
        instance = father

    return father


class Dependency:
    '''This makes the relation between fields possible.

    In practice this class allows to write something like

        class Simple(Chunk):
            length = fields.StructField('I')
            data = fields.StringField(Dependency('.length'))

    and have the length of the string contained in the field named 'data'
    read from the field named 'length' at unpacking time.

    The syntax for the expression is inspired from module resolution:
    a leading '.' indicates we refer to a field at the same level, otherwise
    the path is resolved starting from the root chunk.
    '''
    def __init__(self, expression):
        self.expression = expression
        self.logger = logging.getLogger(__name__)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.expression})>'

    def resolve_field(self, instance):
        fields_path = self.expression.split('.')
        # '.miao'.split(".") -> ['', 'miao']
        # 'miao'.split(".") -> ['miao']

        if fields_path[0] == '':
            field = instance.father
            fields_path = fields_path[1:]
        else:
            field = get_root_from_chunk(instance)

        for component_name in fields_path:
            field = getattr(field, component_name)

        self.logger.debug(' resolved \'%s\' as field %s' % (self.expression, field.__class__.__name__))

        return field

    def resolve(self, instance):
        '''With this method we resolve the attribute with respect to the instance
        passed as argument.'''
        value = self.resolve_field(instance).value

        # enum-backed fields
        return getattr(value, 'value', value)


class PayloadSize(Dependency):
    '''Resolves as whatever remains of the payload declared by a size field
    once the fields between it and the instance are accounted for.

    It's the way to describe a trailing buffer like the sample data of
    a sound chunk

        class Sound(Chunk):
            ck_size   = fields.StructField('i')
            offset    = fields.StructField('I')
            samples   = fields.StringField(PayloadSize('.ck_size'))
    '''
    def __init__(self, expression='.ck_size'):
        super().__init__(expression)

    def resolve(self, instance):
        declared = super().resolve(instance)
        size_field = self.resolve_field(instance)

        consumed = 0
        counting = False
        for _, field in instance.father.get_fields():
            if field is instance:
                break
            if counting:
                consumed += field.size
            if field is size_field:
                counting = True

        remaining = declared - consumed
        if remaining < 0:
            raise SizeMismatchException(
                chain=[],
                message=f'declared size {declared} is smaller than the {consumed} bytes of fixed fields',
            )

        return remaining
