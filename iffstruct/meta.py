import copy
import logging


# attributes every field instance uses for itself
RESERVED_NAMES = (
    'name', 'father', 'default', 'offset', 'optional',
    'is_magic', 'logger', 'value', 'raw', 'size',
)


class FieldDescriptor(object):
    """Wrapper around field access of a Field related class.

    The field declared in the class body is only a prototype: each chunk
    instance gets its own copy the first time the attribute is accessed."""

    def __init__(self, field_instance: "Field", field_name: str):
        self.logger = logging.getLogger(f"{self.__module__}.{self.__class__.__name__}")
        self.field = field_instance
        self.field.name = field_name

    def __get__(self, instance, type=None):
        if instance is None:
            return self.field

        try:
            return instance.__dict__[self.field.name]
        except KeyError:
            self.logger.debug("create new field for field named '%s'", self.field.name)
            field = instance.__dict__[self.field.name] = self.field.create(father=instance)
            return field

    def __set__(self, instance, value):
        if instance.__dict__.get('_frozen'):
            raise AttributeError(f"'{instance.__class__.__name__}' is frozen, cannot set '{self.field.name}'")

        if not isinstance(value, self.field.__class__):
            # a plain value is delegated to the field
            self.__get__(instance).value = value
            return

        field = value.create(father=instance)
        field.name = self.field.name
        instance.__dict__[self.field.name] = field


class FieldBase(object):

    def contribute_to_chunk(self, cls, name):
        if name in RESERVED_NAMES:
            raise AttributeError(f'field name "{name}" is reserved in class {cls.__name__}')

        existing = cls.__dict__.get(name)
        if existing is not None and not isinstance(existing, FieldDescriptor):
            raise AttributeError(f'field {name} is already present in class {cls.__name__}')

        setattr(cls, name, FieldDescriptor(self, name))

    def create(self, father):
        '''A detached deep copy: the hierarchy above doesn't come along.'''
        old_father, self.father = getattr(self, "father", None), None
        try:
            instance = copy.deepcopy(self)
        finally:
            self.father = old_father

        instance.father = father
        return instance


class Meta(object):
    """The names of the fields of a chunk, in wire order."""

    def __init__(self, fields=()):
        self.fields = list(fields)

    def add(self, name):
        # a field redefined in a subclass keeps the position of the parent's one
        if name not in self.fields:
            self.fields.append(name)


class MetaChunk(type):
    '''Collect the fields of a chunk class in declaration order, the inherited
    ones first; quite inspired by how Django does a similar thing.'''

    def __new__(mcs, name, bases, attrs):
        declared = [(k, v) for k, v in attrs.items() if isinstance(v, FieldBase)]
        others = {k: v for k, v in attrs.items() if not isinstance(v, FieldBase)}

        new_cls = super().__new__(mcs, name, bases, others)
        new_cls._meta = Meta()

        for base in bases:
            if not isinstance(base, MetaChunk):
                continue

            for field_name in base._meta.fields:
                new_cls._meta.add(field_name)
                setattr(new_cls, field_name, base.__dict__[field_name])

        for field_name, field in declared:
            new_cls._meta.add(field_name)
            field.contribute_to_chunk(new_cls, field_name)

        return new_cls
