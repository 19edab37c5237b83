from .exceptions import OrmException
from .fields import Many2many, One2many, One2one, Many2one
from .format import FORMAT_TITLE
from .registry import Registry

PRIMARY_KEY = 'id'

class Index:
    def __init__(self, name, fields):
        self.name = name
        self.fields = list(fields)

    def get_name(self):
        return self.name

    def get_fields(self):
        return self.fields

    def __repr__(self):
        return f"<Index {self.name} {self.fields}>"

class RelationMeta:
    """
    Describes how a relation field links two models.
    """
    def __init__(self, meta, field):
        self.meta = meta
        self.field = field

    def is_has_many_and_belongs_to_many(self):
        return isinstance(self.field, Many2many)

    def get_foreign_key(self):
        """
        Name(s) of the field(s) of the related model pointing back to this
        model through this relation, None when there is no back reference.
        """
        field = self.field
        if isinstance(field, (One2many, One2one)):
            return getattr(field, 'inverse_name', None)

        if isinstance(field, Many2one):
            related = Registry.get(field.comodel_name)
            if related is None:
                return None
            back_references = [
                name for name, related_field in related._meta.fields.items()
                if isinstance(related_field, (One2many, One2one))
                and related_field.comodel_name == self.meta.name
                and getattr(related_field, 'inverse_name', None) == field.name
            ]
            if not back_references:
                return None
            if len(back_references) == 1:
                return back_references[0]
            return back_references

        return None

class ModelMeta:
    """
    Read-only metadata of a model: fields, options, formats and indexes.
    """
    def __init__(self, model_cls):
        self.model_cls = model_cls
        self.name = model_cls._name
        self.description = model_cls._description or model_cls._name
        self.rec_name = model_cls._rec_name
        self.fields = model_cls._fields
        self.options = dict(model_cls._options or {})
        self.formats = dict(model_cls._formats or {})
        self.indexes = dict(model_cls._indexes or {})

    def __repr__(self):
        return f"<ModelMeta {self.name}>"

    def get_name(self):
        return self.name

    def get_entry_class(self):
        return self.model_cls

    def get_fields(self):
        return self.fields

    def has_field(self, name):
        return name in self.fields

    def get_field(self, name):
        try:
            return self.fields[name]
        except KeyError:
            raise OrmException(f"Field '{name}' not found in model {self.name}") from None

    def get_properties(self):
        return {name: field for name, field in self.fields.items() if not field.is_relation()}

    def get_relations(self):
        return {name: field for name, field in self.fields.items() if field.is_relation()}

    def get_option(self, key, default=None):
        return self.options.get(key, default)

    def get_format(self, name, default=None):
        if name in self.formats:
            return self.formats[name]
        if name == FORMAT_TITLE:
            if self.rec_name in self.fields:
                return '{' + self.rec_name + '}'
            return '#{' + PRIMARY_KEY + '}'
        return default

    def is_localized(self):
        return any(field.is_localized() for field in self.fields.values())

    def get_relation_model_name(self, field_name):
        field = self.get_field(field_name)
        if not field.is_relation():
            raise OrmException(f"Field '{field_name}' of {self.name} is not a relation")
        return field.comodel_name

    def get_relation_meta(self, field_name):
        field = self.get_field(field_name)
        if not field.is_relation():
            return None
        return RelationMeta(self, field)

    def get_indexes(self):
        return [Index(name, fields) for name, fields in sorted(self.indexes.items())]

    def get_unlinked_models(self):
        """
        Names of the models with a relation to this model which this model
        does not link back to.
        """
        linked = {field.comodel_name for field in self.get_relations().values()}
        unlinked = []
        for name, model_cls in Registry.items():
            if name == self.name or name in linked:
                continue
            for field in model_cls._meta.get_relations().values():
                if field.comodel_name == self.name:
                    unlinked.append(name)
                    break
        return unlinked

    def is_valid_entry(self, value):
        return isinstance(value, self.model_cls)
