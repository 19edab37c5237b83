from .exceptions import OrmException
from .fields import Field, Integer, HAS_MANY, One2many, One2one
from .format import EntryFormatter
from .logger import logger
from .meta import ModelMeta, PRIMARY_KEY
from .query import ModelQuery
from .registry import Registry
from .store import MemoryStore
from .validation import EntryConstraint

MODEL_DICTS = ('_options', '_formats', '_indexes')

class MetaModel(type):
    def __new__(mcs, name, bases, attrs):
        inherit = attrs.get('_inherit')
        _name = attrs.get('_name')

        if inherit and not _name:
            cls = Registry.get(inherit)
            if not cls: raise TypeError(f"Model {inherit} not found")
            for key, val in attrs.items():
                if isinstance(val, Field):
                    val.name = key
                    val.model_name = cls._name
                    cls._fields[key] = val
                    setattr(cls, key, val)
                elif key in MODEL_DICTS:
                    merged = dict(getattr(cls, key) or {})
                    merged.update(val)
                    setattr(cls, key, merged)
                elif callable(val) and not key.startswith('__'):
                    setattr(cls, key, val)
            cls._meta = ModelMeta(cls)
            return cls

        cls = super().__new__(mcs, name, bases, attrs)
        if not _name: return cls

        id_field = attrs.get(PRIMARY_KEY)
        if not isinstance(id_field, Field):
            id_field = Integer(string='ID', readonly=True)
            setattr(cls, PRIMARY_KEY, id_field)
        id_field.name = PRIMARY_KEY
        id_field.model_name = _name

        fields = {PRIMARY_KEY: id_field}
        for key, val in attrs.items():
            if isinstance(val, Field) and key != PRIMARY_KEY:
                val.name = key
                val.model_name = _name
                fields[key] = val

        cls._fields = fields
        cls._table = _name.replace('.', '_')
        cls._meta = ModelMeta(cls)

        Registry.register(_name, cls)
        return cls

class Model(metaclass=MetaModel):
    """
    Base class of the declared models. An instance is one entry of the
    model; fields are read and written through get_field and set_field.
    """
    _name = None
    _description = None
    _rec_name = 'name'
    _options = {}
    _formats = {}
    _indexes = {}

    def __init__(self, **values):
        self._orm = None
        self._values = {}
        self._raw = {}
        self._dirty = set()
        self._loaded = True
        self._is_proxy = False
        self.locale = None
        self.data_locale = None

        for name, value in values.items():
            self.set_field(name, value)

    def __repr__(self):
        return f"<{self._name}#{self._values.get(PRIMARY_KEY)}>"

    def __eq__(self, other):
        if not isinstance(other, Model): return False
        if self is other: return True
        self_id = self._values.get(PRIMARY_KEY)
        return self._name == other._name and self_id is not None and self_id == other._values.get(PRIMARY_KEY)

    def __hash__(self):
        return hash((self._name, self._values.get(PRIMARY_KEY)))

    def get_field(self, name):
        field = self._meta.get_field(name)

        if name != PRIMARY_KEY and name not in self._values and name not in self._raw:
            self._load()

        if name in self._raw:
            self._values[name] = self._resolve(field, self._raw.pop(name))

        if name not in self._values:
            if field._relation == HAS_MANY:
                return []
            return field.get_default()

        return self._values[name]

    def set_field(self, name, value):
        field = self._meta.get_field(name)
        self._raw.pop(name, None)
        self._values[name] = field.convert(value)
        self._dirty.add(name)

    def get_id(self):
        return self._values.get(PRIMARY_KEY)

    def is_new(self):
        return self._values.get(PRIMARY_KEY) is None

    def is_proxy(self):
        return self._is_proxy

    def is_dirty(self):
        return self.is_new() or bool(self._dirty - {PRIMARY_KEY})

    def to_dict(self):
        """
        Plain values of the entry, related entries reduced to their ids.
        """
        data = {}
        for name in self._meta.fields:
            value = self.get_field(name)
            if isinstance(value, list):
                value = [item.get_id() if isinstance(item, Model) else item for item in value]
            elif isinstance(value, Model):
                value = value.get_id()
            data[name] = value
        return data

    def _load(self):
        if self._loaded:
            return
        self._loaded = True
        if self._orm is None or self.get_id() is None:
            return
        self._orm.get_model(self._name).load_entry(self)

    def _resolve(self, field, raw):
        if self._orm is None:
            return raw
        model = self._orm.get_model(field.comodel_name)
        if field._relation == HAS_MANY:
            return [model.create_proxy(item, self.locale) for item in raw or []]
        if raw is None:
            return None
        return model.create_proxy(raw, self.locale)

class ModelService:
    """
    Operations on the entries of one model: factory, queries, persistence.
    """
    def __init__(self, orm, model_cls):
        self.orm = orm
        self.model_cls = model_cls
        self.meta = model_cls._meta
        self._constraint = None

    def __repr__(self):
        return f"<ModelService {self.meta.name}>"

    def get_name(self):
        return self.meta.name

    def get_meta(self):
        return self.meta

    def get_orm_manager(self):
        return self.orm

    def get_entry_class(self):
        return self.model_cls

    def create_entry(self, values=None):
        entry = self.model_cls()
        entry._orm = self.orm
        if self.meta.is_localized():
            entry.locale = self.orm.get_locale()
        for name, value in (values or {}).items():
            entry.set_field(name, value)
        return entry

    def create_proxy(self, id, locale=None):
        entry = self.model_cls()
        entry._orm = self.orm
        entry._values[PRIMARY_KEY] = self.meta.get_field(PRIMARY_KEY).convert(id)
        entry._loaded = False
        entry._is_proxy = True
        if self.meta.is_localized():
            entry.locale = locale or self.orm.get_locale()
        return entry

    def create_query(self, locale=None):
        return ModelQuery(self, locale)

    def get_by_id(self, id, locale=None):
        query = self.create_query(locale)
        query.set_fetch_unlocalized(True)
        query.add_condition([(PRIMARY_KEY, '=', id)])
        return query.query_first()

    def get_relation_model(self, field_name):
        return self.orm.get_model(self.meta.get_relation_model_name(field_name))

    def get_localized_ids(self, id):
        """
        Locales in which the entry has localized values, mapped to the entry id.
        """
        return {locale: id for locale in self.orm.store.get_locales(self.meta.name, id)}

    def get_validation_constraint(self):
        if self._constraint is None:
            self._constraint = EntryConstraint(self.meta)
        return self._constraint

    def get_entries(self, locale, fetch_unlocalized=False):
        entries = []
        for record in self.orm.store.scan(self.meta.name):
            entry = self.model_cls()
            entry._orm = self.orm
            entry._values[PRIMARY_KEY] = record['id']
            if self.meta.is_localized():
                entry.locale = locale
            if self._fill(entry, record, fetch_unlocalized):
                entries.append(entry)
        return entries

    def load_entry(self, entry):
        record = self.orm.store.get(self.meta.name, entry.get_id())
        if record is not None:
            self._fill(entry, record, True)

    def _fill(self, entry, record, fetch_unlocalized):
        """
        Copies a stored record into an entry. Returns False when the entry has
        no values in its locale and unlocalized entries are not fetched.
        """
        for name, value in record['values'].items():
            self._assign(entry, name, value)

        if not self.meta.is_localized():
            return True

        locales = record['locales']
        data_locale = entry.locale if entry.locale in locales else None
        if data_locale is None:
            if not fetch_unlocalized:
                return False
            if self.orm.default_locale in locales:
                data_locale = self.orm.default_locale
            elif locales:
                data_locale = next(iter(locales))

        entry.data_locale = data_locale
        for name, value in locales.get(data_locale, {}).items():
            self._assign(entry, name, value)

        return True

    def _assign(self, entry, name, value):
        if name == PRIMARY_KEY or name in entry._values or name not in self.meta.fields:
            return
        if self.meta.fields[name].is_relation():
            entry._raw[name] = value
        else:
            entry._values[name] = value

    def save(self, entry, _saving=None):
        """
        Validates and stores an entry. New or modified related entries are
        saved first.
        """
        saving = _saving if _saving is not None else set()
        if id(entry) in saving:
            return entry
        saving.add(id(entry))

        if not self.meta.is_valid_entry(entry):
            raise OrmException(f"{entry!r} is not an entry of {self.meta.name}")
        if entry.is_proxy() and not entry.is_dirty():
            return entry

        entry._orm = self.orm
        entry._load()
        self.get_validation_constraint().validate(entry)

        for name, field in self.meta.get_relations().items():
            if name not in entry._values:
                continue
            value = entry._values[name]
            related = value if isinstance(value, list) else [value]
            model = self.get_relation_model(name)
            for item in related:
                if item is not None and item.is_dirty():
                    model.save(item, saving)

        values, localized_values = self._serialize(entry)
        locale = None
        if self.meta.is_localized():
            locale = entry.locale or self.orm.get_locale()
            entry.locale = locale

        if entry.is_new():
            entry._values[PRIMARY_KEY] = self.orm.store.insert(self.meta.name, values, localized_values, locale)
            logger.info(f"Created {self.meta.name}#{entry.get_id()}")
        else:
            self.orm.store.update(self.meta.name, entry.get_id(), values, localized_values, locale)
            logger.info(f"Saved {self.meta.name}#{entry.get_id()}")

        self._update_inverse_fields(entry)

        entry._dirty.clear()
        entry._is_proxy = False
        if locale:
            entry.data_locale = locale

        return entry

    def _serialize(self, entry):
        values = {}
        localized_values = {} if self.meta.is_localized() else None
        for name, field in self.meta.fields.items():
            if name == PRIMARY_KEY:
                continue
            if name in entry._raw:
                value = entry._raw[name]
            elif name in entry._values:
                value = entry._values[name]
                if isinstance(value, list):
                    value = [item.get_id() for item in value if item is not None]
                elif isinstance(value, Model):
                    value = value.get_id()
            else:
                continue

            if field.is_localized():
                localized_values[name] = value
            else:
                values[name] = value
        return values, localized_values

    def _update_inverse_fields(self, entry):
        for name, field in self.meta.get_relations().items():
            if not isinstance(field, (One2many, One2one)) or not field.inverse_name or name not in entry._values:
                continue
            value = entry._values[name]
            related = value if isinstance(value, list) else [value]
            for item in related:
                if item is None:
                    continue
                self.orm.store.set_value(field.comodel_name, item.get_id(), field.inverse_name, entry.get_id())
                if field.inverse_name in item._values:
                    item._values[field.inverse_name] = entry

    def delete(self, entry):
        if entry is None or entry.get_id() is None:
            raise OrmException(f"Cannot delete an unsaved entry of {self.meta.name}")

        entry_id = entry.get_id()
        self.orm.store.delete(self.meta.name, entry_id)
        self._unlink_references(entry_id)
        logger.info(f"Deleted {self.meta.name}#{entry_id}")
        return entry

    def delete_localized(self, entry, locale):
        """
        Deletes the values of the entry in the provided locale.
        :return: the entry when a translation was deleted, None otherwise
        """
        if not self.meta.is_localized():
            raise OrmException(f"Model {self.meta.name} is not localized")
        if entry is None or entry.get_id() is None:
            raise OrmException(f"Cannot delete an unsaved entry of {self.meta.name}")

        if not self.orm.store.delete_locale(self.meta.name, entry.get_id(), locale):
            return None

        logger.info(f"Deleted {self.meta.name}#{entry.get_id()} in {locale}")
        return entry

    def _unlink_references(self, entry_id):
        store = self.orm.store
        for name, model_cls in Registry.items():
            relations = [
                field_name for field_name, field in model_cls._meta.get_relations().items()
                if field.comodel_name == self.meta.name
            ]
            if not relations:
                continue
            for record in store.scan(name):
                for field_name in relations:
                    value = record['values'].get(field_name)
                    if isinstance(value, list) and entry_id in value:
                        store.set_value(name, record['id'], field_name, [item for item in value if item != entry_id])
                    elif value == entry_id:
                        store.set_value(name, record['id'], field_name, None)

    def get_data_list(self, options):
        """
        Plain list of entries for the REST listing.

        Supported options: filter[match][field] (case insensitive contains),
        filter[exact][field], page, limit and locale.
        """
        query = self.create_query(options.get('locale'))
        query.set_fetch_unlocalized(True)

        for key, value in options.items():
            if value in (None, '') or not key.startswith('filter['):
                continue
            parts = key[len('filter['):].rstrip(']').split('][')
            if len(parts) != 2:
                continue
            kind, field_name = parts
            if kind == 'match':
                query.add_condition([(field_name, 'ilike', f'%{value}%')])
            elif kind == 'exact':
                query.add_condition([(field_name, '=', value)])

        order = self.meta.get_option('order.field')
        if order:
            query.add_order_by(f"{order} {self.meta.get_option('order.direction', 'ASC')}")

        limit = int(options.get('limit') or 0)
        if limit:
            page = max(int(options.get('page') or 1), 1)
            query.set_limit(limit, (page - 1) * limit)

        return [entry.to_dict() for entry in query.query()]

class OrmManager:
    """
    Entry point of the ORM: binds the registered models to a store.
    """
    def __init__(self, store=None, default_locale='en'):
        self.store = store if store is not None else MemoryStore()
        self.default_locale = default_locale
        self.locale = default_locale
        self._models = {}
        self._entry_formatter = EntryFormatter()

    def get_model(self, name):
        if name not in self._models:
            model_cls = Registry.get(name)
            if model_cls is None:
                raise OrmException(f"Model {name} not found")
            self._models[name] = ModelService(self, model_cls)
        return self._models[name]

    def has_model(self, name):
        return Registry.contains(name)

    def get_models(self):
        return {name: self.get_model(name) for name in Registry.names()}

    def get_entry_formatter(self):
        return self._entry_formatter

    def get_locale(self):
        return self.locale

    def set_locale(self, locale):
        self.locale = locale
