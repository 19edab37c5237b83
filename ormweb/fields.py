import datetime
from typing import TypeVar, Generic, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .orm import Model

T = TypeVar('T')

BELONGS_TO = 'belongs_to'
HAS_ONE = 'has_one'
HAS_MANY = 'has_many'

TRUE_VALUES = ('1', 'true', 'on', 'yes', 'y')

class Field(Generic[T]):
    """
    Base class for all fields.

    The options dict holds the presentation metadata read by the web layer,
    eg label.name, scaffold.form.type, scaffold.search, upload.path.
    """
    _type = None
    _relation = None

    def __init__(self, string=None, required=False, help=None, readonly=False, default=None, translate=False, size=None, options=None):
        self.string = string
        self.required = required
        self.help = help
        self.readonly = readonly
        self.default = default
        self.translate = translate
        self.size = size
        self.options = dict(options or {})
        self.name = None
        self.model_name = None

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"

    def __get__(self, record, owner) -> T:
        if record is None: return self # type: ignore
        return record.get_field(self.name)

    def __set__(self, record, value):
        record.set_field(self.name, value)

    def get_type(self):
        return self._type

    def get_option(self, key, default=None):
        return self.options.get(key, default)

    def is_relation(self):
        return self._relation is not None

    def is_localized(self):
        return bool(self.translate)

    def get_default(self):
        if callable(self.default):
            return self.default()
        return self.default

    def convert(self, value):
        """
        Converts a submitted or stored value to the python value of this field.
        Empty strings become None.
        """
        if value == '':
            return None
        return value

class Char(Field[str]):
    _type = 'string'

    def convert(self, value):
        if value is None or value == '':
            return None
        return str(value)

class Text(Char):
    _type = 'text'

class Integer(Field[int]):
    _type = 'integer'

    def convert(self, value):
        if value is None or value == '':
            return None
        if isinstance(value, bool):
            return int(value)
        try:
            return int(value)
        except (TypeError, ValueError):
            return value # left to the validation

class Float(Field[float]):
    _type = 'float'

    def convert(self, value):
        if value is None or value == '':
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return value

class Boolean(Field[bool]):
    _type = 'boolean'

    def convert(self, value):
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip().lower() in TRUE_VALUES
        return bool(value)

class Date(Field[Any]):
    _type = 'date'

    def convert(self, value):
        if value is None or value == '':
            return None
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        try:
            return datetime.date.fromisoformat(str(value)[:10])
        except ValueError:
            return value

class Datetime(Field[Any]):
    _type = 'datetime'

    def convert(self, value):
        if value is None or value == '':
            return None
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime(value.year, value.month, value.day)
        try:
            return datetime.datetime.fromisoformat(str(value))
        except ValueError:
            return value

DateTime = Datetime

class Selection(Field[str]):
    """
    Property with a closed list of values, rendered as a select by default.
    """
    _type = 'selection'

    def __init__(self, selection, string=None, **kwargs):
        super().__init__(string=string, **kwargs)
        self.selection = selection
        self.options.setdefault('scaffold.form.type', 'select')

    def get_selection(self):
        if callable(self.selection):
            return list(self.selection())
        return list(self.selection)

    def convert(self, value):
        if value is None or value == '':
            return None
        return str(value)

class File(Char):
    _type = 'file'

class Image(File):
    _type = 'image'

class RelationField(Field['Model']):
    """
    Base class for the fields pointing to another model.
    """
    def __init__(self, comodel_name, string=None, **kwargs):
        super().__init__(string=string, **kwargs)
        self.comodel_name = comodel_name

    def get_relation_model_name(self):
        return self.comodel_name

    def convert(self, value):
        return value

class Many2one(RelationField):
    _type = 'many2one'
    _relation = BELONGS_TO

    def __init__(self, comodel_name, string=None, ondelete='set null', **kwargs):
        super().__init__(comodel_name, string=string, **kwargs)
        self.ondelete = ondelete

class One2one(RelationField):
    _type = 'one2one'
    _relation = HAS_ONE

    def __init__(self, comodel_name, inverse_name=None, string=None, **kwargs):
        super().__init__(comodel_name, string=string, **kwargs)
        self.inverse_name = inverse_name

class One2many(RelationField):
    _type = 'one2many'
    _relation = HAS_MANY

    def __init__(self, comodel_name, inverse_name, string=None, ordered=False, **kwargs):
        super().__init__(comodel_name, string=string, **kwargs)
        self.inverse_name = inverse_name
        self.ordered = ordered

    def is_ordered(self):
        return self.ordered

    def convert(self, value):
        if value is None:
            return []
        return list(value)

class Many2many(RelationField):
    _type = 'many2many'
    _relation = HAS_MANY

    def __init__(self, comodel_name, string=None, relation=None, ordered=False, **kwargs):
        super().__init__(comodel_name, string=string, **kwargs)
        self.relation = relation
        self.ordered = ordered

    def is_ordered(self):
        return self.ordered

    def convert(self, value):
        if value is None:
            return []
        return list(value)
