import datetime
import os
import re
import secrets

from ..exceptions import FieldError, nest_name
from ..fields import TRUE_VALUES
from ..logger import get_logger
from ..meta import PRIMARY_KEY

_logger = get_logger(__name__)

PROTOTYPE_KEY = '%prototype%'

def is_empty(value):
    return value is None or value == '' or value == [] or value == {}

def html_id(name):
    return 'form-' + re.sub(r'[^\w]+', '-', name).strip('-')

class Row:
    """
    One input of a form. The submitted value is read from the parsed body by
    the name of the row.
    """
    type = 'string'
    input_type = 'text'

    def __init__(self, name, options=None):
        options = options or {}
        self.name = name
        self.options = options
        self.label = options.get('label')
        self.description = options.get('description')
        self.attributes = dict(options.get('attributes') or {})
        self.filters = list(options.get('filters') or [])
        self.validators = list(options.get('validators') or [])
        self.readonly = options.get('readonly', False)
        self.data = None
        self.errors = []

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"

    def get_option(self, key, default=None):
        return self.options.get(key, default)

    def is_required(self):
        return any(validator.__class__.__name__ == 'RequiredValidator' for validator in self.validators)

    def set_data(self, value):
        self.data = value

    def get_data(self):
        return self.data

    def process(self, values):
        if self.readonly:
            return
        value = values.get(self.name)
        for value_filter in self.filters:
            value = value_filter.filter(value)
        self.data = self.convert(value)

    def convert(self, value):
        if value == '':
            return None
        return value

    def validate(self, exception, prefix=None):
        for validator in self.validators:
            if not validator.is_valid(self.data):
                for error in validator.get_errors():
                    exception.add_error(nest_name(prefix, self.name), error)

    def add_error(self, error):
        self.errors.append(error)

    def get_row(self, parts):
        if not parts:
            return self
        return None

    def get_display_value(self):
        if self.data is None:
            return ''
        if isinstance(self.data, (datetime.date, datetime.datetime)):
            return self.data.isoformat()
        return str(self.data)

    def get_view(self, prefix=None):
        name = nest_name(prefix, self.name)
        return {
            'type': self.type,
            'input_type': self.input_type,
            'name': name,
            'id': html_id(name),
            'label': self.label,
            'description': self.description,
            'attributes': self.attributes,
            'required': self.is_required(),
            'readonly': self.readonly,
            'value': self.get_display_value(),
            'errors': [str(error) for error in self.errors],
        }

class HiddenRow(Row):
    type = 'hidden'
    input_type = 'hidden'

class PropertyRow(Row):
    """
    Scalar input: string, text, integer, number, boolean, date or datetime.
    """
    INPUT_TYPES = {
        'string': 'text',
        'text': 'textarea',
        'integer': 'number',
        'number': 'number',
        'boolean': 'checkbox',
        'date': 'date',
        'datetime': 'datetime-local',
        'email': 'email',
        'password': 'password',
        'wysiwyg': 'textarea',
    }

    def __init__(self, name, options=None, type='string'):
        super().__init__(name, options)
        self.type = type
        self.input_type = self.INPUT_TYPES.get(type, 'text')

    def convert(self, value):
        if self.type == 'boolean':
            if value is None:
                return None
            if isinstance(value, list):
                value = value[-1]
            return str(value).strip().lower() in TRUE_VALUES
        if value is None or value == '':
            return None
        if self.type == 'integer':
            try:
                return int(value)
            except (TypeError, ValueError):
                return value
        if self.type == 'number':
            try:
                return float(value)
            except (TypeError, ValueError):
                return value
        if self.type == 'date':
            return self.convert_date(value)
        if self.type == 'datetime':
            try:
                return datetime.datetime.fromisoformat(str(value))
            except ValueError:
                return value
        return value

    def convert_date(self, value):
        if isinstance(value, datetime.datetime):
            return value.date() if self.get_option('round') else value
        if isinstance(value, datetime.date):
            return value
        try:
            if self.get_option('round'):
                return datetime.date.fromisoformat(str(value)[:10])
            return datetime.date.fromisoformat(str(value))
        except ValueError:
            return value

    def set_data(self, value):
        if self.type == 'date' and self.get_option('round') and isinstance(value, datetime.datetime):
            value = value.date()
        self.data = value

    def get_view(self, prefix=None):
        view = super().get_view(prefix)
        view['checked'] = self.type == 'boolean' and bool(self.data)
        return view

class LabelRow(Row):
    """
    Read-only value, optionally rendered through a decorator.
    """
    type = 'label'
    input_type = 'label'

    def __init__(self, name, options=None):
        options = dict(options or {})
        options['readonly'] = True
        super().__init__(name, options)

    def get_display_value(self):
        decorator = self.get_option('decorator')
        if decorator is not None:
            return decorator.decorate(self.data)
        return super().get_display_value()

    def validate(self, exception, prefix=None):
        pass

class FileRow(Row):
    """
    File upload. Uploaded files are stored in the path option, the stored
    value is the path of the file relative to the configured directory.
    Without an upload, the current value is kept.
    """
    type = 'file'
    input_type = 'file'

    def process(self, values):
        value = values.get(self.name)
        if value is None or value == '':
            return
        if hasattr(value, 'filename') and hasattr(value, 'file'):
            if not value.filename:
                return
            self.data = self.save_upload(value)
        else:
            self.data = str(value)

    def save_upload(self, upload):
        path = self.get_option('path')
        file_name = os.path.basename(upload.filename)
        if not path:
            return file_name

        os.makedirs(path, exist_ok=True)
        target = os.path.join(path, file_name)
        if os.path.exists(target):
            base, extension = os.path.splitext(file_name)
            target = os.path.join(path, f"{base}-{secrets.token_hex(4)}{extension}")

        with open(target, 'wb') as handle:
            handle.write(upload.file.read())

        _logger.info(f"Stored upload {upload.filename} in {target}")
        return target

class OptionRow(Row):
    """
    Choice from a closed list of options, single or multiple.
    """
    type = 'option'

    def __init__(self, name, options=None, type='option'):
        super().__init__(name, options)
        self.type = type
        self.choices = dict(self.get_option('options') or {})
        self.multiple = self.get_option('multiple', False)
        self.widget = self.get_option('widget')

        if self.widget == 'option' and type != 'select':
            self.input_type = 'checkbox' if self.multiple else 'radio'
        else:
            self.input_type = 'select'

    def match(self, value):
        """
        Maps a submitted string back to the key of the option.
        """
        for key in self.choices:
            if key is not None and key != '' and str(key) == str(value):
                return key
        return value

    def convert(self, value):
        if self.multiple:
            if value is None or value == '':
                return []
            if not isinstance(value, (list, tuple)):
                value = [value]
            return [self.match(item) for item in value if item is not None and item != '']
        if isinstance(value, list):
            value = value[-1] if value else None
        if value is None or value == '':
            return None
        return self.match(value)

    def set_data(self, value):
        if self.multiple and value is None:
            value = []
        self.data = value

    def validate(self, exception, prefix=None):
        values = self.data if isinstance(self.data, list) else [self.data]
        keys = {str(key) for key in self.choices}
        for value in values:
            if not is_empty(value) and str(value) not in keys:
                exception.add_error(nest_name(prefix, self.name), FieldError('error.validation.option', '%value% is not a valid option', {'value': value}))
        super().validate(exception, prefix)

    def get_view(self, prefix=None):
        view = super().get_view(prefix)
        selected = {str(value) for value in (self.data if isinstance(self.data, list) else [self.data]) if value is not None}
        view['multiple'] = self.multiple
        view['widget'] = self.widget
        view['options'] = [
            {'value': '' if key is None else str(key), 'label': '' if label is None else label, 'selected': str(key) in selected}
            for key, label in self.choices.items()
        ]
        return view

class TagsRow(Row):
    """
    Comma separated tags, resolved to entries by a tag handler.
    """
    type = 'tags'
    input_type = 'text'

    def set_data(self, value):
        self.data = list(value or [])

    def process(self, values):
        value = values.get(self.name)
        if value is None:
            names = []
        elif isinstance(value, (list, tuple)):
            names = [str(name).strip() for name in value]
        else:
            names = [name.strip() for name in str(value).split(',')]

        names = [name for name in dict.fromkeys(names) if name]
        self.data = self.get_option('handler').process_tags(names)

    def get_display_value(self):
        return ', '.join(self.get_option('handler').get_tags(self.data or []))

    def validate(self, exception, prefix=None):
        maximum = self.get_option('max_items')
        if maximum and len(self.data or []) > maximum:
            exception.add_error(nest_name(prefix, self.name), FieldError('error.validation.maximum', 'Value can have at most %maximum% items', {'maximum': maximum}))
        super().validate(exception, prefix)

    def get_view(self, prefix=None):
        view = super().get_view(prefix)
        view['autocomplete_url'] = self.get_option('autocomplete_url')
        view['autocomplete_type'] = self.get_option('autocomplete_type')
        view['max_items'] = self.get_option('max_items')
        return view

class AssetsRow(Row):
    """
    Selection of entries of an assets model by id.
    """
    type = 'assets'
    input_type = 'assets'

    def set_data(self, value):
        if self.get_option('multiple'):
            self.data = list(value or [])
        else:
            self.data = value

    def process(self, values):
        model = self.get_option('model')
        value = values.get(self.name)
        locale = self.get_option('locale')

        if self.get_option('multiple'):
            if value is None or value == '':
                ids = []
            elif isinstance(value, (list, tuple)):
                ids = [item for item in value if item not in (None, '')]
            else:
                ids = [item.strip() for item in str(value).split(',') if item.strip()]
            self.data = [model.create_proxy(item, locale) for item in ids]
        elif value is None or value == '':
            self.data = None
        else:
            self.data = model.create_proxy(value, locale)

    def get_display_value(self):
        if isinstance(self.data, list):
            return ','.join(str(item.get_id()) for item in self.data)
        if self.data is None:
            return ''
        return str(self.data.get_id())

    def get_view(self, prefix=None):
        view = super().get_view(prefix)
        view['folder'] = self.get_option('folder')
        view['multiple'] = self.get_option('multiple', False)
        return view

class ComponentRow(Row):
    """
    Nested sub-form for a single related entry.
    """
    type = 'component'
    input_type = 'component'

    def __init__(self, name, component, options=None, data=None):
        super().__init__(name, options)
        self.component = component
        self.rows = component.build_rows(data)
        self.entry = None

    def set_data(self, entry):
        self.entry = entry
        values = self.component.parse_set_data(entry) or {}
        for row in self.rows:
            row.set_data(values.get(row.name))

    def process(self, values):
        submitted = values.get(self.name)
        if not isinstance(submitted, dict):
            submitted = {}
        for row in self.rows:
            row.process(submitted)

    def get_values(self):
        return {row.name: row.get_data() for row in self.rows}

    def is_empty(self):
        if self.entry is not None:
            return False
        return all(is_empty(value) or value is False for value in self.get_values().values())

    def get_data(self):
        """
        Entry of the sub-form, None when nothing was filled in for a new entry.
        """
        if self.is_empty():
            return None
        return self.component.parse_get_data(self.get_values(), self.entry)

    def validate(self, exception, prefix=None):
        name = nest_name(prefix, self.name)
        if self.is_empty():
            for validator in self.validators:
                if not validator.is_valid(None):
                    for error in validator.get_errors():
                        exception.add_error(name, error)
            return
        for row in self.rows:
            row.validate(exception, name)

    def get_row(self, parts):
        if not parts:
            return self
        for row in self.rows:
            if row.name == parts[0]:
                return row.get_row(parts[1:])
        return None

    def get_view(self, prefix=None):
        view = super().get_view(prefix)
        name = nest_name(prefix, self.name)
        view['rows'] = [row.get_view(name) for row in self.rows]
        view['value'] = ''
        return view

class CollectionRow(Row):
    """
    Repeating sub-forms for a has-many relation. Submitted items are matched
    with the current entries by their id.
    """
    type = 'collection'
    input_type = 'collection'

    def __init__(self, name, component, options=None, order=False):
        super().__init__(name, options)
        self.component = component
        self.order = order
        self.entries = []
        self.items = []
        self.prototype = ComponentRow(PROTOTYPE_KEY, component)

    def create_item(self, index, entry=None):
        item = ComponentRow(str(index), self.component)
        if entry is not None:
            item.set_data(entry)
        return item

    def set_data(self, entries):
        self.entries = list(entries or [])
        self.items = [self.create_item(index, entry) for index, entry in enumerate(self.entries)]

    def process(self, values):
        submitted = values.get(self.name)
        if isinstance(submitted, dict):
            keys = [key for key in submitted if key != PROTOTYPE_KEY]
            keys.sort(key=lambda key: (0, int(key)) if str(key).isdigit() else (1, str(key)))
            submitted = [submitted[key] for key in keys]
        elif not isinstance(submitted, list):
            submitted = []

        existing = {entry.get_id(): entry for entry in self.entries if entry.get_id() is not None}

        self.items = []
        for index, item_values in enumerate(submitted):
            if not isinstance(item_values, dict):
                continue
            item = self.create_item(index)
            entry_id = item_values.get(PRIMARY_KEY)
            if entry_id not in (None, ''):
                item.entry = existing.get(int(entry_id)) if str(entry_id).isdigit() else None
                if item.entry is None:
                    item_values = dict(item_values)
                    item_values[PRIMARY_KEY] = None
            item.process({item.name: item_values})
            self.items.append(item)

    def get_data(self):
        data = []
        for item in self.items:
            entry = item.get_data()
            if entry is not None:
                data.append(entry)
        return data

    def validate(self, exception, prefix=None):
        name = nest_name(prefix, self.name)
        for item in self.items:
            item.validate(exception, name)
        for validator in self.validators:
            if not validator.is_valid(self.get_data()):
                for error in validator.get_errors():
                    exception.add_error(name, error)

    def get_row(self, parts):
        if not parts:
            return self
        for item in self.items:
            if item.name == parts[0]:
                return item.get_row(parts[1:])
        return None

    def get_view(self, prefix=None):
        view = super().get_view(prefix)
        name = nest_name(prefix, self.name)
        view['order'] = self.order
        view['items'] = [item.get_view(name) for item in self.items]
        view['prototype'] = self.prototype.get_view(name)
        view['value'] = ''
        return view

ROW_TYPES = {
    'hidden': HiddenRow,
    'label': LabelRow,
    'file': FileRow,
    'image': FileRow,
    'tags': TagsRow,
    'assets': AssetsRow,
}

def create_row(type, name, options):
    """
    Row factory for the property and option types.
    """
    if type in ('option', 'select'):
        return OptionRow(name, options, type)
    row_class = ROW_TYPES.get(type)
    if row_class is not None:
        row = row_class(name, options)
        if type == 'image':
            row.type = 'image'
        return row
    return PropertyRow(name, options, type)
