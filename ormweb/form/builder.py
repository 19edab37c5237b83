import re

from ..exceptions import ValidationException
from ..logger import get_logger

_logger = get_logger(__name__)

SUBMIT_KEY = '_form'

NAME_PATTERN = re.compile(r'^([^\[\]]+)((?:\[[^\[\]]*\])*)$')
PART_PATTERN = re.compile(r'\[([^\[\]]*)\]')

def split_name(name):
    """
    author[name] -> ['author', 'name'], tags[] -> ['tags', '']
    """
    match = NAME_PATTERN.match(name)
    if not match:
        return [name]
    return [match.group(1)] + PART_PATTERN.findall(match.group(2))

def parse_nested(items):
    """
    Converts flat form items with bracket names into nested dicts:

        [('author[name]', 'John'), ('tags[]', '1'), ('tags[]', '2')]
        -> {'author': {'name': 'John'}, 'tags': ['1', '2']}

    :param items: iterable of (name, value) tuples
    """
    result = {}
    for name, value in items:
        parts = split_name(name)
        is_list = len(parts) > 1 and parts[-1] == ''
        if is_list:
            parts = parts[:-1]

        target = result
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child

        key = parts[-1]
        if is_list:
            current = target.get(key)
            if not isinstance(current, list):
                current = [] if current is None else [current]
                target[key] = current
            current.append(value)
        else:
            target[key] = value

    return result

class Form:
    """
    Row tree of a component bound to an entry.
    """
    def __init__(self, name, component, rows):
        self.name = name
        self.component = component
        self.rows = rows
        self.entry = None
        self.errors = []
        self.is_processed = False

    def __repr__(self):
        return f"<Form {self.name}>"

    def get_name(self):
        return self.name

    def get_component(self):
        return self.component

    def get_rows(self):
        return self.rows

    def get_row(self, name):
        """
        Gets a row by its full name, eg comments[0][body].
        """
        parts = split_name(name)
        for row in self.rows:
            if row.name == parts[0]:
                return row.get_row(parts[1:])
        return None

    def set_data(self, entry):
        self.entry = entry
        values = self.component.parse_set_data(entry) or {}
        for row in self.rows:
            row.set_data(values.get(row.name))

    def is_submitted(self, body):
        """
        :param body: parsed request body
        """
        return body.get(SUBMIT_KEY) == self.name

    def process(self, body):
        """
        Reads the submitted values into the rows.

        :param body: nested dict, or a list of (name, value) items with bracket names
        """
        if not isinstance(body, dict):
            body = parse_nested(body)

        self.errors = []
        for row in self.rows:
            row.errors = []
            row.process(body)

        self.is_processed = True

    def get_values(self):
        return {row.name: row.get_data() for row in self.rows}

    def validate(self):
        """
        :raises ValidationException: when a row is invalid
        """
        exception = ValidationException()
        for row in self.rows:
            row.validate(exception)

        if exception.has_errors():
            raise exception

    def get_data(self):
        """
        :return: the entry with the submitted values
        """
        return self.component.parse_get_data(self.get_values(), self.entry)

    def set_validation_exception(self, exception):
        """
        Adds the errors to the matching rows, the errors of unknown fields are
        kept as general errors of the form.
        """
        for name, errors in exception.get_all_errors().items():
            row = self.get_row(name) if name else None
            if row is None:
                _logger.debug(f"Form {self.name}: no row for error on '{name}'")
                self.errors.extend(errors)
                continue
            for error in errors:
                row.add_error(error)

    def has_errors(self):
        return bool(self.errors) or any(self._has_row_errors(row) for row in self.rows)

    def _has_row_errors(self, row):
        if row.errors:
            return True
        children = list(getattr(row, 'rows', [])) + list(getattr(row, 'items', []))
        return any(self._has_row_errors(child) for child in children)

    def get_view(self, tabs=None):
        views = [row.get_view() for row in self.rows]
        view_tabs = []
        for tab, definition in (tabs or {}).items():
            view_tabs.append({
                'name': tab,
                'label': definition['translation'],
                'rows': [view for view in views if view['name'] in definition['rows']],
            })

        return {
            'name': self.name,
            'submit_key': SUBMIT_KEY,
            'rows': views,
            'hidden': [view for view in views if view['type'] == 'hidden'],
            'tabs': view_tabs,
            'errors': [str(error) for error in self.errors],
        }

class FormBuilder:
    """
    Builds the form of a component, optionally for an existing entry.
    """
    def __init__(self, component, entry=None):
        self.component = component
        self.entry = entry

    def build(self):
        data = self.component.parse_set_data(self.entry) if self.entry is not None else None
        rows = self.component.build_rows(data)

        form = Form(self.component.get_name(), self.component, rows)
        if self.entry is not None:
            form.set_data(self.entry)

        return form
