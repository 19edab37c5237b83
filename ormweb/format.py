import datetime
import re

from markupsafe import Markup

FORMAT_TITLE = 'title'
FORMAT_TEASER = 'teaser'
FORMAT_IMAGE = 'image'

VARIABLE_PATTERN = re.compile(r'\{([\w.]+)((?:\|[^{}|]+)*)\}')
TAG_PATTERN = re.compile(r'<[^>]*>')

class EntryFormatter:
    """
    Formats entries with format strings like '{title}', '{author.name}' or
    '{body|strip_tags|truncate:100}'.
    """
    def __init__(self):
        self.filters = {
            'truncate': truncate,
            'strip_tags': strip_tags,
            'date': format_date,
            'upper': lambda value: value.upper(),
            'lower': lambda value: value.lower(),
        }

    def add_filter(self, name, function):
        self.filters[name] = function

    def format_entry(self, entry, format):
        if entry is None or not format:
            return ''

        def replace(match):
            value = self._get_value(entry, match.group(1))
            if match.group(2):
                for filter_definition in match.group(2)[1:].split('|'):
                    value = self._apply_filter(value, filter_definition)
            return self._to_string(value)

        return VARIABLE_PATTERN.sub(replace, format)

    def _get_value(self, entry, path):
        value = entry
        for name in path.split('.'):
            if value is None:
                return None
            if isinstance(value, list):
                value = [item.get_field(name) for item in value if item is not None]
            else:
                value = value.get_field(name)
        return value

    def _apply_filter(self, value, definition):
        name, _, argument = definition.partition(':')
        function = self.filters.get(name.strip())
        if function is None:
            return value
        if isinstance(value, (list, tuple)) or value is None:
            value = self._to_string(value)
        if argument:
            return function(value, argument)
        return function(value)

    def _to_string(self, value):
        if value is None or value is False:
            return ''
        if value is True:
            return '1'
        if isinstance(value, list):
            return ', '.join(self._to_string(item) for item in value)
        if hasattr(value, '_meta'):
            return self.format_entry(value, value._meta.get_format(FORMAT_TITLE))
        if isinstance(value, (datetime.date, datetime.datetime)):
            return value.isoformat()
        return str(value)


def truncate(value, length='50', etc='...'):
    value = str(value)
    length = int(length)
    if len(value) <= length:
        return value
    return value[:length].rstrip() + etc


def strip_tags(value):
    return Markup(TAG_PATTERN.sub('', str(value))).unescape() if value else ''


def format_date(value, pattern='%Y-%m-%d'):
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.strftime(pattern)
    return value
