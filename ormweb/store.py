import copy
import threading

from .exceptions import OrmException
from .logger import get_logger

_logger = get_logger(__name__)

class MemoryStore:
    """
    In-process storage for the entries of all models.

    A record is kept as
        {'id': 1, 'values': {...}, 'locales': {'en': {...}, 'nl': {...}}}
    where values holds the unlocalized fields and locales the localized
    fields per locale. Relations are stored as ids (lists of ids for has-many).
    """
    def __init__(self):
        self._tables = {}
        self._sequences = {}
        self._lock = threading.RLock()

    def _table(self, model_name):
        return self._tables.setdefault(model_name, {})

    def _next_id(self, model_name):
        self._sequences[model_name] = self._sequences.get(model_name, 0) + 1
        return self._sequences[model_name]

    def insert(self, model_name, values, localized_values=None, locale=None):
        with self._lock:
            record_id = self._next_id(model_name)
            record = {'id': record_id, 'values': copy.copy(values), 'locales': {}}
            if localized_values is not None and locale:
                record['locales'][locale] = copy.copy(localized_values)
            self._table(model_name)[record_id] = record
            _logger.debug(f"Inserted {model_name}#{record_id}")
            return record_id

    def update(self, model_name, record_id, values, localized_values=None, locale=None):
        with self._lock:
            record = self._table(model_name).get(record_id)
            if record is None:
                raise OrmException(f"Entry {model_name}#{record_id} not found")
            record['values'].update(values)
            if localized_values is not None and locale:
                record['locales'].setdefault(locale, {}).update(localized_values)
            _logger.debug(f"Updated {model_name}#{record_id}")

    def set_value(self, model_name, record_id, name, value):
        with self._lock:
            record = self._table(model_name).get(record_id)
            if record is not None:
                record['values'][name] = value

    def delete(self, model_name, record_id):
        with self._lock:
            if self._table(model_name).pop(record_id, None) is None:
                raise OrmException(f"Entry {model_name}#{record_id} not found")
            _logger.debug(f"Deleted {model_name}#{record_id}")

    def delete_locale(self, model_name, record_id, locale):
        """
        Removes the localized values of a record for a locale.
        Returns False when the record had no values in that locale.
        """
        with self._lock:
            record = self._table(model_name).get(record_id)
            if record is None:
                raise OrmException(f"Entry {model_name}#{record_id} not found")
            return record['locales'].pop(locale, None) is not None

    def get(self, model_name, record_id):
        try:
            record_id = int(record_id)
        except (TypeError, ValueError):
            return None
        record = self._table(model_name).get(record_id)
        if record is None:
            return None
        return copy.deepcopy(record)

    def scan(self, model_name):
        with self._lock:
            records = [copy.deepcopy(record) for record in self._table(model_name).values()]
        return records

    def get_locales(self, model_name, record_id):
        record = self._table(model_name).get(record_id)
        if record is None:
            return []
        return list(record['locales'].keys())

    def count(self, model_name):
        return len(self._table(model_name))

    def clear(self, model_name=None):
        with self._lock:
            if model_name is None:
                self._tables.clear()
                self._sequences.clear()
            else:
                self._tables.pop(model_name, None)
                self._sequences.pop(model_name, None)
