import csv
import os

from ..logger import get_logger

_logger = get_logger(__name__)

class CsvLoader:
    """
    Loads entries from CSV files named after their model, eg
    blog.article.csv. The id column is a key local to the loaded files:
    relation columns refer to the keys of the related model, many values
    separated by a comma. A row with a locale column and an already loaded
    key adds a translation of that entry.
    """
    def __init__(self, orm):
        self.orm = orm
        self.references = {}

    def load_file(self, file_path, model_name=None):
        if model_name is None:
            model_name = os.path.basename(file_path)[:-len('.csv')]

        _logger.info(f"Loading CSV file: {file_path}")
        model = self.orm.get_model(model_name)
        with open(file_path, mode='r', newline='', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            count = 0
            for row in reader:
                self._process_row(model, row)
                count += 1
        _logger.info(f"Loaded {count} rows into {model_name}")
        return count

    def _process_row(self, model, row):
        meta = model.get_meta()
        row = dict(row)
        key = row.pop('id', None) or None
        locale = row.pop('locale', None) or None

        entry = self.references.get((meta.name, key)) if key else None
        if entry is None:
            entry = model.create_entry()
        if locale:
            entry.locale = locale

        for name, value in row.items():
            if value == '':
                continue
            field = meta.get_field(name)
            if field.is_relation():
                value = self._resolve_references(field, value)
            entry.set_field(name, value)

        model.save(entry)
        if key:
            self.references[(meta.name, key)] = entry

    def _resolve_references(self, field, value):
        keys = [key.strip() for key in (value or '').split(',') if key.strip()]
        entries = []
        for key in keys:
            entry = self.references.get((field.comodel_name, key))
            if entry is None:
                raise KeyError(f"No {field.comodel_name} loaded with id {key}")
            entries.append(entry)

        if field.get_type() in ('one2many', 'many2many'):
            return entries
        return entries[0] if entries else None
