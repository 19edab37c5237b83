import csv
import datetime
import io
import json

from .logger import get_logger
from .tools.misc import ucfirst

_logger = get_logger(__name__)

class FileProvider:
    """
    Writes exported rows to the content of a file.
    """
    extension = None
    content_type = 'application/octet-stream'

    def write(self, headers, rows):
        """
        :param headers: list of column labels
        :param rows: iterable of lists with string values
        :return: bytes
        """
        raise NotImplementedError()

class CsvFileProvider(FileProvider):
    extension = 'csv'
    content_type = 'text/csv'

    def __init__(self, delimiter=','):
        self.delimiter = delimiter

    def write(self, headers, rows):
        output = io.StringIO()
        writer = csv.writer(output, delimiter=self.delimiter)
        writer.writerow(headers)
        for row in rows:
            writer.writerow(row)
        return output.getvalue().encode('utf-8')

class JsonFileProvider(FileProvider):
    extension = 'json'
    content_type = 'application/json'

    def write(self, headers, rows):
        data = [dict(zip(headers, row)) for row in rows]
        return json.dumps(data, ensure_ascii=False, indent=2).encode('utf-8')

EXPORT_PROVIDERS = {
    'csv': CsvFileProvider,
    'json': JsonFileProvider,
}

def get_file_provider(format):
    """
    :raises KeyError: when there is no provider for the format
    """
    return EXPORT_PROVIDERS[format]()

def register_file_provider(format, provider_class):
    EXPORT_PROVIDERS[format] = provider_class

class OrmModelExporter:
    """
    Exports entries of a model with translated headers and formatted values.
    Fields with the scaffold.export.omit option are left out.
    """
    def __init__(self, model, translator=None):
        self.model = model
        self.meta = model.get_meta()
        self.translator = translator
        self.formatter = model.get_orm_manager().get_entry_formatter()

    def get_fields(self):
        return [
            (name, field) for name, field in self.meta.get_fields().items()
            if not field.get_option('scaffold.export.omit')
        ]

    def get_headers(self):
        headers = []
        for name, field in self.get_fields():
            label = field.get_option('label.name')
            if label and self.translator is not None:
                headers.append(self.translator.translate(label))
            else:
                headers.append(label or field.string or ucfirst(name))
        return headers

    def format_value(self, value):
        if value is None:
            return ''
        if isinstance(value, bool):
            return '1' if value else '0'
        if isinstance(value, list):
            return ', '.join(self.format_value(item) for item in value)
        if hasattr(value, '_meta'):
            return self.formatter.format_entry(value, value._meta.get_format('title'))
        if isinstance(value, (datetime.date, datetime.datetime)):
            return value.isoformat()
        return str(value)

    def get_rows(self, entries):
        fields = self.get_fields()
        for entry in entries:
            yield [self.format_value(entry.get_field(name)) for name, _field in fields]

    def export(self, entries, provider):
        """
        :return: bytes of the export file
        """
        entries = list(entries)
        content = provider.write(self.get_headers(), self.get_rows(entries))
        _logger.info(f"Exported {len(entries)} entries of {self.meta.name} to {provider.extension}")
        return content
