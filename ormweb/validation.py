from pydantic import ValidationError

from .exceptions import FieldError, ValidationException
from .fields import HAS_MANY
from .meta import PRIMARY_KEY

class Validator:
    """
    Validates a single value and keeps the errors of the last run.
    """
    def __init__(self, **options):
        self.options = options
        self.errors = []

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.options}>"

    def get_option(self, key, default=None):
        return self.options.get(key, default)

    def get_errors(self):
        return self.errors

    def is_valid(self, value):
        raise NotImplementedError()

class RequiredValidator(Validator):
    code = 'error.validation.required'

    def is_valid(self, value):
        self.errors = []
        if value is None or value == '' or value == [] or value == {}:
            self.errors.append(FieldError(self.code, 'Field is required'))
        return not self.errors

class SizeValidator(Validator):
    """
    Checks the length of a string or the number of items of a list.
    """
    def is_valid(self, value):
        self.errors = []
        if value is None or value == '':
            return True

        size = len(value) if isinstance(value, (str, list, tuple)) else len(str(value))
        minimum = self.get_option('minimum')
        maximum = self.get_option('maximum')

        if minimum is not None and size < minimum:
            self.errors.append(FieldError('error.validation.minimum', 'Value must have at least %minimum% items', {'minimum': minimum}))
        if maximum is not None and size > maximum:
            self.errors.append(FieldError('error.validation.maximum', 'Value can have at most %maximum% items', {'maximum': maximum}))

        return not self.errors

class TrimFilter:
    def filter(self, value):
        if isinstance(value, str):
            return value.strip()
        return value

class EntryConstraint:
    """
    Validation rules of the entries of a model, derived from the field
    metadata: required flags and sizes. Entries are validated against the
    pydantic model generated from the same metadata.
    """
    def __init__(self, meta):
        self.meta = meta
        self._schema = None

    def get_validators(self, field_name):
        field = self.meta.get_field(field_name)
        validators = []
        if field.required and field_name != PRIMARY_KEY:
            validators.append(RequiredValidator())
        if field.size:
            validators.append(SizeValidator(maximum=field.size))
        return validators

    def get_filters(self, field_name):
        field = self.meta.get_field(field_name)
        if field._type in ('string', 'text'):
            return [TrimFilter()]
        return []

    def get_schema(self):
        if self._schema is None:
            from .api.schema import get_pydantic_model
            self._schema = get_pydantic_model(self.meta)
        return self._schema

    def validate(self, entry):
        """
        :raises ValidationException: when the entry is not valid
        """
        exception = ValidationException()

        data = {}
        for name in self.meta.get_properties():
            if name == PRIMARY_KEY:
                continue
            value = entry.get_field(name)
            if value is not None and value != '':
                data[name] = value

        try:
            self.get_schema().model_validate(data)
        except ValidationError as error:
            exception.add_errors(ValidationException.from_pydantic(error).get_all_errors())

        for name, field in self.meta.get_relations().items():
            if not field.required:
                continue
            value = entry.get_field(name)
            if not value:
                exception.add_error(name, FieldError(RequiredValidator.code, 'Field is required'))
            elif field._relation == HAS_MANY and field.size and len(value) > field.size:
                exception.add_error(name, FieldError('error.validation.maximum', 'Value can have at most %maximum% items', {'maximum': field.size}))

        if exception.has_errors():
            raise exception
