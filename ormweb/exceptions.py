class OrmException(Exception):
    """
    Error raised by the ORM layer: unknown models or fields, missing entries,
    queries which cannot be executed.
    """


class UnauthorizedException(Exception):
    """
    Raised when the current user is not allowed to perform an action.
    The HTTP adapter turns it into a 403 response.
    """


class LocaleNotFound(KeyError):
    pass


class FieldError:
    """
    A single validation error for a field.
    """
    def __init__(self, code, message=None, parameters=None):
        self.code = code
        self.message = message or code
        self.parameters = parameters or {}

    def __repr__(self):
        return f"<FieldError {self.code}>"

    def __str__(self):
        message = self.message
        for key, value in self.parameters.items():
            message = message.replace(f'%{key}%', str(value))
        return message


class ValidationException(Exception):
    """
    Holds the validation errors of an entry or a form, keyed by field name.
    Nested fields use the form name notation, eg author[name].
    """
    def __init__(self, message='Validation failed', errors=None):
        super().__init__(message)
        self.errors = {}
        for name, field_errors in (errors or {}).items():
            for error in field_errors:
                self.add_error(name, error)

    def add_error(self, name, error):
        self.errors.setdefault(name, []).append(error)

    def add_errors(self, errors, prefix=None):
        for name, field_errors in errors.items():
            for error in field_errors:
                self.add_error(nest_name(prefix, name), error)

    def has_errors(self):
        return bool(self.errors)

    def get_errors(self, name):
        return self.errors.get(name, [])

    def get_all_errors(self):
        return self.errors

    def __str__(self):
        lines = [self.args[0]]
        for name, field_errors in self.errors.items():
            for error in field_errors:
                lines.append(f"- {name}: {error}")
        return "\n".join(lines)

    @classmethod
    def from_pydantic(cls, error, prefix=None):
        """
        Converts a pydantic ValidationError into a ValidationException.
        """
        exception = cls()
        for item in error.errors():
            loc = [str(part) for part in item.get('loc', ())]
            name = nest_name(prefix, format_path(loc)) if loc else (prefix or '')
            error_type = item.get('type', 'invalid')
            code = 'error.validation.' + ('required' if error_type == 'missing' else error_type)
            parameters = dict(item.get('ctx') or {})
            exception.add_error(name, FieldError(code, item.get('msg'), parameters))
        return exception


def format_path(parts):
    """
    ['comments', '0', 'body'] -> comments[0][body]
    """
    if not parts:
        return ''
    return parts[0] + ''.join(f'[{part}]' for part in parts[1:])


def nest_name(prefix, name):
    """
    Nests a field name under a prefix: (author, name) -> author[name],
    (comments[0], body[x]) -> comments[0][body][x]
    """
    if not prefix:
        return name
    if not name:
        return prefix
    if '[' in name:
        head, tail = name.split('[', 1)
        return f'{prefix}[{head}][{tail}'
    return f'{prefix}[{name}]'
