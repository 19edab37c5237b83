import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, create_model

from ..meta import PRIMARY_KEY

# Response Model
class GenericResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None

TYPE_MAP = {
    'string': str,
    'text': str,
    'file': str,
    'image': str,
    'integer': int,
    'float': float,
    'boolean': bool,
    'date': datetime.date,
    'datetime': datetime.datetime,
}

# Dynamic Pydantic Model Generator
def get_pydantic_model(meta, action='create'):
    """
    Creates a Pydantic model dynamically based on the property fields of a
    model. Relation fields are left to the entry constraint.
    """
    fields_def = {}

    for name, field in meta.get_properties().items():
        if name == PRIMARY_KEY:
            continue

        if field._type == 'selection':
            keys = tuple(str(key) for key, _label in field.get_selection())
            py_type = Literal[keys] if keys else str
        else:
            py_type = TYPE_MAP.get(field._type, Any)

        constraints = {}
        if field.size and py_type is str:
            constraints['max_length'] = field.size

        # For 'write', all optional (PATCH).
        is_required = field.required and action == 'create'

        if is_required:
            fields_def[name] = (py_type, Field(..., **constraints))
        else:
            fields_def[name] = (Optional[py_type], Field(None, **constraints))

    model_name = f"{meta.name.replace('.', '_')}_{action}"
    return create_model(model_name, **fields_def)


class EntryList(GenericResponse):
    data: List[dict] = []
