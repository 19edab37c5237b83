"""
Form component generated from the metadata of a model.

Every field of the model is classified once, when the component is created:

- omitted fields are left out of the form and out of the data round trip,
- hidden fields get a value-only row,
- property fields get an input row for their type,
- relation fields get an option row with the related entries when an option
  type is requested or when the depth budget is used up,
- other relation fields get a nested component for the related model, a
  single sub-form for belongs-to and has-one relations, a collection of
  sub-forms for has-many relations.

Each nested component has one level of depth less than its parent, so the
row tree of a component built with depth N is at most N levels deep.
"""
from collections import OrderedDict

from ..fields import BELONGS_TO, HAS_MANY, HAS_ONE
from ..format import FORMAT_TITLE
from ..logger import get_logger
from ..meta import PRIMARY_KEY
from ..table.decorators import FormatDecorator
from ..tools.misc import import_string, ucfirst
from .config import ScaffoldConfig
from .rows import CollectionRow, ComponentRow, HiddenRow, create_row

_logger = get_logger(__name__)

OPTION_TYPES = ('option', 'select', 'object')
PROPERTY_TYPES = ('tags', 'assets', 'label')

OMITTED = 'omitted'
HIDDEN = 'hidden'
PROPERTY = 'property'
OPTION = 'option'
COMPONENT = 'component'

class FieldKind:
    """
    Classification of a field: kind of row, row type and remaining depth.
    """
    __slots__ = ('kind', 'type', 'depth')

    def __init__(self, kind, type=None, depth=None):
        self.kind = kind
        self.type = type
        self.depth = depth

    def __repr__(self):
        return f"<FieldKind {self.kind} {self.type} {self.depth}>"

    def __eq__(self, other):
        return isinstance(other, FieldKind) and (self.kind, self.type, self.depth) == (other.kind, other.type, other.depth)

class ScaffoldContext:
    """
    Collaborators of the scaffold components of one request.
    """
    def __init__(self, orm_service, translator=None, security=None, settings=None, url_for=None):
        self.orm_service = orm_service
        self.translator = translator
        self.security = security
        self.settings = settings
        self.url_for = url_for

    def translate(self, key, parameters=None):
        if self.translator is None:
            return key
        return self.translator.translate(key, parameters)

    def resolve_path(self, path):
        if self.settings is None:
            return path
        path = path.replace('%application%', self.settings.application_dir)
        return path.replace('%public%', self.settings.public_dir)

class OrmTagHandler:
    """
    Resolves tag names to entries of a tag model, creating the missing tags.
    """
    def __init__(self, model, vocabulary=None, locale=None):
        self.model = model
        self.meta = model.get_meta()
        self.title_field = self.meta.rec_name
        self.vocabulary = vocabulary
        self.locale = locale

    def get_tags(self, entries):
        return [str(entry.get_field(self.title_field) or '') for entry in entries if entry is not None]

    def process_tags(self, names):
        query = self.model.create_query(self.locale)
        query.set_fetch_unlocalized(True)
        if self.vocabulary and self.meta.has_field('vocabulary'):
            if str(self.vocabulary).isdigit():
                query.add_condition([('vocabulary', '=', int(self.vocabulary))])
            else:
                query.add_condition([('vocabulary.slug', '=', self.vocabulary)])

        existing = {}
        for entry in query.query():
            name = entry.get_field(self.title_field)
            if name:
                existing.setdefault(str(name).casefold(), entry)

        entries = []
        for name in names:
            entry = existing.get(name.casefold())
            if entry is None:
                entry = self.model.create_entry({self.title_field: name})
                if self.locale and self.meta.is_localized():
                    entry.locale = self.locale
                if self.vocabulary and str(self.vocabulary).isdigit() and self.meta.has_field('vocabulary'):
                    entry.set_field('vocabulary', self.model.get_relation_model('vocabulary').create_proxy(int(self.vocabulary)))
                existing[name.casefold()] = entry
            if entry not in entries:
                entries.append(entry)
        return entries

class ScaffoldComponent:
    """
    Form component for the entries of a model.
    """
    def __init__(self, context, model, config=None):
        self.context = context
        self.model = model
        self.meta = model.get_meta()
        self.config = config or ScaffoldConfig.for_model(self.meta, context.security)
        self.kinds = OrderedDict(
            (name, self.classify_field(name, field)) for name, field in self.meta.get_fields().items()
        )
        self.proxy = {
            name for name, kind in self.kinds.items()
            if kind.kind in (OPTION, HIDDEN) and self.meta.get_field(name).is_relation()
        }

    def __repr__(self):
        return f"<ScaffoldComponent {self.meta.name} depth={self.config.depth}>"

    def get_name(self):
        return 'form-' + self.meta.name.replace('.', '-').replace('_', '-').lower()

    def get_model(self):
        return self.model

    def get_meta(self):
        return self.meta

    def get_config(self):
        return self.config

    def get_kind(self, name):
        return self.kinds[name]

    def get_row_names(self):
        return [name for name, kind in self.kinds.items() if kind.kind != OMITTED]

    def classify_field(self, name, field):
        if self.config.is_omitted(name):
            return FieldKind(OMITTED)
        if self.config.is_hidden(name):
            return FieldKind(HIDDEN, 'hidden')

        type = field.get_option('scaffold.form.type')
        if type is None and field.get_type() == 'selection':
            type = 'select'
        is_option_type = type in OPTION_TYPES

        if type in PROPERTY_TYPES or (not is_option_type and not field.is_relation()):
            return FieldKind(PROPERTY, type or field.get_type())

        if not field.is_relation():
            return FieldKind(OPTION, type)

        depth = self.config.get_field_depth(name)
        if is_option_type or depth <= 0:
            return FieldKind(OPTION, type, depth)

        return FieldKind(COMPONENT, type, depth)

    def build_rows(self, data=None):
        """
        Creates the rows of this component.

        :param data: current values of the component, used to evaluate the
        conditions of the option rows
        :return: list of rows
        """
        rows = []
        for name, kind in self.kinds.items():
            if kind.kind == OMITTED:
                continue

            field = self.meta.get_field(name)
            if kind.kind == HIDDEN:
                row = HiddenRow(name)
            elif kind.kind == PROPERTY:
                row = self.create_property_row(name, field, kind)
            elif kind.kind == OPTION:
                row = self.create_option_row(name, field, kind, data)
            else:
                row = self.create_component_row(name, field, kind, data)

            _logger.debug(f"{self.meta.name}.{name}: {row.__class__.__name__} ({kind.kind}, depth {kind.depth})")
            rows.append(row)

        return rows

    def get_row_options(self, name, field):
        label, description = self.get_label(field)
        options = {
            'label': label,
            'description': description,
            'attributes': {},
            'readonly': field.readonly,
        }

        dependency = self.get_field_dependency(field)
        if dependency:
            options['attributes']['class'] = dependency

        return options

    def add_validation(self, name, options):
        constraint = self.model.get_validation_constraint()
        options['validators'] = constraint.get_validators(name)
        options['filters'] = constraint.get_filters(name)

    def create_property_row(self, name, field, kind):
        options = self.get_row_options(name, field)
        type = kind.type

        if type == 'boolean':
            options['attributes']['data-toggle-dependant'] = 'option-' + name
        elif type == 'float':
            type = 'number'
            options['attributes']['step'] = 'any'
        elif type == 'date':
            options['round'] = True
        elif type in ('file', 'image'):
            path = field.get_option('upload.path')
            if path:
                options['path'] = self.context.resolve_path(path)
        elif type == 'tags':
            options.update(self.get_tags_options(name, field))
        elif type == 'assets':
            options['model'] = self.model.get_relation_model(name)
            options['multiple'] = field._relation == HAS_MANY
            options['folder'] = field.get_option('assets.folder')
            options['locale'] = self.config.locale
        elif type == 'label':
            options['decorator'] = self.get_label_decorator(name, field)

        if type != 'label':
            self.add_validation(name, options)

        return create_row(type, name, options)

    def get_tags_options(self, name, field):
        relation_model = self.model.get_relation_model(name)
        title_field = relation_model.get_meta().rec_name
        vocabulary = field.get_option('taxonomy.vocabulary')

        url = None
        if self.context.url_for is not None:
            url = self.context.url_for('api.orm.list', model=relation_model.get_name())
            url += f'?filter[match][{title_field}]=%term%'
            if vocabulary:
                if str(vocabulary).isdigit():
                    url += f'&filter[exact][vocabulary]={vocabulary}'
                else:
                    url += f'&filter[exact][vocabulary.slug]={vocabulary}'

        return {
            'handler': OrmTagHandler(relation_model, vocabulary, self.config.locale),
            'autocomplete_url': url,
            'autocomplete_type': 'json',
            'max_items': field.size,
        }

    def get_label_decorator(self, name, field):
        decorator = field.get_option('scaffold.form.decorator')
        if decorator:
            if isinstance(decorator, str):
                decorator = import_string(decorator)
            return decorator() if isinstance(decorator, type) else decorator

        if field.is_relation():
            relation_meta = self.model.get_relation_model(name).get_meta()
            formatter = self.model.get_orm_manager().get_entry_formatter()
            return FormatDecorator(formatter, relation_meta.get_format(FORMAT_TITLE))

        return None

    def create_option_row(self, name, field, kind, data=None):
        options = self.get_row_options(name, field)
        options['options'] = self.context.orm_service.get_field_input_options(
            self.model, field, self.context.translator, data, self.config.locale,
        )
        options['attributes']['data-toggle-dependant'] = 'option-' + name
        self.add_validation(name, options)

        type = kind.type
        if field.is_relation():
            if type == 'object':
                type = None
            widget = field.get_option('scaffold.form.widget', type)
            multiple = field._relation == HAS_MANY
            type = 'option'
        else:
            widget = 'option'
            multiple = False

        if not multiple and widget != 'option':
            choices = OrderedDict([('', None)])
            choices.update(options['options'])
            options['options'] = choices

        options['multiple'] = multiple
        options['widget'] = widget

        return create_row(type or 'option', name, options)

    def create_component_row(self, name, field, kind, data=None):
        relation_model = self.model.get_relation_model(name)
        config = ScaffoldConfig.for_model(
            relation_model.get_meta(), self.context.security, depth=kind.depth - 1, locale=self.config.locale,
        )

        relation_meta = self.meta.get_relation_meta(name)
        if not relation_meta.is_has_many_and_belongs_to_many():
            foreign_key = relation_meta.get_foreign_key()
            if isinstance(foreign_key, str):
                config = config.omit(foreign_key)
            elif foreign_key:
                config = config.omit(*foreign_key)

        component = self.__class__(self.context, relation_model, config)
        options = self.get_row_options(name, field)
        if field.required:
            options['validators'] = self.model.get_validation_constraint().get_validators(name)

        if field._relation in (BELONGS_TO, HAS_ONE):
            value = (data or {}).get(name)
            return ComponentRow(name, component, options, component.parse_set_data(value) if value is not None else None)

        return CollectionRow(name, component, options, order=field.is_ordered())

    def parse_set_data(self, entry):
        """
        Reads the values of the included fields from an entry. Fields with an
        id-reference option row are reduced to primary keys.

        :return: dict with the field name as key, None without entry
        """
        if entry is None:
            return None

        data = {}
        for name, kind in self.kinds.items():
            if kind.kind == OMITTED:
                continue

            value = entry.get_field(name)
            if name in self.proxy:
                if isinstance(value, list):
                    value = [item.get_id() for item in value if item is not None]
                elif value is not None:
                    value = value.get_id()

            data[name] = value

        return data

    def parse_get_data(self, data, entry=None):
        """
        Writes the values of the included fields into an entry. Id-reference
        values are resolved to proxies of the related model. Missing values
        become an empty list for has-many fields, False for boolean property
        fields and None for the others.

        :param data: dict with the field name as key
        :param entry: entry to update, a new entry is created when not provided
        :return: the entry
        """
        if entry is None:
            entry = self.model.create_entry()
        if self.config.locale and self.meta.is_localized():
            entry.locale = self.config.locale

        for name, kind in self.kinds.items():
            # The primary key comes from the entry, never from submitted values
            if kind.kind == OMITTED or name == PRIMARY_KEY:
                continue

            field = self.meta.get_field(name)
            value = data.get(name)

            if value is None:
                if field._relation == HAS_MANY:
                    value = []
                elif not field.is_relation() and field.get_type() == 'boolean':
                    value = False

            if name in self.proxy:
                value = self.create_proxies(name, value)

            entry.set_field(name, value)

        return entry

    def create_proxies(self, name, value):
        relation_model = self.model.get_relation_model(name)
        locale = self.config.locale

        if isinstance(value, (list, tuple)):
            return [relation_model.create_proxy(item, locale) for item in value if item not in (None, '')]
        if value in (None, ''):
            return None
        return relation_model.create_proxy(value, locale)

    def get_label(self, field):
        """
        :return: tuple with the label and the description of the field
        """
        label = field.get_option('label.name')
        if label:
            label = self.context.translate(label)
        elif field.string:
            label = field.string
        else:
            label = ucfirst(field.name.replace('_', ' '))

        description = field.get_option('label.description')
        if description:
            description = self.context.translate(description)
        else:
            description = field.help

        return label, description

    def get_field_dependency(self, field):
        """
        CSS classes to show a row depending on the value of another row, eg
        type-image for 'option-type option-type-image'.
        """
        dependant = field.get_option('scaffold.form.dependant')
        if not dependant:
            return None

        if dependant.find('-') > 0:
            name, value = dependant.split('-', 1)
        else:
            name, value = dependant, '1'

        return f'option-{name} option-{name}-{value}'

    def get_tabs(self):
        """
        Rows grouped in the tabs of the scaffold.form.tabs model option.
        Rows without tab are added to the first tab.

        :return: ordered dict with the tab name as key
        """
        tabs = self.meta.get_option('scaffold.form.tabs')
        if not tabs:
            return OrderedDict()
        if isinstance(tabs, str):
            tabs = [tab.strip() for tab in tabs.split(',') if tab.strip()]

        result = OrderedDict()
        for tab in tabs:
            translation = self.meta.get_option(f'scaffold.form.tab.{tab}', f'tab.{tab}')
            result[tab] = {'translation': self.context.translate(translation), 'rows': []}

        first = next(iter(result))
        for name, kind in self.kinds.items():
            if kind.kind in (OMITTED, HIDDEN):
                continue
            tab = self.meta.get_field(name).get_option('scaffold.form.tab')
            result[tab if tab in result else first]['rows'].append(name)

        return result
