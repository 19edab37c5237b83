"""
Tables of the model browser: the registered models, the fields of a model
and its indexes.
"""
from markupsafe import Markup, escape

from ..fields import BELONGS_TO, HAS_ONE
from ..meta import PRIMARY_KEY
from ..registry import Registry
from .decorators import ActionDecorator
from .table import Decorator, StaticDecorator, Table

RELATION_TYPES = {
    BELONGS_TO: 'belongsTo',
    HAS_ONE: 'hasOne',
}

IMAGE_LOCALIZED = '/static/img/orm/localized.svg'
TRANSLATION_LOCALIZED = 'orm.label.localized'

def link(label, action, token, value):
    if not action:
        return escape(label)
    return Markup('<a href="{}">{}</a>').format(action.replace(token, value), label)

def translate_list(translator, single_key, multiple_key, items):
    """
    Translates a list of items with the key for one item (%model%) or the
    key for more items (%first% and %last%).
    """
    if not items:
        return Markup('')
    if len(items) == 1:
        text = translator.translate(single_key, {'model': items[0], 'field': items[0]})
    else:
        text = translator.translate(multiple_key, {'first': Markup(', ').join(items[:-1]), 'last': items[-1]})
    return Markup(text) + Markup('<br />')

class ModelDecorator(Decorator):
    """
    Name of the model with the models it relates to and the models relating
    to it without a link back.
    """
    def __init__(self, orm, translator, action=None):
        self.orm = orm
        self.translator = translator
        self.action = action

    def decorate(self, cell, row, row_number, remaining_values):
        model = cell.get_value()
        if model is None or not hasattr(model, 'get_meta'):
            return

        meta = model.get_meta()
        value = link(meta.name, self.action, '%model%', meta.name)
        info = self.get_relation_info(meta) + self.get_unlinked_models_info(meta)
        if info:
            value += Markup('<div class="info">{}</div>').format(info)

        cell.set_value(value)

    def get_relation_info(self, meta):
        relations = {}
        for field in meta.get_relations().values():
            name = field.comodel_name
            relations[name] = link(name, self.action, '%model%', name)

        return translate_list(self.translator, 'label.relation.with', 'label.relations.with', list(relations.values()))

    def get_unlinked_models_info(self, meta):
        unlinked = [link(name, self.action, '%model%', name) for name in meta.get_unlinked_models()]
        return translate_list(self.translator, 'label.unlinked.model', 'label.unlinked.models', unlinked)

class ModelActionDecorator(ActionDecorator):
    """
    Action on a model, %model% in the URL is replaced by the model name.
    """
    def decorate(self, cell, row, row_number, remaining_values):
        model = cell.get_value()
        if model is None or not hasattr(model, 'get_meta'):
            cell.set_value('')
            return

        url = self.url.replace('%model%', model.get_name())
        cell.add_class('action')
        cell.set_value(Markup('<a href="{}">{}</a>').format(url, self.label))

class ModelFieldDecorator(Decorator):
    """
    Name and type of a field. Relations show the related model, the link
    model and the foreign key.
    """
    def __init__(self, translator, model_action=None, field_action=None):
        self.translator = translator
        self.model_action = model_action
        self.field_action = field_action

    def decorate(self, cell, row, row_number, remaining_values):
        field = cell.get_value()
        if field is None or not hasattr(field, 'get_type'):
            return

        value = link(field.name, self.field_action, '%field%', field.name)

        if field.is_relation():
            info = self.get_relation_info(field)
        else:
            info = escape(self.translator.translate('label.field.type', {'type': field.get_type()})) + Markup('<br />')
            default = field.get_default()
            if default is not None:
                info += escape(f"{self.translator.translate('label.value.default')}: {default}")

        cell.set_value(value + Markup('<div class="info">{}</div>').format(info))

    def get_relation_info(self, field):
        relation_model = link(field.comodel_name, self.model_action, '%model%', field.comodel_name)
        link_model = getattr(field, 'relation', None)
        if link_model:
            link_model = link(link_model, self.model_action, '%model%', link_model)

        foreign_key = None
        model_cls = Registry.get(field.model_name)
        if model_cls is not None:
            foreign_key = model_cls._meta.get_relation_meta(field.name).get_foreign_key()
            if isinstance(foreign_key, list):
                foreign_key = ', '.join(foreign_key)

        parameters = {
            'type': RELATION_TYPES.get(field._relation, 'hasMany'),
            'model': relation_model,
            'link': link_model,
            'foreignKey': foreign_key and escape(foreign_key),
        }

        key = 'label.relation.type'
        if link_model:
            key += '.link'
        if foreign_key:
            key += '.fk'

        return Markup(self.translator.translate(key, parameters))

class ModelFieldLabelDecorator(Decorator):
    """
    Translated label of a field with its translation key.
    """
    def __init__(self, translator):
        self.translator = translator

    def decorate(self, cell, row, row_number, remaining_values):
        field = cell.get_value()
        if field is None or not hasattr(field, 'get_option'):
            return

        label = field.get_option('label.name')
        if not label:
            cell.set_value(field.string or '')
            return

        cell.set_value(Markup('{}<div class="info">{}</div>').format(self.translator.translate(label), label))

class ModelFieldFlagsDecorator(Decorator):
    """
    Shows an icon for localized fields.
    """
    def __init__(self, translator, image=IMAGE_LOCALIZED):
        self.translator = translator
        self.image = image
        self.html = None

    def decorate(self, cell, row, row_number, remaining_values):
        field = cell.get_value()
        if field is None or not hasattr(field, 'is_localized'):
            return

        if not field.is_localized():
            cell.set_value('')
            return

        if self.html is None:
            title = self.translator.translate(TRANSLATION_LOCALIZED)
            self.html = Markup('<img src="{}" title="{}" alt="{}" />').format(self.image, title, title)
        cell.set_value(self.html)

class IndexDecorator(Decorator):
    def __init__(self, translator, action=None):
        self.translator = translator
        self.action = action

    def decorate(self, cell, row, row_number, remaining_values):
        index = cell.get_value()
        if index is None or not hasattr(index, 'get_fields'):
            return

        name = index.get_name()
        fields = [escape(field) for field in index.get_fields()]
        info = translate_list(self.translator, 'label.index.field.in', 'label.index.fields.in', fields)
        cell.set_value(link(name, self.action, '%index%', name) + Markup('<div class="info">{}</div>').format(info))

class ModelsTable(Table):
    """
    The registered models, sorted by name.
    """
    def __init__(self, orm, translator, models, model_action=None, scaffold_action=None):
        super().__init__(sorted(models, key=lambda model: model.get_name()))
        self.set_has_search(True)
        self.add_decorator(ModelDecorator(orm, translator, model_action), StaticDecorator(translator.translate('orm.label.model')))
        if scaffold_action:
            self.add_decorator(ModelActionDecorator(translator.translate('button.scaffold'), scaffold_action))

    def get_values(self):
        values = self.values
        if self.search_query:
            query = self.search_query.casefold()
            values = [model for model in values if query in model.get_name().casefold()]

        self.count = len(values)
        return self.paginate(values)

class ModelFieldTable(Table):
    """
    The fields of a model, without its primary key.
    """
    def __init__(self, translator, meta, model_action=None, field_action=None):
        fields = [field for name, field in meta.get_fields().items() if name != PRIMARY_KEY]
        super().__init__(fields)
        self.add_decorator(ModelFieldDecorator(translator, model_action, field_action), StaticDecorator(translator.translate('orm.label.field')))
        self.add_decorator(ModelFieldLabelDecorator(translator), StaticDecorator(translator.translate('orm.label.label')))
        self.add_decorator(ModelFieldFlagsDecorator(translator))

class ModelIndexTable(Table):
    def __init__(self, translator, indexes, index_action=None):
        super().__init__(indexes)
        self.add_decorator(IndexDecorator(translator, index_action), StaticDecorator(translator.translate('orm.label.index')))
