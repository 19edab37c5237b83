from .fields import Selection
from .format import FORMAT_TITLE
from .orm import Model

class OrmService:
    """
    Helpers on top of the ORM for the web layer.
    """
    def __init__(self, orm):
        self.orm = orm

    def get_field_input_options(self, model, field, translator=None, data=None, locale=None):
        """
        Gets the options of a select or option row.

        For a relation field, these are the related entries keyed by id and
        labelled through the title format of the related model. The
        scaffold.form.condition option is a domain expression evaluated with
        the values of the sibling fields, eg:

            [('author', '=', author)] if author else []

        :return: dict with the value as key and the label as value
        """
        if not field.is_relation():
            if isinstance(field, Selection):
                options = field.get_selection()
            else:
                options = list((field.get_option('scaffold.form.options') or {}).items())
            return {key: translator.translate(label) if translator else label for key, label in options}

        relation_model = model.get_relation_model(field.name)
        relation_meta = relation_model.get_meta()

        query = relation_model.create_query(locale)
        query.set_fetch_unlocalized(True)

        condition = field.get_option('scaffold.form.condition')
        if condition:
            query.add_condition(condition, self.get_condition_variables(model, data))

        order_field = relation_meta.get_option('order.field')
        if order_field:
            query.add_order_by(f"{order_field} {relation_meta.get_option('order.direction', 'ASC')}")
        elif relation_meta.rec_name in relation_meta.get_properties():
            query.add_order_by(f"{relation_meta.rec_name} ASC")

        formatter = self.orm.get_entry_formatter()
        title_format = relation_meta.get_format(FORMAT_TITLE)

        return {entry.get_id(): formatter.format_entry(entry, title_format) for entry in query.query()}

    def get_condition_variables(self, model, data):
        variables = {name: None for name in model.get_meta().get_fields()}
        for name, value in (data or {}).items():
            if isinstance(value, Model):
                value = value.get_id()
            elif isinstance(value, list):
                value = [item.get_id() if isinstance(item, Model) else item for item in value]
            variables[name] = value
        return variables
