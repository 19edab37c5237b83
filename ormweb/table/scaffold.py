from ..exceptions import OrmException
from .model import ModelTable
from .table import ORDER_ASC, ORDER_DESC

TRUE_OPTIONS = (True, 1, '1', 'true', 'yes')

class ScaffoldTable(ModelTable):
    """
    Table of a scaffold. The searchable fields are the fields with the
    scaffold.search option, the order methods come from the scaffold.order
    option of the property fields:

        title = Char(options={'scaffold.order': True})
        date = Date(options={'scaffold.order': {'ASC': '{date} ASC, {id} ASC', 'DESC': '{date} DESC, {id} DESC'}})

    The initial order is taken from the scaffold.query.order model option.
    Entry classes can implement an apply_scaffold_search(query, search_query)
    classmethod to replace the default search.
    """
    def __init__(self, model, translator=None, locale=None, search=True, order=True):
        super().__init__(model, locale)
        self.translator = translator
        self.fetch_unlocalized = True

        if search:
            self.set_search_fields(
                name for name, field in self.meta.get_fields().items()
                if field.get_option('scaffold.search') in TRUE_OPTIONS
            )
            entry_class = self.meta.get_entry_class()
            if hasattr(entry_class, 'apply_scaffold_search'):
                self.set_has_search(True)

        if order:
            for name, field in self.meta.get_properties().items():
                self.add_field_order_method(name, field)
            initial_order = self.meta.get_option('scaffold.query.order')
            if initial_order:
                self.set_initial_order(initial_order)

        condition = self.meta.get_option('scaffold.condition')
        if condition:
            self.add_condition(condition, {'locale': locale})

    def add_field_order_method(self, name, field):
        order = field.get_option('scaffold.order')
        if order in (None, False, 0, '0', 'false', ''):
            return

        if isinstance(order, dict):
            if not order.get(ORDER_ASC) or not order.get(ORDER_DESC):
                raise OrmException(f"Invalid scaffold.order option for {self.meta.name}.{name}: provide an ASC and a DESC statement")
            ascending, descending = order[ORDER_ASC], order[ORDER_DESC]
        elif order in TRUE_OPTIONS:
            ascending, descending = f'{{{name}}} ASC', f'{{{name}}} DESC'
        else:
            raise OrmException(f"Invalid scaffold.order option for {self.meta.name}.{name}")

        self.add_order_method(name, ascending, descending, label=self.get_field_label(name, field))

    def get_field_label(self, name, field):
        label = field.get_option('label.name')
        if label and self.translator is not None:
            return self.translator.translate(label)
        return label or field.string or name

    def apply_search(self, query):
        if not self.search_query:
            return

        entry_class = self.meta.get_entry_class()
        if hasattr(entry_class, 'apply_scaffold_search'):
            entry_class.apply_scaffold_search(query, self.search_query)
            return

        super().apply_search(query)

    def create_query(self):
        query = super().create_query()
        query.set_will_add_is_localized_order(True)
        return query
