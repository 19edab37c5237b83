import math

from ..logger import get_logger
from .table import Table

_logger = get_logger(__name__)

class ModelTable(Table):
    """
    Table of the entries of a model. Search, order and pagination are
    applied on a query of the model.
    """
    def __init__(self, model, locale=None):
        super().__init__()
        self.model = model
        self.meta = model.get_meta()
        self.locale = locale
        self.conditions = []
        self.initial_order = None
        self.search_fields = []
        self.fetch_unlocalized = False

    def get_model(self):
        return self.model

    def get_locale(self):
        return self.locale

    def add_condition(self, domain, variables=None):
        self.conditions.append((domain, variables))
        self.rows = None
        return self

    def set_search_fields(self, fields):
        self.search_fields = list(fields)
        self.set_has_search(bool(self.search_fields))

    def get_search_fields(self):
        return self.search_fields

    def set_initial_order(self, statement):
        self.initial_order = statement

    def create_query(self):
        query = self.model.create_query(self.locale)
        query.set_fetch_unlocalized(self.fetch_unlocalized)
        for domain, variables in self.conditions:
            query.add_condition(domain, variables)
        return query

    def get_query(self, paginate=True):
        """
        Query with the conditions, search and order of this table.
        The total count is updated when paginating.
        """
        query = self.create_query()
        self.apply_search(query)
        self.apply_order(query)
        if paginate:
            self.apply_pagination(query)
        return query

    def apply_search(self, query):
        if not self.search_query or not self.search_fields:
            return

        leaves = [(field_name, 'ilike', f'%{self.search_query}%') for field_name in self.search_fields]
        query.add_condition(['|'] * (len(leaves) - 1) + leaves)

    def apply_order(self, query):
        if self.order_method:
            query.add_order_by(self.order_methods[self.order_method].get_statement(self.order_direction))
        elif self.initial_order:
            query.add_order_by(self.initial_order)

    def apply_pagination(self, query):
        self.count = query.count()
        if not self.rows_per_page:
            self.pages = 1
            return

        self.pages = max(math.ceil(self.count / self.rows_per_page), 1)
        if self.page > self.pages:
            self.page = 1

        query.set_limit(self.rows_per_page, (self.page - 1) * self.rows_per_page)

    def get_values(self):
        return self.get_query().query()

    def get_export_entries(self):
        """
        All entries matching the search and order of this table, without pagination.
        """
        entries = self.get_query(paginate=False).query()
        _logger.debug(f"Export of {len(entries)} entries of {self.meta.name}")
        return entries
