import logging
import re

from pypika import Query, Order

from .exceptions import OrmException
from .logger import get_logger
from .meta import PRIMARY_KEY
from .tools.domain_parser import DomainParser
from .tools.safe_eval import safe_eval
from .tools.sql import SQLParams, model_table

_logger = get_logger(__name__)

ORDER_PATTERN = re.compile(r'^\{?([\w.]+)\}?(?:\s+(\w+))?$')

class ModelQuery:
    """
    Query on the entries of one model.

    Conditions are Polish notation domains and are combined with AND. The
    same query renders to parameterised SQL through get_sql().
    """
    def __init__(self, model, locale=None):
        self.model = model
        self.meta = model.get_meta()
        self.locale = locale or model.get_orm_manager().get_locale()
        self.conditions = []
        self.orders = []
        self.limit = None
        self.offset = 0
        self.fetch_unlocalized = False
        self.will_add_is_localized_order = False
        self.parser = DomainParser()

    def __repr__(self):
        return f"<ModelQuery {self.meta.name} {self.conditions} {self.orders}>"

    def get_locale(self):
        return self.locale

    def add_condition(self, domain, variables=None):
        """
        Adds a domain condition. A string is evaluated into a domain first,
        with the provided variables available to the expression.
        """
        if isinstance(domain, str):
            domain = safe_eval(domain, variables or {})
        if not domain:
            return self
        domain = list(domain)
        for field_name in self.parser.get_field_names(domain):
            self.meta.get_field(field_name.split('.', 1)[0])
        self.conditions.append(domain)
        return self

    def add_order_by(self, statement):
        """
        Adds order statements like 'title ASC, {published_on} DESC'.
        """
        for part in statement.split(','):
            part = part.strip()
            if not part:
                continue
            match = ORDER_PATTERN.match(part)
            if not match:
                raise OrmException(f"Invalid order statement '{part}'")
            field_name = match.group(1)
            direction = (match.group(2) or 'ASC').upper()
            if direction not in ('ASC', 'DESC'):
                raise OrmException(f"Invalid order direction in '{part}'")
            self.meta.get_field(field_name.split('.', 1)[0])
            self.orders.append((field_name, direction))
        return self

    def set_limit(self, limit, offset=0):
        self.limit = limit
        self.offset = offset or 0
        return self

    def set_fetch_unlocalized(self, flag):
        self.fetch_unlocalized = flag
        return self

    def set_will_add_is_localized_order(self, flag):
        self.will_add_is_localized_order = flag
        return self

    def get_sql(self):
        """
        Renders the query as SQL with $n placeholders.
        :return: (sql, params)
        """
        table = model_table(self.meta.name)
        params = SQLParams()
        query = Query.from_(table).select('*')

        for domain in self.conditions:
            criterion = self.parser.parse_pypika(domain, table, params)
            if criterion is not None:
                query = query.where(criterion)

        for field_name, direction in self.orders:
            query = query.orderby(table[field_name], order=Order.desc if direction == 'DESC' else Order.asc)

        if self.limit:
            query = query.limit(self.limit).offset(self.offset)

        return query.get_sql(), params.get_params()

    def count(self):
        return len(self._filter())

    def query(self):
        entries = self._sort(self._filter())
        if self.limit:
            entries = entries[self.offset:self.offset + self.limit]
        elif self.offset:
            entries = entries[self.offset:]

        if _logger.isEnabledFor(logging.DEBUG):
            sql, params = self.get_sql()
            _logger.debug(f"Query {self.meta.name}: {sql} {params} -> {len(entries)} entries")

        return entries

    def query_first(self):
        limit, offset = self.limit, self.offset
        self.set_limit(1, offset)
        try:
            entries = self.query()
        finally:
            self.set_limit(limit, offset)
        return entries[0] if entries else None

    def _filter(self):
        entries = self.model.get_entries(self.locale, self.fetch_unlocalized)
        for domain in self.conditions:
            entries = [entry for entry in entries if self.parser.evaluate(domain, lambda path, entry=entry: resolve_path(entry, path))]
        return entries

    def _sort(self, entries):
        entries = sorted(entries, key=lambda entry: entry.id or 0)
        if self.will_add_is_localized_order and self.meta.is_localized():
            entries.sort(key=lambda entry: entry.data_locale != self.locale)
        for field_name, direction in reversed(self.orders):
            entries.sort(key=lambda entry: _sort_key(resolve_path(entry, field_name)), reverse=direction == 'DESC')
        return entries


def resolve_path(entry, path):
    """
    Resolves a dotted field path on an entry. Related entries are reduced to
    their ids, has-many values to lists.
    """
    values = [entry]
    is_list = False
    for name in path.split('.'):
        resolved = []
        for value in values:
            if value is None:
                continue
            field_value = value.get_field(name)
            if isinstance(field_value, list):
                is_list = True
                resolved.extend(field_value)
            else:
                resolved.append(field_value)
        values = resolved

    values = [getattr(value, PRIMARY_KEY) if hasattr(value, '_meta') else value for value in values]
    if is_list:
        return values
    return values[0] if values else None


def _sort_key(value):
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return (0, '')
    if isinstance(value, str):
        return (1, value.casefold())
    return (1, value)
