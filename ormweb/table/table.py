import math
from collections import OrderedDict

from markupsafe import Markup, escape

from ..exceptions import OrmException
from ..logger import get_logger

_logger = get_logger(__name__)

ORDER_ASC = 'ASC'
ORDER_DESC = 'DESC'

class Cell:
    """
    Cell of a table row. The value starts as the data of the row and is
    replaced by the decorators of the column.
    """
    def __init__(self, value=None):
        self.value = value
        self.classes = []

    def __repr__(self):
        return f"<Cell {self.value!r}>"

    def get_value(self):
        return self.value

    def set_value(self, value):
        self.value = value

    def add_class(self, name):
        if name not in self.classes:
            self.classes.append(name)

    def render(self):
        if self.value is None:
            return Markup('')
        return escape(self.value)

class TableRow:
    def __init__(self, data):
        self.data = data
        self.cells = []
        self.classes = []

    def __repr__(self):
        return f"<TableRow {self.data!r}>"

    def get_data(self):
        return self.data

    def add_cell(self, cell):
        self.cells.append(cell)

    def add_class(self, name):
        if name not in self.classes:
            self.classes.append(name)

class Decorator:
    """
    Decorates a cell with the data of its row.
    """
    def decorate(self, cell, row, row_number, remaining_values):
        raise NotImplementedError()

class ValueDecorator:
    """
    Decorates a plain value, eg a property of an entry.
    """
    def decorate(self, value):
        raise NotImplementedError()

class StaticDecorator(ValueDecorator):
    """
    Header decorator with a fixed label.
    """
    def __init__(self, value):
        self.value = value

    def decorate(self, value):
        return self.value

class Column:
    def __init__(self, decorators, header_decorator=None):
        self.decorators = decorators
        self.header_decorator = header_decorator

    def decorate(self, cell, row, row_number, remaining_values):
        for decorator in self.decorators:
            if isinstance(decorator, ValueDecorator):
                cell.set_value(decorator.decorate(cell.get_value()))
            else:
                decorator.decorate(cell, row, row_number, remaining_values)

class OrderMethod:
    """
    Named order with a statement per direction, eg ('{title} ASC', '{title} DESC').
    """
    def __init__(self, label, ascending, descending):
        self.label = label
        self.ascending = ascending
        self.descending = descending

    def __repr__(self):
        return f"<OrderMethod {self.ascending} / {self.descending}>"

    def get_statement(self, direction):
        return self.descending if direction == ORDER_DESC else self.ascending

class TableAction:
    def __init__(self, label, callback, confirmation=None):
        self.label = label
        self.callback = callback
        self.confirmation = confirmation

class Table:
    """
    Table of a list of values with decorated columns, actions on the
    selected rows, order methods, search and pagination.
    """
    def __init__(self, values=None):
        self.values = list(values or [])
        self.columns = []
        self.actions = OrderedDict()
        self.order_methods = OrderedDict()
        self.order_method = None
        self.order_direction = ORDER_ASC
        self.has_search = False
        self.search_query = None
        self.page = 1
        self.pages = 1
        self.rows_per_page = None
        self.count = None
        self.pagination_options = []
        self.rows = None

    def __repr__(self):
        return f"<{self.__class__.__name__} {len(self.columns)} columns>"

    def add_decorator(self, decorator, header_decorator=None):
        decorators = decorator if isinstance(decorator, (list, tuple)) else [decorator]
        self.columns.append(Column(list(decorators), header_decorator))
        self.rows = None
        return self

    def add_action(self, name, label, callback, confirmation=None):
        self.actions[name] = TableAction(label, callback, confirmation)
        return self

    def get_actions(self):
        return self.actions

    def has_actions(self):
        return bool(self.actions)

    def process_action(self, name, ids):
        """
        Invokes the callback of an action with the selected ids.

        :raises OrmException: when the action does not exist
        """
        action = self.actions.get(name)
        if action is None:
            raise OrmException(f"Action '{name}' is not available")
        _logger.debug(f"Table action {name} on {ids}")
        return action.callback(ids)

    def add_order_method(self, name, ascending, descending=None, label=None):
        if not ascending or not descending:
            raise OrmException(f"Order method '{name}' needs an ascending and a descending statement")
        self.order_methods[name] = OrderMethod(label or name, ascending, descending)
        return self

    def get_order_methods(self):
        return self.order_methods

    def has_order_methods(self):
        return bool(self.order_methods)

    def set_order_method(self, name):
        if name is not None and name not in self.order_methods:
            raise OrmException(f"Order method '{name}' is not available")
        self.order_method = name
        self.rows = None

    def get_order_method(self):
        return self.order_method

    def set_order_direction(self, direction):
        direction = (direction or ORDER_ASC).upper()
        if direction not in (ORDER_ASC, ORDER_DESC):
            raise OrmException(f"Invalid order direction '{direction}'")
        self.order_direction = direction
        self.rows = None

    def get_order_direction(self):
        return self.order_direction

    def set_has_search(self, flag):
        self.has_search = flag

    def set_search_query(self, query):
        self.search_query = query or None
        self.rows = None

    def get_search_query(self):
        return self.search_query

    def set_pagination_options(self, options):
        self.pagination_options = list(options)

    def get_pagination_options(self):
        return self.pagination_options

    def set_page(self, page):
        self.page = max(int(page or 1), 1)
        self.rows = None

    def get_page(self):
        return self.page

    def set_rows_per_page(self, rows):
        self.rows_per_page = int(rows) if rows else None
        self.rows = None

    def get_rows_per_page(self):
        return self.rows_per_page

    def get_pages(self):
        self.get_rows()
        return self.pages

    def count_rows(self):
        self.get_rows()
        return self.count

    def get_rows(self):
        if self.rows is None:
            self.rows = self.build_rows(self.get_values())
        return self.rows

    def get_values(self):
        """
        Values of the current page after search and order.
        """
        values = self.values
        if self.search_query:
            query = self.search_query.casefold()
            values = [value for value in values if query in str(value).casefold()]

        self.count = len(values)
        return self.paginate(values)

    def paginate(self, values):
        if not self.rows_per_page:
            self.pages = 1
            return values

        self.pages = max(math.ceil(self.count / self.rows_per_page), 1)
        if self.page > self.pages:
            self.page = 1

        offset = (self.page - 1) * self.rows_per_page
        return values[offset:offset + self.rows_per_page]

    def build_rows(self, values):
        rows = []
        remaining = len(values)
        for row_number, value in enumerate(values, start=1):
            remaining -= 1
            row = TableRow(value)
            for column in self.columns:
                cell = Cell(value)
                column.decorate(cell, row, row_number, remaining)
                row.add_cell(cell)
            rows.append(row)
        return rows

    def get_header(self):
        header = []
        for column in self.columns:
            cell = Cell()
            if column.header_decorator is not None:
                if isinstance(column.header_decorator, ValueDecorator):
                    cell.set_value(column.header_decorator.decorate(None))
                else:
                    column.header_decorator.decorate(cell, None, 0, 0)
            header.append(cell)
        return header

    def get_view(self):
        rows = self.get_rows()
        return {
            'header': self.get_header(),
            'rows': rows,
            'actions': self.actions,
            'order_methods': self.order_methods,
            'order_method': self.order_method,
            'order_direction': self.order_direction,
            'has_search': self.has_search,
            'search_query': self.search_query or '',
            'page': self.page,
            'pages': self.pages,
            'rows_per_page': self.rows_per_page,
            'pagination_options': self.pagination_options,
            'count': self.count,
        }
