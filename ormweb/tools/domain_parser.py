import re

from ..exceptions import OrmException

OPERATORS = ('=', '!=', '<>', '>', '<', '>=', '<=', 'in', 'not in', 'like', 'ilike', 'not like', 'not ilike')

class DomainParser:
    """
    Parses Polish Notation Domains.

        [('published', '=', True), '|', ('title', 'ilike', '%x%'), ('body', 'ilike', '%x%')]

    A domain is rendered into a pypika Criterion for the SQL view of a query
    and evaluated directly against entries for the in-memory store.
    """
    def parse_pypika(self, domain, table, param_builder):
        """
        Parse domain to Pypika Criterion.
        :param domain: List of polish notation tuples.
        :param table: Pypika Table object.
        :param param_builder: SQLParams instance.
        :return: Pypika Criterion (or None if empty)
        """
        if not domain:
            return None

        normalized = self._normalize(domain)
        return self._to_pypika(normalized, table, param_builder)

    def evaluate(self, domain, getter):
        """
        Evaluates a domain against one entry.
        :param getter: callable returning the value of a field path
        :return: bool
        """
        if not domain:
            return True

        stack = []
        for token in reversed(self._normalize(domain)):
            if token == '!':
                stack.append(not stack.pop())
            elif token == '&':
                op1 = stack.pop()
                op2 = stack.pop()
                stack.append(op1 and op2)
            elif token == '|':
                op1 = stack.pop()
                op2 = stack.pop()
                stack.append(op1 or op2)
            else:
                field_name, operator, value = self._leaf(token)
                stack.append(self._compare(getter(field_name), operator.lower(), value))

        if len(stack) != 1:
            raise OrmException(f"Invalid domain {domain}")
        return stack[0]

    def get_field_names(self, domain):
        return [self._leaf(token)[0] for token in domain if isinstance(token, (list, tuple))]

    def _leaf(self, token):
        if not isinstance(token, (list, tuple)) or len(token) != 3:
            raise OrmException(f"Invalid domain leaf {token!r}")
        field_name, operator, value = token
        if operator.lower() not in OPERATORS:
            raise OrmException(f"Unsupported domain operator {operator!r}")
        return field_name, operator, value

    def _normalize(self, domain):
        """
        Insert implicit '&' operators.
        """
        if not domain: return []

        result = []
        expected = 1

        for token in domain:
            if expected == 0:
                result.insert(0, '&')
                expected += 1

            result.append(token)

            if token in ('&', '|'):
                expected += 1
            elif token == '!':
                pass
            else:
                expected -= 1

        return result

    def _to_pypika(self, domain, table, param_builder):
        stack = []

        for token in reversed(domain):
            if token == '!':
                op = stack.pop()
                stack.append(op.negate())
            elif token == '&':
                op1 = stack.pop()
                op2 = stack.pop()
                stack.append(op1 & op2)
            elif token == '|':
                op1 = stack.pop()
                op2 = stack.pop()
                stack.append(op1 | op2)
            else:
                field_name, operator, value = self._leaf(token)
                operator = operator.lower()
                field = table[field_name]

                if (value is False or value is None) and operator in ('=', '!=', '<>'):
                    stack.append(field.isnull() if operator == '=' else field.notnull())
                elif operator in ('in', 'not in'):
                    values = list(value) if isinstance(value, (list, tuple, set)) else [value]
                    if not values:
                        # Empty IN is always false, empty NOT IN always true
                        stack.append(field != field if operator == 'in' else field == field)
                        continue
                    placeholders = param_builder.bind_many(values)
                    stack.append(field.isin(placeholders) if operator == 'in' else field.notin(placeholders))
                else:
                    parameter = param_builder.bind(value)
                    if operator == 'ilike':
                        stack.append(field.ilike(parameter))
                    elif operator == 'not ilike':
                        stack.append(field.not_ilike(parameter))
                    elif operator == 'like':
                        stack.append(field.like(parameter))
                    elif operator == 'not like':
                        stack.append(field.not_like(parameter))
                    elif operator == '>':
                        stack.append(field > parameter)
                    elif operator == '<':
                        stack.append(field < parameter)
                    elif operator == '>=':
                        stack.append(field >= parameter)
                    elif operator == '<=':
                        stack.append(field <= parameter)
                    elif operator in ('!=', '<>'):
                        stack.append(field != parameter)
                    else:
                        stack.append(field == parameter)

        if not stack:
            return None
        return stack[0]

    def _compare(self, actual, operator, expected):
        # Relations are compared on their ids, has-many values match when one item matches
        if isinstance(actual, list):
            if operator in ('!=', '<>', 'not in', 'not like', 'not ilike'):
                positive = {'!=': '=', '<>': '=', 'not in': 'in', 'not like': 'like', 'not ilike': 'ilike'}[operator]
                return not any(self._compare(item, positive, expected) for item in actual)
            if (expected is None or expected is False) and operator == '=':
                return not actual
            return any(self._compare(item, operator, expected) for item in actual)

        if operator == '=':
            if expected is None or expected is False:
                return actual is None or actual is False
            return actual == expected or _loose_equals(actual, expected)
        if operator in ('!=', '<>'):
            return not self._compare(actual, '=', expected)
        if operator in ('in', 'not in'):
            values = expected if isinstance(expected, (list, tuple, set)) else [expected]
            found = any(actual == value or _loose_equals(actual, value) for value in values)
            return found if operator == 'in' else not found
        if operator in ('like', 'ilike', 'not like', 'not ilike'):
            if actual is None:
                return operator.startswith('not')
            matched = like_to_regex(str(expected), 'ilike' in operator).match(str(actual)) is not None
            return not matched if operator.startswith('not') else matched

        if actual is None or expected is None:
            return False
        try:
            if operator == '>':
                return actual > expected
            if operator == '<':
                return actual < expected
            if operator == '>=':
                return actual >= expected
            if operator == '<=':
                return actual <= expected
        except TypeError:
            return False
        return False


def like_to_regex(pattern, case_insensitive=False):
    """
    Translates a SQL LIKE pattern (% and _ wildcards) into a compiled regex.
    """
    regex = ''
    for char in pattern:
        if char == '%':
            regex += '.*'
        elif char == '_':
            regex += '.'
        else:
            regex += re.escape(char)
    flags = re.DOTALL | (re.IGNORECASE if case_insensitive else 0)
    return re.compile(f'^{regex}$', flags)


def _loose_equals(actual, expected):
    # Submitted values arrive as strings, stored ids as integers
    if isinstance(actual, bool) or isinstance(expected, bool):
        return False
    if isinstance(actual, (int, float)) and isinstance(expected, str):
        return str(actual) == expected
    if isinstance(expected, (int, float)) and isinstance(actual, str):
        return actual == str(expected)
    return False
