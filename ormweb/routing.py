import json
import re
from http.cookies import SimpleCookie
from datetime import datetime, date
from urllib.parse import quote, urlencode

def json_default(obj):
    """JSON serializer for objects not serializable by default json code"""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")

VARIABLE_PATTERN = re.compile(r'<(?:\b(int|string):)?(\w+)>')

# Global Routing Map
# Path -> {func, permission, name, regex, is_dynamic}
ROUTES = {}

# Route name -> path, also for routes declared outside of @route
URLS = {}

def route(route_path, name=None, permission=None, methods=('GET', 'POST')):
    """
    Decorator to register a route.
    Supports variables like /path/<model>/<int:id>

    :param name: name to generate the URL with url_for
    :param permission: permission needed to call the route
    """
    def decorator(func):
        def repl(match):
            type_ = match.group(1)
            variable = match.group(2)
            if type_ == 'int':
                return f'(?P<{variable}>\\d+)'
            return f'(?P<{variable}>[^/]+)'

        pattern = VARIABLE_PATTERN.sub(repl, route_path)

        ROUTES[route_path] = {
            'func': func,
            'permission': permission,
            'name': name,
            'methods': list(methods),
            'regex': re.compile(f"^{pattern}$"),
            'is_dynamic': '<' in route_path
        }
        if name:
            URLS[name] = route_path
        return func
    return decorator

def register_url(name, path):
    URLS[name] = path

def url_for(name, **params):
    """
    Generates the URL of a named route. Variables of the path are replaced,
    the other parameters are added to the query string.

    :raises KeyError: when there is no route with the name
    """
    path = URLS[name]
    query = {}

    def repl(match):
        variable = match.group(2)
        if variable not in params:
            raise KeyError(f"Missing parameter '{variable}' for route '{name}'")
        return quote(str(params[variable]), safe='')

    url = VARIABLE_PATTERN.sub(repl, path)
    used = set(VARIABLE_PATTERN.findall(path))
    used = {variable for _type, variable in used}
    for key, value in params.items():
        if key not in used and value is not None:
            query[key] = value

    if query:
        url += '?' + urlencode(query)
    return url


class Response:
    """
    Standard Response Object used by Controllers.
    Adapters convert this to framework-specific responses (e.g. FastAPI).
    """
    def __init__(self, body=None, status=200, headers=None, content_type='text/html'):
        self.body = body if body is not None else ""
        self.status = status
        self.headers = headers or {}
        self.cookies = SimpleCookie()
        self.content_type = content_type

    def set_cookie(self, key, value, httponly=True, path='/'):
        self.cookies[key] = value
        self.cookies[key]['path'] = path
        if httponly:
            self.cookies[key]['httponly'] = True

    def set_status(self, status):
        self.status = status

    def set_redirect(self, url, status=302):
        self.status = status
        self.headers['Location'] = url

    def will_redirect(self):
        return 'Location' in self.headers

    def set_download(self, content, file_name, content_type='application/octet-stream'):
        self.body = content
        self.content_type = content_type
        self.headers['Content-Disposition'] = f'attachment; filename="{file_name}"'

    def render(self):
        if isinstance(self.body, dict) or isinstance(self.body, list):
            self.body = json.dumps(self.body, default=json_default)
            self.content_type = 'application/json'

        if isinstance(self.body, bytes):
            return self.body

        if isinstance(self.body, str):
            data = self.body.encode('utf-8')
        else:
            data = str(self.body).encode('utf-8')

        return data
