import os
import sys
import re
import inspect
import importlib
from dotenv import load_dotenv
load_dotenv()
from fastapi import FastAPI, Request, Response, Depends
from fastapi.responses import JSONResponse, HTMLResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import uvicorn

from .api.router import api_router, get_env
from .config import settings as default_settings
from .env import Environment
from .exceptions import UnauthorizedException
from .form.builder import parse_nested
from .logger import get_logger
from .module_graph import ModuleGraph
from .orm import OrmManager
from .routing import ROUTES, Response as WebResponse
from .security import SecurityManager
from .session import Session, get_session
from .tools.csv_loader import CsvLoader
from .tools.translate import I18n
from .view import ViewEngine

# Registers the routes of the web layer
from .controllers import main  # noqa: F401

_logger = get_logger(__name__)

STATIC_PATH = os.path.join(os.path.dirname(__file__), 'static')

# --- Module Loading Logic ---
def load_modules(addons_path):
    """
    Imports the addons in dependency order.
    :return: list of the loaded modules, as returned by ModuleGraph
    """
    graph = ModuleGraph(addons_path)
    graph.scan()
    ordered_addons = graph.topological_sort()
    if not ordered_addons:
        return []

    _logger.info(f"Loading Addons in Order: {ordered_addons}")
    parent, package = os.path.split(os.path.abspath(addons_path))
    if parent not in sys.path:
        sys.path.append(parent)

    modules = []
    for item in ordered_addons:
        importlib.import_module(f"{package}.{item}")
        _logger.info(f"Loaded addon: {item}")
        modules.append(dict(graph.get_module(item), name=item))
    return modules

def load_demo_data(orm, modules):
    loader = CsvLoader(orm)
    for module in modules:
        for file_name in module['manifest'].get('demo', []):
            loader.load_file(os.path.join(module['path'], file_name))


# Adapter for the web Request
class WebRequest:
    def __init__(self, request: Request, session: Session, params: dict):
        self._request = request
        self.session = session
        self.params = params
        self.method = request.method
        self.json = {}
        self.body = {}
        self.query_params = dict(request.query_params)
        self.path = request.url.path
        self.url = self.path + ('?' + request.url.query if request.url.query else '')

    async def load_body(self):
        if self.method not in ("POST", "PUT", "PATCH"):
            return

        content_type = self._request.headers.get('content-type', '')
        if 'application/json' in content_type:
            try:
                self.json = await self._request.json()
            except ValueError:
                self.json = {}
            self.body = self.json if isinstance(self.json, dict) else {}
        else:
            form = await self._request.form()
            self.body = parse_nested(form.multi_items())


def convert_route_path(path):
    # <int:id> -> {id:int}
    # <string:name> -> {name}
    # <id> -> {id}
    new_path = re.sub(r'<int:(\w+)>', r'{\1:int}', path)
    new_path = re.sub(r'<string:(\w+)>', r'{\1}', new_path)
    new_path = re.sub(r'<(\w+)>', r'{\1}', new_path)
    return new_path

def convert_response(web_response, session):
    final_response = Response(content=web_response.render(), status_code=web_response.status, media_type=web_response.content_type)

    for k, v in web_response.headers.items():
        final_response.headers[k] = v
    for k, v in web_response.cookies.items():
        final_response.set_cookie(key=k, value=v.value, httponly=bool(v['httponly']), path=v['path'])

    set_session_cookie(final_response, session)
    return final_response

def set_session_cookie(response, session):
    # samesite='lax' for localhost dev, secure when served over HTTPS
    is_secure = os.getenv('SESSION_SECURE', 'False').lower() == 'true'
    response.set_cookie('session_id', session.sid, httponly=True, samesite='lax', secure=is_secure)

def make_handler(func, permission):
    async def handler(request: Request, session: Session = Depends(get_session), env: Environment = Depends(get_env)):
        settings = env.settings
        try:
            if permission and not env.security.is_permission_granted(permission):
                raise UnauthorizedException(permission)

            web_request = WebRequest(request, session, dict(request.path_params))
            await web_request.load_body()

            if inspect.iscoroutinefunction(func):
                web_response = await func(web_request, env)
            else:
                web_response = func(web_request, env)

            if isinstance(web_response, WebResponse):
                return convert_response(web_response, session)
            elif isinstance(web_response, (dict, list)):
                return JSONResponse(content=web_response)
            else:
                return HTMLResponse(content=str(web_response))

        except UnauthorizedException as e:
            _logger.warning(f"Unauthorized request on {request.url.path}: {e}")
            response = JSONResponse(status_code=403, content={"error": "Forbidden"})
            set_session_cookie(response, session)
            return response
        except Exception as e:
            _logger.exception(f"Error on {request.url.path}: {e}")
            # Hide details in Production
            error_msg = str(e) if settings.is_dev else "Internal Server Error"
            response = JSONResponse(status_code=500, content={"error": error_msg})
            set_session_cookie(response, session)
            return response
        finally:
            # Messages added before a failure are shown on the next page
            session.save()
    return handler

def create_app(orm=None, security=None, settings=None, addons=True):
    """
    Creates the web application.

    :param orm: OrmManager, a new in-memory one when omitted
    :param security: SecurityManager, granted the configured permissions when omitted
    :param addons: False to skip the addons of the settings
    """
    settings = settings or default_settings
    modules = load_modules(settings.addons_path) if addons else []

    orm = orm if orm is not None else OrmManager(default_locale=settings.default_locale)
    security = security if security is not None else SecurityManager(settings.permissions)

    i18n = I18n(settings.locales, settings.default_locale)
    views = ViewEngine()
    for module in modules:
        i18n_path = os.path.join(module['path'], 'i18n')
        if os.path.isdir(i18n_path):
            i18n.add_path(i18n_path)
        templates_path = os.path.join(module['path'], 'templates')
        if os.path.isdir(templates_path):
            views.add_path(templates_path)

    if settings.demo_data:
        load_demo_data(orm, modules)

    app = FastAPI()
    app.state.orm = orm
    app.state.security = security
    app.state.settings = settings
    app.state.i18n = i18n
    app.state.views = views

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router)

    for path, info in ROUTES.items():
        app.add_api_route(convert_route_path(path), make_handler(info['func'], info['permission']), methods=info['methods'], name=info['name'])

    # Pattern: /static/<file_path> and /<module>/static/<file_path>
    if os.path.isdir(STATIC_PATH):
        app.mount("/static", StaticFiles(directory=STATIC_PATH), name="static")
    for module in modules:
        mod_static = os.path.join(module['path'], 'static')
        if os.path.isdir(mod_static):
            app.mount(f"/{module['name']}/static", StaticFiles(directory=mod_static), name=f"{module['name']}_static")

    return app

if __name__ == '__main__':
    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv('PORT', '8000')))
