from ..exceptions import UnauthorizedException
from ..routing import Response, url_for

class Controller:
    """
    Base of the controllers. An action sets the view or the redirect on the
    response of the controller.
    """
    def __init__(self, request, env):
        self.request = request
        self.env = env
        self.response = Response()

    def get_translator(self):
        return self.env.translator

    def translate(self, key, parameters=None):
        return self.get_translator().translate(key, parameters)

    def get_url(self, name, **params):
        return url_for(name, **params)

    def get_referer(self, default=None):
        return self.request.query_params.get('referer') or default

    def get_content_locale(self):
        locale = self.request.session.get_content_locale()
        if locale and self.env.i18n.has_locale(locale):
            return locale
        return self.env.i18n.default_locale

    def set_content_locale(self, locale):
        """
        :raises LocaleNotFound: when the locale is not available
        """
        locale = self.env.i18n.get_locale(locale).get_code()
        self.request.session.set_content_locale(locale)
        self.env.context['lang'] = locale
        return locale

    def is_permission_granted(self, permission):
        if self.env.security is None:
            return True
        return self.env.security.is_permission_granted(permission)

    def check_permission(self, permission):
        if not self.is_permission_granted(permission):
            raise UnauthorizedException(permission)

    def add_message(self, type, key, parameters=None):
        self.request.session.add_message(type, self.translate(key, parameters))

    def add_success(self, key, parameters=None):
        self.add_message('success', key, parameters)

    def add_error(self, key, parameters=None):
        self.add_message('error', key, parameters)

    def add_warning(self, key, parameters=None):
        self.add_message('warning', key, parameters)

    def add_information(self, key, parameters=None):
        self.add_message('information', key, parameters)

    def set_template_view(self, template, **values):
        values.setdefault('messages', self.request.session.pop_messages())
        values.setdefault('request', self.request)
        values.setdefault('app_locales', self.env.i18n.get_locale_code_list())
        self.response.body = self.env.views.render(template, self.get_translator(), **values)
        self.response.content_type = 'text/html'

    def set_not_found(self):
        self.response.set_status(404)
        self.response.body = {'error': 'Not Found'}

    def set_download_view(self, content, file_name, content_type):
        self.response.set_download(content, file_name, content_type)
