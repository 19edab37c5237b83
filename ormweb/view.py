import os

import jinja2

from .routing import url_for

TEMPLATE_PATH = os.path.join(os.path.dirname(__file__), 'templates')

class ViewEngine:
    """
    Renders the Jinja2 templates of the web layer. Addons can add template
    directories, they are searched before the default templates.
    """
    def __init__(self, paths=None):
        self.paths = list(paths or []) + [TEMPLATE_PATH]
        self.loader = jinja2.FileSystemLoader(self.paths)
        self.env_jinja = jinja2.Environment(
            loader=self.loader,
            autoescape=jinja2.select_autoescape(['html']),
        )
        self.env_jinja.globals['url_for'] = url_for

    def add_path(self, path):
        self.paths.insert(0, path)
        self.loader.searchpath = list(self.paths)

    def render(self, template_name, translator=None, **values):
        """
        :raises jinja2.TemplateNotFound: when the template does not exist
        """
        template = self.env_jinja.get_template(template_name)
        if translator is not None:
            values.setdefault('_', translator.translate)
            values.setdefault('locale', translator.get_locale())
        else:
            values.setdefault('_', lambda key, parameters=None: key)
        return template.render(**values)
