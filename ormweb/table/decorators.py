from markupsafe import Markup, escape

from ..format import FORMAT_IMAGE, FORMAT_TEASER, FORMAT_TITLE
from ..meta import PRIMARY_KEY
from .table import Decorator, ValueDecorator

class ImageUrlGenerator:
    """
    Generates the URL of an image path, the default image when there is none.
    """
    def __init__(self, base_url='/image', default_image=None):
        self.base_url = base_url.rstrip('/')
        self.default_image = default_image

    def generate_url(self, path):
        if not path:
            return self.default_image
        if path.startswith(('http://', 'https://', '/')):
            return path
        return f'{self.base_url}/{path}'

def replace_tokens(template, entry, locale=None):
    url = template.replace('%id%', str(entry.get_id()))
    if locale is not None:
        url = url.replace('%locale%', locale)
    return url

class FormatDecorator(ValueDecorator):
    """
    Formats an entry, or a list of entries, with a format string.
    """
    def __init__(self, formatter, format):
        self.formatter = formatter
        self.format = format

    def decorate(self, value):
        if value is None:
            return ''
        if isinstance(value, list):
            return ', '.join(self.decorate(item) for item in value)
        if hasattr(value, '_meta'):
            return self.formatter.format_entry(value, self.format)
        return str(value)

class PropertyDecorator(ValueDecorator):
    """
    Gets a property of the value, an entry or a dict.
    """
    def __init__(self, property, default=None):
        self.property = property
        self.default = default

    def decorate(self, value):
        if value is None:
            return self.default
        if isinstance(value, dict):
            result = value.get(self.property)
        else:
            result = value.get_field(self.property)
        return self.default if result is None else result

class DataDecorator(Decorator):
    """
    Renders an entry with its title, teaser and image. The title links to
    the action, %id% is replaced by the id of the entry.
    """
    def __init__(self, formatter, meta, action=None, image_url_generator=None, default_image=None):
        self.formatter = formatter
        self.action = action
        self.image_url_generator = image_url_generator
        self.default_image = default_image
        self.title_format = meta.get_format(FORMAT_TITLE)
        self.teaser_format = meta.get_format(FORMAT_TEASER)
        self.image_format = meta.get_format(FORMAT_IMAGE)

    def decorate(self, cell, row, row_number, remaining_values):
        entry = cell.get_value()
        if entry is None or not hasattr(entry, '_meta'):
            cell.set_value('')
            return

        cell.add_class('data')
        title = self.formatter.format_entry(entry, self.title_format) or f'#{entry.get_id()}'

        html = Markup('')
        image = self.get_image_url(entry)
        if image:
            html += Markup('<img src="{}" class="data-image" alt="" />').format(image)

        if self.action:
            html += Markup('<a href="{}" class="data-title">{}</a>').format(replace_tokens(self.action, entry, entry.locale), title)
        else:
            html += Markup('<span class="data-title">{}</span>').format(title)

        if self.teaser_format:
            teaser = self.formatter.format_entry(entry, self.teaser_format)
            if teaser:
                html += Markup('<div class="data-teaser">{}</div>').format(teaser)

        cell.set_value(html)

    def get_image_url(self, entry):
        if not self.image_format or self.image_url_generator is None:
            return None
        path = self.formatter.format_entry(entry, self.image_format)
        if not path and self.default_image:
            return self.default_image
        return self.image_url_generator.generate_url(path)

class LocalizeDecorator(Decorator):
    """
    Links to the entry in the other locales, in bold when the entry has a
    translation in that locale. Rows of entries loaded from another locale
    get the unlocalized class.
    """
    def __init__(self, model, action, locale, locales):
        self.model = model
        self.action = action
        self.locale = locale
        self.locales = [code for code in locales if code != locale]

    def decorate(self, cell, row, row_number, remaining_values):
        entry = cell.get_value()
        if entry is None:
            cell.set_value('')
            return

        if row is not None and entry.data_locale and entry.data_locale != self.locale:
            row.add_class('unlocalized')

        localized = self.model.get_localized_ids(entry.get_id())
        links = []
        for locale in self.locales:
            url = replace_tokens(self.action, entry, locale)
            if locale in localized:
                links.append(Markup('<a href="{}" class="locale localized"><strong>{}</strong></a>').format(url, locale))
            else:
                links.append(Markup('<a href="{}" class="locale">{}</a>').format(url, locale))

        cell.add_class('localize')
        cell.set_value(Markup(' ').join(links))

class OptionDecorator(Decorator):
    """
    Checkbox to select a row for the table actions.
    """
    def __init__(self, name='id[]'):
        self.name = name

    def decorate(self, cell, row, row_number, remaining_values):
        value = cell.get_value()
        if value is None:
            cell.set_value(Markup('<input type="checkbox" class="select-all" />'))
            return

        id = value.get_id() if hasattr(value, '_meta') else value.get(PRIMARY_KEY)
        cell.add_class('option')
        cell.set_value(Markup('<input type="checkbox" name="{}" value="{}" />').format(self.name, id))

class ActionDecorator(Decorator):
    """
    Link to an action on the entry, %id% in the URL is replaced by its id.
    """
    def __init__(self, label, url, message=None, css_class=None):
        self.label = label
        self.url = url
        self.message = message
        self.css_class = css_class

    def decorate(self, cell, row, row_number, remaining_values):
        entry = cell.get_value()
        if entry is None:
            cell.set_value('')
            return

        url = replace_tokens(self.url, entry, getattr(entry, 'locale', None))
        attributes = Markup(' class="{}"').format(self.css_class) if self.css_class else Markup('')
        if self.message:
            attributes += Markup(' data-confirm="{}"').format(self.message.replace('%id%', str(entry.get_id())))

        cell.add_class('action')
        cell.set_value(Markup('<a href="{}"{}>{}</a>').format(url, attributes, escape(self.label)))
