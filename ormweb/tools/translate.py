import os

from ..exceptions import LocaleNotFound
from .po_loader import POLoader

I18N_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'i18n')

class Translator:
    """
    Translates keys for one locale. Parameters are referenced as %name%.
    """
    def __init__(self, locale, translations=None):
        self.locale = locale
        self.translations = translations or {}

    def __repr__(self):
        return f"<Translator {self.locale}>"

    def get_locale(self):
        return self.locale

    def has_translation(self, key):
        return key in self.translations

    def translate(self, key, parameters=None):
        if key is None:
            return None
        text = self.translations.get(key, key)
        for name, value in (parameters or {}).items():
            text = text.replace(f'%{name}%', str(value))
        return text

class Locale:
    def __init__(self, code):
        self.code = code

    def get_code(self):
        return self.code

    def __repr__(self):
        return f"<Locale {self.code}>"

class I18n:
    """
    The available locales with their translations.
    """
    def __init__(self, locales, default_locale=None, paths=None):
        self.locales = [Locale(code) for code in locales]
        self.default_locale = default_locale or locales[0]
        self.translations = {code: {} for code in locales}
        for path in [I18N_PATH] + list(paths or []):
            self.add_path(path)
        self._translators = {}

    def add_path(self, path):
        for locale, translations in POLoader.load_directory(path).items():
            if locale in self.translations:
                self.translations[locale].update(translations)
        self._translators = {}

    def get_locale(self, code=None):
        if code is None:
            code = self.default_locale
        for locale in self.locales:
            if locale.code == code:
                return locale
        raise LocaleNotFound(code)

    def has_locale(self, code):
        return any(locale.code == code for locale in self.locales)

    def get_locale_code_list(self):
        return [locale.code for locale in self.locales]

    def get_translator(self, code=None):
        locale = self.get_locale(code)
        if locale.code not in self._translators:
            self._translators[locale.code] = Translator(locale.code, self.translations[locale.code])
        return self._translators[locale.code]
