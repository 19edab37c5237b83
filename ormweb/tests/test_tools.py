import json
import logging
import os
import shutil
import tempfile
import unittest

from ormweb.config import Settings
from ormweb.exceptions import LocaleNotFound, ValidationException
from ormweb.form.builder import parse_nested
from ormweb.format import strip_tags, truncate
from ormweb.logger import JsonFormatter, configure_logging, get_logger
from ormweb.routing import url_for
from ormweb.security import SecurityManager
from ormweb.tools.po_loader import POLoader
from ormweb.tools.safe_eval import safe_eval
from ormweb.tools.translate import I18n, Translator

class TestTranslations(unittest.TestCase):

    def setUp(self):
        self.path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.path)
        with open(os.path.join(self.path, 'nl.po'), 'w', encoding='utf-8') as f:
            f.write('msgid "button.save"\nmsgstr "Opslaan"\n\nmsgid "label.quoted"\nmsgstr "Een \\"quote\\""\n\nmsgid "label.empty"\nmsgstr ""\n')
            f.write('\nmsgid "label.lines"\nmsgstr "One\\nTwo \\\\ end"\n')

    def test_load_po(self):
        translations = POLoader.load_po(os.path.join(self.path, 'nl.po'))
        self.assertEqual(translations['button.save'], 'Opslaan')
        self.assertEqual(translations['label.quoted'], 'Een "quote"')
        self.assertNotIn('label.empty', translations)
        self.assertEqual(translations['label.lines'], 'One\nTwo \\ end')

    def test_translator(self):
        translator = Translator('en', {'label.entry.saved': '%entry% is saved'})
        self.assertEqual(translator.translate('label.entry.saved', {'entry': 'Dune'}), 'Dune is saved')
        self.assertEqual(translator.translate('label.unknown'), 'label.unknown')
        self.assertIsNone(translator.translate(None))

    def test_i18n(self):
        i18n = I18n(['en', 'nl'], 'en', [self.path])

        self.assertEqual(i18n.get_locale_code_list(), ['en', 'nl'])
        self.assertEqual(i18n.get_translator('nl').translate('button.save'), 'Opslaan')
        # Default translations of the package
        self.assertEqual(i18n.get_translator('en').translate('button.save'), 'Save')
        self.assertTrue(i18n.has_locale('nl'))
        with self.assertRaises(LocaleNotFound):
            i18n.get_locale('fr')


class TestSafeEval(unittest.TestCase):

    def test_eval(self):
        self.assertEqual(safe_eval("[('author', '=', author)] if author else []", {'author': 3}), [('author', '=', 3)])
        self.assertEqual(safe_eval("[('locale', '=', locale)]", {'locale': 'nl'}), [('locale', '=', 'nl')])

    def test_errors(self):
        with self.assertRaises(ValueError):
            safe_eval("undefined_name + 1")
        with self.assertRaises(ValueError):
            safe_eval("__import__('os')")


class TestMisc(unittest.TestCase):

    def test_parse_nested(self):
        data = parse_nested([
            ('title', 'Dune'),
            ('author[name]', 'Frank'),
            ('tags[]', '1'),
            ('tags[]', '2'),
            ('comments[0][body]', 'Great'),
        ])
        self.assertEqual(data, {
            'title': 'Dune',
            'author': {'name': 'Frank'},
            'tags': ['1', '2'],
            'comments': {'0': {'body': 'Great'}},
        })

    def test_filters(self):
        self.assertEqual(truncate('A long sentence', '6'), 'A long...')
        self.assertEqual(truncate('Short', '10'), 'Short')
        self.assertEqual(strip_tags('<p>Fish &amp; chips</p>'), 'Fish & chips')

    def test_security(self):
        security = SecurityManager(['orm.model.*.read'])
        self.assertTrue(security.is_permission_granted('orm.model.blog.article.read'))
        self.assertFalse(security.is_permission_granted('orm.model.blog.article.write'))

        security.grant('orm.manage')
        self.assertTrue(security.is_permission_granted('orm.manage'))
        security.revoke('orm.manage')
        self.assertFalse(security.is_permission_granted('orm.manage'))

    def test_settings(self):
        settings = Settings(locales=['nl'], default_locale='en', env_type='dev')
        self.assertEqual(settings.locales, ['en', 'nl'])
        self.assertTrue(settings.is_dev)
        with self.assertRaises(AttributeError):
            Settings(unknown_setting=True)

    def test_url_for(self):
        # Registers the routes
        import ormweb.http_fastapi  # noqa: F401

        self.assertEqual(url_for('scaffold.detail', model='blog.article', locale='en', id=3), '/scaffold/blog.article/en/3')
        self.assertEqual(url_for('scaffold.index', model='blog.article', locale='en', page=2), '/scaffold/blog.article/en?page=2')
        with self.assertRaises(KeyError):
            url_for('scaffold.detail', model='blog.article')
        with self.assertRaises(KeyError):
            url_for('unknown.route')

    def test_validation_exception(self):
        exception = ValidationException()
        exception.add_errors({'name': ['required'], 'tags[0]': ['invalid']}, prefix='author')
        self.assertEqual(sorted(exception.get_all_errors()), ['author[name]', 'author[tags][0]'])
        self.assertTrue(exception.has_errors())


class TestLogging(unittest.TestCase):

    def tearDown(self):
        configure_logging(level='INFO', log_format='json')

    def test_namespace(self):
        self.assertEqual(get_logger('addons.blog').name, 'ormweb.addons.blog')
        self.assertEqual(get_logger('ormweb.query').name, 'ormweb.query')

    def test_json_formatter(self):
        record = logging.LogRecord('ormweb.export', logging.INFO, __file__, 10, 'Exported %s entries', (3,), None)
        record.context = {'model': 'blog.article'}

        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload['message'], 'Exported 3 entries')
        self.assertEqual(payload['level'], 'INFO')
        self.assertEqual(payload['model'], 'blog.article')

    def test_text_format(self):
        root = configure_logging(level='debug', log_format='text')
        handlers = [handler for handler in root.handlers if getattr(handler, '_ormweb', False)]
        self.assertEqual(len(handlers), 1)
        self.assertEqual(root.level, logging.DEBUG)
        self.assertNotIsInstance(handlers[0].formatter, JsonFormatter)
