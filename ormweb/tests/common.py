import unittest

from ormweb.orm import OrmManager
from ormweb.store import MemoryStore
from ormweb.tools.translate import Translator

class OrmCase(unittest.TestCase):
    """
    TestCase with a fresh in-memory ORM for each test.
    Models are declared in the test modules and stay in the Registry, the
    stored entries are dropped with the store.
    """
    locale = 'en'

    def setUp(self):
        super().setUp()
        self.orm = OrmManager(MemoryStore(), default_locale=self.locale)
        self.translator = Translator(self.locale, {})

    def create(self, model_name, **values):
        model = self.orm.get_model(model_name)
        entry = model.create_entry(values)
        return model.save(entry)
