class Environment:
    """
    The environment stores the context of the current request.
    It encapsulates the ORM, the security manager, the translations, the
    settings and the views.
    """
    def __init__(self, orm, security=None, i18n=None, settings=None, views=None, context=None):
        self.orm = orm
        self.security = security
        self.i18n = i18n
        self.settings = settings
        self.views = views
        self.context = context or {}

    def __getitem__(self, model_name):
        """
        env['blog.article'] returns the model service of that model.
        """
        return self.orm.get_model(model_name)

    @property
    def lang(self):
        return self.context.get('lang') or self.i18n.default_locale

    @property
    def translator(self):
        return self.i18n.get_translator(self.lang)
