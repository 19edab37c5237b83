import os
from dotenv import load_dotenv

load_dotenv()

def _split(value):
    return [item.strip() for item in value.split(',') if item.strip()]

class Settings:
    """
    Runtime configuration, read from the environment (and .env).
    """
    def __init__(self, **overrides):
        self.env_type = os.getenv('ENV_TYPE', 'prod')
        self.application_dir = os.path.abspath(os.getenv('ORMWEB_APPLICATION_DIR', os.getcwd()))
        self.public_dir = os.path.abspath(os.getenv('ORMWEB_PUBLIC_DIR', os.path.join(self.application_dir, 'public')))
        self.default_locale = os.getenv('ORMWEB_DEFAULT_LOCALE', 'en')
        self.locales = _split(os.getenv('ORMWEB_LOCALES', self.default_locale))
        self.pagination = [int(rows) for rows in _split(os.getenv('ORMWEB_PAGINATION', '5,10,25,50,100,250,500'))]
        self.rows_per_page = int(os.getenv('ORMWEB_ROWS_PER_PAGE', '25'))
        self.permissions = _split(os.getenv('ORMWEB_PERMISSIONS', '*'))
        self.image_url = os.getenv('ORMWEB_IMAGE_URL', '/image')
        self.default_image = os.getenv('ORMWEB_DEFAULT_IMAGE', '/static/img/data.svg')
        self.addons_path = os.getenv('ORMWEB_ADDONS_PATH', os.path.join(os.getcwd(), 'addons'))
        self.demo_data = os.getenv('ORMWEB_DEMO_DATA', 'False').lower() == 'true'
        self.cors_origins = _split(os.getenv('CORS_ALLOWED_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'))

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting '{key}'")
            setattr(self, key, value)

        if self.default_locale not in self.locales:
            self.locales.insert(0, self.default_locale)

    @property
    def is_dev(self):
        return self.env_type == 'dev'

settings = Settings()
