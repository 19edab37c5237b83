from urllib.parse import quote, urlencode

from ..exceptions import LocaleNotFound, OrmException, UnauthorizedException, ValidationException
from ..export import OrmModelExporter, get_file_provider, EXPORT_PROVIDERS
from ..form.builder import FormBuilder
from ..form.component import ScaffoldComponent, ScaffoldContext
from ..form.config import ScaffoldConfig
from ..format import FORMAT_TITLE
from ..logger import get_logger
from ..routing import url_for
from ..service import OrmService
from ..table.decorators import DataDecorator, ImageUrlGenerator, LocalizeDecorator, OptionDecorator
from ..table.scaffold import ScaffoldTable
from ..table.table import ORDER_ASC, ORDER_DESC, StaticDecorator
from .base import Controller

_logger = get_logger(__name__)

ACTION_INDEX = 'index'
ACTION_DETAIL = 'detail'
ACTION_ADD = 'add'
ACTION_EDIT = 'edit'
ACTION_EXPORT = 'export'
ACTION_DELETE = 'delete'
ACTION_DELETE_LOCALIZED = 'delete-localized'

PERMISSION_READ = 'read'
PERMISSION_WRITE = 'write'
PERMISSION_DELETE = 'delete'

def get_id_list(value):
    if value is None or value == '':
        return []
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]

class ScaffoldController(Controller):
    """
    Generic management of the entries of a model: list, add, edit, export
    and delete. When the model sets the scaffold.security option, the
    actions check the orm.model.<model>.<read|write|delete> permissions.
    """
    template_index = 'scaffold/index.html'
    template_form = 'scaffold/form.html'

    def __init__(self, request, env, model):
        super().__init__(request, env)
        self.model = model
        self.meta = model.get_meta()
        self.is_localized = self.meta.is_localized()
        self.is_secured = bool(self.meta.get_option('scaffold.security'))
        self.locale = None
        self.order_method = None
        self.order_direction = None
        self.pagination = env.settings.pagination
        self.rows_per_page = env.settings.rows_per_page
        self.translation_title = self.meta.get_option('scaffold.title')
        self.translation_add = self.meta.get_option('scaffold.title.add')

    def is_model_permission_granted(self, action):
        if not self.is_secured:
            return True
        return self.is_permission_granted(f'orm.model.{self.meta.name}.{action}')

    def check_model_permission(self, action=PERMISSION_READ):
        """
        :raises UnauthorizedException: when the action is not allowed
        """
        if not self.is_model_permission_granted(action):
            raise UnauthorizedException(f'orm.model.{self.meta.name}.{action}')

    def get_action(self, action, locale=None, id=None, format=None, **query):
        """
        URL of an action of this scaffold, extra arguments go to the query string.
        """
        params = {'model': self.meta.name, 'locale': locale or self.locale}
        params.update((key, value) for key, value in query.items() if value is not None)

        if action == ACTION_INDEX:
            return url_for('scaffold.index', **params)
        if action == ACTION_ADD:
            return url_for('scaffold.add', **params)
        if action == ACTION_EXPORT:
            return url_for('scaffold.export', format=format, **params)
        if action == ACTION_DETAIL:
            return url_for('scaffold.detail', id=id, **params)
        return url_for('scaffold.action', id=id, action=action, **params)

    def get_action_template(self, action, locale=None):
        """
        URL of an entry action with an %id% placeholder. Without locale, the
        URL has a %locale% placeholder as well.
        """
        url = url_for('scaffold.action', model=self.meta.name, locale=locale or '%locale%', id=0, action=action)
        url = url.replace('%25locale%25', '%locale%').replace('/0/', '/%id%/')
        return url + '?referer=' + quote(self.request.url, safe='')

    def resolve_locale(self, locale):
        """
        Sets the locale of the scaffold, a 404 is set when it's not available.
        :return: True when the locale is resolved
        """
        try:
            self.locale = self.set_content_locale(locale)
        except LocaleNotFound:
            _logger.debug(f"Locale {locale} is not available")
            self.set_not_found()
            return False
        return True

    def index(self, locale=None):
        if locale is None:
            locale = self.get_content_locale()
            if self.is_localized:
                self.response.set_redirect(self.get_action(ACTION_INDEX, locale=locale))
                return

        if not self.resolve_locale(locale):
            return

        self.check_model_permission(PERMISSION_READ)
        self.initialize_order()

        table = self.get_table()

        if self.request.method == 'POST':
            self.process_table_action(table)
            self.response.set_redirect(self.request.url)
            return

        if self.process_table(table, self.get_action(ACTION_INDEX)):
            return

        self.set_index_view(table)

    def process_table_action(self, table):
        body = self.request.body
        action = body.get('action')
        if not action:
            return

        ids = get_id_list(body.get('id'))
        try:
            table.process_action(action, ids)
        except OrmException:
            self.add_error('error.action.unsupported', {'action': action})

    def process_table(self, table, base_url):
        """
        Sets the page, rows, search and order of the query parameters to the
        table. When a parameter is missing or invalid, the response is
        redirected to the URL with all the parameters.

        :return: True when redirected
        """
        parameters = self.request.query_params
        needs_redirect = False

        try:
            page = max(int(parameters['page']), 1)
        except (KeyError, ValueError):
            page = 1
            needs_redirect = True

        try:
            rows = int(parameters['rows'])
            if rows < 1:
                raise ValueError(rows)
        except (KeyError, ValueError):
            rows = self.rows_per_page
            needs_redirect = True

        search = parameters.get('search') or None

        order = parameters.get('order')
        direction = parameters.get('direction')
        if table.has_order_methods():
            if order not in table.get_order_methods():
                default = self.order_method if self.order_method in table.get_order_methods() else None
                if order is not None or default is not None:
                    needs_redirect = True
                order = default
            if order is not None and (direction or '').upper() not in (ORDER_ASC, ORDER_DESC):
                direction = self.order_direction or ORDER_ASC
                needs_redirect = True
        else:
            order = None

        if needs_redirect:
            query = {'page': page, 'rows': rows}
            if order is not None:
                query['order'] = order
                query['direction'] = direction.upper()
            if search:
                query['search'] = search
            self.response.set_redirect(base_url + '?' + urlencode(query))
            return True

        self.apply_table_arguments(table, page, rows, search, order, direction)
        return False

    def apply_table_arguments(self, table, page, rows, search, order, direction):
        table.set_pagination_options(self.pagination)
        table.set_page(page)
        table.set_rows_per_page(rows)
        table.set_search_query(search)
        if order is not None:
            table.set_order_method(order)
            table.set_order_direction(direction)

    def initialize_order(self):
        if self.order_method is not None or self.order_direction is not None:
            return

        self.order_method = self.meta.get_option('order.field')
        self.order_direction = (self.meta.get_option('order.direction') or ORDER_ASC).upper()

    def get_table(self):
        translator = self.get_translator()
        settings = self.env.settings
        table = ScaffoldTable(self.model, translator, self.locale)

        can_delete = self.is_model_permission_granted(PERMISSION_DELETE)
        if can_delete:
            table.add_decorator(OptionDecorator(), OptionDecorator())

        image_url_generator = ImageUrlGenerator(settings.image_url, settings.default_image)
        data_decorator = DataDecorator(
            self.model.get_orm_manager().get_entry_formatter(), self.meta, self.get_action_template(ACTION_EDIT, self.locale),
            image_url_generator, settings.default_image,
        )
        table.add_decorator(data_decorator, StaticDecorator(self.get_title()))

        locales = self.env.i18n.get_locale_code_list()
        if self.is_localized and len(locales) > 1:
            table.add_decorator(
                LocalizeDecorator(self.model, self.get_action_template(ACTION_EDIT), self.locale, locales),
                StaticDecorator(translator.translate('label.locales')),
            )

        if can_delete:
            table.add_action(ACTION_DELETE, translator.translate('button.delete'), self.delete, translator.translate('label.table.confirm.delete'))
            if self.is_localized:
                table.add_action(
                    ACTION_DELETE_LOCALIZED, translator.translate('button.delete.locale'), self.delete_localized,
                    translator.translate('label.table.confirm.delete.locale'),
                )

        return table

    def get_title(self):
        if self.translation_title:
            return self.translate(self.translation_title)
        return self.meta.description

    def get_entry_title(self, entry):
        formatter = self.model.get_orm_manager().get_entry_formatter()
        return formatter.format_entry(entry, self.meta.get_format(FORMAT_TITLE)) or f'#{entry.get_id()}'

    def get_export_actions(self, table):
        query = {}
        if table.get_search_query():
            query['search'] = table.get_search_query()
        if table.get_order_method():
            query['order'] = table.get_order_method()
            query['direction'] = table.get_order_direction()

        return {extension: self.get_action(ACTION_EXPORT, format=extension, **query) for extension in EXPORT_PROVIDERS}

    def get_locale_actions(self):
        return {locale: self.get_action(ACTION_INDEX, locale=locale) for locale in self.env.i18n.get_locale_code_list()}

    def set_index_view(self, table):
        self.set_template_view(
            self.template_index,
            title=self.get_title(),
            meta=self.meta,
            table=table.get_view(),
            table_action=self.request.url,
            add_action=self.get_action(ACTION_ADD, referer=self.request.url) if self.is_model_permission_granted(PERMISSION_WRITE) else None,
            export_actions=self.get_export_actions(table),
            locale_actions=self.get_locale_actions() if self.is_localized else {},
            current_locale=self.locale,
            base_url=self.get_action(ACTION_INDEX),
        )

    def get_entry(self, id):
        try:
            id = int(id)
        except (TypeError, ValueError):
            return None
        return self.model.get_by_id(id, self.locale)

    def create_entry(self):
        entry = self.model.create_entry()
        if self.is_localized:
            entry.locale = self.locale
        return entry

    def detail(self, locale=None, id=None):
        if locale is None:
            locale = self.get_content_locale()
        if not self.resolve_locale(locale):
            return

        self.check_model_permission(PERMISSION_READ)
        if self.get_entry(id) is None:
            self.set_not_found()
            return

        self.response.set_redirect(self.get_action(ACTION_EDIT, id=id, referer=self.get_referer()))

    def get_form_component(self):
        context = ScaffoldContext(
            OrmService(self.model.get_orm_manager()), self.get_translator(), self.env.security, self.env.settings, url_for,
        )
        config = ScaffoldConfig.for_model(self.meta, self.env.security).with_locale(self.locale)
        return ScaffoldComponent(context, self.model, config)

    def form(self, locale=None, id=None):
        if locale is None:
            locale = self.get_content_locale()
            if self.is_localized:
                action = ACTION_EDIT if id is not None else ACTION_ADD
                self.response.set_redirect(self.get_action(action, locale=locale, id=id, referer=self.get_referer()))
                return

        if not self.resolve_locale(locale):
            return

        self.check_model_permission(PERMISSION_WRITE)

        if id is not None:
            entry = self.get_entry(id)
            if entry is None:
                self.set_not_found()
                return
        else:
            entry = self.create_entry()

        referer = self.get_referer(self.get_action(ACTION_INDEX))
        component = self.get_form_component()
        form = FormBuilder(component, entry).build()

        body = self.request.body
        if self.request.method == 'POST' and form.is_submitted(body):
            if body.get('cancel'):
                self.response.set_redirect(referer)
                return

            try:
                form.process(body)
                form.validate()

                entry = form.get_data()
                self.model.save(entry)

                self.add_success('label.entry.saved', {'entry': self.get_entry_title(entry)})
                self.response.set_redirect(referer)
                return
            except ValidationException as exception:
                _logger.debug(f"Invalid {self.meta.name} entry: {exception}")
                form.set_validation_exception(exception)
                self.add_error('error.validation')
                self.response.set_status(400)

        self.set_form_view(form, component, entry, referer)

    def set_form_view(self, form, component, entry, referer):
        if entry.is_new():
            title = self.translate(self.translation_add) if self.translation_add else self.get_title()
            locale_actions = {}
        else:
            title = self.get_entry_title(entry)
            locale_actions = {
                locale: self.get_action(ACTION_EDIT, locale=locale, id=entry.get_id(), referer=referer)
                for locale in self.env.i18n.get_locale_code_list()
            } if self.is_localized else {}

        self.set_template_view(
            self.template_form,
            title=title,
            meta=self.meta,
            form=form.get_view(component.get_tabs()),
            entry=entry,
            referer=referer,
            locale_actions=locale_actions,
            current_locale=self.locale,
        )

    def export(self, locale=None, format=None):
        if locale is None:
            locale = self.get_content_locale()
            self.response.set_redirect(self.get_action(ACTION_EXPORT, locale=locale, format=format))
            return

        if not self.resolve_locale(locale):
            return

        self.check_model_permission(PERMISSION_READ)

        try:
            provider = get_file_provider(format)
        except KeyError:
            _logger.warning(f"No export provider for format {format}")
            self.set_not_found()
            return

        self.initialize_order()
        table = self.get_table()

        parameters = self.request.query_params
        order = parameters.get('order')
        if order not in table.get_order_methods():
            order = self.order_method if self.order_method in table.get_order_methods() else None
        direction = (parameters.get('direction') or self.order_direction or ORDER_ASC).upper()
        if direction not in (ORDER_ASC, ORDER_DESC):
            direction = ORDER_ASC
        self.apply_table_arguments(table, 1, None, parameters.get('search'), order, direction)

        exporter = OrmModelExporter(self.model, self.get_translator())
        content = exporter.export(table.get_export_entries(), provider)

        self.set_download_view(content, f'{self.meta.name}.{provider.extension}', provider.content_type)

    def delete(self, ids):
        """
        Deletes the entries with the provided ids. A failure on one entry is
        added as error message and the other entries are still processed.
        """
        for id in ids:
            entry = self.get_entry(id)
            if entry is None:
                continue

            title = self.get_entry_title(entry)
            try:
                self.check_model_permission(PERMISSION_DELETE)
                self.model.delete(entry)
                self.add_success('label.entry.deleted', {'entry': title})
            except (ValidationException, UnauthorizedException, OrmException) as exception:
                _logger.warning(f"Could not delete {self.meta.name}#{entry.get_id()}: {exception}")
                self.add_error('error.entry.deleted', {'entry': title, 'error': str(exception)})

    def delete_localized(self, ids):
        """
        Deletes the translations of the entries in the current locale.
        """
        for id in ids:
            entry = self.get_entry(id)
            if entry is None:
                continue

            title = self.get_entry_title(entry)
            try:
                self.check_model_permission(PERMISSION_DELETE)
                if self.model.delete_localized(entry, self.locale) is None:
                    self.add_warning('label.entry.locale.none', {'entry': title, 'locale': self.locale})
                else:
                    self.add_success('label.entry.deleted.locale', {'entry': title, 'locale': self.locale})
            except (ValidationException, UnauthorizedException, OrmException) as exception:
                _logger.warning(f"Could not delete {self.meta.name}#{entry.get_id()} in {self.locale}: {exception}")
                self.add_error('error.entry.deleted', {'entry': title, 'error': str(exception)})
