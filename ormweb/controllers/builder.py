from ..logger import get_logger
from ..routing import url_for
from ..table.builder import ModelFieldTable, ModelIndexTable, ModelsTable
from ..tools.misc import import_string
from .base import Controller
from .scaffold import ScaffoldController

_logger = get_logger(__name__)

class BuilderController(Controller):
    """
    Browser of the registered models and entry point of the scaffolds.
    """
    template_models = 'orm/models.html'
    template_model = 'orm/model.html'

    def get_model_action(self):
        return url_for('orm.model.detail', model='%model%').replace('%25model%25', '%model%')

    def get_scaffold_action(self):
        return url_for('scaffold', model='%model%').replace('%25model%25', '%model%')

    def index(self):
        orm = self.env.orm
        translator = self.get_translator()

        table = ModelsTable(orm, translator, orm.get_models().values(), self.get_model_action(), self.get_scaffold_action())
        table.set_search_query(self.request.query_params.get('search'))

        self.set_template_view(
            self.template_models,
            title=translator.translate('orm.title.models'),
            table=table.get_view(),
        )

    def model(self, model=None):
        orm = self.env.orm
        if not model or not orm.has_model(model):
            self.set_not_found()
            return

        translator = self.get_translator()
        meta = orm.get_model(model).get_meta()
        model_action = self.get_model_action()

        self.set_template_view(
            self.template_model,
            title=meta.name,
            meta=meta,
            field_table=ModelFieldTable(translator, meta, model_action).get_view(),
            index_table=ModelIndexTable(translator, meta.get_indexes()).get_view(),
            scaffold_action=url_for('scaffold', model=meta.name),
        )

    def scaffold(self, model=None, locale=None, id=None, action=None, format=None):
        """
        Dispatches a scaffold request to the controller of the model. The
        controller is the ScaffoldController or the class set with the
        scaffold.controller option of the model.

        - no action: the index, or the detail when an id is provided
        - add and export: only without id
        - edit: only with an id

        Anything else sets a 404 on the response.
        :return: Response of the invoked controller
        """
        orm = self.env.orm
        if not model or not orm.has_model(model):
            _logger.debug(f"Scaffold for unknown model {model}")
            self.set_not_found()
            return self.response

        arguments = {'locale': locale}
        if action is None:
            if id is None:
                method = 'index'
            else:
                method = 'detail'
                arguments['id'] = id
        elif action == 'add' and id is None:
            method = 'form'
        elif action == 'export' and id is None:
            method = 'export'
            arguments['format'] = format
        elif action == 'edit' and id is not None:
            method = 'form'
            arguments['id'] = id
        else:
            _logger.debug(f"Unsupported scaffold action {action} for {model}")
            self.set_not_found()
            return self.response

        model = orm.get_model(model)
        controller_class = model.get_meta().get_option('scaffold.controller') or ScaffoldController
        if isinstance(controller_class, str):
            controller_class = import_string(controller_class)

        controller = controller_class(self.request, self.env, model)
        getattr(controller, method)(**arguments)

        return controller.response
