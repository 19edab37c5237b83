from ..routing import route, url_for, Response
from .builder import BuilderController

PERMISSION_BUILDER = 'orm.manage'

@route('/', name='home', methods=('GET',))
async def index(req, env):
    response = Response()
    response.set_redirect(url_for('orm.model.index'))
    return response

@route('/orm', name='orm.model.index', permission=PERMISSION_BUILDER, methods=('GET',))
async def models(req, env):
    controller = BuilderController(req, env)
    controller.index()
    return controller.response

@route('/orm/model/<model>', name='orm.model.detail', permission=PERMISSION_BUILDER, methods=('GET',))
async def model_detail(req, env):
    controller = BuilderController(req, env)
    controller.model(req.params.get('model'))
    return controller.response

# Static segments are registered before the id routes
@route('/scaffold/<model>', name='scaffold')
async def scaffold(req, env):
    return BuilderController(req, env).scaffold(req.params.get('model'))

@route('/scaffold/<model>/<locale>', name='scaffold.index')
async def scaffold_index(req, env):
    return BuilderController(req, env).scaffold(req.params.get('model'), req.params.get('locale'))

@route('/scaffold/<model>/<locale>/add', name='scaffold.add')
async def scaffold_add(req, env):
    return BuilderController(req, env).scaffold(req.params.get('model'), req.params.get('locale'), action='add')

@route('/scaffold/<model>/<locale>/export/<format>', name='scaffold.export', methods=('GET',))
async def scaffold_export(req, env):
    return BuilderController(req, env).scaffold(
        req.params.get('model'), req.params.get('locale'), action='export', format=req.params.get('format'),
    )

@route('/scaffold/<model>/<locale>/<int:id>', name='scaffold.detail', methods=('GET',))
async def scaffold_detail(req, env):
    return BuilderController(req, env).scaffold(req.params.get('model'), req.params.get('locale'), id=req.params.get('id'))

@route('/scaffold/<model>/<locale>/<int:id>/<action>', name='scaffold.action')
async def scaffold_action(req, env):
    return BuilderController(req, env).scaffold(
        req.params.get('model'), req.params.get('locale'), id=req.params.get('id'), action=req.params.get('action'),
    )
