from fastapi import APIRouter, Depends, HTTPException, Request

from ..env import Environment
from ..exceptions import OrmException
from ..logger import get_logger
from ..routing import register_url
from ..session import Session, get_session
from .schema import EntryList

_logger = get_logger(__name__)

api_router = APIRouter(prefix="/api")

# Dependency to get the Env of the application
async def get_env(request: Request, session: Session = Depends(get_session)):
    state = request.app.state
    lang = session.get_content_locale()
    if lang and not state.i18n.has_locale(lang):
        lang = None

    return Environment(
        state.orm,
        security=state.security,
        i18n=state.i18n,
        settings=state.settings,
        views=state.views,
        context={'lang': lang},
    )

@api_router.get("/orm/{model}", response_model=EntryList)
async def list_entries(model: str, request: Request, env: Environment = Depends(get_env)):
    """
    Entries of a model exposed with the rest.expose option.
    Query: filter[match][field], filter[exact][field], page, limit, locale
    """
    if not env.orm.has_model(model):
        raise HTTPException(status_code=404, detail="Model not found")

    service = env[model]
    if not service.get_meta().get_option('rest.expose'):
        raise HTTPException(status_code=404, detail="Model not found")

    try:
        data = service.get_data_list(dict(request.query_params))
    except (OrmException, ValueError) as e:
        _logger.warning(f"Invalid listing of {model}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    return EntryList(success=True, data=data)

register_url('api.orm.list', '/api/orm/<model>')
