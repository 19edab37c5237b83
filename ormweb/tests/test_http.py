from fastapi.testclient import TestClient

from ormweb.config import Settings
from ormweb.exceptions import OrmException, UnauthorizedException
from ormweb.fields import Char, Text
from ormweb.http_fastapi import convert_route_path, create_app
from ormweb.orm import Model, OrmManager
from ormweb.routing import route
from ormweb.security import SecurityManager
from ormweb.session import Session
from ormweb.store import MemoryStore

class Note(Model):
    _name = 'test.web.note'
    _rec_name = 'title'
    _options = {'order.field': 'title', 'rest.expose': True}

    title = Char(string='Title', required=True, size=40, options={'scaffold.search': True, 'scaffold.order': True})
    body = Text(string='Body')

class Page(Model):
    _name = 'test.web.page'
    _rec_name = 'title'

    title = Char(string='Title', required=True, translate=True)

class Vault(Model):
    _name = 'test.web.vault'
    _options = {'scaffold.security': True}

    name = Char(string='Name')

@route('/test/flash-and-fail')
async def flash_and_fail(req, env):
    req.session.add_message('error', 'Kept after failure')
    raise UnauthorizedException('test.flash')

NOTE_INDEX = '/scaffold/test.web.note/en?page=1&rows=10&order=title&direction=ASC'
NOTE_FORM = 'form-test-web-note'

def create_client(permissions=('*',)):
    Session.clear()
    orm = OrmManager(MemoryStore())
    security = SecurityManager(list(permissions))
    settings = Settings(addons_path='/nonexistent', locales=['en', 'nl'], default_locale='en', rows_per_page=10, env_type='dev')
    app = create_app(orm=orm, security=security, settings=settings, addons=False)
    return TestClient(app), orm

def create_notes(orm, *titles):
    notes = orm.get_model('test.web.note')
    return [notes.save(notes.create_entry({'title': title})) for title in titles]


def test_convert_route_path():
    assert convert_route_path('/scaffold/<model>/<locale>/<int:id>') == '/scaffold/{model}/{locale}/{id:int}'
    assert convert_route_path('/page/<string:name>') == '/page/{name}'

def test_home_redirects_to_models():
    client, _orm = create_client()
    response = client.get('/', follow_redirects=False)
    assert response.status_code == 302
    assert response.headers['location'] == '/orm'
    assert 'session_id' in response.cookies

def test_model_browser():
    client, _orm = create_client()

    response = client.get('/orm')
    assert response.status_code == 200
    assert 'test.web.note' in response.text

    response = client.get('/orm?search=vault')
    assert 'test.web.vault' in response.text
    assert 'test.web.note' not in response.text

    response = client.get('/orm/model/test.web.note')
    assert response.status_code == 200
    assert 'title' in response.text

    assert client.get('/orm/model/test.web.unknown').status_code == 404

def test_model_browser_needs_permission():
    client, _orm = create_client(permissions=['orm.model.*'])
    response = client.get('/orm')
    assert response.status_code == 403
    assert response.json() == {'error': 'Forbidden'}

def test_dispatcher_not_found():
    client, orm = create_client()
    note = create_notes(orm, 'Alpha')[0]

    assert client.get('/scaffold/test.web.unknown/en').status_code == 404
    assert client.get(f'/scaffold/test.web.note/en/{note.get_id()}/publish').status_code == 404
    assert client.get('/scaffold/test.web.note/en/999/edit').status_code == 404
    assert client.get('/scaffold/test.web.note/fr?page=1&rows=10').status_code == 404

def test_index_redirects_to_canonical_url():
    client, _orm = create_client()

    response = client.get('/scaffold/test.web.note', follow_redirects=False)
    assert response.status_code == 302
    assert response.headers['location'] == NOTE_INDEX

    response = client.get('/scaffold/test.web.note/en?page=0&rows=10&order=unknown', follow_redirects=False)
    assert response.headers['location'] == NOTE_INDEX

    response = client.get('/scaffold/test.web.page', follow_redirects=False)
    assert response.headers['location'] == '/scaffold/test.web.page/en'

def test_index():
    client, orm = create_client()
    create_notes(orm, 'Beta', 'Alpha')

    response = client.get(NOTE_INDEX)
    assert response.status_code == 200
    assert response.text.index('Alpha') < response.text.index('Beta')

    response = client.get(NOTE_INDEX + '&search=bet')
    assert 'Beta' in response.text
    assert 'Alpha' not in response.text

def test_add():
    client, orm = create_client()

    response = client.get('/scaffold/test.web.note/en/add')
    assert response.status_code == 200
    assert 'name="title"' in response.text

    response = client.post(
        '/scaffold/test.web.note/en/add', data={'_form': NOTE_FORM, 'title': 'Gamma', 'body': 'Text'},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers['location'] == '/scaffold/test.web.note/en'

    notes = orm.get_model('test.web.note').create_query().query()
    assert [note.title for note in notes] == ['Gamma']

    response = client.get(NOTE_INDEX)
    assert 'message-success' in response.text

def test_add_invalid():
    client, orm = create_client()

    response = client.post('/scaffold/test.web.note/en/add', data={'_form': NOTE_FORM, 'title': ''})
    assert response.status_code == 400
    assert 'message-error' in response.text
    assert orm.get_model('test.web.note').create_query().count() == 0

def test_add_cancel():
    client, orm = create_client()

    response = client.post(
        '/scaffold/test.web.note/en/add?referer=/orm', data={'_form': NOTE_FORM, 'title': 'Delta', 'cancel': '1'},
        follow_redirects=False,
    )
    assert response.headers['location'] == '/orm'
    assert orm.get_model('test.web.note').create_query().count() == 0

def test_add_ignores_submitted_id():
    client, orm = create_client()
    alpha = create_notes(orm, 'Alpha')[0]

    response = client.post(
        '/scaffold/test.web.note/en/add', data={'_form': NOTE_FORM, 'id': str(alpha.get_id()), 'title': 'Beta'},
        follow_redirects=False,
    )
    assert response.status_code == 302

    response = client.post(
        '/scaffold/test.web.note/en/add', data={'_form': NOTE_FORM, 'id': '999', 'title': 'Gamma'},
        follow_redirects=False,
    )
    assert response.status_code == 302

    notes = orm.get_model('test.web.note')
    assert notes.get_by_id(alpha.get_id()).title == 'Alpha'
    assert sorted(note.title for note in notes.create_query().query()) == ['Alpha', 'Beta', 'Gamma']
    assert notes.get_by_id(999) is None

def test_detail_and_edit():
    client, orm = create_client()
    note = create_notes(orm, 'Alpha')[0]
    url = f'/scaffold/test.web.note/en/{note.get_id()}'

    response = client.get(url, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers['location'].startswith(url + '/edit')

    response = client.get(url + '/edit')
    assert response.status_code == 200
    assert 'value="Alpha"' in response.text

    response = client.post(
        url + '/edit', data={'_form': NOTE_FORM, 'id': str(note.get_id()), 'title': 'Renamed'}, follow_redirects=False,
    )
    assert response.status_code == 302
    assert orm.get_model('test.web.note').get_by_id(note.get_id()).title == 'Renamed'

def test_delete_action():
    client, orm = create_client()
    alpha, beta = create_notes(orm, 'Alpha', 'Beta')

    response = client.post(NOTE_INDEX, data={'action': 'delete', 'id[]': [str(alpha.get_id())]}, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers['location'] == NOTE_INDEX

    notes = orm.get_model('test.web.note').create_query().query()
    assert [note.get_id() for note in notes] == [beta.get_id()]

def test_delete_action_continues_after_failure(monkeypatch):
    client, orm = create_client()
    alpha, beta, gamma = create_notes(orm, 'Alpha', 'Beta', 'Gamma')

    notes = orm.get_model('test.web.note')
    delete = notes.delete

    def delete_unless_beta(entry):
        if entry.get_id() == beta.get_id():
            raise OrmException('Beta is locked')
        return delete(entry)

    monkeypatch.setattr(notes, 'delete', delete_unless_beta)

    ids = [str(note.get_id()) for note in (alpha, beta, gamma)]
    response = client.post(NOTE_INDEX, data={'action': 'delete', 'id[]': ids})
    assert response.status_code == 200
    assert 'Could not delete Beta: Beta is locked' in response.text
    assert 'Alpha has been deleted' in response.text
    assert 'Gamma has been deleted' in response.text

    assert [note.get_id() for note in notes.create_query().query()] == [beta.get_id()]

def test_unknown_table_action():
    client, orm = create_client()
    create_notes(orm, 'Alpha')

    response = client.post(NOTE_INDEX, data={'action': 'archive', 'id[]': ['1']})
    assert 'message-error' in response.text
    assert orm.get_model('test.web.note').create_query().count() == 1

def test_export():
    client, orm = create_client()
    create_notes(orm, 'Beta', 'Alpha')

    response = client.get('/scaffold/test.web.note/en/export/csv?order=title&direction=DESC')
    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/csv')
    assert 'test.web.note.csv' in response.headers['content-disposition']
    lines = response.text.splitlines()
    assert lines[0] == 'ID,Title,Body'
    assert lines[1].split(',')[1] == 'Beta'

    response = client.get('/scaffold/test.web.note/en/export/json')
    assert [row['Title'] for row in response.json()] == ['Alpha', 'Beta']

    assert client.get('/scaffold/test.web.note/en/export/pdf').status_code == 404

def test_secured_scaffold():
    client, orm = create_client(permissions=['orm.model.test.web.vault.read'])
    vaults = orm.get_model('test.web.vault')
    vaults.save(vaults.create_entry({'name': 'Gold'}))

    response = client.get('/scaffold/test.web.vault/en?page=1&rows=10')
    assert response.status_code == 200
    assert 'Gold' in response.text
    assert '/scaffold/test.web.vault/en/add' not in response.text
    assert 'name="action"' not in response.text

    assert client.get('/scaffold/test.web.vault/en/add').status_code == 403

def test_localized_scaffold():
    client, orm = create_client()
    pages = orm.get_model('test.web.page')
    page = pages.create_entry({'title': 'Home'})
    page.locale = 'en'
    pages.save(page)

    response = client.get('/scaffold/test.web.page/nl?page=1&rows=10')
    assert response.status_code == 200
    assert 'unlocalized' in response.text

    form = 'form-test-web-page'
    response = client.post(
        f'/scaffold/test.web.page/nl/{page.get_id()}/edit', data={'_form': form, 'id': str(page.get_id()), 'title': 'Thuis'},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert pages.get_by_id(page.get_id(), 'nl').title == 'Thuis'
    assert pages.get_by_id(page.get_id(), 'en').title == 'Home'

    client.post(
        '/scaffold/test.web.page/nl?page=1&rows=10', data={'action': 'delete-localized', 'id[]': [str(page.get_id())]},
    )
    assert pages.get_by_id(page.get_id(), 'nl').title == 'Home'
    assert set(pages.get_localized_ids(page.get_id())) == {'en'}

def test_rest_listing():
    client, orm = create_client()
    create_notes(orm, 'Beta', 'Alpha', 'Gamma')

    response = client.get('/api/orm/test.web.note')
    assert response.status_code == 200
    data = response.json()
    assert data['success'] is True
    assert [row['title'] for row in data['data']] == ['Alpha', 'Beta', 'Gamma']

    response = client.get('/api/orm/test.web.note', params={'filter[match][title]': 'AMM'})
    assert [row['title'] for row in response.json()['data']] == ['Gamma']

    response = client.get('/api/orm/test.web.note', params={'limit': 2, 'page': 2})
    assert [row['title'] for row in response.json()['data']] == ['Gamma']

def test_rest_listing_not_exposed():
    client, _orm = create_client()
    assert client.get('/api/orm/test.web.page').status_code == 404
    assert client.get('/api/orm/test.web.unknown').status_code == 404

def test_messages_survive_a_failed_request():
    client, _orm = create_client()

    response = client.get('/test/flash-and-fail')
    assert response.status_code == 403

    response = client.get(NOTE_INDEX)
    assert 'Kept after failure' in response.text
