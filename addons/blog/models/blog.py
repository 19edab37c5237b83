from ormweb.fields import Boolean, Char, Date, Many2many, Many2one, One2many, Selection, Text
from ormweb.orm import Model

class Person(Model):
    _name = 'blog.person'
    _description = 'Person'
    _options = {
        'order.field': 'name',
        'rest.expose': True,
    }

    name = Char(string='Name', required=True, size=100, options={'scaffold.search': True, 'scaffold.order': True})
    email = Char(string='E-mail', size=255, options={'scaffold.search': True})
    articles = One2many('blog.article', 'author', string='Articles', options={'scaffold.form.omit': True})

class Tag(Model):
    _name = 'blog.tag'
    _description = 'Tag'
    _options = {
        'order.field': 'name',
        'rest.expose': True,
    }

    name = Char(string='Name', required=True, size=50, options={'scaffold.search': True, 'scaffold.order': True})

class Article(Model):
    _name = 'blog.article'
    _description = 'Article'
    _rec_name = 'title'
    _options = {
        'order.field': 'date',
        'order.direction': 'DESC',
        'scaffold.title': 'blog.title.articles',
        'scaffold.title.add': 'blog.title.article.add',
        'scaffold.form.tabs': ['content', 'meta'],
        'scaffold.form.tab.content': 'blog.tab.content',
        'scaffold.form.tab.meta': 'blog.tab.meta',
        'rest.expose': True,
    }
    _formats = {
        'title': '{title}',
        'teaser': '{date|date:%d/%m/%Y} {teaser|strip_tags|truncate:120}',
        'image': '{image}',
    }
    _indexes = {
        'article_date': ['date'],
        'article_status_date': ['status', 'date'],
    }

    title = Char(string='Title', required=True, size=255, translate=True, options={
        'scaffold.search': True,
        'scaffold.order': True,
    })
    teaser = Text(string='Teaser', translate=True, options={'scaffold.search': True})
    body = Text(string='Body', translate=True)
    image = Char(string='Image', size=255, options={'scaffold.form.type': 'image', 'upload.path': '%public%/upload/blog'})
    date = Date(string='Date', options={
        'scaffold.form.tab': 'meta',
        'scaffold.order': {'ASC': '{date} ASC, {id} ASC', 'DESC': '{date} DESC, {id} DESC'},
    })
    status = Selection([('draft', 'blog.status.draft'), ('published', 'blog.status.published')], string='Status', default='draft', options={'scaffold.form.tab': 'meta'})
    is_featured = Boolean(string='Featured', options={'scaffold.export.omit': True, 'scaffold.form.tab': 'meta'})
    author = Many2one('blog.person', string='Author', options={'scaffold.form.type': 'select', 'scaffold.form.tab': 'meta'})
    tags = Many2many('blog.tag', string='Tags', options={'scaffold.form.type': 'tags', 'scaffold.form.tab': 'meta'})
