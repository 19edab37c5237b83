import datetime

from ormweb.config import Settings
from ormweb.exceptions import ValidationException
from ormweb.fields import Boolean, Char, Date, File, Float, Image, Many2many, Many2one, One2many, Selection, Text
from ormweb.form.builder import FormBuilder, parse_nested
from ormweb.form.component import COMPONENT, HIDDEN, OMITTED, OPTION, PROPERTY, ScaffoldComponent, ScaffoldContext
from ormweb.form.config import ScaffoldConfig
from ormweb.form.rows import CollectionRow, ComponentRow, FileRow, LabelRow, OptionRow, PROTOTYPE_KEY, TagsRow
from ormweb.orm import Model
from ormweb.routing import url_for
from ormweb.security import SecurityManager
from ormweb.service import OrmService
from ormweb.tests.common import OrmCase

class Writer(Model):
    _name = 'test.form.writer'
    _description = 'Writer'

    name = Char(string='Name', required=True, size=50)
    posts = One2many('test.form.post', 'writer', string='Posts')

class Label(Model):
    _name = 'test.form.label'

    name = Char(string='Name')

class Post(Model):
    _name = 'test.form.post'
    _rec_name = 'title'

    title = Char(string='Title', required=True, size=20)
    body = Text(string='Body')
    published = Boolean(string='Published')
    kind = Selection([('news', 'News'), ('blog', 'Blog')], string='Kind')
    writer = Many2one('test.form.writer', string='Writer')
    labels = Many2many('test.form.label', string='Labels', options={'scaffold.form.type': 'option'})
    secret = Char(string='Secret', options={'scaffold.form.omit': True})
    notes = Text(options={'scaffold.form.permission': 'post.notes'})
    comments = One2many('test.form.comment', 'post', string='Comments')

class Comment(Model):
    _name = 'test.form.comment'
    _rec_name = 'body'

    body = Char(string='Body', required=True)
    post = Many2one('test.form.post', string='Post')

class Keyword(Model):
    _name = 'test.form.keyword'

    name = Char(string='Name')

class Product(Model):
    _name = 'test.form.product'

    price = Float(string='Price')
    released = Date(string='Released')
    available = Boolean(string='Available')
    cover = Image(string='Cover', options={'upload.path': '%public%/covers'})
    manual = File(string='Manual', options={'upload.path': '%application%/manuals'})
    keywords = Many2many('test.form.keyword', string='Keywords', size=2, options={'scaffold.form.type': 'tags'})
    brand = Many2one('test.form.keyword', string='Brand', options={'scaffold.form.type': 'label'})


class TestScaffoldConfig(OrmCase):

    def test_for_model(self):
        config = ScaffoldConfig.for_model(Post._meta)
        self.assertEqual(config.depth, 1)
        self.assertTrue(config.is_hidden('id'))
        self.assertTrue(config.is_omitted('secret'))
        # No security manager, no permission check
        self.assertFalse(config.is_omitted('notes'))

    def test_field_permission(self):
        config = ScaffoldConfig.for_model(Post._meta, SecurityManager(['orm.*']))
        self.assertTrue(config.is_omitted('notes'))

        config = ScaffoldConfig.for_model(Post._meta, SecurityManager(['post.*']))
        self.assertFalse(config.is_omitted('notes'))

    def test_copies(self):
        config = ScaffoldConfig.for_model(Post._meta)
        omitted = config.omit('body')
        self.assertTrue(omitted.is_omitted('body'))
        self.assertFalse(config.is_omitted('body'))

        deeper = config.with_depth(3).with_field_depth('writer', 5).with_field_depth('comments', 2)
        self.assertEqual(deeper.get_field_depth('writer'), 3)
        self.assertEqual(deeper.get_field_depth('comments'), 2)
        self.assertEqual(deeper.get_field_depth('labels'), 3)

        localized = config.with_locale('nl')
        self.assertEqual(localized.locale, 'nl')
        self.assertIsNone(config.locale)

        hidden = config.hide('body', 'writer')
        self.assertTrue(hidden.is_hidden('writer'))
        self.assertTrue(hidden.is_hidden('id'))
        self.assertFalse(config.is_hidden('writer'))

        component = ScaffoldComponent(ScaffoldContext(OrmService(self.orm), self.translator), self.orm.get_model('test.form.post'), hidden)
        self.assertEqual(component.get_kind('writer').kind, HIDDEN)
        self.assertIn('writer', component.proxy)


class ComponentCase(OrmCase):

    def setUp(self):
        super().setUp()
        self.context = ScaffoldContext(OrmService(self.orm), self.translator)
        self.posts = self.orm.get_model('test.form.post')

    def get_component(self, depth=1):
        config = ScaffoldConfig.for_model(self.posts.get_meta(), depth=depth)
        return ScaffoldComponent(self.context, self.posts, config)

    def get_row(self, rows, name):
        for row in rows:
            if row.name == name:
                return row
        return None


class TestClassification(ComponentCase):

    def test_kinds(self):
        component = self.get_component()

        self.assertEqual(component.get_kind('id').kind, HIDDEN)
        self.assertEqual(component.get_kind('title').kind, PROPERTY)
        self.assertEqual(component.get_kind('title').type, 'string')
        self.assertEqual(component.get_kind('published').type, 'boolean')
        self.assertEqual(component.get_kind('secret').kind, OMITTED)
        self.assertEqual(component.get_kind('kind').kind, OPTION)
        self.assertEqual(component.get_kind('labels').kind, OPTION)
        self.assertEqual(component.get_kind('writer').kind, COMPONENT)
        self.assertEqual(component.get_kind('writer').depth, 1)
        self.assertEqual(component.get_kind('comments').kind, COMPONENT)

        self.assertEqual(component.proxy, {'labels'})
        self.assertNotIn('secret', component.get_row_names())

    def test_no_depth_left(self):
        component = self.get_component(depth=0)

        self.assertEqual(component.get_kind('writer').kind, OPTION)
        self.assertEqual(component.get_kind('comments').kind, OPTION)
        self.assertEqual(component.proxy, {'writer', 'labels', 'comments'})

    def test_nested_components(self):
        rows = self.get_component().build_rows()

        writer = self.get_row(rows, 'writer')
        self.assertIsInstance(writer, ComponentRow)
        self.assertEqual(writer.component.get_config().depth, 0)
        # The back reference to the post is left out
        self.assertNotIn('posts', writer.component.get_row_names())

        comments = self.get_row(rows, 'comments')
        self.assertIsInstance(comments, CollectionRow)
        self.assertNotIn('post', comments.component.get_row_names())
        self.assertIn('body', comments.component.get_row_names())

    def test_depth_is_bounded(self):
        rows = self.get_component(depth=2).build_rows()

        writer = self.get_row(rows, 'writer')
        self.assertEqual(writer.component.get_config().depth, 1)
        self.assertIsNone(self.get_row(writer.rows, 'posts'))

        comments = self.get_row(rows, 'comments')
        comment_rows = comments.prototype.rows
        self.assertIsNone(self.get_row(comment_rows, 'post'))

    def test_option_rows(self):
        writer = self.create('test.form.writer', name='Ann')
        rows = self.get_component(depth=0).build_rows()

        kind = self.get_row(rows, 'kind')
        self.assertIsInstance(kind, OptionRow)
        self.assertEqual(kind.input_type, 'select')
        self.assertEqual(kind.choices, {'news': 'News', 'blog': 'Blog'})

        writer_row = self.get_row(rows, 'writer')
        self.assertEqual(list(writer_row.choices.items()), [('', None), (writer.get_id(), 'Ann')])

        labels = self.get_row(rows, 'labels')
        self.assertTrue(labels.multiple)
        self.assertEqual(labels.input_type, 'checkbox')
        self.assertNotIn('', labels.choices)

    def test_parse_set_data(self):
        writer = self.create('test.form.writer', name='Ann')
        label = self.create('test.form.label', name='a')
        post = self.create('test.form.post', title='Hello', writer=writer, labels=[label])

        data = self.get_component(depth=0).parse_set_data(post)
        self.assertEqual(data['writer'], writer.get_id())
        self.assertEqual(data['labels'], [label.get_id()])
        self.assertNotIn('secret', data)
        self.assertIsNone(self.get_component().parse_set_data(None))

    def test_parse_get_data(self):
        label = self.create('test.form.label', name='a')
        component = self.get_component(depth=0)

        entry = component.parse_get_data({'title': 'New', 'labels': [str(label.get_id())]})
        self.assertTrue(entry.is_new())
        self.assertEqual(entry.title, 'New')
        self.assertIs(entry.published, False)
        self.assertEqual(entry.comments, [])
        self.assertEqual([item.get_id() for item in entry.labels], [label.get_id()])


class TestForm(ComponentCase):

    def setUp(self):
        super().setUp()
        self.writer = self.create('test.form.writer', name='Ann')
        self.label_a = self.create('test.form.label', name='a')
        self.label_b = self.create('test.form.label', name='b')

        comments = self.orm.get_model('test.form.comment')
        self.comment = comments.create_entry({'body': 'First'})
        self.post = self.create(
            'test.form.post', title='Hello', writer=self.writer, labels=[self.label_a], comments=[self.comment],
        )

    def test_submit(self):
        form = FormBuilder(self.get_component(), self.post).build()
        body = parse_nested([
            ('_form', form.get_name()),
            ('id', str(self.post.get_id())),
            ('title', '  Updated  '),
            ('kind', 'blog'),
            ('writer[id]', str(self.writer.get_id())),
            ('writer[name]', 'Ann B'),
            ('labels[]', str(self.label_b.get_id())),
            ('comments[0][id]', str(self.comment.get_id())),
            ('comments[0][body]', 'Edited'),
            ('comments[1][id]', ''),
            ('comments[1][body]', 'Second'),
            (f'comments[{PROTOTYPE_KEY}][body]', ''),
        ])

        self.assertTrue(form.is_submitted(body))
        form.process(body)
        form.validate()
        entry = form.get_data()

        self.assertIs(entry, self.post)
        self.assertEqual(entry.title, 'Updated')
        self.assertEqual(entry.kind, 'blog')
        self.assertIs(entry.published, False)
        self.assertEqual([item.get_id() for item in entry.labels], [self.label_b.get_id()])
        self.assertEqual(len(entry.comments), 2)

        self.posts.save(entry)

        post = self.posts.get_by_id(self.post.get_id())
        self.assertEqual(post.title, 'Updated')
        self.assertEqual(post.writer.name, 'Ann B')
        self.assertEqual(post.writer.get_id(), self.writer.get_id())
        self.assertEqual([comment.body for comment in post.comments], ['Edited', 'Second'])
        self.assertEqual(post.comments[0].get_id(), self.comment.get_id())

    def test_foreign_item_id_is_not_updated(self):
        other = self.create('test.form.comment', body='Other')

        form = FormBuilder(self.get_component(), self.post).build()
        form.process({
            '_form': form.get_name(),
            'id': str(self.post.get_id()),
            'title': 'Hello',
            'writer': {'id': str(self.writer.get_id()), 'name': 'Ann'},
            'comments': {'0': {'id': str(other.get_id()), 'body': 'Hijacked'}},
        })
        entry = form.get_data()

        self.assertTrue(entry.comments[0].is_new())
        self.posts.save(entry)

        comments = self.orm.get_model('test.form.comment')
        self.assertEqual(comments.get_by_id(other.get_id()).body, 'Other')

    def test_new_entry_ignores_submitted_ids(self):
        form = FormBuilder(self.get_component(), self.posts.create_entry()).build()
        form.process({
            '_form': form.get_name(),
            'id': str(self.post.get_id()),
            'title': 'Hijacked',
            'writer': {'id': str(self.writer.get_id()), 'name': 'Hijacked'},
        })
        form.validate()
        entry = form.get_data()

        self.assertTrue(entry.is_new())
        self.assertTrue(entry.writer.is_new())
        self.posts.save(entry)

        self.assertNotEqual(entry.get_id(), self.post.get_id())
        self.assertNotEqual(entry.writer.get_id(), self.writer.get_id())
        self.assertEqual(self.posts.get_by_id(self.post.get_id()).title, 'Hello')
        writers = self.orm.get_model('test.form.writer')
        self.assertEqual(writers.get_by_id(self.writer.get_id()).name, 'Ann')

    def test_validation_errors(self):
        form = FormBuilder(self.get_component(), self.post).build()
        form.process({
            '_form': form.get_name(),
            'title': 'x' * 25,
            'writer': {'name': ''},
            'comments': {'0': {'id': str(self.comment.get_id()), 'body': ''}},
        })

        with self.assertRaises(ValidationException) as context:
            form.validate()

        errors = context.exception.get_all_errors()
        self.assertIn('title', errors)
        self.assertIn('writer[name]', errors)
        self.assertIn('comments[0][body]', errors)

        form.set_validation_exception(context.exception)
        self.assertTrue(form.has_errors())
        self.assertTrue(form.get_row('comments[0][body]').errors)

        view = form.get_view()
        title = [row for row in view['rows'] if row['name'] == 'title'][0]
        self.assertTrue(title['errors'])

    def test_empty_new_component_is_none(self):
        form = FormBuilder(self.get_component(), self.posts.create_entry()).build()
        form.process({'_form': form.get_name(), 'title': 'New', 'writer': {'name': ''}})
        form.validate()
        entry = form.get_data()

        self.assertIsNone(entry.writer)
        self.assertEqual(entry.comments, [])

    def test_view(self):
        form = FormBuilder(self.get_component(), self.post).build()
        view = form.get_view()

        self.assertEqual(view['name'], 'form-test-form-post')
        names = [row['name'] for row in view['rows']]
        self.assertNotIn('secret', names)
        self.assertEqual(view['hidden'][0]['name'], 'id')

        comments = [row for row in view['rows'] if row['name'] == 'comments'][0]
        self.assertEqual(comments['items'][0]['rows'][1]['name'], 'comments[0][body]')
        self.assertEqual(comments['items'][0]['rows'][1]['value'], 'First')
        self.assertEqual(comments['prototype']['name'], f'comments[{PROTOTYPE_KEY}]')


class Person(Model):
    _name = 'test.scenario.person'

    name = Char(string='Name', required=True)
    mentor = Many2one('test.scenario.person', string='Mentor')

class Tag(Model):
    _name = 'test.scenario.tag'

    name = Char(string='Name')

class Article(Model):
    _name = 'test.scenario.article'
    _rec_name = 'title'

    title = Char(string='Title')
    author = Many2one('test.scenario.person', string='Author', options={'scaffold.form.depth': 1})
    editor = Many2one('test.scenario.person', string='Editor', options={'scaffold.form.type': 'select'})
    tags = Many2many('test.scenario.tag', string='Tags', options={'scaffold.form.depth': 0})

class Category(Model):
    _name = 'test.scenario.category'

    name = Char(string='Name')
    parent = Many2one('test.scenario.category', string='Parent')
    children = One2many('test.scenario.category', 'parent', string='Children')


def get_nesting(rows):
    nesting = 0
    for row in rows:
        if isinstance(row, CollectionRow):
            nesting = max(nesting, 1 + get_nesting(row.prototype.rows))
        elif isinstance(row, ComponentRow):
            nesting = max(nesting, 1 + get_nesting(row.rows))
    return nesting


class TestScenario(OrmCase):

    def setUp(self):
        super().setUp()
        self.context = ScaffoldContext(OrmService(self.orm), self.translator)

    def get_component(self, model_name, depth):
        model = self.orm.get_model(model_name)
        return ScaffoldComponent(self.context, model, ScaffoldConfig.for_model(model.get_meta(), depth=depth))

    def test_article(self):
        component = self.get_component('test.scenario.article', 2)
        rows = component.build_rows()
        rows = {row.name: row for row in rows}

        self.assertEqual(component.get_kind('title').kind, PROPERTY)
        self.assertEqual(rows['title'].input_type, 'text')

        self.assertIsInstance(rows['author'], ComponentRow)
        self.assertEqual(rows['author'].component.get_config().depth, 0)
        self.assertEqual(rows['author'].component.get_kind('mentor').kind, OPTION)

        # An explicit select type wins over the remaining depth
        self.assertIsInstance(rows['editor'], OptionRow)
        self.assertIsInstance(rows['tags'], OptionRow)
        self.assertTrue(rows['tags'].multiple)

    def test_classification_is_deterministic(self):
        first = self.get_component('test.scenario.article', 2)
        second = self.get_component('test.scenario.article', 2)
        self.assertEqual(list(first.kinds.items()), list(second.kinds.items()))

    def test_recursion_is_bounded(self):
        for depth in range(4):
            rows = self.get_component('test.scenario.category', depth).build_rows()
            self.assertLessEqual(get_nesting(rows), depth)

        self.assertEqual(get_nesting(self.get_component('test.scenario.category', 0).build_rows()), 0)
        self.assertGreater(get_nesting(self.get_component('test.scenario.category', 3).build_rows()), 0)


class TestRoundTrip(ComponentCase):

    def test_has_many_round_trip(self):
        comments = self.orm.get_model('test.form.comment')
        first = comments.create_entry({'body': 'First'})
        second = comments.create_entry({'body': 'Second'})
        post = self.create('test.form.post', title='Hello', comments=[first, second])

        component = self.get_component(depth=1)
        entry = component.parse_get_data(component.parse_set_data(post))

        self.assertEqual(len(entry.comments), 2)
        self.assertEqual([item.get_id() for item in entry.comments], [first.get_id(), second.get_id()])

    def test_missing_values(self):
        entry = self.get_component(depth=0).parse_get_data({})

        self.assertIs(entry.published, False)
        self.assertIsNone(entry.title)
        self.assertIsNone(entry.body)
        self.assertIsNone(entry.writer)
        self.assertEqual(entry.labels, [])


class TestPropertyRows(OrmCase):

    def setUp(self):
        super().setUp()
        # Registers the route of the REST listing
        import ormweb.api.router  # noqa: F401

        settings = Settings(application_dir='/srv/app', public_dir='/srv/pub')
        context = ScaffoldContext(OrmService(self.orm), self.translator, settings=settings, url_for=url_for)
        products = self.orm.get_model('test.form.product')
        self.component = ScaffoldComponent(context, products, ScaffoldConfig.for_model(products.get_meta()))
        self.rows = {row.name: row for row in self.component.build_rows()}

    def test_number_and_boolean(self):
        price = self.rows['price']
        self.assertEqual(price.type, 'number')
        self.assertEqual(price.input_type, 'number')
        self.assertEqual(price.attributes['step'], 'any')

        price.process({'price': '12.5'})
        self.assertEqual(price.get_data(), 12.5)

        self.assertEqual(self.rows['available'].attributes['data-toggle-dependant'], 'option-available')

    def test_date_is_rounded(self):
        released = self.rows['released']
        self.assertTrue(released.get_option('round'))

        released.set_data(datetime.datetime(2024, 5, 1, 13, 30))
        self.assertEqual(released.get_data(), datetime.date(2024, 5, 1))

        released.process({'released': '2024-06-02T08:15'})
        self.assertEqual(released.get_data(), datetime.date(2024, 6, 2))

    def test_upload_paths(self):
        cover = self.rows['cover']
        self.assertIsInstance(cover, FileRow)
        self.assertEqual(cover.type, 'image')
        self.assertEqual(cover.get_option('path'), '/srv/pub/covers')

        self.assertEqual(self.rows['manual'].get_option('path'), '/srv/app/manuals')

    def test_tags(self):
        existing = self.create('test.form.keyword', name='a')

        keywords = self.rows['keywords']
        self.assertIsInstance(keywords, TagsRow)
        self.assertEqual(self.component.get_kind('keywords').kind, PROPERTY)
        self.assertEqual(keywords.get_option('autocomplete_url'), '/api/orm/test.form.keyword?filter[match][name]=%term%')
        self.assertEqual(keywords.get_option('max_items'), 2)

        keywords.process({'keywords': 'A, b, a'})
        tags = keywords.get_data()
        self.assertEqual(len(tags), 2)
        self.assertEqual(tags[0].get_id(), existing.get_id())
        self.assertTrue(tags[1].is_new())
        self.assertEqual(keywords.get_view()['value'], 'a, b')

        keywords.process({'keywords': 'a, b, c'})
        exception = ValidationException()
        keywords.validate(exception)
        self.assertIn('keywords', exception.get_all_errors())

    def test_label(self):
        brand = self.rows['brand']
        self.assertIsInstance(brand, LabelRow)
        self.assertTrue(brand.readonly)

        brand.set_data(self.create('test.form.keyword', name='Acme'))
        self.assertEqual(brand.get_view()['value'], 'Acme')

        brand.process({'brand': 'Other'})
        self.assertEqual(brand.get_data().get_field('name'), 'Acme')
