{
    'name': 'Blog',
    'version': '1.0',
    'summary': 'Articles with authors and tags, managed through the scaffolds',
    'depends': [],
    'demo': [
        'data/blog.person.csv',
        'data/blog.tag.csv',
        'data/blog.article.csv',
    ],
}
