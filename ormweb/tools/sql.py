from pypika import Parameter, Table

class SQLParams:
    """
    Collects the values bound to a rendered query. Every value gets the next
    $n placeholder, in the order it is bound.
    """
    def __init__(self, start_index=1):
        self.params = []
        self.start_index = start_index

    @property
    def next_placeholder(self):
        return f"${self.start_index + len(self.params)}"

    def bind(self, value):
        """
        :return: pypika Parameter for the bound value.
        """
        placeholder = self.next_placeholder
        self.params.append(value)
        return Parameter(placeholder)

    def bind_many(self, values):
        return [self.bind(value) for value in values]

    def get_params(self):
        return tuple(self.params)

    def __len__(self):
        return len(self.params)


def model_table(model_name):
    """
    Table of a model, blog.article is stored in blog_article.
    """
    return Table(model_name.replace('.', '_'))
