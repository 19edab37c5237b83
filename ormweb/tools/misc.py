import importlib

def import_string(path):
    """
    Imports an attribute from a dotted path, eg 'addons.blog.controllers.ArticleController'.
    """
    module_name, _, attribute = path.rpartition('.')
    if not module_name:
        raise ImportError(f"'{path}' is not a dotted path")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise ImportError(f"Module '{module_name}' has no attribute '{attribute}'") from None

def ucfirst(value):
    if not value:
        return value
    return value[0].upper() + value[1:]
