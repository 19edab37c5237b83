from .logger import get_logger

_logger = get_logger(__name__)

class Registry:
    """
    Process wide map of the model names to their declared classes. Models
    register themselves when their class is created; the registry is read by
    the ORM manager, the meta of the relations and the model browser.
    """
    _models = {}

    @classmethod
    def register(cls, name, model_cls):
        previous = cls._models.get(name)
        if previous is not None and previous is not model_cls:
            _logger.warning(f"Model {name} is declared again by {model_cls.__module__}.{model_cls.__name__}")
        cls._models[name] = model_cls

    @classmethod
    def get(cls, name):
        return cls._models.get(name)

    @classmethod
    def contains(cls, name):
        return name in cls._models

    @classmethod
    def names(cls):
        return sorted(cls._models)

    @classmethod
    def items(cls):
        return [(name, cls._models[name]) for name in cls.names()]
