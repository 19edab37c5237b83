from .models import blog  # noqa: F401
