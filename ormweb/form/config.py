from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict

from ..meta import PRIMARY_KEY

class ScaffoldConfig(BaseModel):
    """
    Immutable configuration of a scaffold form component.

    The builder methods return a modified copy.
    """
    model_config = ConfigDict(frozen=True)

    depth: int = 1
    field_depths: Dict[str, int] = {}
    hidden: FrozenSet[str] = frozenset({PRIMARY_KEY})
    omitted: FrozenSet[str] = frozenset()
    locale: Optional[str] = None

    @classmethod
    def for_model(cls, meta, security=None, depth=None, locale=None):
        """
        Derives the configuration from the field options of a model:
        scaffold.form.omit, scaffold.form.type=hidden, scaffold.form.depth and
        scaffold.form.permission.
        """
        hidden = {PRIMARY_KEY}
        omitted = set()
        field_depths = {}

        for name, field in meta.get_fields().items():
            if field.get_option('scaffold.form.omit'):
                omitted.add(name)

            if field.get_option('scaffold.form.type') == 'hidden':
                hidden.add(name)

            field_depth = field.get_option('scaffold.form.depth')
            if field_depth is not None:
                field_depths[name] = int(field_depth)

            permission = field.get_option('scaffold.form.permission')
            if permission and security is not None and not security.is_permission_granted(permission):
                omitted.add(name)

        if depth is None:
            depth = int(meta.get_option('scaffold.form.depth', 1))

        return cls(
            depth=depth,
            field_depths=field_depths,
            hidden=frozenset(hidden),
            omitted=frozenset(omitted),
            locale=locale,
        )

    def with_depth(self, depth):
        return self.model_copy(update={'depth': depth})

    def with_locale(self, locale):
        return self.model_copy(update={'locale': locale})

    def with_field_depth(self, name, depth):
        field_depths = dict(self.field_depths)
        field_depths[name] = depth
        return self.model_copy(update={'field_depths': field_depths})

    def omit(self, *names):
        return self.model_copy(update={'omitted': self.omitted | frozenset(names)})

    def hide(self, *names):
        return self.model_copy(update={'hidden': self.hidden | frozenset(names)})

    def is_omitted(self, name):
        return name in self.omitted

    def is_hidden(self, name):
        return name in self.hidden

    def get_field_depth(self, name):
        """
        Depth for a relation field, never deeper than the remaining depth.
        """
        return min(self.field_depths.get(name, self.depth), self.depth)
