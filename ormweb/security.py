from fnmatch import fnmatchcase

from .logger import logger

class SecurityManager:
    """
    Grants permissions matching one of the configured patterns, eg
    'orm.model.*.read' or '*'.
    """
    def __init__(self, permissions=None):
        self.permissions = list(permissions or [])

    def __repr__(self):
        return f"<SecurityManager {self.permissions}>"

    def grant(self, permission):
        self.permissions.append(permission)

    def revoke(self, permission):
        self.permissions = [granted for granted in self.permissions if granted != permission]

    def is_permission_granted(self, permission):
        granted = any(fnmatchcase(permission, pattern) for pattern in self.permissions)
        if not granted:
            logger.debug(f"Permission denied: {permission}")
        return granted
