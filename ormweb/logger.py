import logging
import json
import sys
import os
from datetime import datetime, timezone

ROOT_LOGGER = 'ormweb'
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

class JsonFormatter(logging.Formatter):
    """
    One JSON object per record. Values passed as extra={'context': {...}}
    are merged into the object.
    """
    fields = ('module', 'funcName', 'lineno')

    def format(self, record):
        payload = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for field in self.fields:
            payload[field] = getattr(record, field)

        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)

        context = getattr(record, 'context', None)
        if isinstance(context, dict):
            payload.update(context)

        return json.dumps(payload, default=str)


def create_formatter(log_format=None):
    if log_format is None:
        log_format = os.getenv('LOG_FORMAT', 'json')

    if log_format.lower() == 'text':
        return logging.Formatter(TEXT_FORMAT)

    return JsonFormatter()


def configure_logging(level=None, log_format=None, stream=None):
    """
    Attaches the single stream handler of the package to the ormweb logger.
    Loggers of the submodules propagate to it. Calling this again replaces
    the formatter and level of the existing handler.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel((level or os.getenv('LOG_LEVEL', 'INFO')).upper())
    root.propagate = False

    handler = next((h for h in root.handlers if getattr(h, '_ormweb', False)), None)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stdout)
        handler._ormweb = True
        root.addHandler(handler)

    handler.setFormatter(create_formatter(log_format))

    return root


def get_logger(name):
    """
    Logger below the ormweb namespace, the package is configured on first use.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        configure_logging()

    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + '.'):
        name = f'{ROOT_LOGGER}.{name}'

    return logging.getLogger(name)


logger = get_logger(ROOT_LOGGER)
