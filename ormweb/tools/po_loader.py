import os
import re

from ..logger import logger

class POLoader:
    """
    Simple parser for standard PO format:
        msgid "Source"
        msgstr "Target"
    """
    pattern = re.compile(r'msgid\s+"((?:[^"\\]|\\.)*)"\s+msgstr\s+"((?:[^"\\]|\\.)*)"')
    escape_pattern = re.compile(r'\\(.)')
    escapes = {'n': '\n', 't': '\t'}

    @classmethod
    def unescape(cls, value):
        return cls.escape_pattern.sub(lambda match: cls.escapes.get(match.group(1), match.group(1)), value)

    @classmethod
    def load_po(cls, file_path):
        """
        Parses a .po file into a dict of translations.
        """
        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()

        translations = {}
        for source, target in cls.pattern.findall(content):
            source = cls.unescape(source)
            target = cls.unescape(target)

            if not source or not target: continue

            translations[source] = target

        logger.debug(f"Loaded {len(translations)} translations from {file_path}")
        return translations

    @classmethod
    def load_directory(cls, directory):
        """
        Loads all <locale>.po files of a directory.
        :return: dict locale -> translations
        """
        result = {}
        if not os.path.isdir(directory):
            return result

        for item in sorted(os.listdir(directory)):
            if not item.endswith('.po'):
                continue
            locale = item[:-3]
            result.setdefault(locale, {}).update(cls.load_po(os.path.join(directory, item)))

        return result
