import re


class TypeMap:
    """Dict that looks up based on a class's bases.

    In the case of conflict, will return the first matching base.
    Lookup time is O(n), where n is # of bases a class has.
    """

    def __init__(self, dct=None):
        self._dict = dct or {}

    def put(self, cls, obj):
        self._dict[cls] = obj

    def lookup(self, cls):
        for base in cls.__mro__:
            try:
                return self._dict[base]
            except KeyError:
                pass


def clean_mass_mentions(text):
    """Keep replies from pinging @everyone or @here."""
    text = re.sub("@everyone", "@\u200beveryone", text, flags=re.IGNORECASE)
    return re.sub("@here", "@\u200bhere", text, flags=re.IGNORECASE)


def close_backticks(text):
    """Append a backtick if text has an odd number of them."""
    if text.count("`") % 2:
        return text + "`"
    return text
