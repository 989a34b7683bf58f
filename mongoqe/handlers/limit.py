"""
### Slice

The slice consists of two optional parts:

* `limit` would limit the number of documents returned
* `offset` would shift the "window" a number of documents

Together, these two elements implement pagination.

```python
{'do': 'find', 'on': 'supers', 'sort': ['handle'], 'limit': 10, 'offset': 20}  # third page
```

Values: non-negative integers, or `None`. A zero is the same as no value at all.
"""

from .base import EnvelopeHandlerBase


class MongoLimit(EnvelopeHandlerBase):
    """ MongoDB limits and offsets

        Handles two keys:
        * 'limit': None, or int: cursor.limit()
        * 'offset': None, or int: cursor.skip()
    """

    envelope_section_name = 'limit'

    def __init__(self, max_items=None):
        """ Init a limit

        :param max_items: The maximum number of items that can be loaded with this query.
            The user can never go any higher than that, and this value is forced onto every query.
        """
        super(MongoLimit, self).__init__()

        # Config
        self.max_items = max_items
        assert self.max_items is None or self.max_items > 0

        # On input
        self.skip = None
        self.limit = None

    def input_prepare_envelope(self, envelope):
        """ Alter the Query Envelope

        Unlike other handlers, this one receives 2 values: 'offset' and 'limit'.
        MongoEnvelope only supports one key per handler.
        Solution: pack them as a tuple
        """
        if 'offset' in envelope or 'limit' in envelope:
            envelope['limit'] = (envelope.pop('offset', None),
                                 envelope.pop('limit', None))
            if envelope['limit'] == (None, None):
                envelope.pop('limit')  # remove it if it's actually empty
        return envelope

    def input(self, skip=None, limit=None):
        # MongoEnvelope actually gives us a tuple (offset, limit)
        # Adapt.
        if isinstance(skip, tuple):
            skip, limit = skip

        # Super
        super(MongoLimit, self).input((skip, limit))

        # Validate
        if not _is_count(skip):
            self.raise_invalid('offset must be either a non-negative integer, or null; {!r} provided', skip)
        if not _is_count(limit):
            self.raise_invalid('limit must be either a non-negative integer, or null; {!r} provided', limit)

        # Zero means "not set"
        skip = skip or None
        limit = limit or None

        # Max limit
        if self.max_items:
            limit = min(self.max_items, limit or self.max_items)

        # Done
        self.skip = skip
        self.limit = limit
        return self

    def is_input_empty(self):
        return not self.has_limit

    @property
    def has_limit(self):
        """ Check whether there's a limit on this handler """
        return self.limit is not None or self.skip is not None

    def alter_cursor(self, cursor):
        """ Apply skip() and limit() to the cursor

            Has to be called after the cursor is sorted
        """
        if self.limit:
            cursor = cursor.limit(self.limit)
        if self.skip:
            cursor = cursor.skip(self.skip)
        return cursor

    def get_final_input_value(self):
        return dict(offset=self.skip, limit=self.limit)


def _is_count(value):
    # bool is an int, but it makes no sense here
    return value is None or (isinstance(value, int) and not isinstance(value, bool) and value >= 0)
