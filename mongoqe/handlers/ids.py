"""
### Identifiers

`ids` is a list of portable identifiers: strings, as they come out of a reply.

```python
{'do': 'find', 'on': 'supers', 'ids': ['5f1d7c2b9d3e2a0001a1b2c3', '5f1d7c2b9d3e2a0001a1b2c4']}
```

They constrain the identifier field to the given set. Together with `match`,
they narrow the selection: a document has to be one of `ids`, *and* to match.
"""

from bson import ObjectId

from .base import EnvelopeHandlerBase


def to_native_id(value):
    """ Convert a portable identifier into the one MongoDB stores

        Strings that look like an ObjectId become one; anything else is used as is:
        collections are free to use their own identifiers (ints, UUID strings, ...)
    """
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def to_portable_id(value):
    """ Convert a native identifier into its portable string form """
    if isinstance(value, ObjectId):
        return str(value)
    return value


class MongoIds(EnvelopeHandlerBase):
    """ Envelope `ids` -> identifier-in-set constraint """

    envelope_section_name = 'ids'

    def __init__(self, id_field='_id'):
        """
        :param id_field: The primary identifier field
        """
        super(MongoIds, self).__init__()

        # Config
        self.id_field = id_field

        # On input
        #: list of native identifiers, or None when not given
        self.ids = None

    def input(self, ids):
        super(MongoIds, self).input(ids)

        if ids is None:
            self.ids = None
        elif isinstance(ids, (list, tuple)):
            self.ids = [to_native_id(i) for i in ids]
        else:
            self.raise_invalid('must be an array; {} provided', type(ids).__name__)
        return self

    def is_input_empty(self):
        # `ids=[]` selects nothing, and it is not the same as no `ids` at all
        return self.ids is None

    @property
    def count(self):
        """ The number of identifiers given """
        return len(self.ids or ())

    def compile_statement(self):
        """ Create the identifier constraint

        :rtype: dict
        """
        if self.ids is None:
            return {}
        return {self.id_field: {'$in': list(self.ids)}}
