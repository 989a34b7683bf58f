"""
### Select

Selecting corresponds to the projection of a MongoDB `find()`: it decides which fields are returned.

`select` is a list of field names. A field prefixed with `-` is excluded:

```python
{'do': 'find', 'on': 'supers', 'select': ['handle', 'power']}  # -> {handle: 1, power: 1}
{'do': 'find', 'on': 'supers', 'select': ['-extra']}  # -> {extra: 0}
```

No `select` means all fields.
Mixing inclusions and exclusions follows the rules of the store: MongoDB only allows it for `_id`.
"""

from .base import EnvelopeHandlerBase


def field_map(names, exclusion_value=0):
    """ Convert a list of field names into a MongoDB projection map

        Example: ['a', '-b'] -> {a: 1, b: 0}

        The same map, with `exclusion_value=-1`, works as a sort specification:
        ['a', '-b'] -> {a: 1, b: -1}

    :param names: Field names, optionally prefixed with '-'
    :type names: list[str] | None
    :param exclusion_value: The value to give to the '-' fields
    :rtype: dict
    """
    if not names:
        return {}

    ret = {}
    for name in names:
        if name.startswith('-'):
            ret[name[1:]] = exclusion_value
        else:
            ret[name] = 1
    return ret


class MongoSelect(EnvelopeHandlerBase):
    """ Envelope `select` -> MongoDB projection

        * None: all fields
        * [ 'a', '-b' ]: list of field names, '-' excludes
    """

    envelope_section_name = 'select'

    def __init__(self, exclusion_value=0):
        """
        :param exclusion_value: The value for excluded fields
        """
        super(MongoSelect, self).__init__()

        # Config
        self.exclusion_value = exclusion_value

        # On input
        #: dict of a projection: {name: 1|exclusion_value}
        self.projection = None

    def _input(self, names):
        """ Reusable method: fits both MongoSelect and MongoSort """
        # Empty
        if names is None:
            return []

        # String syntax: split by whitespace
        if isinstance(names, str):
            names = names.split()

        if not isinstance(names, (list, tuple)):
            self.raise_invalid('must be an array of field names; {} provided', type(names).__name__)
        if not all(isinstance(n, str) and n.lstrip('-') for n in names):
            self.raise_invalid('every entry must be a non-empty field name; {!r} provided', names)

        return list(names)

    def input(self, names):
        super(MongoSelect, self).input(names)
        self.projection = field_map(self._input(names), self.exclusion_value)
        return self

    def compile_statement(self):
        """ Get the projection, or None when all fields are wanted """
        return dict(self.projection) or None

    def get_final_input_value(self):
        return [name if v == 1 else '-' + name
                for name, v in self.projection.items()]
