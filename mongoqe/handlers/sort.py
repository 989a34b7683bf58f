"""
### Sort

Sorting decides the order of the documents a `find()` returns.

`sort` is a list of field names, optionally prefixed with `-` for a descending order:

```python
{'do': 'find', 'on': 'supers', 'sort': ['-power', 'handle']}  # power DESC, handle ASC
```

The sort is always applied before `limit` and `offset`: otherwise, a page of results would be sorted,
and not the whole result set.
"""

from .select import MongoSelect, field_map


class MongoSort(MongoSelect):
    """ Envelope `sort` -> MongoDB sort specification

        * None: natural order
        * [ 'a', '-b' ]: list of field names, '-' is for descending
    """

    envelope_section_name = 'sort'

    #: Sort direction for the '-' fields
    DESCENDING = -1

    def __init__(self):
        # No settings: the direction is not configurable
        super(MongoSort, self).__init__(exclusion_value=self.DESCENDING)

        # On input
        #: dict of a sort spec: {key: +1|-1}. Keeps the ordering.
        self.sort_spec = None

    def input(self, names):
        # Skip MongoSelect.input(): it would store a projection
        super(MongoSelect, self).input(names)
        self.sort_spec = field_map(self._input(names), self.DESCENDING)
        return self

    def compile_statement(self):
        """ Get the sort spec as a list of (field, direction) pairs, or None

            A list, because the driver wants the ordering to be explicit
        """
        return list(self.sort_spec.items()) or None

    def get_final_input_value(self):
        return [name if d == 1 else '-' + name
                for name, d in self.sort_spec.items()]
