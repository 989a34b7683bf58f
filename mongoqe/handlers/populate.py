"""
### Populate

MongoDB has no joins. `populate` emulates them: once a `find` has got its documents,
the identifiers they reference are looked up in other collections, and the results are attached
to the reply under the `linked` key.

`populate` is an object: every key is a field of the found documents, every value is a directive:

```python
{'do': 'find', 'on': 'supers', 'populate': {
    # Values of `supers.tags` are identifiers in the `tags` collection
    'tags': {},
    # Values of `supers.friends` are matched against `supers.pk`; only load their handles
    'friends': {'key': 'pk', 'query': {'on': 'supers', 'select': ['handle']}},
}}
```

The reply:

```python
{'supers': [ ... ],
 'linked': {'tags': [ ... ], 'friends': [ ... ]}}
```

A directive may have:

* `key`: the field of the related collection to match the values against.
    Default: the related collection's primary identifier.
* `query`: an envelope for the lookup. It can give:
    * `on`: the related collection. Default: the name of the populated field.
    * anything else a `find` envelope can have: `select`, `sort`, `match`, etc.
      A `match` is ANDed together with the lookup condition.

Every lookup is a separate `find`; they all run concurrently.
When any of them fails, the whole operation fails: there are no partial replies.
"""

import asyncio
from copy import deepcopy

from .base import EnvelopeHandlerBase
from ..exc import PopulateLookupFailedError


class PopulateDirective:
    """ A single `populate` directive

        Populating is complicated enough to deserve an object that transports the necessary information
    """

    __slots__ = ('field', 'key', 'query')

    def __init__(self, field, key=None, query=None):
        """
        :param field: Name of the field on the found documents that holds the references
        :param key: Name of the field on the related documents to match the references against.
            None: use the identifiers (`ids`)
        :param query: Envelope to start the lookup with
        :type query: dict | None
        """
        self.field = field
        self.key = key
        self.query = query or {}

    @property
    def on(self):
        """ The related collection """
        return self.query.get('on') or self.field

    def lookup_envelope(self, candidates):
        """ Build a `find` envelope that loads the documents referenced by `candidates`

        The directive's own query is never modified.

        :param candidates: The referenced values
        :type candidates: list
        :rtype: dict
        """
        envelope = deepcopy(self.query)
        envelope['do'] = 'find'
        envelope['on'] = self.on

        if self.key is None:
            envelope['ids'] = list(candidates)
        else:
            condition = {self.key: {'in': list(candidates)}}
            match = envelope.get('match')
            if not match:
                envelope['match'] = {'and': [condition]}
            elif _is_and_container(match):
                match['and'].append(condition)
            else:
                envelope['match'] = {'and': [condition, match]}

        return envelope

    def __repr__(self):
        return '<PopulateDirective(field={!r}, on={!r}, key={!r})>'.format(self.field, self.on, self.key)


class MongoPopulate(EnvelopeHandlerBase):
    """ Envelope `populate` -> secondary lookups

        Unlike other handlers, this one does not compile into a statement:
        it runs queries of its own through the adapter.
    """

    envelope_section_name = 'populate'

    _DIRECTIVE_CLS = PopulateDirective

    def __init__(self):
        super(MongoPopulate, self).__init__()

        # On input
        #: dict[field, PopulateDirective]
        self.directives = None

    def input(self, populate):
        super(MongoPopulate, self).input(populate)

        if populate is None:
            populate = {}
        if not isinstance(populate, dict):
            self.raise_invalid('must be an object; {} provided', type(populate).__name__)

        self.directives = {field: self._input_directive(field, directive)
                           for field, directive in populate.items()}
        return self

    def _input_directive(self, field, directive):
        """ Validate a single directive """
        if directive is None:
            directive = {}
        if not isinstance(directive, dict):
            self.raise_invalid('directive for `{}` must be an object', field)

        invalid_keys = set(directive) - {'key', 'query'}
        if invalid_keys:
            self.raise_invalid('unknown keys in the directive for `{}`: {}', field, ', '.join(sorted(invalid_keys)))

        key = directive.get('key')
        query = directive.get('query')
        if key is not None and not (isinstance(key, str) and key):
            self.raise_invalid('"key" of `{}` must be a field name', field)
        if query is not None and not isinstance(query, dict):
            self.raise_invalid('"query" of `{}` must be an object', field)
        if query and query.get('on') is not None and not (isinstance(query['on'], str) and query['on']):
            self.raise_invalid('"query.on" of `{}` must be a collection name', field)

        return self._DIRECTIVE_CLS(field, key, query)

    def is_input_empty(self):
        return not self.directives

    def collect_candidates(self, rows):
        """ Collect the referenced values, for every directive

        Every document may hold a list of references, or a single one: both are fine.
        Duplicates are kept: MongoDB does not care.

        :param rows: The found documents
        :rtype: dict[str, list]
        """
        ret = {field: [] for field in self.directives}
        for row in rows:
            for field, candidates in ret.items():
                value = row.get(field)
                if value is None:
                    continue
                if isinstance(value, (list, tuple)):
                    candidates.extend(value)
                else:
                    candidates.append(value)
        return ret

    async def resolve(self, rows, exec):
        """ Run the lookups for every directive

        :param rows: The found documents
        :type rows: list[dict]
        :param exec: The function that executes envelopes: MongoAdapter.exec()
        :type exec: callable[[dict], Awaitable[dict]]
        :return: (rows, linked), where `linked` maps every populated field to the related documents
        :rtype: (list[dict], dict[str, list])
        :raises PopulateLookupFailedError: a lookup has failed. The other lookups are cancelled.
        """
        candidates = self.collect_candidates(rows)

        # Run them all at once
        lookups = {field: asyncio.ensure_future(self._lookup(directive, candidates[field], exec))
                   for field, directive in self.directives.items()}
        try:
            results = await asyncio.gather(*lookups.values())
        except BaseException:
            # The first failure wins; nobody is waiting for the others
            for lookup in lookups.values():
                lookup.cancel()
            raise

        return rows, dict(zip(lookups.keys(), results))

    async def _lookup(self, directive, candidates, exec):
        """ Run one lookup and pluck the documents from its reply """
        envelope = directive.lookup_envelope(candidates)
        try:
            reply = await exec(envelope)
        except Exception as e:
            raise PopulateLookupFailedError(directive.field, directive.on, e) from e
        return reply[directive.on]

    def get_final_input_value(self):
        return {field: dict(key=d.key, query=d.query)
                for field, d in self.directives.items()}


def _is_and_container(match):
    return isinstance(match, dict) and len(match) == 1 and isinstance(match.get('and'), list)
