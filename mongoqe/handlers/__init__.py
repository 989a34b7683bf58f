"""

A Query Envelope is a storage-agnostic description of a single request.
The adapter translates it into the native MongoDB syntax: selectors, projections, sorts, update operators.

A Query Envelope is an object with the following properties:

* `do`: the action: `create`, `find`, `update`, `remove`. Required.
* `on`: the collection. Required.
* `match`: [Match](#match) selects the documents to work on
* `ids`: [Identifiers](#identifiers) narrow the selection down to the given documents
* `select`: [Select](#select) chooses the fields to be loaded
* `sort`: [Sort](#sort) determines the ordering of the results
* `limit`, `offset`: [Slice](#slice) paginates the results
* `body`: the documents to create; or the fields to set when updating
* `updates`: [Update](#update) operators to apply
* `populate`: [Populate](#populate) loads linked documents from other collections

An example Query Envelope is:

```python
{
  'do': 'find',
  'on': 'supers',
  'select': ['handle', 'power', 'tags'],  # Only fetch these fields
  'match': {'power': {'gte': 5}},  # Only the mighty
  'sort': ['-power'],  # Strongest first
  'limit': 10,  # Top ten
  'populate': {'tags': {}},  # Load the tags they reference
}
```

Every section is handled by its own handler class.
"""

from .base import EnvelopeHandlerBase
from .match import MongoMatch, \
    MatchExpressionBase, MatchBooleanExpression, MatchFieldExpression
from .ids import MongoIds, to_native_id, to_portable_id
from .select import MongoSelect, field_map
from .sort import MongoSort
from .limit import MongoLimit
from .update import MongoUpdate
from .populate import MongoPopulate, PopulateDirective
