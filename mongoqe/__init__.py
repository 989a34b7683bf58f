"""
MongoQE executes storage-agnostic Query Envelopes against a [MongoDB](https://www.mongodb.com/) database.

The application describes what it wants with a plain object, a Query Envelope,
and never has to speak the native MongoDB syntax:

```python
await adapter.exec({
    'do': 'find',  # find documents
    'on': 'supers',  # in the `supers` collection
    'match': {'power': {'gte': 5}},  # power >= 5
    'sort': ['-power'],  # strongest first
    'limit': 10,  # top 10
    'populate': {'tags': {}},  # load the related tags
})
```

The reply is always the same shape: `{'supers': [...], 'linked': {'tags': [...]}}`.
"""

# Exceptions that are used here and there
from .exc import *

# Every section of a Query Envelope is handled by its own handler:
# that's where envelopes are converted to native MongoDB statements!
from . import handlers

# MongoEnvelope parses an envelope and puts the handlers to work
from .envelope import MongoEnvelope, Verb

# Settings for the adapter
from .settings import AdapterSettingsDict

# The connection, and the queue of envelopes waiting for it
from .connection import ConnectionManager, ConnectionState, MongoConnector

# The reply
from .reply import to_reply_format

# MongoAdapter is the entry point: it executes envelopes
from .adapter import MongoAdapter
