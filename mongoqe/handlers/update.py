"""
### Update

An `update` envelope modifies the documents it selects. There are two ways to say how:

* `updates`: a list of field-level directives, each one is `{field: {op: value}}`:

    * `{a: {'set': 1}}` - set the value: `$set`
    * `{a: {'unset': ''}}` - remove the field: `$unset`
    * `{a: {'rename': 'b'}}` - rename the field: `$rename`
    * `{a: {'inc': 1}}` - increment: `$inc`
    * `{a: {'push': 1}}` - append one value to an array: `$push`.
        With an array value, every element is appended: `$push` + `$each`
    * `{a: {'pull': 1}}` - remove one value from an array: `$pull`.
        With an array value, every element is removed: `$pullAll`

* `body`: a list with one document, whose fields are `$set`.

    When a field is both in `updates` and in `body`, the `body` wins.
    When `updates` has the same field with the same operator twice, the first one wins.

```python
{'do': 'update', 'on': 'supers', 'ids': ['5f1d7c2b9d3e2a0001a1b2c3'],
 'updates': [{'power': {'inc': 2}}, {'extra': {'push': ['c', 'd']}}],
 'body': [{'type': 'wizard'}]}
```
"""

from .base import EnvelopeHandlerBase


class MongoUpdate(EnvelopeHandlerBase):
    """ Envelope `updates` and `body` -> MongoDB update document """

    envelope_section_name = 'updates'

    # Update operators: operator => native operator
    _update_operators = {
        'set': '$set',
        'unset': '$unset',
        'rename': '$rename',
        'inc': '$inc',
        'push': '$push',
        'pull': '$pull',
    }

    def __init__(self):
        super(MongoUpdate, self).__init__()

        # On input
        #: The update document: {$op: {field: value}}
        self.update_doc = None

    def input_prepare_envelope(self, envelope):
        """ Alter the Query Envelope

        This handler receives 2 values: 'updates' and 'body'.
        Pack them as a tuple, the same way MongoLimit does it.
        """
        if 'updates' in envelope or 'body' in envelope:
            envelope['updates'] = (envelope.pop('updates', None),
                                   envelope.get('body', None))
        return envelope

    def input(self, updates=None, body=None):
        # MongoEnvelope actually gives us a tuple (updates, body)
        if isinstance(updates, tuple):
            updates, body = updates

        super(MongoUpdate, self).input((updates, body))

        update_doc = {}

        # Field-level directives
        if updates is not None:
            if not isinstance(updates, (list, tuple)):
                self.raise_invalid('must be an array; {} provided', type(updates).__name__)
            for directive in updates:
                self._fold_directive(update_doc, directive)

        # Whole-document body: only the first element is used.
        # It overwrites whatever `updates` has set on the same fields.
        if body:
            doc = body[0] if isinstance(body, (list, tuple)) else body
            if not isinstance(doc, dict):
                self.raise_invalid('body must be an object; {} provided', type(doc).__name__)
            if doc:
                update_doc.setdefault('$set', {}).update(doc)

        self.update_doc = update_doc
        return self

    def _fold_directive(self, update_doc, directive):
        """ Add a single {field: {op: value}} directive to the update document """
        if not isinstance(directive, dict) or len(directive) != 1:
            self.raise_invalid('a directive must be an object with exactly one field; {!r} provided', directive)

        field, operation = next(iter(directive.items()))
        if not isinstance(operation, dict) or len(operation) != 1:
            self.raise_invalid('field `{}` must have exactly one operator; {!r} provided', field, operation)

        op, value = next(iter(operation.items()))
        try:
            native_operator = self._update_operators[op]
        except KeyError:
            self.raise_invalid('unsupported operator "{}" found for field `{}`', op, field)

        # Arrays: push every element, pull every element
        if op == 'push' and isinstance(value, (list, tuple)):
            value = {'$each': list(value)}
        elif op == 'pull' and isinstance(value, (list, tuple)):
            native_operator, value = '$pullAll', list(value)

        # Directives with the same operator are merged into one object.
        # When a field repeats, the first directive wins.
        update_doc.setdefault(native_operator, {}).setdefault(field, value)

    def is_input_empty(self):
        return not self.update_doc

    def compile_statement(self):
        """ Get the update document. An empty document means there's nothing to update

        :rtype: dict
        """
        return {op: dict(fields) for op, fields in self.update_doc.items()}
