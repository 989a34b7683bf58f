"""
### Match

Matching corresponds to the selector of a MongoDB `find()`: it decides which documents an envelope works on.

A `match` is a tree. Its inner nodes are boolean containers, its leaves compare a single field to a value:

```python
{'do': 'find', 'on': 'supers', 'match': {
    'or': [
        {'type': {'eq': 'rogue'}},
        {'and': [
            {'power': {'gte': 5}},
            {'speed': {'lt': 10}},
        ]},
    ]
}}
```

#### Boolean containers

* `{'and': [ node, ... ]}` - all are true
* `{'or': [ node, ... ]}` - any is true

A container holds a list of at least one node.

An empty `match: {}` is the same as no `match` at all: every document.

#### Field operators

A leaf holds exactly one field with exactly one operator:

* `{a: {'eq': 1}}` - equality: `$eq`
* `{a: {'neq': 1}}` - inequality: `$ne`
* `{a: {'gt': 1}}`, `{a: {'gte': 1}}`, `{a: {'lt': 1}}`, `{a: {'lte': 1}}` - comparison: `$gt`, `$gte`, `$lt`, `$lte`
* `{a: {'in': [...]}}` - any of: `$in`
* `{a: {'nin': [...]}}` - none of: `$nin`
* `{a: {'all': [...]}}` - array field contains all of: `$all`

The tree is compiled node by node: operators are renamed in their key positions only.
Field names and values are copied as they are, even when they happen to look like an operator.
"""

from .base import EnvelopeHandlerBase


def _is_array(value):
    return isinstance(value, (list, tuple, set, frozenset))


class MatchExpressionBase:
    """ A node of the `match` tree """

    __slots__ = ('operator_str', 'value')

    def __init__(self, operator_str, value):
        self.operator_str = operator_str
        self.value = value

    def compile_expression(self):
        """ Compiles the node into a native MongoDB selector """
        raise NotImplementedError()


class MatchBooleanExpression(MatchExpressionBase):
    """ A boolean container

        Consists of: an operator (and, or), and a value (list of MatchExpressionBase)
    """

    __slots__ = ('native_operator',)

    def __init__(self, operator_str, native_operator, value):
        """
        :type operator_str: str
        :type value: list[MatchExpressionBase]
        """
        super(MatchBooleanExpression, self).__init__(operator_str, value)
        self.native_operator = native_operator

    def __repr__(self):
        return '({}: {})'.format(self.operator_str, self.value)

    def compile_expression(self):
        return {self.native_operator: [c.compile_expression() for c in self.value]}


class MatchFieldExpression(MatchExpressionBase):
    """ A leaf: an operator (eq, etc), a field, and a value to compare the field to """

    __slots__ = ('field', 'native_operator')

    def __init__(self, field, operator_str, native_operator, value):
        super(MatchFieldExpression, self).__init__(operator_str, value)
        self.field = field
        self.native_operator = native_operator

    def __repr__(self):
        return '{} {} {!r}'.format(self.field, self.operator_str, self.value)

    def compile_expression(self):
        return {self.field: {self.native_operator: self.value}}


class MongoMatch(EnvelopeHandlerBase):
    """ Envelope `match` tree -> MongoDB selector """

    envelope_section_name = 'match'

    # Boolean containers: operator => native operator
    _boolean_operators = {
        'and': '$and',
        'or': '$or',
    }

    # Field operators: operator => native operator
    _field_operators = {
        'eq': '$eq',
        'neq': '$ne',
        'in': '$in',
        'nin': '$nin',
        'all': '$all',
        'gt': '$gt',
        'gte': '$gte',
        'lt': '$lt',
        'lte': '$lte',
    }

    # List of operators that always require array argument
    _operators_require_array_value = frozenset(('in', 'nin', 'all'))

    # These classes implement compilation
    # You can override them, if necessary
    _FIELD_EXPRESSION_CLS = MatchFieldExpression
    _BOOLEAN_EXPRESSION_CLS = MatchBooleanExpression

    def __init__(self):
        super(MongoMatch, self).__init__()

        # On input
        #: The parsed tree, or None when there's nothing to match
        self.expression = None

    def input(self, match):
        super(MongoMatch, self).input(match)

        if match is None or match == {}:
            self.expression = None
        else:
            self.expression = self._parse_node(match)
        return self

    def _parse_node(self, node):
        """ Parse a node of the `match` tree

        :type node: dict
        :rtype: MatchExpressionBase
        """
        if not isinstance(node, dict) or len(node) != 1:
            self.raise_invalid('a node must be an object with exactly one key; {!r} provided', node)

        key, value = next(iter(node.items()))

        # A container holds a list. A field named "and" holds an object, and is not a container.
        if key in self._boolean_operators and isinstance(value, (list, tuple)):
            return self._parse_boolean_operator(key, value)
        else:
            return self._parse_field(key, value)

    def _parse_boolean_operator(self, op, children):
        """ Parse a container: { and: [ {}, ... ] } """
        if not children:
            self.raise_invalid('"{}" must hold at least one node', op)

        # Recurse
        return self._BOOLEAN_EXPRESSION_CLS(op, self._boolean_operators[op],
                                            [self._parse_node(c) for c in children])

    def _parse_field(self, field, criteria):
        """ Parse a leaf: { field: { op: value } } """
        if not isinstance(criteria, dict) or len(criteria) != 1:
            self.raise_invalid('field `{}` must be compared with exactly one operator; {!r} provided',
                               field, criteria)

        operator, value = next(iter(criteria.items()))

        # Operator lookup
        try:
            native_operator = self._field_operators[operator]
        except KeyError:
            self.raise_invalid('unsupported operator "{}" found for field `{}`', operator, field)

        # Validate operator argument
        if operator in self._operators_require_array_value:
            if not _is_array(value):
                self.raise_invalid('"{}" argument must be an array for field `{}`', operator, field)
            value = list(value)

        return self._FIELD_EXPRESSION_CLS(field, operator, native_operator, value)

    def compile_statement(self):
        """ Create a MongoDB selector

        :rtype: dict
        """
        if self.expression is None:
            return {}
        return self.expression.compile_expression()
