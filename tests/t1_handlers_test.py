import unittest

from bson import ObjectId

from mongoqe.handlers import *
from mongoqe.exc import InvalidEnvelopeError


OID_A = '5f1d7c2b9d3e2a0001a1b2c3'
OID_B = '5f1d7c2b9d3e2a0001a1b2c4'


class HandlersTest(unittest.TestCase):
    """ Test individual handlers """

    longMessage = True
    maxDiff = None

    def test_match(self):
        match = lambda m: MongoMatch().input(m).compile_statement()

        # === Test: input() can be called only once
        with self.assertRaises(RuntimeError):
            MongoMatch().input(None).input(None)

        # === Test: no match
        self.assertEqual(match(None), {})
        self.assertEqual(match({}), {})
        self.assertIsNone(MongoMatch().input({}).expression)

        # === Test: every field operator
        for op, native in [('eq', '$eq'), ('neq', '$ne'),
                           ('gt', '$gt'), ('gte', '$gte'), ('lt', '$lt'), ('lte', '$lte')]:
            self.assertEqual(match({'power': {op: 5}}), {'power': {native: 5}}, op)
        for op, native in [('in', '$in'), ('nin', '$nin'), ('all', '$all')]:
            self.assertEqual(match({'tags': {op: ['a', 'b']}}), {'tags': {native: ['a', 'b']}}, op)

        # === Test: tuples become lists
        self.assertEqual(match({'tags': {'in': ('a', 'b')}}), {'tags': {'$in': ['a', 'b']}})

        # === Test: containers
        self.assertEqual(
            match({'or': [
                {'type': {'eq': 'rogue'}},
                {'and': [
                    {'power': {'gte': 5}},
                    {'speed': {'lt': 10}},
                ]},
            ]}),
            {'$or': [
                {'type': {'$eq': 'rogue'}},
                {'$and': [
                    {'power': {'$gte': 5}},
                    {'speed': {'$lt': 10}},
                ]},
            ]})

        # === Test: the same operator many times over
        self.assertEqual(
            match({'and': [{'a': {'eq': 1}}, {'b': {'eq': 2}}, {'c': {'eq': 3}}]}),
            {'$and': [{'a': {'$eq': 1}}, {'b': {'$eq': 2}}, {'c': {'$eq': 3}}]})

        # === Test: values and field names that look like operators are left alone
        self.assertEqual(match({'type': {'eq': 'and'}}), {'type': {'$eq': 'and'}})
        self.assertEqual(match({'type': {'eq': {'eq': 1}}}), {'type': {'$eq': {'eq': 1}}})
        self.assertEqual(match({'and': {'eq': 1}}), {'and': {'$eq': 1}})
        self.assertEqual(match({'in': {'in': ['in', 'or']}}), {'in': {'$in': ['in', 'or']}})

        # === Test: input is not modified
        m = {'and': [{'a': {'in': ('x',)}}]}
        match(m)
        self.assertEqual(m, {'and': [{'a': {'in': ('x',)}}]})

        # === Test: invalid trees
        invalid = [
            'power',  # not an object
            {'or': [{}]},  # a node with no keys
            {'a': {'eq': 1}, 'b': {'eq': 2}},  # two fields
            {'a': {'eq': 1, 'gt': 0}},  # two operators
            {'a': 1},  # no operator
            {'a': {'regex': '.*'}},  # unknown operator
            {'a': {'in': 'x'}},  # not an array
            {'and': []},  # an empty container
            {'or': [{'a': {'eq': 1}}, 'b']},  # an invalid child
        ]
        for m in invalid:
            with self.assertRaises(InvalidEnvelopeError, msg=repr(m)):
                match(m)

    def test_ids(self):
        # === Test: ObjectId strings are converted
        h = MongoIds().input([OID_A, OID_B])
        self.assertEqual(h.compile_statement(), {'_id': {'$in': [ObjectId(OID_A), ObjectId(OID_B)]}})
        self.assertEqual(h.count, 2)

        # === Test: other identifiers are used as they are
        self.assertEqual(MongoIds().input([1, 'pk-3']).compile_statement(), {'_id': {'$in': [1, 'pk-3']}})

        # === Test: custom id field
        self.assertEqual(MongoIds(id_field='pk').input(['1']).compile_statement(), {'pk': {'$in': ['1']}})

        # === Test: no ids, empty ids
        h = MongoIds().input(None)
        self.assertTrue(h.is_input_empty())
        self.assertEqual(h.compile_statement(), {})
        h = MongoIds().input([])
        self.assertFalse(h.is_input_empty())
        self.assertEqual(h.compile_statement(), {'_id': {'$in': []}})

        # === Test: invalid
        with self.assertRaises(InvalidEnvelopeError):
            MongoIds().input(OID_A)

        # === Test: conversion helpers
        self.assertEqual(to_native_id(OID_A), ObjectId(OID_A))
        self.assertEqual(to_native_id('not-an-oid'), 'not-an-oid')
        self.assertEqual(to_portable_id(ObjectId(OID_A)), OID_A)
        self.assertEqual(to_portable_id(7), 7)

    def test_field_map(self):
        self.assertEqual(field_map(['a', '-b'], 0), {'a': 1, 'b': 0})
        self.assertEqual(field_map(['a', '-b'], -1), {'a': 1, 'b': -1})
        self.assertEqual(field_map(['-a', '-b']), {'a': 0, 'b': 0})
        self.assertEqual(field_map(None), {})
        self.assertEqual(field_map([]), {})

    def test_select(self):
        select = lambda names, **kw: MongoSelect(**kw).input(names).compile_statement()

        # === Test: no select: all fields
        self.assertEqual(select(None), None)

        # === Test: inclusion, exclusion
        self.assertEqual(select(['handle', 'power']), {'handle': 1, 'power': 1})
        self.assertEqual(select(['-extra']), {'extra': 0})
        self.assertEqual(select(['handle', '-_id']), {'handle': 1, '_id': 0})

        # === Test: custom exclusion value
        self.assertEqual(select(['-extra'], exclusion_value=False), {'extra': False})

        # === Test: string syntax
        self.assertEqual(select('handle -_id'), {'handle': 1, '_id': 0})

        # === Test: final input value
        self.assertEqual(MongoSelect().input(['a', '-b']).get_final_input_value(), ['a', '-b'])

        # === Test: invalid
        for names in ({'a': 1}, [1], ['-'], ['']):
            with self.assertRaises(InvalidEnvelopeError, msg=repr(names)):
                select(names)

    def test_sort(self):
        sort = lambda names: MongoSort().input(names).compile_statement()

        self.assertEqual(sort(None), None)
        self.assertEqual(sort(['-power', 'handle']), [('power', -1), ('handle', 1)])
        self.assertEqual(sort(['handle', '-power']), [('handle', 1), ('power', -1)])
        self.assertEqual(MongoSort().input(['a', '-b']).get_final_input_value(), ['a', '-b'])

        with self.assertRaises(InvalidEnvelopeError):
            sort(42)

    def test_limit(self):
        # === Test: nothing
        h = MongoLimit().input(None, None)
        self.assertFalse(h.has_limit)
        self.assertEqual((h.skip, h.limit), (None, None))

        # === Test: tuple input, as MongoEnvelope gives it
        h = MongoLimit().input((20, 10))
        self.assertEqual((h.skip, h.limit), (20, 10))
        self.assertEqual(h.get_final_input_value(), dict(offset=20, limit=10))

        # === Test: zeroes
        h = MongoLimit().input(0, 0)
        self.assertEqual((h.skip, h.limit), (None, None))

        # === Test: max_items
        h = MongoLimit(max_items=5).input(None, None)
        self.assertEqual(h.limit, 5)
        h = MongoLimit(max_items=5).input(None, 100)
        self.assertEqual(h.limit, 5)
        h = MongoLimit(max_items=5).input(None, 2)
        self.assertEqual(h.limit, 2)

        # === Test: invalid
        for skip, limit in ((-1, None), (None, -1), ('1', None), (None, 1.5), (True, None)):
            with self.assertRaises(InvalidEnvelopeError, msg=repr((skip, limit))):
                MongoLimit().input(skip, limit)

        # === Test: envelope preparation
        self.assertEqual(MongoLimit().input_prepare_envelope({'offset': 1, 'limit': 2}), {'limit': (1, 2)})
        self.assertEqual(MongoLimit().input_prepare_envelope({'offset': None}), {})
        self.assertEqual(MongoLimit().input_prepare_envelope({'on': 'x'}), {'on': 'x'})

    def test_update(self):
        update = lambda updates=None, body=None: MongoUpdate().input(updates, body).compile_statement()

        # === Test: nothing
        self.assertEqual(update(), {})
        self.assertTrue(MongoUpdate().input(None, None).is_input_empty())

        # === Test: every operator
        self.assertEqual(update([{'a': {'set': 1}}]), {'$set': {'a': 1}})
        self.assertEqual(update([{'a': {'unset': ''}}]), {'$unset': {'a': ''}})
        self.assertEqual(update([{'a': {'rename': 'b'}}]), {'$rename': {'a': 'b'}})
        self.assertEqual(update([{'a': {'inc': 2}}]), {'$inc': {'a': 2}})
        self.assertEqual(update([{'a': {'push': 'm'}}]), {'$push': {'a': 'm'}})
        self.assertEqual(update([{'a': {'pull': 'm'}}]), {'$pull': {'a': 'm'}})

        # === Test: arrays
        self.assertEqual(update([{'a': {'push': ['m', 'n']}}]), {'$push': {'a': {'$each': ['m', 'n']}}})
        self.assertEqual(update([{'a': {'pull': ['m', 'n']}}]), {'$pullAll': {'a': ['m', 'n']}})

        # === Test: directives with the same operator are merged
        self.assertEqual(
            update([{'a': {'set': 1}}, {'b': {'set': 2}}, {'c': {'inc': 1}}]),
            {'$set': {'a': 1, 'b': 2}, '$inc': {'c': 1}})

        # === Test: the same field twice: the first directive wins
        self.assertEqual(update([{'a': {'set': 1}}, {'a': {'set': 2}}]), {'$set': {'a': 1}})
        self.assertEqual(update([{'a': {'inc': 1}}, {'a': {'set': 2}}, {'a': {'inc': 5}}]),
                         {'$inc': {'a': 1}, '$set': {'a': 2}})

        # === Test: body
        self.assertEqual(update(body=[{'power': 7}]), {'$set': {'power': 7}})

        # === Test: body wins
        self.assertEqual(
            update([{'x': {'set': 1}}, {'y': {'set': 1}}], [{'x': 2}]),
            {'$set': {'x': 2, 'y': 1}})

        # === Test: envelope preparation
        self.assertEqual(MongoUpdate().input_prepare_envelope({'updates': [1], 'body': [2]}),
                         {'updates': ([1], [2]), 'body': [2]})

        # === Test: invalid
        invalid = [
            ({'a': {'set': 1}}, None),  # not a list
            ([{'a': {'set': 1}, 'b': {'set': 2}}], None),  # two fields
            ([{'a': {'set': 1, 'inc': 1}}], None),  # two operators
            ([{'a': 1}], None),  # no operator
            ([{'a': {'max': 1}}], None),  # unknown operator
            (None, ['power']),  # body is not an object
        ]
        for updates, body in invalid:
            with self.assertRaises(InvalidEnvelopeError, msg=repr((updates, body))):
                update(updates, body)

    def test_populate(self):
        # === Test: input
        h = MongoPopulate().input({'tags': {}, 'friends': {'key': 'pk', 'query': {'on': 'supers'}}, 'x': None})
        self.assertEqual(set(h.directives), {'tags', 'friends', 'x'})
        self.assertEqual(h.directives['tags'].on, 'tags')
        self.assertEqual(h.directives['friends'].on, 'supers')
        self.assertEqual(h.directives['friends'].key, 'pk')
        self.assertFalse(h.is_input_empty())
        self.assertTrue(MongoPopulate().input(None).is_input_empty())
        self.assertTrue(MongoPopulate().input({}).is_input_empty())

        # === Test: invalid
        for populate in (['tags'], {'tags': 1}, {'tags': {'key': 1}}, {'tags': {'query': []}},
                         {'tags': {'query': {'on': ''}}}, {'tags': {'nope': 1}}):
            with self.assertRaises(InvalidEnvelopeError, msg=repr(populate)):
                MongoPopulate().input(populate)

        # === Test: collect candidates
        h = MongoPopulate().input({'tags': {}, 'owner': {}})
        self.assertEqual(h.collect_candidates([{'tags': [1, 3]}]), {'tags': [1, 3], 'owner': []})
        self.assertEqual(
            h.collect_candidates([
                {'tags': [1, 3], 'owner': 'a'},
                {'tags': [3], 'owner': None},
                {'owner': 'b'},
            ]),
            {'tags': [1, 3, 3], 'owner': ['a', 'b']})

    def test_populate_directive(self):
        # === Test: default: lookup by ids
        d = PopulateDirective('tags')
        self.assertEqual(d.lookup_envelope([1, 3]), {'do': 'find', 'on': 'tags', 'ids': [1, 3]})

        # === Test: query: collection and more
        d = PopulateDirective('friends', query={'on': 'supers', 'select': ['handle']})
        self.assertEqual(d.lookup_envelope(['a']),
                         {'do': 'find', 'on': 'supers', 'select': ['handle'], 'ids': ['a']})

        # === Test: key, no match
        d = PopulateDirective('friends', key='pk', query={'on': 'supers'})
        self.assertEqual(d.lookup_envelope(['1', '2']),
                         {'do': 'find', 'on': 'supers', 'match': {'and': [{'pk': {'in': ['1', '2']}}]}})

        # === Test: key, match is an "and" container: append
        query = {'on': 'supers', 'match': {'and': [{'type': {'eq': 'rogue'}}]}}
        d = PopulateDirective('friends', key='pk', query=query)
        self.assertEqual(d.lookup_envelope(['1']),
                         {'do': 'find', 'on': 'supers',
                          'match': {'and': [{'type': {'eq': 'rogue'}}, {'pk': {'in': ['1']}}]}})
        # the directive is not modified
        self.assertEqual(query, {'on': 'supers', 'match': {'and': [{'type': {'eq': 'rogue'}}]}})
        self.assertEqual(len(d.lookup_envelope(['1'])['match']['and']), 2)

        # === Test: key, any other match: wrap
        d = PopulateDirective('friends', key='pk', query={'on': 'supers', 'match': {'type': {'eq': 'rogue'}}})
        self.assertEqual(d.lookup_envelope(['1']),
                         {'do': 'find', 'on': 'supers',
                          'match': {'and': [{'pk': {'in': ['1']}}, {'type': {'eq': 'rogue'}}]}})
