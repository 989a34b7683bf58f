from enum import Enum

from . import handlers
from .exc import InvalidEnvelopeError, UnsupportedOperationError
from .settings import AdapterSettingsDict, pluck_kwargs_from


class Verb(str, Enum):
    """ The action of a Query Envelope: its `do` """
    CREATE = 'create'
    FIND = 'find'
    UPDATE = 'update'
    REMOVE = 'remove'


class MongoEnvelope(object):
    """ A Query Envelope, parsed and ready to be compiled into MongoDB statements """

    def __init__(self, settings=None):
        """ Init a Query Envelope parser

        :param settings: Adapter settings.
            Every handler picks the settings it needs by the names of its __init__() kwargs.
        :type settings: dict | AdapterSettingsDict | None
        """
        self._settings = settings if settings is not None else AdapterSettingsDict()

        #: The action
        self.verb = None  # type: Verb | None
        #: The collection
        self.on = None  # type: str | None
        #: The documents to create
        self.body = None  # type: list[dict] | None

        # Get ready: Query Envelope handlers
        self._init_envelope_handlers()

    def input(self, envelope):
        """ Parse a Query Envelope

        :param envelope: The Query Envelope
        :type envelope: dict
        :raises InvalidEnvelopeError: no `do`, or no `on`; unknown keys; a syntax error in any of the sections
        :raises UnsupportedOperationError: unknown `do`
        :rtype: MongoEnvelope
        """
        if not isinstance(envelope, dict):
            raise InvalidEnvelopeError('must be an object; {} provided'.format(type(envelope).__name__))

        # Handlers modify it: work on a copy
        envelope = dict(envelope)

        # The two things every envelope has
        self.verb = self.parse_verb(envelope)
        self.on = envelope.pop('on')
        envelope.pop('do')
        self.body = self._input_body(self.verb, envelope.get('body'))

        # Prepare Query Envelope
        for handler_name, handler in self._handlers():
            envelope = handler.input_prepare_envelope(envelope)
        envelope.pop('body', None)  # consumed by now

        # Check if Query Envelope keys are all right
        invalid_keys = set(envelope.keys()) - self.HANDLER_NAMES
        if invalid_keys:
            raise InvalidEnvelopeError('unknown keys: {}'.format(', '.join(sorted(invalid_keys))))

        # Process every field with its method
        # Every handler should be invoked because they may have defaults even when no input was provided
        for handler_name, handler in self._handlers():
            handler.with_envelope(self)
            handler.input(envelope.get(handler_name, None))

        # Done
        return self

    @staticmethod
    def parse_verb(envelope):
        """ Validate `do` and `on`, and get the Verb

        :raises InvalidEnvelopeError: no `do` or no `on`
        :raises UnsupportedOperationError: unknown `do`
        :rtype: Verb
        """
        if not envelope.get('do') or not envelope.get('on'):
            raise InvalidEnvelopeError('requires .do and .on')
        if not isinstance(envelope['on'], str):
            raise InvalidEnvelopeError('.on must be a string')

        try:
            return Verb(envelope['do'])
        except ValueError:
            raise UnsupportedOperationError(envelope['do'])

    def _input_body(self, verb, body):
        """ Validate the `body`: the documents to insert """
        if verb is not Verb.CREATE:
            return None  # MongoUpdate takes care of it

        if isinstance(body, dict):
            body = [body]
        if not body or not isinstance(body, (list, tuple)):
            raise InvalidEnvelopeError('create: body must be a non-empty array of documents')
        if not all(isinstance(doc, dict) for doc in body):
            raise InvalidEnvelopeError('create: every body element must be an object')
        return list(body)

    # region Compilation

    def compile_selector(self):
        """ Get the MongoDB selector: `match`, narrowed by `ids`

        :rtype: dict
        """
        selector = self.handler_match.compile_statement()
        if self.handler_ids.is_input_empty():
            return selector

        id_field = self.handler_ids.id_field
        ids_condition = self.handler_ids.compile_statement()

        if id_field not in selector:
            selector[id_field] = ids_condition[id_field]
            return selector

        # `match` already has a condition on the identifier: keep them both
        own_condition = {id_field: selector.pop(id_field)}
        if selector:
            return {'$and': [selector, own_condition, ids_condition]}
        return {'$and': [own_condition, ids_condition]}

    def compile_projection(self):
        """ Get the MongoDB projection, or None for all fields """
        return self.handler_select.compile_statement()

    def compile_sort(self):
        """ Get the sort spec: list of (field, direction), or None """
        return self.handler_sort.compile_statement()

    def compile_update(self):
        """ Get the MongoDB update document """
        return self.handler_updates.compile_statement()

    @property
    def multi(self):
        """ Is an update likely to modify more than one document?

            Yes, when there's more than one identifier, or any `match` at all.
        """
        return self.handler_ids.count > 1 or not self.handler_match.is_input_empty()

    @property
    def skip(self):
        return self.handler_limit.skip

    @property
    def limit(self):
        return self.handler_limit.limit

    @property
    def populates(self):
        """ Does this envelope want linked data? """
        return not self.handler_populate.is_input_empty()

    def alter_cursor(self, cursor):
        """ Apply sort, limit, offset to a cursor. Sort goes first. """
        sort = self.compile_sort()
        if sort:
            cursor = cursor.sort(sort)
        return self.handler_limit.alter_cursor(cursor)

    def __repr__(self):
        return 'MongoEnvelope({}: {})'.format(self.verb and self.verb.value, self.on)

    # endregion

    # region Query Envelope handlers

    # This section initializes every Query Envelope handler, one per section.
    # Doing it this way enables you to override the way they are initialized, and use a custom class with
    # custom settings.

    _QE_HANDLER_MATCH = handlers.MongoMatch
    _QE_HANDLER_IDS = handlers.MongoIds
    _QE_HANDLER_SELECT = handlers.MongoSelect
    _QE_HANDLER_SORT = handlers.MongoSort
    _QE_HANDLER_LIMIT = handlers.MongoLimit
    _QE_HANDLER_UPDATES = handlers.MongoUpdate
    _QE_HANDLER_POPULATE = handlers.MongoPopulate

    HANDLER_NAMES = frozenset(('match',
                               'ids',
                               'select',
                               'sort',
                               'limit',
                               'updates',
                               'populate'))

    def _handlers(self):
        """ Get the list of all (handler_name, handler) """
        return (
            ('match', self.handler_match),
            ('ids', self.handler_ids),
            ('select', self.handler_select),
            ('sort', self.handler_sort),
            ('limit', self.handler_limit),
            ('updates', self.handler_updates),
            ('populate', self.handler_populate),
        )

    # for IDE completion
    handler_match = None  # type: mongoqe.handlers.MongoMatch
    handler_ids = None  # type: mongoqe.handlers.MongoIds
    handler_select = None  # type: mongoqe.handlers.MongoSelect
    handler_sort = None  # type: mongoqe.handlers.MongoSort
    handler_limit = None  # type: mongoqe.handlers.MongoLimit
    handler_updates = None  # type: mongoqe.handlers.MongoUpdate
    handler_populate = None  # type: mongoqe.handlers.MongoPopulate

    def _init_envelope_handlers(self):
        """ Initialize every Query Envelope handler """
        for name in self.HANDLER_NAMES:
            handler_cls = getattr(self, '_QE_HANDLER_' + name.upper())
            handler_settings = pluck_kwargs_from(self._settings, for_func=handler_cls.__init__)
            setattr(self, 'handler_' + name, handler_cls(**handler_settings))

    # endregion
