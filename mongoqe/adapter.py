"""
The adapter executes Query Envelopes against MongoDB.

```python
from mongoqe import MongoAdapter

adapter = MongoAdapter(dict(host='127.0.0.1', db='heroes'))

async def main():
    reply = await adapter.exec({'do': 'find', 'on': 'supers', 'match': {'type': {'eq': 'rogue'}}})
    reply['supers']  # -> [ ... ]
```

There's no need to connect: the first envelope does it. Envelopes that come in while the connection is being made
wait for it, and are executed in the same order they came in.
"""

import asyncio
from functools import partial
from logging import getLogger

from .connection import ConnectionManager, ConnectionState, MongoConnector
from .envelope import MongoEnvelope, Verb
from .exc import InvalidEnvelopeError
from .reply import to_reply_format
from .settings import AdapterSettingsDict


logger = getLogger(__name__)


class MongoAdapter:
    """ Query Envelope adapter for MongoDB

        * exec(): execute an envelope
        * configure(): change the settings
        * disconnect(): close the connection
        * new(): get another adapter with the same settings
    """

    # The class to use for parsing envelopes
    _ENVELOPE_CLS = MongoEnvelope

    def __init__(self, settings=None, connector=None):
        """ Init the adapter. It does not connect just yet: the first envelope will.

        :param settings: Adapter settings
        :type settings: dict | AdapterSettingsDict | None
        :param connector: The object that makes connections. Default: MongoConnector
        :raises InvalidSettingError: unknown setting name, or an invalid value
        """
        #: The settings. Shared with the connector: configure() updates them in place.
        self.settings = AdapterSettingsDict.from_options(settings or {})

        self._connector = connector or MongoConnector(self.settings)

        #: The connection (and the queue of envelopes waiting for it)
        self.connection = ConnectionManager(self._connector, self._dispatch)

        # Every action is implemented by a method
        self._operations = {
            Verb.CREATE: self.create,
            Verb.FIND: self.find,
            Verb.UPDATE: self.update,
            Verb.REMOVE: self.remove,
        }

    def new(self):
        """ Get a new adapter, with the same settings, and a connection of its own """
        connector = None if isinstance(self._connector, MongoConnector) else self._connector
        return self.__class__(self.settings.and_more(), connector)

    def configure(self, **options):
        """ Change the settings

        :return: The updated settings
        :raises InvalidSettingError: unknown setting name, or an invalid value
        :raises RuntimeError: connected, or connecting
        """
        if self.connection.state is not ConnectionState.DISCONNECTED:
            raise RuntimeError('Cannot configure the adapter while it is {}'.format(self.connection.state.value))

        self.settings.update(self.settings.and_more(**options))
        return self.settings

    async def disconnect(self):
        """ Close the connection

        :raises NotConnectedError: no connection to close
        """
        await self.connection.close()

    def exec(self, envelope, callback=None):
        """ Execute a Query Envelope

        This method never raises: any error, including an invalid envelope, ends up in the future.
        Must be called with a running event loop.

        :param envelope: The Query Envelope
        :type envelope: dict
        :param callback: Optional `callback(err, reply)`, invoked once, when the reply is ready.
            A rejected envelope invokes it before exec() returns.
        :return: Future reply: `{<on>: result}`, and maybe `linked`
        :rtype: asyncio.Future
        """
        future = asyncio.get_running_loop().create_future()

        # Validate right away: invalid envelopes do not go anywhere
        try:
            qe = self._ENVELOPE_CLS(self.settings).input(envelope)
        except InvalidEnvelopeError as e:
            logger.debug('Rejected envelope: %s', e)
            future.set_exception(e)
        except Exception as e:
            logger.exception('Failed to parse envelope')
            future.set_exception(e)

        # The callback learns about a rejected envelope before exec() returns
        if future.done():
            if callback is not None:
                _invoke_callback(callback, future)
            return future

        if callback is not None:
            future.add_done_callback(partial(_invoke_callback, callback))

        if self.connection.is_connected:
            self._dispatch(qe, future)
        else:
            self.connection.defer(qe, future)
        return future

    def _dispatch(self, qe, future):
        """ Run the operation that handles the envelope's verb, and give the result to `future`

        :type qe: MongoEnvelope
        :type future: asyncio.Future
        """
        logger.debug('Dispatching %r', qe)
        operation = self._operations[qe.verb]
        task = asyncio.ensure_future(self._run(operation, qe, future))

        # Whoever gives up on the future, does not need the task anymore
        future.add_done_callback(lambda f: task.cancel() if f.cancelled() else None)

    async def _run(self, operation, qe, future):
        try:
            reply = await operation(qe)
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(reply)

    # region CRUD

    async def create(self, qe):
        """ Insert `body` documents

        :type qe: MongoEnvelope
        """
        documents = [dict(doc) for doc in qe.body]  # insert_many() adds the _id to every one of them
        await self._collection(qe).insert_many(documents)
        return self._reply(qe, documents)

    async def find(self, qe):
        """ Find documents, and populate linked documents

        :type qe: MongoEnvelope
        """
        cursor = self._collection(qe).find(qe.compile_selector(), qe.compile_projection())
        cursor = qe.alter_cursor(cursor)
        rows = await cursor.to_list(length=None)

        if not qe.populates:
            return self._reply(qe, rows)

        rows, linked = await qe.handler_populate.resolve(rows, self.exec)
        return self._reply(qe, rows, linked)

    async def update(self, qe):
        """ Update the selected documents. Replies with the number of modified documents

        :type qe: MongoEnvelope
        """
        selector = qe.compile_selector()
        update_doc = qe.compile_update()

        # Nothing to update, or nothing selected: do not touch the whole collection
        if not update_doc or not selector:
            logger.debug('Nothing to update in %r', qe.on)
            return self._reply(qe, 0)

        collection = self._collection(qe)
        method = collection.update_many if qe.multi else collection.update_one
        res = await method(selector, update_doc)
        return self._reply(qe, res.modified_count)

    async def remove(self, qe):
        """ Remove the selected documents. Replies with the number of removed documents

        :type qe: MongoEnvelope
        """
        res = await self._collection(qe).delete_many(qe.compile_selector())
        return self._reply(qe, res.deleted_count)

    # endregion

    def _collection(self, qe):
        return self.connection.handle[qe.on]

    def _reply(self, qe, result, linked=None):
        return to_reply_format(result, qe.on, linked, id_field=self.settings['id_field'])

    def __repr__(self):
        return '<MongoAdapter({!r})>'.format(self.connection)


def _invoke_callback(callback, future):
    """ Invoke an error-first callback with the outcome of a future """
    if future.cancelled():
        return
    err = future.exception()
    if err is not None:
        callback(err, None)
    else:
        callback(None, future.result())
