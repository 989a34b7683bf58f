import asyncio
from collections import deque
from enum import Enum
from functools import partial
from logging import getLogger

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import monitoring

from .exc import ConnectionFailedError, NotConnectedError


logger = getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class DeferredRequest:
    """ A request that came in before there was a connection """

    __slots__ = ('envelope', 'future')

    def __init__(self, envelope, future):
        self.envelope = envelope
        self.future = future

    def __repr__(self):
        return '<DeferredRequest({!r})>'.format(self.envelope)


class ConnectionManager:
    """ Lazy, single-attempt connection, with a queue of requests waiting for it

        * DISCONNECTED: the first request triggers a connection attempt, and waits in the queue
        * CONNECTING: requests wait in the queue; no new attempts are made
        * CONNECTED: requests are dispatched right away.
            The queue is drained, in the order requests came in, right when the connection is made.
        * An unexpected close of the connection brings it back to DISCONNECTED:
            the next request will trigger a new attempt.

        When an attempt fails, every request in the queue fails with ConnectionFailedError.
        There are no retries: the next request will trigger a new attempt.

        All state changes happen on the event loop, with no `await` between a check and a change,
        so there's never more than one connection attempt in flight.
    """

    def __init__(self, connector, dispatch):
        """ Init the manager

        :param connector: The object that makes connections: see MongoConnector
        :type connector: MongoConnector
        :param dispatch: The function that executes a request once connected: `dispatch(envelope, future)`
        :type dispatch: callable
        """
        self._connector = connector
        self._dispatch = dispatch

        self._state = ConnectionState.DISCONNECTED
        self._handle = None
        self._queue = deque()  # type: deque[DeferredRequest]

        # Every connection gets a new number; it tells its close events apart from the older ones'
        self._generation = 0
        self._connect_task = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def handle(self):
        """ The connection handle: a database object

        :raises NotConnectedError
        """
        if not self.is_connected:
            raise NotConnectedError('Not connected')
        return self._handle

    @property
    def pending(self) -> int:
        """ The number of requests waiting for the connection """
        return len(self._queue)

    def defer(self, envelope, future):
        """ Put a request into the queue, and connect, unless already connecting

        :param envelope: The parsed Query Envelope
        :type envelope: mongoqe.envelope.MongoEnvelope
        :param future: The future to resolve with the reply
        :type future: asyncio.Future
        :return: future
        """
        self._queue.append(DeferredRequest(envelope, future))
        logger.debug('Deferred %r until connected (%d waiting)', envelope, len(self._queue))

        if self._state is ConnectionState.DISCONNECTED:
            self._state = ConnectionState.CONNECTING
            self._generation += 1
            self._connect_task = asyncio.ensure_future(self._connect(self._generation))
        return future

    async def _connect(self, generation):
        """ Make a connection, then run every request from the queue """
        logger.info('Connecting to %r', self._connector)
        try:
            handle = await self._connector.connect(partial(self._on_close, generation))
        except asyncio.CancelledError:
            self._reset()
            self._cancel_queue()
            raise
        except Exception as e:
            self._reset()
            logger.warning('Connection to %r failed: %s', self._connector, e)
            self._fail_queue(e)
            return
        finally:
            self._connect_task = None

        self._handle = handle
        self._state = ConnectionState.CONNECTED
        logger.info('Connected to %r; running %d deferred requests', self._connector, len(self._queue))

        # Drain the queue.
        # No awaits: requests that come in later can't get ahead of the queue
        while self._queue:
            request = self._queue.popleft()
            if request.future.done():
                continue  # cancelled by whoever was waiting for it
            self._dispatch(request.envelope, request.future)

    def _on_close(self, generation):
        """ The connection was closed """
        # Close events of the older connections, and of the connection being made, are of no interest
        if generation != self._generation or not self.is_connected:
            return
        logger.warning('Connection to %r closed', self._connector)
        self._reset()

    async def close(self):
        """ Close the connection

        :raises NotConnectedError: no connection to close
        """
        if not self.is_connected:
            raise NotConnectedError('No connection to close')

        handle = self._handle
        self._generation += 1  # not an unexpected close: silence its event
        self._reset()
        await self._connector.close(handle)
        logger.info('Disconnected from %r', self._connector)

    def _reset(self):
        self._state = ConnectionState.DISCONNECTED
        self._handle = None

    def _fail_queue(self, error):
        """ Fail every request in the queue """
        while self._queue:
            request = self._queue.popleft()
            if not request.future.done():
                e = ConnectionFailedError(error)
                e.__cause__ = error
                request.future.set_exception(e)

    def _cancel_queue(self):
        while self._queue:
            self._queue.popleft().future.cancel()

    def __repr__(self):
        return '<ConnectionManager({}, {!r})>'.format(self._state.value, self._connector)


class MongoConnector:
    """ Connects to MongoDB using Motor """

    def __init__(self, settings):
        """
        :type settings: mongoqe.settings.AdapterSettingsDict
        """
        self.settings = settings

    async def connect(self, on_close):
        """ Connect to the database

        :param on_close: Callback to invoke when the connection is closed
        :return: The database
        :rtype: motor.motor_asyncio.AsyncIOMotorDatabase
        """
        loop = asyncio.get_running_loop()
        listener = _TopologyCloseListener(loop, on_close)

        client = AsyncIOMotorClient(self.settings.connection_url(),
                                    event_listeners=[listener],
                                    **(self.settings['client_options'] or {}))

        # The client connects lazily: make sure the server is there
        try:
            await client.admin.command('ping')
        except Exception:
            client.close()
            raise

        return client.get_default_database(self.settings['db'])

    async def close(self, db):
        """ Close the connection of a database returned by connect() """
        db.client.close()

    def __repr__(self):
        # No passwords here: it gets logged
        return self.settings.connection_url(with_password=False)


class _TopologyCloseListener(monitoring.TopologyListener):
    """ Reports the close of a MongoClient to the event loop """

    def __init__(self, loop, on_close):
        self.loop = loop
        self.on_close = on_close

    def opened(self, event):
        pass

    def description_changed(self, event):
        pass

    def closed(self, event):
        # Monitoring events may come from other threads
        if not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self.on_close)
