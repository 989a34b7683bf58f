from pymongo.errors import PyMongoError


#: Any failure reported by the storage driver. Passed through unmodified.
StorageError = PyMongoError


class BaseMongoQeException(Exception):
    pass


class InvalidEnvelopeError(BaseMongoQeException):
    """ Invalid Query Envelope provided by the caller """

    def __init__(self, err: str):
        super(InvalidEnvelopeError, self).__init__('Invalid query envelope: {err}'.format(err=err))


class UnsupportedOperationError(InvalidEnvelopeError):
    """ The envelope asked for an action the adapter does not implement """

    def __init__(self, verb):
        self.verb = verb
        super(InvalidEnvelopeError, self).__init__(
            'Adapter does not implement action: {verb!r}'.format(verb=verb))


class ConnectionFailedError(BaseMongoQeException):
    """ The connection to the database could not be established

    The original error is kept in `__cause__`
    """

    def __init__(self, err):
        self.err = err
        super(ConnectionFailedError, self).__init__('DB connect failed: {err}'.format(err=err))


class NotConnectedError(BaseMongoQeException, ConnectionError):
    """ An operation required an established connection, but there is none """


class PopulateLookupFailedError(BaseMongoQeException):
    """ A secondary lookup made for `populate` has failed

    The original error is kept in `__cause__`
    """

    def __init__(self, field: str, on: str, err):
        self.field = field
        self.on = on
        self.err = err

        super(PopulateLookupFailedError, self).__init__(
            'Populate lookup for "{field}" on "{on}" failed: {err}'.format(
                field=field,
                on=on,
                err=err)
        )


class InvalidSettingError(BaseMongoQeException, KeyError):
    """ Unknown adapter setting, or an invalid value for it """

    def __init__(self, name: str, err: str = None):
        self.name = name
        super(InvalidSettingError, self).__init__(
            'Invalid config option {}: {}'.format(name, err) if err else
            'No such config option: {}'.format(name))

    def __str__(self):
        # KeyError would repr() the message
        return self.args[0]
