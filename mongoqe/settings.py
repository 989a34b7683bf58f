from functools import lru_cache
from inspect import signature, Parameter
from typing import Callable, Mapping, Tuple, Optional
from urllib.parse import quote_plus

from .exc import InvalidSettingError


class AdapterSettingsDict(dict):
    """ MongoAdapter settings container.

        The keyword settings in this object are plain kwargs: some of them configure the connection,
        others are fed to the envelope handlers (see `pluck_kwargs_from()`), which pick up
        the names that their __init__() methods accept.

        Example:

            adapter = MongoAdapter(AdapterSettingsDict(
                host='db.local',
                db='heroes',
                username='admin',
                password='s3cr3t',
                auth_source='admin',
            ))
    """

    def __init__(self,
                 # --- connection
                 host: str = '127.0.0.1',
                 port: int = 27017,
                 db: str = 'test',
                 username: str = '',
                 password: str = '',
                 auth_source: Optional[str] = None,
                 url: Optional[str] = None,
                 client_options: Optional[dict] = None,
                 # --- envelope handlers
                 id_field: str = '_id',
                 exclusion_value: int = 0,
                 max_items: Optional[int] = None,
                 ):
        """ Adapter settings

        Args:
            host (str): MongoDB host name
            port (int): MongoDB port
            db (str): The database to use
            username (str): User name to authenticate with. Empty: no authentication
            password (str): Password to authenticate with
            auth_source (str): The database to authenticate against, when it's not `db` itself
                (the "delegate" authentication database)
            url (str): A complete MongoDB connection string.
                When given, `host`, `port`, `username`, `password`, `auth_source` are not used.
            client_options (dict): Extra keyword arguments for AsyncIOMotorClient(),
                e.g. `serverSelectionTimeoutMS`
            id_field (str): The primary identifier field of every collection.
                `ids` lookups, and the reply's identifier conversion, use this field.
            exclusion_value (int): The value that `select` gives to the excluded ("-field") fields
            max_items (int): The maximum number of documents a `find` can return.
                Forced onto every query: the caller can never go any higher than that.
        """
        super(AdapterSettingsDict, self).__init__()
        self.update({k: v
                     for k, v in locals().items()
                     if k not in {'__class__', 'self'}})
        self._validate()

    def _validate(self):
        """ Check the values that the envelope handlers and the client rely on

        :raises InvalidSettingError: a value is of the wrong type, or out of range
        """
        if not _is_int(self['port']) or not 0 < self['port'] < 65536:
            raise InvalidSettingError('port', 'must be an integer between 1 and 65535; {!r} provided'.format(self['port']))
        if not isinstance(self['id_field'], str) or not self['id_field']:
            raise InvalidSettingError('id_field', 'must be a non-empty string; {!r} provided'.format(self['id_field']))
        if self['exclusion_value'] not in (0, False):
            raise InvalidSettingError('exclusion_value', 'must be 0 or False; {!r} provided'.format(self['exclusion_value']))
        if self['max_items'] is not None and (not _is_int(self['max_items']) or self['max_items'] <= 0):
            raise InvalidSettingError('max_items', 'must be a positive integer; {!r} provided'.format(self['max_items']))
        if self['client_options'] is not None and not isinstance(self['client_options'], Mapping):
            raise InvalidSettingError('client_options', 'must be an object; {!r} provided'.format(self['client_options']))

    def and_more(self, **settings):
        """ Copy the object and add more settings to it

        :raises InvalidSettingError: unknown setting name, or an invalid value
        """
        return self.from_options({**self, **settings})

    @classmethod
    def from_options(cls, options: Mapping):
        """ Initialize the settings from a plain mapping, and complain about unknown keys

        :raises InvalidSettingError: unknown setting name, or an invalid value
        """
        known = get_function_defaults(cls.__init__)
        for name in options:
            if name not in known:
                raise InvalidSettingError(name)
        return cls(**options)

    def connection_url(self, with_password: bool = True) -> str:
        """ Build the MongoDB connection string

        :param with_password: Put the password into the URL. Set to `False` to get a URL that can be logged.
        """
        if self['url']:
            return self['url']

        url = 'mongodb://'
        if self['username']:
            url += '{}:{}@'.format(quote_plus(self['username']),
                                   quote_plus(self['password']) if with_password else '***')
        url += '{}:{}/{}'.format(self['host'], self['port'], self['db'])
        if self['auth_source']:
            url += '?authSource=' + quote_plus(self['auth_source'])
        return url


@lru_cache(100)
def get_function_defaults(for_func: Callable) -> dict:
    """ Get a dict of function's arguments that have default values """
    return {name: param.default
            for name, param in signature(for_func).parameters.items()
            if param.default is not Parameter.empty}


def pluck_kwargs_from(dct: Mapping, for_func: Callable, skip: Tuple[str] = ()) -> dict:
    """ Analyze a function, pluck the arguments it needs from a dict """
    defaults = get_function_defaults(for_func)
    return {k: dct.get(k, default)
            for k, default in defaults.items()
            if k not in skip}


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
