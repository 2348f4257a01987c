"""
The abstract interface to the key-value store holding DMP records.

DMP records are kept in a single table in which each row is identified by a composite key:  a
primary key (``PK``) identifying the DMP and a secondary, version key (``SK``) identifying a
particular version of it.  The core hub logic needs only a handful of operations from the store:
getting a row by its key, putting a row, updating a row, and querying rows by attribute values.
Both writing operations support conditions (compare-and-swap semantics) so that concurrent writers
to the same DMP cannot silently overwrite each other's changes.

Implementations for specific backends are found in :py:mod:`~dmphub.dbio.inmem` and
:py:mod:`~dmphub.dbio.mongo`.
"""
from abc import ABC, abstractmethod
from collections.abc import Mapping, MutableMapping
from typing import Iterator

from ..exceptions import StoreException, StoreUnavailable, ConditionFailed

PK = "PK"
SK = "SK"
DEF_TABLE = "dmps"

class DMPStore(ABC):
    """
    an abstract client to a key-value table of DMP record rows.

    Each row is a dictionary that includes the ``PK`` and ``SK`` key properties.  Rows returned by
    a store are always copies; altering them has no effect on the stored data until they are
    written back.
    """

    def __init__(self, config: Mapping, table: str = None, nativeclient=None):
        """
        initialize the base client
        :param dict config:  the configuration for the store
        :param str   table:  the name of the table holding the DMP rows (defaults to the ``table``
                             config parameter or "dmps")
        :param nativeclient: the backend-specific client object
        """
        self._cfg = config
        self._table = table or config.get("table", DEF_TABLE)
        self._native = nativeclient

    @property
    def table(self) -> str:
        """
        the name of the table this client operates on
        """
        return self._table

    @property
    def native(self):
        """
        the native backend client that this store wraps (or None if not applicable)
        """
        return self._native

    @abstractmethod
    def get(self, pk: str, sk: str) -> MutableMapping:
        """
        return the row with the given key or None if it does not exist
        :raises StoreUnavailable:  if the backend fails to respond
        """
        raise NotImplementedError()

    @abstractmethod
    def put(self, item: Mapping, must_not_exist: bool=False) -> bool:
        """
        write the given row, replacing any existing row with the same key.
        :param dict item:  the row to write; it must include ``PK`` and ``SK`` properties
        :param bool must_not_exist:  if True, the write is conditioned on no row existing with
                           the same key.
        :return: True if a new row was created or False if an existing row was replaced
        :raises ConditionFailed:  if ``must_not_exist`` is True and the row already exists
        :raises StoreUnavailable:  if the backend fails to complete the write
        """
        raise NotImplementedError()

    @abstractmethod
    def update(self, pk: str, sk: str, changes: Mapping, expect: Mapping=None) -> MutableMapping:
        """
        update the properties of an existing row.  The changes may include a new value for ``SK``,
        which moves the row to a new key; the move is atomic.
        :param str pk:   the primary key of the row to update
        :param str sk:   the current version key of the row to update
        :param dict changes:  the property values to set on the row
        :param dict expect:   property values that must match those of the stored row for the
                         update to be applied.  The existence of a row under the given key is
                         always required.
        :return: the row as it is after the update
        :raises ConditionFailed:  if the row does not exist, does not match ``expect``, or the row
                         would be moved onto a key that is already occupied.
        :raises StoreUnavailable:  if the backend fails to complete the update
        """
        raise NotImplementedError()

    @abstractmethod
    def query(self, constraints: Mapping, index: str=None) -> Iterator[MutableMapping]:
        """
        return an iterator over the rows whose properties match all of the given values.
        :param dict constraints:  property name-value pairs that returned rows must match
        :param str        index:  the name of a secondary index to use for the lookup, if the
                                  backend supports it
        """
        raise NotImplementedError()

    @abstractmethod
    def delete(self, pk: str, sk: str) -> bool:
        """
        remove a row from the table.  This is intended only for administrative cleanup; DMP rows
        are never removed during normal operation.
        :return: True if the row existed and was removed
        """
        raise NotImplementedError()

    def _matches(self, row: Mapping, constraints: Mapping) -> bool:
        for name, val in constraints.items():
            if row.get(name) != val:
                return False
        return True


class DMPStoreFactory(ABC):
    """
    an abstract class for creating store clients.  An implementation is used for a particular backend
    and is instantiated with the backend's connection parameters.
    """

    def __init__(self, config: Mapping):
        """
        initialize the factory with its general configuration.
        """
        self._cfg = config

    @abstractmethod
    def create_store(self, config: Mapping = {}) -> DMPStore:
        """
        create a client connected to the table of DMP rows.
        :param Mapping  config:  configuration to pass into the client.  This will be merged into and
                                 override the configuration provided to the factory at construction.
        """
        raise NotImplementedError()
