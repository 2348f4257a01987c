"""
An implementation of the store interface that uses a MongoDB database as its backend store
"""
import re
from copy import deepcopy
from collections.abc import Mapping, MutableMapping
from typing import Iterator
from . import base

from pymongo import MongoClient, ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import merge_config
from ..exceptions import ConfigurationException

_dburl_re = re.compile(r"^mongodb://(\w+(:\S+)?@)?\w+(\.\w+)*(:\d+)?/\w+(\?\w.*)?$")

DEF_TIMEOUT = 5.0
URL_FORM = "mongodb://[USER:PASS@]HOST[:PORT]/DBNAME"

def _check_dburl(dburl: str) -> str:
    if not _dburl_re.match(dburl):
        raise ValueError("Not a MongoDB database URL of the form %s: %s" % (URL_FORM, dburl))
    return dburl

class MongoDMPStore(base.DMPStore):
    """
    an implementation of DMPStore using a MongoDB database as the backend store.  The DMP rows are
    stored as documents in a single collection; a unique index on (``PK``, ``SK``) enforces the
    composite key.

    This implementation supports the following configuration parameters:

    ``table``
        the name of the collection holding the DMP rows (default: "dmps")
    ``timeout``
        the time in seconds to wait for the database to respond to a request before giving up
        (default: 5).  A timeout is reported as a :py:class:`~dmphub.exceptions.StoreUnavailable`.
    """
    INDEXES = {
        "key":      [(base.PK, ASCENDING), (base.SK, ASCENDING)],
        "owner":    [("dmphub_provenance_id", ASCENDING), (base.SK, ASCENDING)],
        "provenance_key": [("dmphub_provenance_key", ASCENDING), (base.SK, ASCENDING)]
    }

    def __init__(self, dburl: str, config: Mapping, table: str = None):
        """
        :param str   dburl:  the database URL (see :py:data:`URL_FORM`); no connection is made until
                             the store is first used
        :param dict config:  the configuration for the store
        :param str   table:  the collection to keep rows in
        """
        _check_dburl(dburl)
        self._dburl = dburl
        self._mngocli = None
        super(MongoDMPStore, self).__init__(config, table, None)

    def connect(self):
        """
        establish a connection to the database.  This will set the native property to the pymongo
        database object and ensure that the table's indexes exist.
        """
        tmo = int(float(self._cfg.get("timeout", DEF_TIMEOUT)) * 1000)
        try:
            self._mngocli = MongoClient(self._dburl, serverSelectionTimeoutMS=tmo, connectTimeoutMS=tmo,
                                        socketTimeoutMS=tmo)
            self._native = self._mngocli.get_database()
            coll = self._native[self._table]
            for name, keys in self.INDEXES.items():
                coll.create_index(keys, name=name, unique=(name == "key"))
        except PyMongoError as ex:
            self.disconnect()
            raise base.StoreUnavailable("Failed to connect to MongoDB: " + str(ex), cause=ex)

    def disconnect(self):
        if self._mngocli:
            try:
                self._mngocli.close()
            finally:
                self._mngocli = None
                self._native = None

    @property
    def native(self):
        """
        the pymongo ``Database`` holding the DMP collection (connecting first, if necessary)
        """
        if self._native is None:
            self.connect()
        return self._native

    def _coll(self):
        return self.native[self._table]

    def get(self, pk: str, sk: str) -> MutableMapping:
        try:
            return self._coll().find_one({base.PK: pk, base.SK: sk}, {'_id': False})
        except base.StoreException:
            raise
        except PyMongoError as ex:
            raise base.StoreUnavailable("Failed to retrieve row %s %s: %s" % (pk, sk, str(ex)), cause=ex)

    def put(self, item: Mapping, must_not_exist: bool=False) -> bool:
        try:
            key = {base.PK: item[base.PK], base.SK: item[base.SK]}
        except KeyError as ex:
            raise base.StoreException("put(): row is missing required key property: " + str(ex))

        try:
            coll = self._coll()
            if must_not_exist:
                coll.insert_one(deepcopy(dict(item)))
                return True

            result = coll.replace_one(key, dict(item), upsert=True)
            return result.matched_count == 0

        except DuplicateKeyError as ex:
            raise base.ConditionFailed((key[base.PK], key[base.SK]),
                                       "Row already exists: %s %s" % (key[base.PK], key[base.SK]))
        except base.StoreException:
            raise
        except PyMongoError as ex:
            raise base.StoreUnavailable("Failed to write row %s %s: %s" %
                                        (key[base.PK], key[base.SK], str(ex)), cause=ex)

    def update(self, pk: str, sk: str, changes: Mapping, expect: Mapping=None) -> MutableMapping:
        filter = {base.PK: pk, base.SK: sk}
        if expect:
            filter.update(expect)

        try:
            result = self._coll().find_one_and_update(filter, {"$set": dict(changes)},
                                                      projection={'_id': False},
                                                      return_document=ReturnDocument.AFTER)
        except DuplicateKeyError as ex:
            raise base.ConditionFailed((pk, changes.get(base.SK)),
                                       "Target key already occupied: %s %s" % (pk, changes.get(base.SK)))
        except base.StoreException:
            raise
        except PyMongoError as ex:
            raise base.StoreUnavailable("Failed to update row %s %s: %s" % (pk, sk, str(ex)), cause=ex)

        if result is None:
            raise base.ConditionFailed((pk, sk))
        return result

    def query(self, constraints: Mapping, index: str=None) -> Iterator[MutableMapping]:
        try:
            cursor = self._coll().find(dict(constraints), {'_id': False})
            if index in self.INDEXES:
                cursor = cursor.hint(index)
            for row in cursor:
                yield row
        except base.StoreException:
            raise
        except PyMongoError as ex:
            raise base.StoreUnavailable("Failed while querying rows: " + str(ex), cause=ex)

    def delete(self, pk: str, sk: str) -> bool:
        try:
            result = self._coll().delete_one({base.PK: pk, base.SK: sk})
            return result.deleted_count > 0
        except base.StoreException:
            raise
        except PyMongoError as ex:
            raise base.StoreUnavailable("Failed to delete row %s %s: %s" % (pk, sk, str(ex)), cause=ex)


class MongoDMPStoreFactory(base.DMPStoreFactory):
    """
    a factory for :py:class:`MongoDMPStore` clients sharing one database URL.  Besides the store
    parameters, the configuration may give the URL as ``db_url``.
    """

    def __init__(self, config: Mapping, dburl: str = None):
        """
        :param dict config:  the store configuration
        :param str   dburl:  the database URL; defaults to the ``db_url`` parameter
        :raise ConfigurationException:  if no URL is available
        :raise ValueError:  if the URL does not have the form given by :py:data:`URL_FORM`
        """
        super(MongoDMPStoreFactory, self).__init__(config)
        dburl = dburl or self._cfg.get("db_url")
        if not dburl:
            raise ConfigurationException("Missing required config parameter: db_url")
        self._dburl = _check_dburl(dburl)

    def create_store(self, config: Mapping = {}) -> MongoDMPStore:
        cfg = merge_config(config, deepcopy(self._cfg))
        return MongoDMPStore(self._dburl, cfg)
