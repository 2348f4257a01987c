"""
An implementation of the store interface based on a simple in-memory look-up.

This is provided primarily for testing purposes
"""
from copy import deepcopy
from collections.abc import Mapping, MutableMapping
from typing import Iterator
from . import base

from ..config import merge_config

class InMemoryDMPStore(base.DMPStore):
    """
    an in-memory DMPStore implementation.  Rows are held in a dictionary of dictionaries:  the outer
    one is keyed by primary key and the inner one by version key.
    """

    def __init__(self, dbdata: MutableMapping, config: Mapping, table: str = None):
        super(InMemoryDMPStore, self).__init__(config, table, dbdata)
        if self._table not in dbdata:
            dbdata[self._table] = {}
        self._rows = dbdata[self._table]

    def get(self, pk: str, sk: str) -> MutableMapping:
        return deepcopy(self._rows.get(pk, {}).get(sk))

    def put(self, item: Mapping, must_not_exist: bool=False) -> bool:
        try:
            pk, sk = item[base.PK], item[base.SK]
        except KeyError as ex:
            raise base.StoreException("put(): row is missing required key property: " + str(ex))

        versions = self._rows.setdefault(pk, {})
        exists = sk in versions
        if exists and must_not_exist:
            raise base.ConditionFailed((pk, sk), "Row already exists: %s %s" % (pk, sk))
        versions[sk] = deepcopy(item)
        return not exists

    def update(self, pk: str, sk: str, changes: Mapping, expect: Mapping=None) -> MutableMapping:
        versions = self._rows.get(pk, {})
        row = versions.get(sk)
        if row is None:
            raise base.ConditionFailed((pk, sk), "Row not found: %s %s" % (pk, sk))
        if expect and not self._matches(row, expect):
            raise base.ConditionFailed((pk, sk))

        newsk = changes.get(base.SK, sk)
        if newsk != sk and newsk in versions:
            raise base.ConditionFailed((pk, newsk), "Target key already occupied: %s %s" % (pk, newsk))

        row = deepcopy(row)
        row.update(deepcopy(changes))
        if newsk != sk:
            del versions[sk]
        versions[newsk] = row
        return deepcopy(row)

    def query(self, constraints: Mapping, index: str=None) -> Iterator[MutableMapping]:
        pk = constraints.get(base.PK)
        if pk is not None:
            rows = list(self._rows.get(pk, {}).values())
        else:
            rows = [r for versions in self._rows.values() for r in versions.values()]
        for row in rows:
            if self._matches(row, constraints):
                yield deepcopy(row)

    def delete(self, pk: str, sk: str) -> bool:
        versions = self._rows.get(pk, {})
        if sk in versions:
            del versions[sk]
            if not versions:
                del self._rows[pk]
            return True
        return False


class InMemoryDMPStoreFactory(base.DMPStoreFactory):
    """
    a DMPStore factory that creates InMemoryDMPStore instances, all sharing the same in-memory data
    """

    def __init__(self, config: Mapping, _dbdata = None):
        """
        Create the factory with the given configuration.

        :param dict config:  the configuration parameters used to configure clients
        :param dict _dbdata:  the initial data for the database.  Normally, this is only provided
                              when testing.
        """
        super(InMemoryDMPStoreFactory, self).__init__(config)
        self._db = {} if _dbdata is None else _dbdata

    def create_store(self, config: Mapping = {}) -> InMemoryDMPStore:
        cfg = merge_config(config, deepcopy(self._cfg))
        return InMemoryDMPStore(self._db, cfg)
