"""
dbio:  the storage interface for DMP record rows.

The hub persists its records in a single key-value table; this package provides the abstract
interface to such a table (:py:class:`~dmphub.dbio.base.DMPStore`) and its implementations:

  - :py:class:`~dmphub.dbio.inmem.InMemoryDMPStore` -- rows held in memory (for testing)
  - :py:class:`~dmphub.dbio.mongo.MongoDMPStore` -- rows held in a MongoDB collection

:py:func:`create_store` picks the implementation based on configuration.
"""
import os
from collections.abc import Mapping

from .base import DMPStore, DMPStoreFactory, PK, SK
from .inmem import InMemoryDMPStore, InMemoryDMPStoreFactory
from .mongo import MongoDMPStore, MongoDMPStoreFactory
from ..exceptions import ConfigurationException, StoreException, StoreUnavailable, ConditionFailed

MONGODB_URL_ENVVAR = "DMPHUB_MONGODB_URL"

def create_store_factory(config: Mapping) -> DMPStoreFactory:
    """
    return a store factory for the backend selected by the ``factory`` parameter of the given
    configuration (either "inmem" or "mongo").  For the "mongo" backend, the database URL is taken
    from the ``DMPHUB_MONGODB_URL`` environment variable if set, otherwise from ``db_url``.
    :param dict config:  the ``store`` section of the hub configuration
    :raises ConfigurationException:  if the factory type is missing or unrecognized
    """
    dbtype = config.get("factory")
    if not dbtype:
        raise ConfigurationException("Missing required config parameter: store.factory")

    if dbtype == "inmem":
        return InMemoryDMPStoreFactory(config)

    elif dbtype == "mongo":
        dburl = os.environ.get(MONGODB_URL_ENVVAR) or config.get("db_url")
        if not dburl:
            raise ConfigurationException("Missing required config parameter: store.db_url")
        try:
            return MongoDMPStoreFactory(config, dburl)
        except ValueError as ex:
            raise ConfigurationException(str(ex), cause=ex)

    raise ConfigurationException("Unrecognized store factory: " + dbtype)

def create_store(config: Mapping) -> DMPStore:
    """
    create a store client as configured by the ``store`` section of the hub configuration
    """
    return create_store_factory(config).create_store()
