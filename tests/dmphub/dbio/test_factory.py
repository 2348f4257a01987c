import os, pdb
import unittest as test
from unittest import mock

from dmphub import dbio
from dmphub.dbio import inmem, mongo
from dmphub.exceptions import ConfigurationException

class TestCreateStore(test.TestCase):

    def test_inmem(self):
        fact = dbio.create_store_factory({"factory": "inmem"})
        self.assertTrue(isinstance(fact, inmem.InMemoryDMPStoreFactory))
        store = dbio.create_store({"factory": "inmem", "table": "plans"})
        self.assertTrue(isinstance(store, inmem.InMemoryDMPStore))
        self.assertEqual(store.table, "plans")

    def test_mongo(self):
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop(dbio.MONGODB_URL_ENVVAR, None)
            fact = dbio.create_store_factory({"factory": "mongo",
                                              "db_url": "mongodb://localhost:27017/dmphub"})
            self.assertTrue(isinstance(fact, mongo.MongoDMPStoreFactory))
            self.assertEqual(fact._dburl, "mongodb://localhost:27017/dmphub")

            with self.assertRaises(ConfigurationException):
                dbio.create_store_factory({"factory": "mongo"})
            with self.assertRaises(ConfigurationException):
                dbio.create_store_factory({"factory": "mongo", "db_url": "localhost"})

    def test_mongo_envvar(self):
        with mock.patch.dict(os.environ, {dbio.MONGODB_URL_ENVVAR: "mongodb://dbhost/hubdb"}):
            fact = dbio.create_store_factory({"factory": "mongo",
                                              "db_url": "mongodb://localhost:27017/dmphub"})
            self.assertEqual(fact._dburl, "mongodb://dbhost/hubdb")

    def test_bad_factory(self):
        with self.assertRaises(ConfigurationException):
            dbio.create_store_factory({})
        with self.assertRaises(ConfigurationException):
            dbio.create_store_factory({"factory": "dynamo"})


if __name__ == '__main__':
    test.main()
