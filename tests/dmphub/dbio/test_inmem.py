import os, json, pdb, logging
from pathlib import Path
import unittest as test

from dmphub.dbio import inmem, base
from dmphub.exceptions import ConditionFailed, StoreException

def row(pk, sk, **props):
    out = {base.PK: pk, base.SK: sk}
    out.update(props)
    return out

class TestInMemoryDMPStoreFactory(test.TestCase):

    def setUp(self):
        self.cfg = { "goob": "gurn" }
        self.fact = inmem.InMemoryDMPStoreFactory(self.cfg, {"dmps": {"DMP#a": {}}})

    def test_ctor(self):
        self.assertEqual(self.fact._cfg, self.cfg)
        self.assertEqual(self.fact._db, {"dmps": {"DMP#a": {}}})

        fact = inmem.InMemoryDMPStoreFactory(self.cfg)
        self.assertEqual(fact._db, {})

    def test_create_store(self):
        store = self.fact.create_store({"table": "plans"})
        self.assertEqual(store.table, "plans")
        self.assertIn("plans", self.fact._db)
        self.assertIs(store.native, self.fact._db)

        store = self.fact.create_store()
        self.assertEqual(store.table, base.DEF_TABLE)

    def test_shared_data(self):
        s1 = self.fact.create_store()
        s2 = self.fact.create_store()
        s1.put(row("DMP#b", "VERSION#latest", title="Goob"))
        self.assertEqual(s2.get("DMP#b", "VERSION#latest")["title"], "Goob")


class TestInMemoryDMPStore(test.TestCase):

    def setUp(self):
        self.dbdata = {}
        self.store = inmem.InMemoryDMPStore(self.dbdata, {})

    def test_ctor(self):
        self.assertEqual(self.store.table, "dmps")
        self.assertEqual(self.dbdata, {"dmps": {}})

    def test_put_get(self):
        self.assertIsNone(self.store.get("DMP#a", "VERSION#latest"))
        self.assertTrue(self.store.put(row("DMP#a", "VERSION#latest", title="Goob")))
        got = self.store.get("DMP#a", "VERSION#latest")
        self.assertEqual(got["title"], "Goob")

        # returned rows are copies
        got["title"] = "Gurn"
        self.assertEqual(self.store.get("DMP#a", "VERSION#latest")["title"], "Goob")

        # replace
        self.assertFalse(self.store.put(row("DMP#a", "VERSION#latest", title="Hank")))
        self.assertEqual(self.store.get("DMP#a", "VERSION#latest")["title"], "Hank")

    def test_put_must_not_exist(self):
        self.store.put(row("DMP#a", "VERSION#latest", title="Goob"), must_not_exist=True)
        with self.assertRaises(ConditionFailed):
            self.store.put(row("DMP#a", "VERSION#latest", title="Gurn"), must_not_exist=True)
        self.assertEqual(self.store.get("DMP#a", "VERSION#latest")["title"], "Goob")

        with self.assertRaises(StoreException):
            self.store.put({"title": "keyless"})

    def test_update(self):
        self.store.put(row("DMP#a", "VERSION#latest", title="Goob", dmphub_updated_at="t1"))
        out = self.store.update("DMP#a", "VERSION#latest", {"title": "Gurn"}, {"dmphub_updated_at": "t1"})
        self.assertEqual(out["title"], "Gurn")
        self.assertEqual(self.store.get("DMP#a", "VERSION#latest")["title"], "Gurn")

        with self.assertRaises(ConditionFailed):
            self.store.update("DMP#a", "VERSION#latest", {"title": "Hank"}, {"dmphub_updated_at": "t0"})
        with self.assertRaises(ConditionFailed):
            self.store.update("DMP#b", "VERSION#latest", {"title": "Hank"})
        self.assertEqual(self.store.get("DMP#a", "VERSION#latest")["title"], "Gurn")

    def test_update_moves_key(self):
        self.store.put(row("DMP#a", "VERSION#latest", title="Goob", dmphub_updated_at="t1"))
        out = self.store.update("DMP#a", "VERSION#latest", {base.SK: "VERSION#t1"})
        self.assertEqual(out[base.SK], "VERSION#t1")
        self.assertIsNone(self.store.get("DMP#a", "VERSION#latest"))
        self.assertEqual(self.store.get("DMP#a", "VERSION#t1")["title"], "Goob")

        # the row can no longer be moved from latest
        with self.assertRaises(ConditionFailed):
            self.store.update("DMP#a", "VERSION#latest", {base.SK: "VERSION#t2"})

        # cannot move onto an occupied key
        self.store.put(row("DMP#a", "VERSION#latest", title="Gurn", dmphub_updated_at="t1"))
        with self.assertRaises(ConditionFailed):
            self.store.update("DMP#a", "VERSION#latest", {base.SK: "VERSION#t1"})
        self.assertEqual(self.store.get("DMP#a", "VERSION#latest")["title"], "Gurn")

    def test_query(self):
        self.store.put(row("DMP#a", "VERSION#latest", dmphub_provenance_id="p1"))
        self.store.put(row("DMP#a", "VERSION#t1", dmphub_provenance_id="p1"))
        self.store.put(row("DMP#b", "VERSION#latest", dmphub_provenance_id="p2"))

        self.assertEqual(len(list(self.store.query({base.PK: "DMP#a"}))), 2)
        self.assertEqual(len(list(self.store.query({base.PK: "DMP#c"}))), 0)
        found = list(self.store.query({"dmphub_provenance_id": "p1", base.SK: "VERSION#latest"}))
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0][base.PK], "DMP#a")
        self.assertEqual(len(list(self.store.query({}))), 3)

    def test_delete(self):
        self.store.put(row("DMP#a", "VERSION#latest"))
        self.assertTrue(self.store.delete("DMP#a", "VERSION#latest"))
        self.assertFalse(self.store.delete("DMP#a", "VERSION#latest"))
        self.assertIsNone(self.store.get("DMP#a", "VERSION#latest"))
        self.assertNotIn("DMP#a", self.dbdata["dmps"])


if __name__ == '__main__':
    test.main()
