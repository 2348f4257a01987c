import os, json, pdb, logging
from copy import deepcopy
from pathlib import Path
import unittest as test
from unittest import mock

from dmphub.service import DMPService, Result, create_service
from dmphub.dbio import inmem, PK, SK
from dmphub.authz import Provenance
from dmphub.record import LATEST_VERSION, TOMBSTONE_VERSION, GRANTED
from dmphub.exceptions import StoreUnavailable, ConfigurationException

testdir = Path(__file__).parents[0]
datadir = testdir / "data"

NSF = {"type": "fundref", "identifier": "https://api.crossref.org/funders/100000001"}

def load_dmp(name="dmp1.json"):
    with open(datadir / name) as fd:
        return json.load(fd)

class FailingStore(inmem.InMemoryDMPStore):
    # a store whose backend has gone away
    def get(self, pk, sk):
        raise StoreUnavailable("store is down")

    def query(self, constraints, index=None):
        raise StoreUnavailable("store is down")

class TestDMPService(test.TestCase):

    def setUp(self):
        self.dbdata = {}
        self.store = inmem.InMemoryDMPStore(self.dbdata, {})
        self.cfg = {
            "dmp_id": { "base_url": "https://doi.org/", "shoulder": "10.80030/D1" },
            "authorization": { "env": "dev" }
        }
        self.svc = DMPService(self.store, self.cfg)
        self.owner = Provenance("planner", ["api.dev.write"])
        self.funder = Provenance("funder", ["api.dev.write"])
        self.repo = Provenance("repo", ["api.dev.write"])
        self.reader = Provenance("reader", ["api.dev.read"])

    def create(self, name="dmp1.json", prov=None):
        res = self.svc.create(prov or self.owner, load_dmp(name))
        self.assertEqual(res.status, Result.CREATED, res.errors)
        return res.record

    def latest_rows(self, pk):
        return [r for r in self.store.query({PK: pk}) if r[SK] == LATEST_VERSION]

    def grant_payload(self, rec, grant="https://nsf.gov/awards/2401"):
        return {"dmp_id": rec.canonical_identifier,
                "project": [{"funding": [{"funder_id": NSF, "grant_id": {"type": "url", "identifier": grant}}]}]}

    def test_ctor(self):
        self.assertEqual(self.svc.minter.base_url, "https://doi.org/")
        self.assertEqual(self.svc.authorizer.write_scope, "api.dev.write")
        self.assertEqual(self.svc.log.name, "DMPHub.service")
        with self.assertRaises(ConfigurationException):
            DMPService(self.store, {})

    def test_create(self):
        rec = self.create()
        self.assertTrue(rec.primary_key.startswith("DMP#https://doi.org/10.80030/D1."))
        self.assertEqual(rec.version_key, LATEST_VERSION)
        self.assertEqual(rec.canonical_identifier["type"], "doi")
        self.assertEqual("DMP#" + rec.canonical_identifier["identifier"], rec.primary_key)
        self.assertEqual(rec.owner_provenance, "planner")
        self.assertEqual(rec.origin_identifier, {"type": "other", "identifier": "planner-2024-0042"})
        self.assertEqual(rec.provenance_key, "other:planner-2024-0042")
        self.assertTrue(rec.created_at)
        self.assertEqual(rec.created_at, rec.updated_at)
        self.assertEqual(len(rec.funding), 1)

        self.assertEqual(len(self.latest_rows(rec.primary_key)), 1)

    def test_create_as_string(self):
        res = self.svc.create(self.owner, json.dumps(load_dmp("dmp2.json")))
        self.assertEqual(res.status, Result.CREATED, res.errors)
        self.assertEqual(res.record.provenance_key, "https://doi.org/10.99999/otherhub.77")

    def test_create_invalid(self):
        dmp = load_dmp()
        del dmp["dmp"]["title"]
        res = self.svc.create(self.owner, dmp)
        self.assertEqual(res.status, Result.INVALID)
        self.assertTrue(any("title" in e for e in res.errors))
        self.assertFalse(res.ok)
        self.assertFalse(res.retryable)

        res = self.svc.create(self.owner, "{ not json")
        self.assertEqual(res.status, Result.INVALID)
        self.assertEqual(self.dbdata["dmps"], {})

    def test_create_exists(self):
        rec = self.create()
        res = self.svc.create(self.owner, load_dmp())
        self.assertEqual(res.status, Result.ALREADY_EXISTS)

        dmp = load_dmp("dmp2.json")
        dmp["dmp_id"] = rec.canonical_identifier
        res = self.svc.create(self.owner, dmp)
        self.assertEqual(res.status, Result.ALREADY_EXISTS)

    def test_create_forbidden(self):
        res = self.svc.create(self.reader, load_dmp())
        self.assertEqual(res.status, Result.FORBIDDEN)
        self.assertEqual(self.dbdata["dmps"], {})

    def test_create_no_identifier(self):
        with mock.patch.object(self.svc.versions, "key_in_use", return_value=True):
            res = self.svc.create(self.owner, load_dmp())
        self.assertEqual(res.status, Result.NO_IDENTIFIER)
        self.assertEqual(self.dbdata["dmps"], {})

    def test_find(self):
        rec = self.create()
        ident = rec.canonical_identifier["identifier"]

        for id in [rec.primary_key, ident, ident[len("https://doi.org/"):],
                   "doi:" + ident[len("https://doi.org/"):], "planner-2024-0042",
                   {"type": "other", "identifier": "planner-2024-0042"}]:
            res = self.svc.find(id)
            self.assertEqual(res.status, Result.OK, id)
            self.assertEqual(res.record.primary_key, rec.primary_key)

        self.assertEqual(self.svc.find("planner-9999").status, Result.NOT_FOUND)
        self.assertEqual(self.svc.find("").status, Result.NOT_FOUND)
        self.assertEqual(self.svc.find(rec.primary_key, "VERSION#goob").status, Result.NOT_FOUND)

    def test_owner_update(self):
        rec = self.create()
        dmp = load_dmp()
        dmp["dmp"]["title"] = "Revised Plan"
        res = self.svc.update(self.owner, rec.primary_key, dmp)
        self.assertEqual(res.status, Result.OK, res.errors)
        self.assertEqual(res.record.metadata["title"], "Revised Plan")
        self.assertGreater(res.record.updated_at, rec.updated_at)
        self.assertEqual(res.record.created_at, rec.created_at)
        self.assertEqual(res.record.primary_key, rec.primary_key)

        hist = self.svc.history(rec.primary_key).records
        self.assertEqual(len(hist), 2)
        self.assertEqual(hist[0].version_key, LATEST_VERSION)
        self.assertEqual(hist[1].version_key, "VERSION#" + rec.updated_at)
        self.assertEqual(hist[1].metadata["title"], rec.metadata["title"])
        self.assertEqual(len(self.latest_rows(rec.primary_key)), 1)

        # the historical version is retrievable and unchanged
        old = self.svc.find(rec.primary_key, hist[1].version_key).record
        self.assertEqual(old.metadata["title"], rec.metadata["title"])

    def test_noop_update(self):
        rec = self.create()
        res = self.svc.update(self.owner, rec.primary_key, load_dmp())
        self.assertEqual(res.status, Result.OK)
        self.assertEqual(res.record.updated_at, rec.updated_at)
        self.assertEqual(len(self.svc.history(rec.primary_key).records), 1)

    def test_third_party_grant(self):
        rec = self.create()
        res = self.svc.update(self.funder, rec.primary_key, self.grant_payload(rec))
        self.assertEqual(res.status, Result.OK, res.errors)
        self.assertEqual(len(res.record.funding), 1)
        entry = res.record.funding[0]
        self.assertEqual(entry.funding_status, GRANTED)
        self.assertEqual(entry.name, "National Science Foundation")
        self.assertEqual(entry.grant_id["dmphub_provenance_id"], "funder")
        self.assertEqual(res.record.metadata["title"], rec.metadata["title"])
        self.assertEqual(res.record.owner_provenance, "planner")

        # resubmission changes nothing
        res2 = self.svc.update(self.funder, rec.primary_key, self.grant_payload(rec))
        self.assertEqual(res2.status, Result.OK)
        self.assertEqual(res2.record.updated_at, res.record.updated_at)
        self.assertEqual(len(self.svc.history(rec.primary_key).records), 2)

        # the owner's next update does not lose the grant
        dmp = load_dmp()
        dmp["dmp"]["title"] = "Revised Plan"
        res3 = self.svc.update(self.owner, rec.primary_key, dmp)
        self.assertEqual(res3.status, Result.OK)
        statuses = [(f.funding_status, f.contributor) for f in res3.record.funding]
        self.assertIn((GRANTED, "funder"), statuses)

    def test_third_party_related(self):
        rec = self.create()
        payload = {"dmp_id": {"type": "other", "identifier": "planner-2024-0042"},
                   "title": "Ignored",
                   "dmproadmap_related_identifiers": [
                       {"descriptor": "is_referenced_by", "work_type": "dataset", "type": "doi",
                        "identifier": "https://doi.org/10.5555/ds.1"}]}
        res = self.svc.update(self.repo, rec.primary_key, payload)
        self.assertEqual(res.status, Result.OK, res.errors)
        self.assertEqual(res.record.metadata["title"], rec.metadata["title"])
        self.assertEqual([r.contributor for r in res.record.related_identifiers], [None, "repo"])

    def test_update_mismatched_id(self):
        rec = self.create()
        other = self.create("dmp2.json")
        res = self.svc.update(self.funder, rec.primary_key, self.grant_payload(other))
        self.assertEqual(res.status, Result.FORBIDDEN)
        self.assertEqual(len(self.svc.history(rec.primary_key).records), 1)

    def test_update_refused(self):
        rec = self.create()
        res = self.svc.update(self.owner, "DMP#https://doi.org/10.80030/D1.FFFFFFFF", load_dmp())
        self.assertEqual(res.status, Result.NOT_FOUND)
        res = self.svc.update(self.reader, rec.primary_key, self.grant_payload(rec))
        self.assertEqual(res.status, Result.FORBIDDEN)
        res = self.svc.update(self.funder, rec.primary_key, {"title": "no dmp_id"})
        self.assertEqual(res.status, Result.INVALID)

    def test_update_historical(self):
        rec = self.create()
        dmp = load_dmp()
        dmp["dmp"]["title"] = "Revised Plan"
        self.svc.update(self.owner, rec.primary_key, dmp)
        oldkey = "VERSION#" + rec.updated_at

        dmp["dmp"]["title"] = "From the past"
        res = self.svc.update(self.owner, rec.primary_key, dmp, oldkey)
        self.assertEqual(res.status, Result.HISTORICAL)
        res = self.svc.update(self.owner, rec.primary_key, dmp, LATEST_VERSION)
        self.assertEqual(res.status, Result.OK)
        self.assertEqual(self.svc.find(rec.primary_key, oldkey).record.metadata["title"],
                         rec.metadata["title"])

    def test_update_conflict(self):
        rec = self.create()
        stale = self.svc.find(rec.primary_key).record
        dmp = load_dmp()
        dmp["dmp"]["title"] = "First"
        self.assertEqual(self.svc.update(self.owner, rec.primary_key, dmp).status, Result.OK)

        dmp["dmp"]["title"] = "Second"
        with mock.patch.object(self.svc.versions, "require_latest", return_value=stale):
            res = self.svc.update(self.owner, rec.primary_key, dmp)
        self.assertEqual(res.status, Result.CONFLICT)
        self.assertTrue(res.retryable)
        self.assertEqual(self.svc.find(rec.primary_key).record.metadata["title"], "First")
        self.assertEqual(len(self.latest_rows(rec.primary_key)), 1)

    def test_delete(self):
        rec = self.create()
        res = self.svc.delete(self.funder, rec.primary_key)
        self.assertEqual(res.status, Result.FORBIDDEN)

        res = self.svc.delete(self.owner, rec.primary_key)
        self.assertEqual(res.status, Result.OK, res.errors)
        self.assertEqual(res.record.version_key, TOMBSTONE_VERSION)
        self.assertTrue(res.record.deleted_at)

        # a tombstone is terminal
        self.assertEqual(self.svc.delete(self.owner, rec.primary_key).status, Result.HISTORICAL)
        self.assertEqual(self.svc.update(self.owner, rec.primary_key, load_dmp()).status, Result.HISTORICAL)
        self.assertEqual(self.svc.update(self.funder, rec.primary_key, self.grant_payload(rec)).status,
                         Result.HISTORICAL)
        self.assertEqual(self.svc.find(rec.primary_key).status, Result.NOT_FOUND)
        self.assertEqual(self.svc.find(rec.primary_key, TOMBSTONE_VERSION).status, Result.OK)
        self.assertEqual(self.svc.list_for(self.owner).records, [])
        self.assertEqual(self.svc.repair(rec.primary_key).status, Result.HISTORICAL)

        hist = self.svc.history(rec.primary_key).records
        self.assertEqual([r.version_key for r in hist], [TOMBSTONE_VERSION])

        self.assertEqual(self.svc.delete(self.owner, "DMP#other:nothing").status, Result.NOT_FOUND)

    def test_delete_with_payload(self):
        rec = self.create()
        other = self.create("dmp2.json")
        res = self.svc.delete(self.owner, rec.primary_key, {"dmp_id": other.canonical_identifier})
        self.assertEqual(res.status, Result.FORBIDDEN)
        res = self.svc.delete(self.owner, rec.primary_key, {"title": "no id"})
        self.assertEqual(res.status, Result.INVALID)
        res = self.svc.delete(self.owner, rec.primary_key, {"dmp_id": rec.canonical_identifier})
        self.assertEqual(res.status, Result.OK)

    def test_list_for(self):
        self.create()
        self.create("dmp2.json")
        dmp = load_dmp("dmp2.json")
        del dmp["dmp_id"]
        self.assertEqual(self.svc.create(self.funder, dmp).status, Result.CREATED)

        res = self.svc.list_for(self.owner)
        self.assertEqual(res.status, Result.OK)
        self.assertEqual(len(res.records), 2)
        self.assertEqual(len(self.svc.list_for("funder").records), 1)
        self.assertEqual(self.svc.list_for("nobody").records, [])

    def test_history_not_found(self):
        self.assertEqual(self.svc.history("DMP#other:nothing").status, Result.NOT_FOUND)
        self.assertEqual(self.svc.history(None).status, Result.NOT_FOUND)

    def test_store_unavailable(self):
        svc = DMPService(FailingStore({}, {}), self.cfg)
        res = svc.create(self.owner, load_dmp())
        self.assertEqual(res.status, Result.STORE_UNAVAILABLE)
        self.assertTrue(res.retryable)
        self.assertIn("store is down", res.error)

        self.assertEqual(svc.update(self.owner, "DMP#other:x", load_dmp()).status, Result.STORE_UNAVAILABLE)
        self.assertEqual(svc.delete(self.owner, "DMP#other:x").status, Result.STORE_UNAVAILABLE)
        self.assertEqual(svc.find("DMP#other:x").status, Result.STORE_UNAVAILABLE)
        self.assertEqual(svc.list_for(self.owner).status, Result.STORE_UNAVAILABLE)

    def test_failed_update_and_repair(self):
        rec = self.create()
        dmp = load_dmp()
        dmp["dmp"]["title"] = "Revised Plan"

        with mock.patch.object(self.svc.versions, "write_latest", side_effect=StoreUnavailable("down")):
            with self.assertLogs("DMPHub.service", level="CRITICAL") as cm:
                res = self.svc.update(self.owner, rec.primary_key, dmp)
        self.assertEqual(res.status, Result.STORE_UNAVAILABLE)
        self.assertTrue(any("ALERT" in m and rec.primary_key in m for m in cm.output))

        self.assertTrue(self.svc.versions.is_orphaned(rec.primary_key))
        self.assertEqual(self.svc.find(rec.primary_key).status, Result.NOT_FOUND)

        res = self.svc.repair(rec.primary_key)
        self.assertEqual(res.status, Result.OK)
        self.assertEqual(res.record.metadata["title"], rec.metadata["title"])
        self.assertEqual(self.svc.find(rec.primary_key).status, Result.OK)

        # the retried update now succeeds
        res = self.svc.update(self.owner, rec.primary_key, dmp)
        self.assertEqual(res.status, Result.OK)
        self.assertEqual(len(self.svc.history(rec.primary_key).records), 3)
        self.assertEqual(len(self.latest_rows(rec.primary_key)), 1)

    def test_create_service(self):
        cfg = deepcopy(self.cfg)
        cfg["store"] = {"factory": "inmem"}
        svc = create_service(cfg)
        self.assertEqual(svc.create(self.owner, load_dmp()).status, Result.CREATED)

        with self.assertRaises(ConfigurationException):
            create_service(self.cfg)


if __name__ == '__main__':
    test.main()
