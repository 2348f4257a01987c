import pdb
import unittest as test

from dmphub import format as fmt
from dmphub.record import DMPRecord, LATEST_VERSION

class TestFormat(test.TestCase):

    def test_cleanse(self):
        data = {"PK": "DMP#x", "SK": "VERSION#latest", "title": "Goob", "dmphub_updated_at": "t",
                "project": [{"funding": [{"name": "NSF", "dmphub_provenance_id": "funder",
                                          "grant_id": {"identifier": "g", "dmphub_created_at": "t"}}]}]}
        self.assertEqual(fmt.cleanse(data),
                         {"title": "Goob", "project": [{"funding": [{"name": "NSF",
                                                                     "grant_id": {"identifier": "g"}}]}]})
        self.assertEqual(fmt.cleanse("goob"), "goob")
        self.assertIn("dmphub_updated_at", data)

    def test_format_response(self):
        rec = DMPRecord({"title": "Goob"}, primary_key="DMP#other:x", version_key=LATEST_VERSION,
                        canonical_identifier={"type": "other", "identifier": "other:x"},
                        owner_provenance="planner", updated_at="t")
        resp = fmt.format_response(200, [rec])
        self.assertEqual(resp["status"], 200)
        self.assertEqual(resp["body"]["item_count"], 1)
        self.assertEqual(resp["body"]["items"],
                         [{"title": "Goob", "dmp_id": {"type": "other", "identifier": "other:x"}}])
        self.assertNotIn("errors", resp["body"])

        resp = fmt.format_response(404, errors=["Not found"])
        self.assertEqual(resp, {"status": 404, "body": {"item_count": 0, "items": [],
                                                        "errors": ["Not found"]}})

        resp = fmt.format_response("200", [{"title": "a"}, {"title": "b"}], total=10)
        self.assertEqual(resp["status"], 200)
        self.assertEqual(resp["body"]["item_count"], 10)
        self.assertEqual(len(resp["body"]["items"]), 2)


if __name__ == '__main__':
    test.main()
