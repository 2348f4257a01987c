"""
The typed model of a DMP record as managed by the hub.

A DMP is exchanged with client systems as a JSON document following the RDA DMP Common Standard
(optionally wrapped in a ``{"dmp": ...}`` envelope).  Within the hub, a record is represented by a
:py:class:`DMPRecord` whose hub bookkeeping (keys, ownership, timestamps) and whose two amendable
arrays (funding and related identifiers) are explicit attributes; all the other, owner-controlled
content of the document is carried opaquely in its ``metadata`` dictionary.

When persisted, a record becomes a row (see :py:meth:`DMPRecord.to_item`):  the DMP document itself
plus the ``PK`` and ``SK`` key properties and hub bookkeeping properties whose names start with
``dmphub_``.  Entries in the funding and related identifier arrays contributed by systems other than
the owner carry a ``dmphub_provenance_id`` stamp.
"""
import json
from copy import deepcopy
from datetime import datetime, timezone, timedelta
from collections.abc import Mapping
from typing import List, Optional

from .exceptions import InvalidRecord

PK_DMP_PREFIX = "DMP#"
SK_PREFIX = "VERSION#"
LATEST_VERSION = SK_PREFIX + "latest"
TOMBSTONE_VERSION = SK_PREFIX + "tombstone"

PLANNED = "planned"
APPLIED = "applied"
GRANTED = "granted"
REJECTED = "rejected"
FUNDING_STATUSES = (PLANNED, APPLIED, GRANTED, REJECTED)
OPEN_FUNDING_STATUSES = (PLANNED, APPLIED)

PROV_PROP = "dmphub_provenance_id"
CONTRIB_DATE_PROP = "dmphub_created_at"

FUNDING_PROP = "funding"
PROJECT_PROP = "project"
RELATED_PROP = "dmproadmap_related_identifiers"
DMP_ID_PROP = "dmp_id"

def now() -> str:
    """
    return the current time as an ISO-8601 formatted UTC timestamp (with microseconds)
    """
    return datetime.now(timezone.utc).isoformat()

def now_after(prev: str=None) -> str:
    """
    return the current time as with :py:func:`now` but guaranteed to be later than ``prev`` (an
    earlier value from :py:func:`now`), so that successive versions get distinct timestamps
    """
    stamp = datetime.now(timezone.utc)
    if prev:
        try:
            last = datetime.fromisoformat(prev)
        except ValueError:
            return stamp.isoformat()
        if last.tzinfo is not None and stamp <= last:
            stamp = last + timedelta(microseconds=1)
    return stamp.isoformat()

def today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")

def is_hub_property(name: str) -> bool:
    """
    return True if the given property name is reserved for the hub's own bookkeeping
    """
    return name.startswith("dmphub") or name in ("PK", "SK")

def prepare_payload(payload, recid: str=None) -> dict:
    """
    convert a DMP payload submitted by a client into a DMP document dictionary.  The payload may be
    given as a JSON-encoded string or as a Mapping, and it may be wrapped in a ``{"dmp": ...}``
    envelope.
    :raises InvalidRecord:  if the payload cannot be parsed or is not a JSON object
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as ex:
            raise InvalidRecord("DMP payload is not parseable JSON: " + str(ex), recid)
    if not isinstance(payload, Mapping):
        raise InvalidRecord("DMP payload is not a JSON object", recid)
    if len(payload) == 1 and isinstance(payload.get("dmp"), Mapping):
        payload = payload["dmp"]
    return deepcopy(dict(payload))


class FundingEntry(object):
    """
    an entry from the funding array of a DMP's project.  An entry without a contributor provenance
    belongs to the DMP's owner.  When a third-party system resolves an award for an entry, the
    contributor stamp is attached to the ``grant_id`` sub-object; :py:attr:`contributor` reports
    whichever stamp is present.
    """
    _props = ("name", "funder_id", "funding_status", "grant_id", PROV_PROP, CONTRIB_DATE_PROP)

    def __init__(self, name: str=None, funder_id: Mapping=None, funding_status: str=None,
                 grant_id: Mapping=None, contributor_provenance: str=None, contributed_at: str=None,
                 extras: Mapping=None):
        self.name = name
        self.funder_id = funder_id
        self.funding_status = funding_status
        self.grant_id = grant_id
        self.contributor_provenance = contributor_provenance
        self.contributed_at = contributed_at
        self.extras = dict(extras) if extras else {}

    @classmethod
    def from_dict(cls, data: Mapping):
        data = deepcopy(data)
        return cls(data.get("name"), data.get("funder_id"), data.get("funding_status"),
                   data.get("grant_id"), data.get(PROV_PROP), data.get(CONTRIB_DATE_PROP),
                   {k: v for k, v in data.items() if k not in cls._props})

    def to_dict(self) -> dict:
        out = deepcopy(self.extras)
        for prop, val in (("name", self.name), ("funder_id", self.funder_id),
                          ("funding_status", self.funding_status), ("grant_id", self.grant_id),
                          (PROV_PROP, self.contributor_provenance),
                          (CONTRIB_DATE_PROP, self.contributed_at)):
            if val is not None:
                out[prop] = deepcopy(val)
        return out

    @property
    def contributor(self) -> Optional[str]:
        """
        the provenance that contributed this entry (or its grant), or None if it is the owner's
        """
        if self.contributor_provenance:
            return self.contributor_provenance
        if isinstance(self.grant_id, Mapping):
            return self.grant_id.get(PROV_PROP)
        return None

    @property
    def contribution_date(self) -> str:
        """
        the time this entry (or its grant) was contributed by a third party, or an empty string
        """
        if self.contributed_at:
            return self.contributed_at
        if isinstance(self.grant_id, Mapping):
            return self.grant_id.get(CONTRIB_DATE_PROP) or ''
        return ''

    @property
    def is_open(self) -> bool:
        """
        True if this entry is still waiting on a funding decision
        """
        return self.funding_status in OPEN_FUNDING_STATUSES

    def __eq__(self, other):
        return isinstance(other, FundingEntry) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return "FundingEntry(%s)" % repr(self.to_dict())


class RelatedIdentifier(object):
    """
    an entry from a DMP's related identifiers array, linking the DMP to some other work
    """
    _props = ("descriptor", "work_type", "type", "identifier", PROV_PROP)

    def __init__(self, descriptor: str=None, work_type: str=None, type: str=None, identifier: str=None,
                 contributor_provenance: str=None, extras: Mapping=None):
        self.descriptor = descriptor
        self.work_type = work_type
        self.type = type
        self.identifier = identifier
        self.contributor_provenance = contributor_provenance
        self.extras = dict(extras) if extras else {}

    @classmethod
    def from_dict(cls, data: Mapping):
        data = deepcopy(data)
        return cls(data.get("descriptor"), data.get("work_type"), data.get("type"),
                   data.get("identifier"), data.get(PROV_PROP),
                   {k: v for k, v in data.items() if k not in cls._props})

    def to_dict(self) -> dict:
        out = deepcopy(self.extras)
        for prop, val in (("descriptor", self.descriptor), ("work_type", self.work_type),
                          ("type", self.type), ("identifier", self.identifier),
                          (PROV_PROP, self.contributor_provenance)):
            if val is not None:
                out[prop] = val
        return out

    @property
    def contributor(self) -> Optional[str]:
        return self.contributor_provenance

    def __eq__(self, other):
        return isinstance(other, RelatedIdentifier) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return "RelatedIdentifier(%s)" % repr(self.to_dict())


class DMPRecord(object):
    """
    a version of a DMP record.

    The attributes of this class are:

    ``primary_key``
        the table key derived from the record's canonical identifier (``DMP#`` + identifier)
    ``version_key``
        one of :py:data:`LATEST_VERSION`, :py:data:`TOMBSTONE_VERSION`, or a historical token
        (``VERSION#`` + the version's update time)
    ``canonical_identifier``
        the ``{type, identifier}`` object naming the DMP; it is always consistent with the primary key
    ``owner_provenance``
        the identifier of the system that created the record
    ``origin_identifier``
        the owner's own identifier for the DMP as submitted at creation time
    ``created_at``, ``updated_at``, ``modification_day``, ``deleted_at``
        bookkeeping timestamps
    ``funding``
        the list of :py:class:`FundingEntry` objects from the (first) project
    ``related_identifiers``
        the list of :py:class:`RelatedIdentifier` objects
    ``metadata``
        all other content of the DMP document, controlled by the owner
    """

    def __init__(self, metadata: Mapping=None, funding: List[FundingEntry]=None,
                 related_identifiers: List[RelatedIdentifier]=None, primary_key: str=None,
                 version_key: str=None, canonical_identifier: Mapping=None, owner_provenance: str=None,
                 origin_identifier: Mapping=None, created_at: str=None, updated_at: str=None,
                 modification_day: str=None, deleted_at: str=None, provenance_key: str=None):
        self.metadata = dict(metadata) if metadata else {}
        self.funding = list(funding) if funding else []
        self.related_identifiers = list(related_identifiers) if related_identifiers else []
        self.primary_key = primary_key
        self.version_key = version_key
        self.canonical_identifier = canonical_identifier
        self.owner_provenance = owner_provenance
        self.origin_identifier = origin_identifier
        self.provenance_key = provenance_key
        self.created_at = created_at
        self.updated_at = updated_at
        self.modification_day = modification_day
        self.deleted_at = deleted_at

    @classmethod
    def from_document(cls, doc: Mapping):
        """
        create a record from a DMP document as submitted by a client.  Any hub bookkeeping
        properties in the document are discarded; the document's ``dmp_id`` is retained as the
        (not yet validated) canonical identifier.
        """
        doc = {k: deepcopy(v) for k, v in doc.items() if not is_hub_property(k)}
        declared = doc.get(DMP_ID_PROP)
        out = cls._from_content(doc)
        out.canonical_identifier = declared
        return out

    @classmethod
    def _from_content(cls, doc: dict):
        funding = []
        projects = doc.get(PROJECT_PROP)
        if isinstance(projects, list) and projects and isinstance(projects[0], Mapping):
            funds = projects[0].get(FUNDING_PROP)
            if isinstance(funds, list):
                funding = [FundingEntry.from_dict(f) for f in funds if isinstance(f, Mapping)]
                projects[0][FUNDING_PROP] = []

        related = []
        rels = doc.get(RELATED_PROP)
        if isinstance(rels, list):
            related = [RelatedIdentifier.from_dict(r) for r in rels if isinstance(r, Mapping)]
            doc[RELATED_PROP] = []

        doc.pop(DMP_ID_PROP, None)
        return cls(doc, funding, related)

    @classmethod
    def from_item(cls, item: Mapping):
        """
        create a record from a row retrieved from the store
        """
        if item is None:
            return None
        content = {k: deepcopy(v) for k, v in item.items() if not is_hub_property(k)}
        out = cls._from_content(content)
        out.primary_key = item.get("PK")
        out.version_key = item.get("SK")
        out.canonical_identifier = deepcopy(item.get(DMP_ID_PROP))
        out.owner_provenance = item.get("dmphub_provenance_id")
        out.origin_identifier = deepcopy(item.get("dmphub_provenance_identifier"))
        out.provenance_key = item.get("dmphub_provenance_key")
        out.created_at = item.get("dmphub_created_at")
        out.updated_at = item.get("dmphub_updated_at")
        out.modification_day = item.get("dmphub_modification_day")
        out.deleted_at = item.get("dmphub_deleted_at")
        return out

    def to_document(self) -> dict:
        """
        render this record as a DMP document (without the hub bookkeeping properties)
        """
        out = deepcopy(self.metadata)
        if self.canonical_identifier is not None:
            out[DMP_ID_PROP] = deepcopy(self.canonical_identifier)

        projects = out.get(PROJECT_PROP)
        if self.funding or (isinstance(projects, list) and projects and
                            isinstance(projects[0], Mapping) and FUNDING_PROP in projects[0]):
            if not isinstance(projects, list) or not projects or not isinstance(projects[0], Mapping):
                projects = [{}]
                out[PROJECT_PROP] = projects
            projects[0][FUNDING_PROP] = [f.to_dict() for f in self.funding]

        if self.related_identifiers or RELATED_PROP in out:
            out[RELATED_PROP] = [r.to_dict() for r in self.related_identifiers]
        return out

    def to_item(self) -> dict:
        """
        render this record as a row to be persisted to the store
        """
        out = self.to_document()
        for prop, val in (("PK", self.primary_key), ("SK", self.version_key),
                          ("dmphub_provenance_id", self.owner_provenance),
                          ("dmphub_provenance_identifier", self.origin_identifier),
                          ("dmphub_provenance_key", self.provenance_key),
                          ("dmphub_created_at", self.created_at),
                          ("dmphub_updated_at", self.updated_at),
                          ("dmphub_modification_day", self.modification_day),
                          ("dmphub_deleted_at", self.deleted_at)):
            if val is not None:
                out[prop] = deepcopy(val)
        return out

    def copy(self):
        """
        return a deep copy of this record
        """
        return deepcopy(self)

    @property
    def is_latest(self) -> bool:
        return self.version_key == LATEST_VERSION

    @property
    def is_tombstone(self) -> bool:
        return self.version_key == TOMBSTONE_VERSION

    def __str__(self):
        return "DMPRecord(%s %s)" % (self.primary_key, self.version_key)
