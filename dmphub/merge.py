"""
The provenance-aware merge of an incoming DMP update into the stored version of the DMP.

A DMP can be changed by its owner (the system that created it) and by other systems.  The owner
controls the whole document, with one exception:  entries that other systems contributed to the
funding and related identifier arrays are never dropped by the owner's updates.  Other systems may
only contribute to those two arrays:

  - a funding contribution reports the outcome of a pending (planned or applied) funding request:
    the matching pending entry is replaced by one that records the grant (or the rejection);
  - a related identifier contribution replaces the set of related identifiers previously contributed
    by the same system.

Everything else in a third party's submission is ignored.
"""
from collections.abc import Mapping
from logging import Logger, getLogger
from typing import List, Optional

import jsonpatch

from . import system
from .exceptions import HistoricalModification
from .record import (DMPRecord, FundingEntry, RelatedIdentifier, GRANTED, REJECTED, PROV_PROP,
                     CONTRIB_DATE_PROP, now)

CREATE = "create"
NOOP   = "no-op"
OWNER  = "owner"
AMEND  = "amend"

# bookkeeping properties that change with every version
_UNCOMPARED = ("SK", "dmphub_updated_at", "dmphub_modification_day")

class MergeResult(object):
    """
    the outcome of a merge:  the record that should become the new latest version and the kind of
    merge that produced it (one of ``CREATE``, ``NOOP``, ``OWNER``, or ``AMEND``).
    """

    def __init__(self, record: DMPRecord, action: str):
        self.record = record
        self.action = action

    @property
    def changed(self) -> bool:
        """
        True if a new version needs to be written
        """
        return self.action != NOOP

    def __repr__(self):
        return "MergeResult(%s, %s)" % (self.action, str(self.record))


class MergeEngine(object):
    """
    a class that reconciles an incoming DMP with the stored latest version of that DMP according to
    the provenance of the change.
    """

    def __init__(self, log: Logger=None, clock=now):
        """
        create the engine
        :param Logger log:  the logger to send messages to
        :param clock:       a function returning the current time as a string; it is used to stamp
                            third-party contributions
        """
        if not log:
            log = getLogger(system.system_abbrev).getChild("merge")
        self.log = log
        self._now = clock

    def merge(self, updater: str, base: Optional[DMPRecord], incoming: DMPRecord) -> MergeResult:
        """
        merge an incoming version of a DMP with its current stored version.
        :param str        updater:  the provenance submitting the incoming version
        :param DMPRecord     base:  the current stored version, or None if the DMP is new
        :param DMPRecord incoming:  the version submitted by ``updater``
        :raises HistoricalModification:  if ``base`` is not the latest version
        """
        if base is None:
            return MergeResult(incoming.copy(), CREATE)

        if not base.is_latest:
            raise HistoricalModification(base.primary_key, base.version_key)

        if self.structurally_equal(base, incoming):
            return MergeResult(base.copy(), NOOP)

        if updater == base.owner_provenance:
            merged = self.splice_for_owner(base, incoming)
            action = OWNER
        else:
            merged = self.splice_for_others(updater, base, incoming)
            action = AMEND

        if self.structurally_equal(base, merged):
            return MergeResult(base.copy(), NOOP)
        return MergeResult(merged, action)

    def structurally_equal(self, a: DMPRecord, b: DMPRecord) -> bool:
        """
        return True if two versions of a DMP have the same content, ignoring their version keys and
        update times.
        """
        patch = jsonpatch.make_patch(_comparable(a), _comparable(b))
        if patch.patch:
            self.log.debug("%s: changed: %s", a.primary_key, ", ".join(op['path'] for op in patch))
            return False
        return True

    def splice_for_owner(self, base: DMPRecord, incoming: DMPRecord) -> DMPRecord:
        """
        apply the owner's version of the DMP:  the incoming version replaces the base, except that the
        base's identity and creation properties are retained, and that the funding and related
        identifier entries contributed by other systems are appended to the owner's new entries.

        A DMP retrieved from the hub has its contributor stamps removed, so an owner that resubmits
        it sends other systems' entries back unstamped.  Such copies are dropped in favor of the
        stamped originals.
        """
        owner = base.owner_provenance
        out = incoming.copy()
        _carry_identity(base, out)
        out.funding = _splice_entries(owner, base.copy().funding, out.funding)
        out.related_identifiers = _splice_entries(owner, base.copy().related_identifiers,
                                                  out.related_identifiers)
        return out

    def splice_for_others(self, updater: str, base: DMPRecord, incoming: DMPRecord) -> DMPRecord:
        """
        apply a third-party's contributions:  the base is retained except for its funding and related
        identifier entries, which are merged with the incoming ones.
        """
        out = base.copy()
        out.funding = self.merge_funding(updater, base.funding, incoming.funding)
        out.related_identifiers = self.merge_related_identifiers(updater, base.related_identifiers,
                                                                 incoming.related_identifiers)
        return out

    def merge_funding(self, updater: str, base: List[FundingEntry],
                      incoming: List[FundingEntry]) -> List[FundingEntry]:
        """
        merge a third party's funding entries into the base entries.  Each incoming entry with a
        status or a grant identifier resolves the most recently contributed pending (planned or
        applied) base entry for the same funder, replacing it with an entry marked as ``granted``
        (if it has a grant identifier) or ``rejected`` (otherwise).  If there is no such pending
        entry, the incoming entry is appended.  Incoming entries lacking both a status and a grant
        identifier are ignored, as are grants that are already recorded.
        """
        out = [FundingEntry.from_dict(f.to_dict()) for f in base]
        for inc in incoming:
            if inc.funding_status is None and inc.grant_id is None:
                continue
            if _grant_recorded(out, inc):
                continue

            entry = FundingEntry.from_dict(inc.to_dict())
            pending = [(i, f) for i, f in enumerate(out)
                       if f.funder_id is not None and f.funder_id == inc.funder_id and f.is_open]
            when = self._now()

            if pending:
                i, replaced = max(pending, key=lambda p: p[1].contribution_date)
                entry.name = replaced.name
                entry.funding_status = GRANTED if entry.grant_id else REJECTED
                entry.contributor_provenance = None
                entry.contributed_at = None
                _stamp(entry, updater, when)
                out[i] = entry
                self.log.debug("Funding from %s marked %s by %s", _fmt_id(inc.funder_id),
                               entry.funding_status, updater)
            else:
                if entry.grant_id:
                    entry.funding_status = GRANTED
                entry.contributor_provenance = updater
                entry.contributed_at = when
                if isinstance(entry.grant_id, Mapping):
                    _stamp(entry, updater, when)
                out.append(entry)

        return out

    def merge_related_identifiers(self, updater: str, base: List[RelatedIdentifier],
                                  incoming: List[RelatedIdentifier]) -> List[RelatedIdentifier]:
        """
        replace the related identifiers previously contributed by a third party with its new set.
        Entries from the owner and from other systems are kept as they are.  If no incoming entries
        are given, the base entries are returned unchanged.
        """
        out = [RelatedIdentifier.from_dict(r.to_dict()) for r in base]
        if not incoming:
            return out

        out = [r for r in out if r.contributor_provenance != updater]
        for inc in incoming:
            entry = RelatedIdentifier.from_dict(inc.to_dict())
            entry.contributor_provenance = updater
            out.append(entry)
        return out


def _comparable(rec: DMPRecord) -> dict:
    out = rec.to_item()
    for prop in _UNCOMPARED:
        out.pop(prop, None)
    return out

def _carry_identity(base: DMPRecord, target: DMPRecord):
    target.primary_key = base.primary_key
    target.version_key = base.version_key
    target.canonical_identifier = base.canonical_identifier
    target.owner_provenance = base.owner_provenance
    target.origin_identifier = base.origin_identifier
    target.provenance_key = base.provenance_key
    target.created_at = base.created_at

def _is_foreign(entry, owner: str) -> bool:
    return bool(entry.contributor) and entry.contributor != owner

def _unstamped(entry) -> dict:
    out = entry.to_dict()
    out.pop(PROV_PROP, None)
    out.pop(CONTRIB_DATE_PROP, None)
    if isinstance(out.get("grant_id"), Mapping):
        out["grant_id"] = {k: v for k, v in out["grant_id"].items()
                           if k not in (PROV_PROP, CONTRIB_DATE_PROP)}
    return out

def _splice_entries(owner: str, base: list, incoming: list) -> list:
    foreign = [e for e in base if _is_foreign(e, owner)]
    echoed = [_unstamped(e) for e in foreign]
    return [e for e in incoming if not _is_foreign(e, owner) and _unstamped(e) not in echoed] + foreign

def _stamp(entry: FundingEntry, updater: str, when: str):
    if isinstance(entry.grant_id, Mapping):
        grant = {k: v for k, v in entry.grant_id.items() if k not in (PROV_PROP, CONTRIB_DATE_PROP)}
        grant[PROV_PROP] = updater
        grant[CONTRIB_DATE_PROP] = when
        entry.grant_id = grant
    else:
        entry.contributor_provenance = updater
        entry.contributed_at = when

def _grant_key(grant):
    if isinstance(grant, Mapping):
        return (grant.get("type"), grant.get("identifier"))
    return grant

def _grant_recorded(entries: List[FundingEntry], inc: FundingEntry) -> bool:
    if not inc.grant_id:
        return False
    key = _grant_key(inc.grant_id)
    return any(f.funder_id == inc.funder_id and f.grant_id and _grant_key(f.grant_id) == key
               for f in entries)

def _fmt_id(idobj):
    if isinstance(idobj, Mapping):
        return idobj.get("identifier", str(idobj))
    return str(idobj)
