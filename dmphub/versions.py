"""
The version state machine for DMP records.

Every version of a DMP is stored as a separate row sharing the DMP's primary key; the version key
distinguishes them.  At most one row per DMP carries the ``latest`` version key.  When a DMP is
updated, its current latest row is first *archived* (its version key is rewritten to a historical
token derived from its update time) and then the new version is written as ``latest``.  When a DMP
is deleted, its latest row is rewritten as the ``tombstone``, after which no further versions may be
written.  Historical and tombstone rows are never modified again.

.. code-block::

    (none) --create--> latest --update--> latest       (old latest becomes historical)
                         |        \\--delete--> tombstone   (terminal)
                         +--(no-op update)--> latest (unchanged)

Both transitions out of ``latest`` are conditional writes:  they only succeed if the row is still
the latest one and still carries the update time that the caller last saw.  If a concurrent writer
got there first, the transition fails with :py:class:`~dmphub.exceptions.Conflict`.

Because archiving and writing the new latest are two separate writes, a failure between them leaves
the DMP with historical rows but no latest one.  :py:meth:`VersionStore.is_orphaned` detects this
state, and :py:meth:`VersionStore.restore_latest` is an administrative repair for it.
"""
from logging import Logger, getLogger
from typing import List

from . import system
from .dbio import DMPStore, PK, SK, ConditionFailed
from .exceptions import NotFound, Conflict, HistoricalModification
from .record import DMPRecord, LATEST_VERSION, TOMBSTONE_VERSION, SK_PREFIX, now, now_after, today

class VersionStore(object):
    """
    an interface to the versions of DMP records held in a :py:class:`~dmphub.dbio.base.DMPStore`
    """

    def __init__(self, store: DMPStore, log: Logger=None):
        """
        wrap a store
        :param DMPStore store:  the store holding the DMP rows
        :param Logger     log:  the logger to send messages to
        """
        self._store = store
        if not log:
            log = getLogger(system.system_abbrev).getChild("versions")
        self.log = log

    @property
    def store(self) -> DMPStore:
        return self._store

    def find_by_key(self, pk: str, version_key: str=LATEST_VERSION) -> DMPRecord:
        """
        return the version of the DMP with the given primary key
        :param str pk:          the DMP's primary key
        :param str version_key: the version desired (default: the latest)
        :raises NotFound:  if no such version exists
        """
        item = self._store.get(pk, version_key)
        if item is None:
            raise NotFound(pk, version_key if version_key != LATEST_VERSION else None)
        return DMPRecord.from_item(item)

    def find_by_alternate_identifier(self, provenance_key: str) -> DMPRecord:
        """
        return the latest version of the DMP that its owner originally submitted under the given
        identifier.
        :param str provenance_key:  the normalized form of the owner's original identifier
        :raises NotFound:  if no current DMP was submitted under this identifier
        """
        if provenance_key:
            for item in self._store.query({"dmphub_provenance_key": provenance_key, SK: LATEST_VERSION},
                                          "provenance_key"):
                return DMPRecord.from_item(item)
        raise NotFound(provenance_key)

    def find_by_owner(self, provenance: str) -> List[DMPRecord]:
        """
        return the latest versions of all DMPs owned by the given provenance
        """
        return [DMPRecord.from_item(item)
                for item in self._store.query({"dmphub_provenance_id": provenance, SK: LATEST_VERSION},
                                              "owner")]

    def history(self, pk: str) -> List[DMPRecord]:
        """
        return all the stored versions of a DMP, newest first
        """
        versions = [DMPRecord.from_item(item) for item in self._store.query({PK: pk}, "key")]
        return sorted(versions, key=_version_order, reverse=True)

    def key_in_use(self, pk: str) -> bool:
        """
        return True if any version of a DMP is stored under the given primary key
        """
        for item in self._store.query({PK: pk}, "key"):
            return True
        return False

    def require_latest(self, pk: str) -> DMPRecord:
        """
        return the latest version of a DMP that is about to be modified.
        :raises NotFound:  if no version of the DMP exists at all
        :raises HistoricalModification:  if the DMP exists but has no latest version (i.e. it has
                                         been tombstoned)
        """
        item = self._store.get(pk, LATEST_VERSION)
        if item is None:
            if self.key_in_use(pk):
                raise HistoricalModification(pk)
            raise NotFound(pk)
        return DMPRecord.from_item(item)

    def archive_latest(self, pk: str, base: DMPRecord=None) -> DMPRecord:
        """
        convert the current latest version of a DMP into a historical version.  The conversion is
        conditioned on the row still being the latest and, if ``base`` is given, still carrying the
        update time of ``base``.
        :param str          pk:  the DMP's primary key
        :param DMPRecord  base:  the version of the DMP the caller read and expects to archive
        :return: the archived version
        :raises NotFound:  if no version of the DMP exists
        :raises Conflict:  if the latest version was archived, tombstoned, or replaced by another writer
        """
        if base is None:
            item = self._store.get(pk, LATEST_VERSION)
            if item is None:
                if self.key_in_use(pk):
                    raise Conflict(pk, "DMP has no latest version to archive: " + pk)
                raise NotFound(pk)
            base = DMPRecord.from_item(item)

        token = SK_PREFIX + (base.updated_at or now())
        try:
            item = self._store.update(pk, LATEST_VERSION, {SK: token},
                                      {"dmphub_updated_at": base.updated_at})
        except ConditionFailed as ex:
            if not self.key_in_use(pk):
                raise NotFound(pk)
            self.log.warning("%s: lost race to archive latest version", pk)
            raise Conflict(pk) from ex

        self.log.debug("%s: archived latest version as %s", pk, token)
        return DMPRecord.from_item(item)

    def write_latest(self, record: DMPRecord) -> DMPRecord:
        """
        save the given record as the latest version of its DMP.  This requires that no latest version
        currently exists; thus, when updating, :py:meth:`archive_latest` must be called first.
        :return: the record as written
        :raises Conflict:  if a latest version already exists (written by a concurrent writer) or if
                           the DMP has been tombstoned
        """
        pk = record.primary_key
        if self._store.get(pk, TOMBSTONE_VERSION) is not None:
            raise Conflict(pk, "DMP has been deleted: " + pk)

        record = record.copy()
        record.version_key = LATEST_VERSION
        try:
            self._store.put(record.to_item(), must_not_exist=True)
        except ConditionFailed as ex:
            self.log.warning("%s: latest version was written by a concurrent writer", pk)
            raise Conflict(pk) from ex
        return record

    def tombstone_latest(self, pk: str, base: DMPRecord=None) -> DMPRecord:
        """
        convert the latest version of a DMP into its terminal tombstone, stamping its deletion time.
        :param str          pk:  the DMP's primary key
        :param DMPRecord  base:  the version of the DMP the caller read and expects to tombstone
        :return: the tombstone version
        :raises NotFound:  if no version of the DMP exists
        :raises HistoricalModification:  if the DMP has no latest version
        :raises Conflict:  if the latest version was changed by a concurrent writer
        """
        if base is None:
            base = self.require_latest(pk)

        stamp = now()
        changes = {
            SK: TOMBSTONE_VERSION,
            "dmphub_deleted_at": stamp,
            "dmphub_updated_at": stamp,
            "dmphub_modification_day": today()
        }
        try:
            item = self._store.update(pk, LATEST_VERSION, changes, {"dmphub_updated_at": base.updated_at})
        except ConditionFailed as ex:
            self.log.warning("%s: lost race to tombstone latest version", pk)
            raise Conflict(pk) from ex
        return DMPRecord.from_item(item)

    def is_orphaned(self, pk: str) -> bool:
        """
        return True if the DMP has historical versions but neither a latest version nor a tombstone.
        This is the state left behind when an update fails after archiving the previous version.
        """
        keys = [r.version_key for r in self.history(pk)]
        return bool(keys) and LATEST_VERSION not in keys and TOMBSTONE_VERSION not in keys

    def restore_latest(self, pk: str) -> DMPRecord:
        """
        repair an orphaned DMP (see :py:meth:`is_orphaned`) by writing a copy of its most recent
        historical version as its latest version.  Nothing is done if the DMP is not orphaned.
        :return: the latest version of the DMP (or None if it is tombstoned)
        :raises NotFound:  if no version of the DMP exists
        """
        history = self.history(pk)
        if not history:
            raise NotFound(pk)
        if history[0].is_tombstone:
            return None
        if history[0].is_latest:
            return history[0]

        self.log.warning("%s: restoring latest version from %s", pk, history[0].version_key)
        restored = history[0]
        restored.updated_at = now_after(restored.updated_at)
        restored.modification_day = today()
        return self.write_latest(restored)


def _version_order(rec: DMPRecord):
    # terminal and current versions sort after (i.e. newer than) all historical ones
    if rec.version_key in (LATEST_VERSION, TOMBSTONE_VERSION):
        return (1, rec.updated_at or '')
    return (0, rec.version_key)
