"""
The DMP Hub service:  the entry points for creating, updating, deleting, and finding DMP records.

A :py:class:`DMPService` assembles the hub's components around a store client:

  1. the payload is parsed and checked by the :py:class:`~dmphub.validate.SchemaValidator`;
  2. its identifier is resolved by the :py:class:`~dmphub.idmint.IdentifierAllocator`;
  3. the current latest version is retrieved from the :py:class:`~dmphub.versions.VersionStore`;
  4. the :py:class:`~dmphub.authz.Authorizer` decides whether the request may proceed;
  5. the :py:class:`~dmphub.merge.MergeEngine` produces the version to persist;
  6. the VersionStore archives (or tombstones) the old latest version and writes the new one.

Each entry point returns a :py:class:`Result` rather than raising an exception.  Only ``Conflict``
and ``StoreUnavailable`` results may be usefully retried by the caller (by re-submitting the whole
request); the service does not retry on its own.

An update is written in two steps:  the old latest version is archived, then the new latest version
is written.  If the second step fails, the DMP is left with no latest version.  The service does not
attempt to repair this; it logs a CRITICAL alert naming the DMP, and an administrator can restore
the DMP with :py:meth:`DMPService.repair`.
"""
from collections.abc import Mapping
from logging import Logger, getLogger
from typing import List

from . import DMPHubSystem
from .dbio import DMPStore, StoreException
from .exceptions import (DMPHubException, InvalidRecord, NotFound, AlreadyExists, Forbidden,
                         HistoricalModification, Conflict, NoIdentifierAvailable)
from .record import DMPRecord, prepare_payload, LATEST_VERSION, DMP_ID_PROP, now_after, today
from .idmint import IdentifierAllocator, to_identifier_object, to_primary_key
from .versions import VersionStore
from .merge import MergeEngine
from .authz import Authorizer, ScopeAuthorizer, Provenance, CREATE, UPDATE, DELETE
from .validate import SchemaValidator, JSONSchemaValidator, AUTHOR, AMEND, DELETE as DELETE_MODE

class Result(object):
    """
    the outcome of a request to the :py:class:`DMPService`.

    ``status`` is one of the status labels defined as class constants; ``record`` is the affected (or
    requested) record when there is one; ``records`` is a list of records for requests that return
    several; and ``errors`` is a list of human-readable explanations for a failure.
    """
    CREATED = "Created"
    OK = "OK"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    HISTORICAL = "HistoricalModification"
    CONFLICT = "Conflict"
    INVALID = "Invalid"
    NO_IDENTIFIER = "NoIdentifier"
    ALREADY_EXISTS = "AlreadyExists"
    STORE_UNAVAILABLE = "StoreUnavailable"

    RETRYABLE = (CONFLICT, STORE_UNAVAILABLE)

    def __init__(self, status: str, record: DMPRecord=None, errors: List[str]=None,
                 records: List[DMPRecord]=None):
        self.status = status
        self.record = record
        self.records = records if records is not None else ([record] if record else [])
        self.errors = list(errors) if errors else []

    @property
    def ok(self) -> bool:
        """
        True if the request succeeded
        """
        return self.status in (self.CREATED, self.OK)

    @property
    def retryable(self) -> bool:
        """
        True if the request failed in a way that could succeed if tried again
        """
        return self.status in self.RETRYABLE

    @property
    def error(self) -> str:
        """
        the failure explanations combined into a single string (empty if the request succeeded)
        """
        return "; ".join(self.errors)

    def __repr__(self):
        return "Result(%s, %s)" % (self.status, str(self.record) if self.record else self.errors)

_status_for = [
    (InvalidRecord,          Result.INVALID),
    (NotFound,               Result.NOT_FOUND),
    (AlreadyExists,          Result.ALREADY_EXISTS),
    (Forbidden,              Result.FORBIDDEN),
    (HistoricalModification, Result.HISTORICAL),
    (Conflict,               Result.CONFLICT),
    (NoIdentifierAvailable,  Result.NO_IDENTIFIER),
    (StoreException,         Result.STORE_UNAVAILABLE)
]


class DMPService(DMPHubSystem):
    """
    a service for managing versioned DMP records on behalf of multiple client systems
    (provenances).

    This service supports the following configuration sections:

    ``dmp_id``
        the configuration for the :py:class:`~dmphub.idmint.IdentifierAllocator` (``base_url``,
        ``shoulder``, etc.)
    ``authorization``
        the configuration for the default :py:class:`~dmphub.authz.ScopeAuthorizer`
    ``validation``
        the configuration for the default :py:class:`~dmphub.validate.JSONSchemaValidator`
    """

    def __init__(self, store: DMPStore, config: Mapping={}, authorizer: Authorizer=None,
                 validator: SchemaValidator=None, log: Logger=None):
        """
        create the service
        :param DMPStore        store:  the store holding the DMP rows
        :param dict           config:  the service configuration
        :param Authorizer authorizer:  the authorizer to consult; if not given, a
                                       :py:class:`~dmphub.authz.ScopeAuthorizer` is created
        :param SchemaValidator validator:  the validator to apply to payloads; if not given, a
                                       :py:class:`~dmphub.validate.JSONSchemaValidator` is created
        :param Logger            log:  the logger to use for log messages
        """
        super(DMPService, self).__init__("DMP Service", "service")
        self.cfg = config
        if not log:
            log = getLogger(self.system_abbrev).getChild(self.subsystem_abbrev)
        self.log = log

        self.versions = VersionStore(store, log.getChild("versions"))
        self.minter = IdentifierAllocator(self.versions, config.get("dmp_id", {}), log.getChild("idmint"))
        self.merger = MergeEngine(log.getChild("merge"))
        if not authorizer:
            authorizer = ScopeAuthorizer(config.get("authorization", {}))
        self.authorizer = authorizer
        if not validator:
            validator = JSONSchemaValidator(config.get("validation", {}), log.getChild("validate"))
        self.validator = validator

    def _fail(self, ex: DMPHubException, op: str, recid: str=None) -> Result:
        status = None
        for cls, stat in _status_for:
            if isinstance(ex, cls):
                status = stat
                break
        if not status:
            # e.g. ConfigurationException: not a request failure
            raise ex

        errors = ex.errors if isinstance(ex, InvalidRecord) else [str(ex)]
        if status == Result.STORE_UNAVAILABLE:
            self.log.error("%s %s: store failure: %s", op, recid or "", str(ex))
        elif status in Result.RETRYABLE:
            self.log.warning("%s %s: %s", op, recid or "", str(ex))
        else:
            self.log.info("%s %s refused (%s): %s", op, recid or "", status, str(ex))
        return Result(status, errors=errors)

    def _validate(self, mode: str, doc: Mapping, recid: str=None):
        res = self.validator.validate(mode, doc)
        if not res.valid:
            raise InvalidRecord(recid=recid, errors=res.errors)

    def _authorize(self, provenance: Provenance, action: str, record: DMPRecord, recid: str=None):
        res = self.authorizer.authorize(provenance, action, record)
        if not res.allowed:
            raise Forbidden(recid, provenance.pid if provenance else None, action + " DMP", res.reason)

    def _check_declared_id(self, doc: Mapping, base: DMPRecord):
        # the payload's dmp_id, if given, must name the targeted DMP, either by its hub identifier
        # or by the owner's original identifier
        declared = doc.get(DMP_ID_PROP)
        if declared is None:
            return
        pk = self.minter.to_primary_key(declared)
        if pk == base.primary_key:
            return
        if base.provenance_key and self.minter.normalize(declared) == base.provenance_key:
            return
        raise Forbidden(base.primary_key, message="Payload dmp_id does not match the DMP being modified: " +
                                                  str(declared.get("identifier") if isinstance(declared, Mapping)
                                                      else declared))

    def _find_existing(self, doc: Mapping) -> DMPRecord:
        declared = doc.get(DMP_ID_PROP)
        if declared is None:
            return None
        pk = self.minter.to_primary_key(declared)
        if pk:
            try:
                return self.versions.find_by_key(pk)
            except NotFound:
                pass
        try:
            return self.versions.find_by_alternate_identifier(self.minter.normalize(declared))
        except NotFound:
            return None

    def create(self, provenance: Provenance, payload) -> Result:
        """
        register a new DMP.  A new identifier is minted for it, and the submitting provenance
        becomes its owner.  The identifier in the payload's ``dmp_id``, if any, is saved as the
        owner's original identifier, by which the DMP can also be found.

        :param Provenance provenance:  the system submitting the DMP
        :param dict|str      payload:  the DMP document
        :return:  a Result with status ``Created`` on success, or one of ``Invalid``,
                  ``AlreadyExists``, ``Forbidden``, ``NoIdentifier``, ``Conflict``, or
                  ``StoreUnavailable``
        """
        try:
            doc = prepare_payload(payload)
            self._validate(AUTHOR, doc)

            existing = self._find_existing(doc)
            if existing:
                raise AlreadyExists(existing.primary_key)
            self._authorize(provenance, CREATE, None)

            incoming = DMPRecord.from_document(doc)
            pk = to_primary_key(self.minter.allocate())
            incoming.primary_key = pk
            incoming.version_key = LATEST_VERSION
            incoming.canonical_identifier = to_identifier_object(pk)
            incoming.owner_provenance = provenance.pid
            if isinstance(doc.get(DMP_ID_PROP), Mapping) and doc[DMP_ID_PROP].get("identifier"):
                incoming.origin_identifier = doc[DMP_ID_PROP]
                incoming.provenance_key = self.minter.normalize(doc[DMP_ID_PROP])
            incoming.created_at = incoming.updated_at = now_after()
            incoming.modification_day = today()

            merged = self.merger.merge(provenance.pid, None, incoming)
            rec = self.versions.write_latest(merged.record)

        except DMPHubException as ex:
            return self._fail(ex, "create")

        self.log.info("Created DMP %s for %s", rec.primary_key, provenance.pid)
        return Result(Result.CREATED, rec)

    def update(self, provenance: Provenance, primary_key: str, payload, version_key: str=None) -> Result:
        """
        submit a new version of a DMP.  If the submitter is the DMP's owner, the payload replaces
        the DMP's content (preserving other systems' contributions); otherwise, only its funding and
        related identifier contributions are merged in.  If the payload would not change the DMP, no
        new version is created.

        :param Provenance provenance:  the system submitting the update
        :param str       primary_key:  the identifier of the DMP to update
        :param dict|str      payload:  the DMP document
        :param str       version_key:  the version of the DMP the update is based on; if given, it
                                       must be the latest version.
        :return:  a Result with status ``OK`` on success, or one of ``Invalid``, ``NotFound``,
                  ``Forbidden``, ``HistoricalModification``, ``Conflict``, or ``StoreUnavailable``
        """
        pk = None
        try:
            pk = self.minter.to_primary_key(primary_key)
            if not pk:
                raise NotFound(primary_key)
            doc = prepare_payload(payload, pk)
            if version_key and version_key != LATEST_VERSION:
                self.versions.find_by_key(pk, version_key)
                raise HistoricalModification(pk, version_key)

            base = self.versions.require_latest(pk)
            self._check_declared_id(doc, base)
            self._authorize(provenance, UPDATE, base, pk)
            self._validate(AUTHOR if provenance.pid == base.owner_provenance else AMEND, doc, pk)

            incoming = DMPRecord.from_document(doc)
            incoming.updated_at = base.updated_at
            incoming.modification_day = base.modification_day
            incoming.version_key = base.version_key
            incoming.primary_key = base.primary_key
            incoming.canonical_identifier = base.canonical_identifier
            incoming.owner_provenance = base.owner_provenance
            incoming.origin_identifier = base.origin_identifier
            incoming.provenance_key = base.provenance_key
            incoming.created_at = base.created_at

            merged = self.merger.merge(provenance.pid, base, incoming)
            if not merged.changed:
                self.log.debug("%s: update from %s makes no change", pk, provenance.pid)
                return Result(Result.OK, base)

            newrec = merged.record
            newrec.updated_at = now_after(base.updated_at)
            newrec.modification_day = today()

            archived = self.versions.archive_latest(pk, base)
            try:
                rec = self.versions.write_latest(newrec)
            except DMPHubException as ex:
                self.log.critical("ALERT: %s: archived previous version as %s but failed to write "
                                  "the new latest version; DMP has no latest version: %s",
                                  pk, archived.version_key, str(ex))
                raise

        except DMPHubException as ex:
            return self._fail(ex, "update", pk or primary_key)

        self.log.info("Updated DMP %s (%s update by %s)", pk, merged.action, provenance.pid)
        return Result(Result.OK, rec)

    def delete(self, provenance: Provenance, primary_key: str, payload=None) -> Result:
        """
        delete (tombstone) a DMP.  Only the DMP's owner may delete it.  The DMP's history is retained,
        but it will no longer be found as a current DMP and no further versions can be created.

        :param Provenance provenance:  the system requesting the deletion
        :param str       primary_key:  the identifier of the DMP to delete
        :param dict|str      payload:  the DMP document (optional); if given, its ``dmp_id`` must
                                       identify the DMP
        :return:  a Result with status ``OK`` (and the tombstone version) on success, or one of
                  ``NotFound``, ``Forbidden``, ``HistoricalModification``, ``Conflict``, ``Invalid``,
                  or ``StoreUnavailable``
        """
        pk = None
        try:
            pk = self.minter.to_primary_key(primary_key)
            if not pk:
                raise NotFound(primary_key)
            doc = prepare_payload(payload, pk) if payload is not None else None

            base = self.versions.require_latest(pk)
            if doc is not None:
                self._check_declared_id(doc, base)
            self._authorize(provenance, DELETE, base, pk)
            if doc is not None:
                self._validate(DELETE_MODE, doc, pk)

            rec = self.versions.tombstone_latest(pk, base)

        except DMPHubException as ex:
            return self._fail(ex, "delete", pk or primary_key)

        self.log.info("Tombstoned DMP %s at request of %s", pk, provenance.pid)
        return Result(Result.OK, rec)

    def find(self, identifier, version_key: str=LATEST_VERSION) -> Result:
        """
        retrieve a DMP by its hub identifier (or primary key) or, failing that, by the identifier its
        owner originally submitted it under.
        :param str identifier:  the identifier of the DMP
        :param str version_key: the version desired (default: the latest); alternate identifiers
                                only resolve to latest versions.
        :return:  a Result with status ``OK`` on success, or one of ``NotFound`` or ``StoreUnavailable``
        """
        try:
            pk = self.minter.to_primary_key(identifier)
            if not pk:
                raise NotFound(identifier)
            try:
                rec = self.versions.find_by_key(pk, version_key)
            except NotFound:
                if version_key != LATEST_VERSION:
                    raise
                rec = self.versions.find_by_alternate_identifier(self.minter.normalize(identifier))

        except DMPHubException as ex:
            return self._fail(ex, "find", identifier)

        return Result(Result.OK, rec)

    def list_for(self, provenance) -> Result:
        """
        return the current versions of all DMPs owned by a provenance
        :param Provenance|str provenance:  the owning system or its identifier
        """
        pid = provenance.pid if isinstance(provenance, Provenance) else provenance
        try:
            recs = self.versions.find_by_owner(pid)
        except DMPHubException as ex:
            return self._fail(ex, "list", pid)
        return Result(Result.OK, records=recs)

    def history(self, identifier) -> Result:
        """
        return all versions of a DMP, newest first
        """
        try:
            pk = self.minter.to_primary_key(identifier)
            recs = self.versions.history(pk) if pk else []
            if not recs:
                raise NotFound(identifier)
        except DMPHubException as ex:
            return self._fail(ex, "history", identifier)
        return Result(Result.OK, records=recs)

    def repair(self, identifier) -> Result:
        """
        restore the latest version of a DMP that was left without one by a failed update (see
        :py:meth:`~dmphub.versions.VersionStore.restore_latest`).  This is an administrative
        operation; it has no effect on a DMP that is not in this state.
        """
        try:
            pk = self.minter.to_primary_key(identifier)
            if not pk:
                raise NotFound(identifier)
            orphaned = self.versions.is_orphaned(pk)
            rec = self.versions.restore_latest(pk)
            if rec is None:
                raise HistoricalModification(pk, message="DMP has been deleted: " + pk)
        except DMPHubException as ex:
            return self._fail(ex, "repair", identifier)

        if orphaned:
            self.log.warning("Repaired DMP %s: restored latest version", pk)
        return Result(Result.OK, rec)


def create_service(config: Mapping, log: Logger=None) -> DMPService:
    """
    create a DMPService connected to the store described by the ``store`` section of the given
    configuration.
    :raises ConfigurationException:  if the configuration is insufficient or erroneous
    """
    from .dbio import create_store
    return DMPService(create_store(config.get("store", {})), config, log=log)
