"""
Exceptions raised by the DMP Hub components.

The components below :py:class:`~dmphub.service.DMPService` signal failures by raising these
exceptions; the service catches them at its boundary and converts them into a structured
:py:class:`~dmphub.service.Result`.  Of these, only :py:class:`Conflict` and
:py:class:`StoreUnavailable` represent conditions that a caller may usefully retry.
"""
from typing import List

from . import DMPHubException

class ConfigurationException(DMPHubException):
    """
    an exception indicating that the configuration provided to a component is missing a required
    parameter or is otherwise erroneous.
    """
    pass

class StoreException(DMPHubException):
    """
    a general base class for problems that occur while talking to the backend key-value store
    """
    pass

class StoreUnavailable(StoreException):
    """
    the backend store failed to complete an operation, either because it is unreachable, it timed
    out, or it failed in some other unexpected way.
    """
    pass

class ConditionFailed(StoreException):
    """
    a conditional write to the store was not applied because the expected state of the target
    row did not hold at the moment of the write.
    """

    def __init__(self, key=None, message=None, sys=None):
        self.key = key
        if not message:
            message = "Conditional write failed"
            if key:
                message += " for %s" % str(key)
        super(ConditionFailed, self).__init__(message, sys=sys)


class DMPRecordException(DMPHubException):
    """
    a base Exception class for exceptions associated with a specific DMP record.  This class provides
    the record identifier via a ``record_id`` attribute.
    """

    def __init__(self, recid, message, sys=None):
        super(DMPRecordException, self).__init__(message, sys=sys)
        self.record_id = recid

class InvalidRecord(DMPRecordException):
    """
    raised when submitted DMP data cannot be parsed, fails schema validation, or names an identifier
    that cannot be resolved.  ``errors`` lists the individual problems found.
    """
    def __init__(self, message: str=None, recid: str=None, errors: List[str]=None, sys=None):
        """
        :param str message:  a summary of the problem; if not given, one is made from ``errors``
        :param str   recid:  the identifier of the DMP the data was submitted for
        :param [str] errors: the individual problems found in the data
        """
        errors = list(errors or [])
        if not message:
            if not errors:
                message = "DMP data is invalid"
            elif len(errors) == 1:
                message = "Invalid DMP: " + errors[0]
            else:
                message = "Invalid DMP (%d problems): %s; ..." % (len(errors), errors[0])
        elif not errors:
            errors = [message]

        super(InvalidRecord, self).__init__(recid, message, sys)
        self.errors = errors

    def _prefix(self):
        return (self.record_id + ": ") if self.record_id else ""

    def __str__(self):
        return self._prefix() + super().__str__()

    def format_errors(self):
        """
        return all of the problems as a multi-line bulleted listing
        """
        if not self.errors:
            return str(self)
        return self._prefix() + "Invalid DMP:\n" + "\n".join("  - " + str(e) for e in self.errors)

class NotFound(DMPRecordException):
    """
    raised when the requested DMP (or version of it) does not exist.
    """

    def __init__(self, recid, version=None, message=None, sys=None):
        """
        :param str   recid:   the identifier that was looked up
        :param str version:   the version key requested, if not the latest
        """
        self.version_key = version
        if not message:
            message = "DMP not found: %s" % recid
            if version:
                message += " (version %s)" % version
        super(NotFound, self).__init__(recid, message, sys)

class AlreadyExists(DMPRecordException):
    """
    raised on an attempt to create a DMP whose declared identifier already belongs to a stored DMP.
    """

    def __init__(self, recid, message=None, sys=None):
        if not message:
            message = "DMP already exists: %s" % recid
        super(AlreadyExists, self).__init__(recid, message, sys)

class Forbidden(DMPRecordException):
    """
    raised when a provenance requests an operation it may not perform on a DMP, or when the identifier
    declared in a payload does not match the DMP being acted on.
    """

    def __init__(self, recid=None, who: str=None, op: str=None, message: str=None, sys=None):
        """
        :param str recid:   the identifier of the DMP
        :param str who:     the provenance that made the request
        :param str op:      a short phrase naming the refused operation (e.g. "delete DMP")
        :param str message: the explanation; if not given, one is made from ``who`` and ``op``
        """
        self.provenance = who
        self.operation = op
        if not message:
            message = "%s may not %s" % (who or "Requester", op or "do that")
        super(Forbidden, self).__init__(recid, message, sys)

class HistoricalModification(DMPRecordException):
    """
    an exception indicating an attempt to modify a version of a record that is not the latest one.
    Historical and tombstoned versions are permanently frozen.
    """

    def __init__(self, recid, version=None, message=None, sys=None):
        self.version_key = version
        if not message:
            message = "Only the latest version of a DMP can be modified"
            if recid:
                message += " (id=%s)" % recid
        super(HistoricalModification, self).__init__(recid, message, sys)

class Conflict(DMPRecordException):
    """
    an exception indicating that a concurrent writer changed the record between the time it was read
    and the time this change was to be written.  The full read-merge-write sequence may be retried.
    """

    def __init__(self, recid, message=None, sys=None):
        if not message:
            message = "DMP was modified by a concurrent request: %s" % recid
        super(Conflict, self).__init__(recid, message, sys)

class NoIdentifierAvailable(DMPHubException):
    """
    an exception indicating that the identifier allocator could not find an unused identifier within
    its allotted number of attempts.
    """
    pass
