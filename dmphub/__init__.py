"""
dmphub:  a service for managing versioned Data Management Plan (DMP) metadata records that are shared
by multiple independent client systems.

Any client system (a "provenance") may register a DMP with the hub; the registering system becomes the
record's owner and retains broad edit rights over it.  Other systems may later amend the record, but
only the parts they are permitted to contribute to:  the funding entries (e.g. to report that a grant
was awarded) and the related identifiers (e.g. to link datasets or publications produced under the
plan).  Every change produces a new version of the record, leaving the previous one in place as an
immutable historical version; a deleted record is left as a terminal tombstone.

The main entry point is :py:class:`~dmphub.service.DMPService`; the building blocks it assembles are:
  - :py:mod:`dmphub.idmint` -- allocation and normalization of DMP identifiers
  - :py:mod:`dmphub.versions` -- the latest/historical/tombstone version state machine
  - :py:mod:`dmphub.merge` -- the provenance-aware merge of updates into a stored record
  - :py:mod:`dmphub.dbio` -- the key-value storage backends
"""
try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

_DMPHUBSYSNAME = "DMP Hub"
_DMPHUBSYSABBREV = "DMPHub"

class SystemInfoMixin(object):
    """
    a mixin for getting information about the current system that a class is part of
    """

    def __init__(self, sysname, sysabbrev, subsname, subsabbrev, version):
        self._sysn = sysname
        self._abbrev = sysabbrev
        self._subsys = subsname
        self._subabbrev = subsabbrev
        self._ver = version

    @property
    def system_name(self):
        return self._sysn

    @property
    def system_abbrev(self):
        return self._abbrev

    @property
    def subsystem_name(self):
        return self._subsys

    @property
    def subsystem_abbrev(self):
        return self._subabbrev

    @property
    def system_version(self):
        return self._ver

    def getSysLogger(self):
        """
        return the logger for the (sub)system this class is part of
        """
        from logging import getLogger
        log = getLogger(self.system_abbrev)
        if self.subsystem_abbrev:
            log = log.getChild(self.subsystem_abbrev)
        return log

class DMPHubSystem(SystemInfoMixin):
    """
    A SystemInfoMixin representing the overall DMP Hub system.
    """
    def __init__(self, subsysname="", subsysabbrev=""):
        super(DMPHubSystem, self).__init__(_DMPHUBSYSNAME, _DMPHUBSYSABBREV,
                                           subsysname, subsysabbrev, __version__)

system = DMPHubSystem()

class DMPHubException(Exception):
    """
    a general base class for exceptions that occur while using the DMP Hub
    """

    def __init__(self, message=None, cause=None, sys=None):
        """
        create the exception
        :param str message:  a description of the problem
        :param Exception cause:  an underlying exception that triggered this one (optional)
        :param SystemInfoMixin sys:  the (sub)system where the problem occurred (optional)
        """
        if not message:
            message = str(cause) if cause else "Unknown DMP Hub error"
        super(DMPHubException, self).__init__(message)
        self.cause = cause
        self.system = sys or system
