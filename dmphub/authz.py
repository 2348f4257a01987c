"""
Coarse-grained authorization of the hub's operations.

Before any change is made to a DMP, the hub asks an :py:class:`Authorizer` whether the requesting
provenance may perform the requested action (``create``, ``update``, or ``delete``) on the DMP at all.
Which *parts* of a DMP a provenance may change is decided separately by the merge rules (see
:py:mod:`dmphub.merge`).
"""
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Iterable

from .record import DMPRecord

CREATE = "create"
UPDATE = "update"
DELETE = "delete"
ACTION_TYPES = (CREATE, UPDATE, DELETE)

MSG_DEFAULT = "Provenance was not given or an invalid action was specified"
MSG_UNAUTH = "Provenance is not authorized"
MSG_EXISTS = "DMP already exists. Try update instead."
MSG_UNKNOWN = "DMP does not exist. Try create instead."

class Provenance(object):
    """
    a description of a client system that submits requests to the hub
    """

    def __init__(self, pid: str, scopes: Iterable[str]=None, name: str=None):
        """
        :param str     pid:  the unique identifier for the system
        :param list scopes:  the names of the permission scopes granted to the system
        :param str    name:  a display name for the system
        """
        if not pid:
            raise ValueError("Provenance: pid must be a non-empty string")
        self.pid = pid
        self.scopes = frozenset(scopes or [])
        self.name = name or pid

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes

    def __str__(self):
        return self.pid

    def __repr__(self):
        return "Provenance(%s)" % self.pid


class AuthzResult(object):
    """
    the answer to an authorization request
    """

    def __init__(self, allowed: bool, reason: str=None):
        self.allowed = bool(allowed)
        self.reason = reason or ""

    def __bool__(self):
        return self.allowed

    def __repr__(self):
        return "AuthzResult(%s, %r)" % (self.allowed, self.reason)


class Authorizer(ABC):
    """
    an interface for deciding whether a provenance may perform an action on a DMP
    """

    @abstractmethod
    def authorize(self, provenance: Provenance, action: str, record: DMPRecord=None) -> AuthzResult:
        """
        decide whether a provenance may perform an action.
        :param Provenance provenance:  the requesting system
        :param str            action:  one of "create", "update", or "delete"
        :param DMPRecord      record:  the current version of the DMP being acted on, or None if it
                                       does not (yet) exist
        """
        raise NotImplementedError()


class ScopeAuthorizer(Authorizer):
    """
    an Authorizer that grants write access to any provenance holding the environment's write scope,
    ``api.``*ENV*``.write``, with the following restrictions:
      - a DMP that already exists cannot be created;
      - a DMP that does not exist cannot be updated or deleted;
      - only the owner of a DMP may delete it.

    This implementation supports the following configuration parameter:

    ``env``
        the name of the deployment environment used to form the write scope (default: "dev")
    """

    def __init__(self, config: Mapping=None):
        if config is None:
            config = {}
        self.cfg = config
        self.env = config.get("env", "dev")

    @property
    def write_scope(self) -> str:
        return "api.%s.write" % self.env

    def authorize(self, provenance: Provenance, action: str, record: DMPRecord=None) -> AuthzResult:
        if provenance is None or action not in ACTION_TYPES:
            return AuthzResult(False, MSG_DEFAULT)

        if not provenance.has_scope(self.write_scope):
            return AuthzResult(False, MSG_UNAUTH)
        if record is not None and action == CREATE:
            return AuthzResult(False, MSG_EXISTS)
        if record is None and action in (UPDATE, DELETE):
            return AuthzResult(False, MSG_UNKNOWN)
        if action == DELETE and record.owner_provenance != provenance.pid:
            return AuthzResult(False, MSG_UNAUTH)

        return AuthzResult(True)
