"""
Allocation and normalization of DMP identifiers.

A DMP registered with the hub is identified by a DOI minted under a configured shoulder and rendered
as a resolvable URL under a configured base URL (e.g. ``https://doi.org/10.80030/D1.4F2A9C01``).  The
record's primary key in the store is derived from this canonical identifier.  Because clients refer
to DMPs in a variety of forms (bare DOIs, ``doi:`` URIs, URLs, or their own opaque tokens), every
identifier is first passed through :py:meth:`IdentifierAllocator.normalize` so that the same
identifier always maps to the same key.
"""
import re, secrets
from collections.abc import Mapping
from logging import Logger, getLogger
from typing import Optional

from . import system
from .config import get_required
from .exceptions import NoIdentifierAvailable
from .record import PK_DMP_PREFIX

DOI_BODY = r"[0-9]{2}\.[0-9]{5}/[a-zA-Z0-9/_.\-]+"
DOI_REGEX = re.compile(r"^(?:doi:)?/?(" + DOI_BODY + r")$", re.IGNORECASE)
URL_REGEX = re.compile(r"^https?://\S+$", re.IGNORECASE)
OTHER_PREFIX = "other:"

DEF_SUFFIX_LENGTH = 8
DEF_MAX_ATTEMPTS = 10

def to_primary_key(canonical_id: str) -> Optional[str]:
    """
    return the table primary key for the given canonical identifier
    """
    if not canonical_id:
        return None
    if canonical_id.startswith(PK_DMP_PREFIX):
        return canonical_id
    return PK_DMP_PREFIX + canonical_id

def from_primary_key(pk: str) -> Optional[str]:
    """
    return the canonical identifier encoded in the given primary key
    """
    if pk is None:
        return None
    if pk.startswith(PK_DMP_PREFIX):
        return pk[len(PK_DMP_PREFIX):]
    return pk

def identifier_type(canonical_id: str) -> str:
    """
    return the identifier type label, "doi", "url", or "other", that applies to the given canonical
    identifier
    """
    if canonical_id.startswith(OTHER_PREFIX):
        return "other"
    if re.search(DOI_BODY, canonical_id):
        return "doi"
    return "url"

def to_identifier_object(pk: str) -> Optional[dict]:
    """
    return the ``{type, identifier}`` object (as used for a DMP's ``dmp_id``) for a primary key
    """
    canon = from_primary_key(pk)
    if not canon:
        return None
    return {"type": identifier_type(canon), "identifier": canon}


class IdentifierAllocator(object):
    """
    a class that mints new DMP identifiers and normalizes identifiers supplied by clients.

    New identifiers have the form *BASE_URL* *SHOULDER*``.``*SUFFIX* where *SUFFIX* is a random
    string of uppercase hexadecimal digits of fixed length.  Allocation probes the store for a
    collision with an existing record, trying again (up to a limit) when one is found.  Allocation
    is advisory:  nothing is reserved until the caller writes a record under the returned identifier.

    This class supports the following configuration parameters:

    ``base_url``
        (required) the URL base that DOIs are rendered under (e.g. ``https://doi.org/``)
    ``shoulder``
        (required for allocation) the DOI prefix that new identifiers are minted under
        (e.g. ``10.80030/D1``)
    ``suffix_length``
        the number of hex digits in a minted suffix (default: 8)
    ``max_attempts``
        the number of candidates to try before giving up (default: 10)
    """

    def __init__(self, versions, config: Mapping, log: Logger=None):
        """
        create the allocator
        :param VersionStore versions:  the version store used to probe for existing identifiers;
                                      this can be None if only normalization is needed.
        :param dict config:  the ``dmp_id`` configuration section
        :param Logger  log:  the logger to send messages to
        """
        self._versions = versions
        self.cfg = config
        base = get_required(config, "base_url")
        if not base.endswith('/'):
            base += '/'
        self.base_url = base
        self.suffix_length = int(config.get("suffix_length", DEF_SUFFIX_LENGTH))
        self.max_attempts = int(config.get("max_attempts", DEF_MAX_ATTEMPTS))
        if not log:
            log = getLogger(system.system_abbrev).getChild("idmint")
        self.log = log

    @property
    def shoulder(self) -> str:
        return get_required(self.cfg, "shoulder")

    def _mint_candidate(self) -> str:
        nbytes = (self.suffix_length + 1) // 2
        suffix = secrets.token_hex(nbytes).upper()[:self.suffix_length]
        return "%s%s.%s" % (self.base_url, self.shoulder, suffix)

    def allocate(self) -> str:
        """
        return a new canonical identifier that is not currently used by any record
        :raises NoIdentifierAvailable:  if every candidate tried was already in use
        """
        for i in range(self.max_attempts):
            candidate = self._mint_candidate()
            if not self._versions.key_in_use(to_primary_key(candidate)):
                return candidate
            self.log.warning("Minted identifier collides with existing record: %s", candidate)

        raise NoIdentifierAvailable("Unable to allocate an unused DMP identifier after %d attempts" %
                                    self.max_attempts)

    def normalize(self, raw_id) -> Optional[str]:
        """
        convert an identifier supplied by a client into its canonical form:
          - a DOI (with or without a ``doi:`` prefix or a leading slash) is rendered as a URL under
            the configured base URL;
          - an absolute HTTP(S) URL is returned unchanged;
          - anything else is returned as an opaque token prefixed with ``other:``.
        The result depends only on the input and the configured base URL.

        :param raw_id:  the identifier as a string or as a ``{type, identifier}`` object
        :return: the canonical identifier, or None if the input is empty or not a string
        """
        if isinstance(raw_id, Mapping):
            raw_id = raw_id.get("identifier")
        if not isinstance(raw_id, str):
            return None
        raw_id = raw_id.strip()
        if not raw_id:
            return None

        if raw_id.startswith(OTHER_PREFIX):
            return raw_id
        m = DOI_REGEX.match(raw_id)
        if m:
            return self.base_url + m.group(1)
        if URL_REGEX.match(raw_id):
            return raw_id
        return OTHER_PREFIX + raw_id

    def to_primary_key(self, raw_id) -> Optional[str]:
        """
        normalize the given identifier and return the primary key it maps to (or None if it is
        not normalizable).  A value that is already a primary key is returned as is.
        """
        if isinstance(raw_id, str) and raw_id.startswith(PK_DMP_PREFIX):
            return raw_id
        return to_primary_key(self.normalize(raw_id))
