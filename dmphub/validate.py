"""
Structural validation of DMP payloads submitted to the hub.

Payloads are validated against a JSON Schema chosen by the *mode* of the request:

``author``
    the owner is creating or updating its DMP; the full document must be valid
``amend``
    a system other than the owner is contributing funding or related identifier entries
``delete``
    the owner is deleting its DMP

Each mode's schema is read from a file named *MODE*``.json`` in a schema directory (by default, the
schemas bundled with this package).
"""
import os, json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from logging import Logger, getLogger
from typing import List

import jsonschema

from . import system

AUTHOR = "author"
AMEND = "amend"
DELETE = "delete"
VALIDATION_MODES = (AUTHOR, AMEND, DELETE)

MSG_DEFAULT = "JSON was empty or an invalid mode was specified!"
MSG_NO_SCHEMA = "No JSON schema available!"

def_schema_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "schemas")

class ValidationResult(object):
    """
    the outcome of validating a payload
    """

    def __init__(self, valid: bool, errors: List[str]=None):
        self.valid = bool(valid)
        self.errors = list(errors) if errors else []

    def __bool__(self):
        return self.valid

    def __repr__(self):
        return "ValidationResult(%s, %r)" % (self.valid, self.errors)


class SchemaValidator(ABC):
    """
    an interface for checking the structure of a DMP payload
    """

    @abstractmethod
    def validate(self, mode: str, payload: Mapping) -> ValidationResult:
        """
        check the given payload for the given mode of request
        :param str      mode:  one of "author", "amend", or "delete"
        :param dict  payload:  the DMP document to check
        """
        raise NotImplementedError()


class JSONSchemaValidator(SchemaValidator):
    """
    a SchemaValidator that checks payloads against JSON Schema documents, one per mode.

    This implementation supports the following configuration parameter:

    ``schema_dir``
        the directory containing the schema files (default: the schemas bundled with this package)
    """

    def __init__(self, config: Mapping=None, log: Logger=None):
        if config is None:
            config = {}
        self.cfg = config
        self.schema_dir = config.get("schema_dir", def_schema_dir)
        if not log:
            log = getLogger(system.system_abbrev).getChild("validate")
        self.log = log
        self._validators = {}

    def load_schema(self, mode: str) -> Mapping:
        """
        return the schema for the given mode, or None if it is not available
        """
        schfile = os.path.join(self.schema_dir, mode + ".json")
        if not os.path.exists(schfile):
            return None
        try:
            with open(schfile) as fd:
                return json.load(fd)
        except ValueError as ex:
            self.log.error("%s: unable to parse schema: %s", schfile, str(ex))
            return None

    def _get_validator(self, mode: str):
        if mode not in self._validators:
            schema = self.load_schema(mode)
            if schema is None:
                return None
            cls = jsonschema.validators.validator_for(schema)
            cls.check_schema(schema)
            self._validators[mode] = cls(schema)
        return self._validators[mode]

    def validate(self, mode: str, payload: Mapping) -> ValidationResult:
        if not payload or mode not in VALIDATION_MODES:
            return ValidationResult(False, [MSG_DEFAULT])

        try:
            validator = self._get_validator(mode)
        except jsonschema.SchemaError as ex:
            self.log.error("Schema for %s mode is invalid: %s", mode, ex.message)
            return ValidationResult(False, ["Fatal validation error: " + ex.message])
        if validator is None:
            return ValidationResult(False, [MSG_NO_SCHEMA])

        errors = []
        for err in sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path]):
            path = "/".join(str(p) for p in err.path)
            errors.append("%s: %s" % (path, err.message) if path else err.message)
        return ValidationResult(not errors, errors)
