"""
Functions shared by the ``dmphub`` subcommands
"""
import sys, json
from collections.abc import Mapping

from . import CommandFailure
from ..service import Result, create_service
from ..authz import Provenance, ScopeAuthorizer
from ..format import format_response

EXIT_STATUS = {
    Result.INVALID:            3,
    Result.STORE_UNAVAILABLE:  5,
    Result.FORBIDDEN:          9,
    Result.NOT_FOUND:         11,
    Result.HISTORICAL:        12,
    Result.CONFLICT:          13,
    Result.ALREADY_EXISTS:    14,
    Result.NO_IDENTIFIER:     15
}

HTTP_STATUS = {
    Result.CREATED:          201,
    Result.OK:               200
}

def define_output_opt(p):
    p.add_argument("-o", "--output-file", metavar="FILE", type=str, dest="outfile",
                   help="write the output to the named file instead of standard out")

def get_service(config: Mapping, log):
    """
    create the DMPService configured for the CLI
    """
    return create_service(config, log)

def get_provenance(pid: str, config: Mapping) -> Provenance:
    """
    return the Provenance the CLI acts on behalf of.  As CLI users are trusted administrators, it is
    granted the write scope for the configured environment.
    """
    authz = ScopeAuthorizer(config.get("authorization", {}))
    return Provenance(pid, [authz.write_scope])

def read_payload(cmd: str, filepath: str) -> str:
    """
    read the DMP document from the given file ("-" reads standard input)
    """
    try:
        if filepath == '-':
            return sys.stdin.read()
        with open(filepath) as fd:
            return fd.read()
    except OSError as ex:
        raise CommandFailure(cmd, "Unable to read DMP from %s: %s" % (filepath, str(ex)), 3, ex)

def check_result(cmd: str, result: Result, log) -> Result:
    """
    raise a CommandFailure with the appropriate exit status if the given result reports a failure
    """
    if not result.ok:
        raise CommandFailure(cmd, "%s: %s" % (result.status, result.error or "request failed"),
                             EXIT_STATUS.get(result.status, 1))
    return result

def write_result(cmd: str, result: Result, outfile: str=None):
    """
    write the records in the result, formatted as a response, to a file or standard out
    """
    resp = format_response(HTTP_STATUS.get(result.status, 200), result.records)
    fp = None
    try:
        if outfile and outfile != '-':
            fp = open(outfile, 'w')
            op = fp
        else:
            op = sys.stdout
        json.dump(resp, op, indent=4, separators=(',', ': '))
        op.write("\n")

    except OSError as ex:
        raise CommandFailure(cmd, "Failed to write data to %s: %s" %
                             ((fp and outfile) or "standard out", str(ex)), 4)
    finally:
        if fp: fp.close()
