"""
CLI command that registers a new DMP with the hub
"""
import logging

from . import explain
from . import _comm

default_name = "create"
help = "register a new DMP on behalf of a client system"
description = """
  Register the DMP read from a file as a new DMP owned by the given provenance (client system).  A new
  DMP identifier is minted for it.  If the DMP's dmp_id is set, it is saved as the owner's own
  identifier for the DMP, by which it can also be retrieved; registration fails if a DMP with that
  identifier already exists.
"""

def load_into(subparser, current_dests=None, as_cmd=None):
    """
    load this command into a CLI by defining the command's arguments and options
    :param argparser.ArgumentParser subparser:  the argument parser instance to define this command's
                                                interface into it
    :rtype: None
    """
    p = subparser
    p.add_argument("provenance", metavar="PROVENANCE", type=str,
                   help="the identifier of the client system that will own the DMP")
    p.add_argument("file", metavar="FILE", type=str,
                   help="the file containing the DMP as JSON; use '-' to read from standard input")
    _comm.define_output_opt(p)
    return None

def execute(args, config=None, log=None):
    cmd = default_name
    if not log:
        log = logging.getLogger(cmd)
    if not config:
        config = {}

    svc = _comm.get_service(config, log)
    payload = _comm.read_payload(cmd, args.file)
    explain(log, "Registering DMP from %s for %s", args.file, args.provenance)

    res = _comm.check_result(cmd, svc.create(_comm.get_provenance(args.provenance, config), payload), log)
    log.info("Created DMP %s", res.record.canonical_identifier.get("identifier"))
    _comm.write_result(cmd, res, args.outfile)
