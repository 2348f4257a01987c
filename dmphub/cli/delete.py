"""
CLI command that deletes (tombstones) a DMP
"""
import logging

from . import explain
from . import _comm

default_name = "delete"
help = "delete a DMP on behalf of its owner"
description = """
  Delete the DMP with the given identifier.  Only the DMP's owner may delete it.  The DMP's versions
  are retained but it can no longer be updated.  If a FILE is given, the dmp_id of the DMP it contains
  must identify the DMP being deleted.
"""

def load_into(subparser, current_dests=None, as_cmd=None):
    p = subparser
    p.add_argument("provenance", metavar="PROVENANCE", type=str,
                   help="the identifier of the client system requesting the deletion")
    p.add_argument("id", metavar="ID", type=str,
                   help="the identifier of the DMP to delete")
    p.add_argument("file", metavar="FILE", type=str, nargs="?",
                   help="a file containing the DMP as JSON (optional)")
    _comm.define_output_opt(p)
    return None

def execute(args, config=None, log=None):
    cmd = default_name
    if not log:
        log = logging.getLogger(cmd)
    if not config:
        config = {}

    svc = _comm.get_service(config, log)
    payload = None
    if args.file:
        payload = _comm.read_payload(cmd, args.file)

    explain(log, "Deleting DMP %s on behalf of %s", args.id, args.provenance)
    res = svc.delete(_comm.get_provenance(args.provenance, config), args.id, payload)
    _comm.check_result(cmd, res, log)
    log.info("Deleted DMP %s", args.id)
    _comm.write_result(cmd, res, args.outfile)
