"""
CLI command that submits a new version of an existing DMP
"""
import logging

from . import explain
from . import _comm

default_name = "update"
help = "update a DMP on behalf of a client system"
description = """
  Submit the DMP read from a file as a new version of the DMP with the given identifier.  If the
  provenance is the DMP's owner, the content of the DMP is replaced (contributions from other systems
  are kept); otherwise, only the funding and related identifiers given in the file are merged into the
  DMP.  If the submission would not change the DMP, no new version is created.
"""

def load_into(subparser, current_dests=None, as_cmd=None):
    p = subparser
    p.add_argument("provenance", metavar="PROVENANCE", type=str,
                   help="the identifier of the client system submitting the update")
    p.add_argument("id", metavar="ID", type=str,
                   help="the hub identifier (DOI) or primary key of the DMP to update")
    p.add_argument("file", metavar="FILE", type=str,
                   help="the file containing the DMP as JSON; use '-' to read from standard input")
    p.add_argument("-V", "--base-version", metavar="VKEY", type=str, dest="version",
                   help="the version key of the version the update is based on; the update is refused "+
                        "if it is not the latest version")
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
    explain(log, "Updating DMP %s from %s on behalf of %s", args.id, args.file, args.provenance)

    res = svc.update(_comm.get_provenance(args.provenance, config), args.id, payload,
                     getattr(args, "version", None))
    _comm.check_result(cmd, res, log)
    _comm.write_result(cmd, res, args.outfile)
