"""
CLI command that restores the latest version of a DMP left without one
"""
import logging

from . import explain
from . import _comm

default_name = "repair"
help = "restore the latest version of a DMP after a failed update"
description = """
  If an update to a DMP failed after its previous version was archived, the DMP is left without a
  latest version (and a CRITICAL alert naming the DMP is logged).  This command restores the latest
  version from the most recent archived version.  It has no effect on a DMP that has a latest
  version.
"""

def load_into(subparser, current_dests=None, as_cmd=None):
    p = subparser
    p.add_argument("id", metavar="ID", type=str, help="the identifier of the DMP to repair")
    _comm.define_output_opt(p)
    return None

def execute(args, config=None, log=None):
    cmd = default_name
    if not log:
        log = logging.getLogger(cmd)
    if not config:
        config = {}

    svc = _comm.get_service(config, log)
    explain(log, "Checking DMP %s for a missing latest version", args.id)
    res = _comm.check_result(cmd, svc.repair(args.id), log)
    _comm.write_result(cmd, res, args.outfile)
