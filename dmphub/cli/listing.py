"""
CLI command that lists the DMPs owned by a client system
"""
import logging

from . import _comm

default_name = "list"
help = "list the current DMPs owned by a client system"
description = """
  Print the latest versions of all of the (undeleted) DMPs owned by the given provenance.
"""

def load_into(subparser, current_dests=None, as_cmd=None):
    p = subparser
    p.add_argument("provenance", metavar="PROVENANCE", type=str,
                   help="the identifier of the owning client system")
    _comm.define_output_opt(p)
    return None

def execute(args, config=None, log=None):
    cmd = default_name
    if not log:
        log = logging.getLogger(cmd)
    if not config:
        config = {}

    svc = _comm.get_service(config, log)
    res = _comm.check_result(cmd, svc.list_for(args.provenance), log)
    _comm.write_result(cmd, res, args.outfile)
