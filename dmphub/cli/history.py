"""
CLI command that prints all versions of a DMP
"""
import logging

from . import _comm

default_name = "history"
help = "list all versions of a DMP"
description = """
  Print all stored versions of the DMP with the given identifier, newest first, including its
  tombstone if it has been deleted.
"""

def load_into(subparser, current_dests=None, as_cmd=None):
    p = subparser
    p.add_argument("id", metavar="ID", type=str, help="the identifier of the DMP")
    _comm.define_output_opt(p)
    return None

def execute(args, config=None, log=None):
    cmd = default_name
    if not log:
        log = logging.getLogger(cmd)
    if not config:
        config = {}

    svc = _comm.get_service(config, log)
    res = _comm.check_result(cmd, svc.history(args.id), log)
    _comm.write_result(cmd, res, args.outfile)
