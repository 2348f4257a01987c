"""
CLI command that retrieves a DMP by its identifier
"""
import logging

from . import _comm
from ..record import LATEST_VERSION, SK_PREFIX

default_name = "get"
help = "retrieve a DMP by its identifier"
description = """
  Retrieve a DMP given its identifier:  its DOI (in any of its common forms), its primary key, or the
  identifier its owner registered it under.  By default, the latest version is returned.
"""

def load_into(subparser, current_dests=None, as_cmd=None):
    p = subparser
    p.add_argument("id", metavar="ID", type=str, help="the identifier of the DMP to retrieve")
    p.add_argument("-V", "--version", metavar="VKEY", type=str, dest="version",
                   help="return the version with the given version key (e.g. a timestamp from the "+
                        "history command) rather than the latest version")
    _comm.define_output_opt(p)
    return None

def execute(args, config=None, log=None):
    cmd = default_name
    if not log:
        log = logging.getLogger(cmd)
    if not config:
        config = {}

    vkey = LATEST_VERSION
    if getattr(args, "version", None):
        vkey = args.version
        if not vkey.startswith(SK_PREFIX):
            vkey = SK_PREFIX + vkey

    svc = _comm.get_service(config, log)
    res = _comm.check_result(cmd, svc.find(args.id, vkey), log)
    _comm.write_result(cmd, res, args.outfile)
