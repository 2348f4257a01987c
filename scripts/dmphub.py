#! /usr/bin/env python3
"""
Administer the DMP Hub:  create, update, delete, and retrieve DMP records directly in the hub's store.

Execute this script with the -h option to display the list of subcommands and options.
"""
# dmphub [-c CONFFILE] [-w DIR] [-l LOGFILE] [-q] [-D] [-v] CMD ...
import sys, os, logging, traceback as tb
from dmphub.cli import hub, CommandFailure
from dmphub.exceptions import ConfigurationException

prog = os.path.basename(sys.argv[0])
if prog.endswith('.py'):
    prog = prog[:-(len('.py'))]

def err(msg):
    rootlog = logging.getLogger()
    if rootlog.handlers:
        rootlog.critical(msg)
    else:
        if prog:
            sys.stderr.write(prog)
            sys.stderr.write(": ")
        sys.stderr.write(msg)
        sys.stderr.write("\n")

try:

    hub.main(prog, sys.argv[1:])

except CommandFailure as ex:
    err("%s: %s" % (ex.cmd, str(ex)))
    sys.exit(ex.stat)

except ConfigurationException as ex:
    err("Config error: " + str(ex))
    sys.exit(6)

except Exception as ex:
    # unexpected failure
    tb.print_exc()
    err(str(ex))
    sys.exit(1)
