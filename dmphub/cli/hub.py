"""
dmphub command-line program for administering the DMP Hub.  This suite of commands operates directly
on the hub's store, acting on behalf of a named client system (provenance).
"""
import logging, os, sys
from pathlib import Path

from . import (define_prog_opts, CLISuite, CommandFailure,
               create, update, delete, get, listing, history, repair)
from ..exceptions import ConfigurationException

description = \
"""execute DMP Hub operations

The subcommands operate directly on the hub's store on behalf of the client system named on the
command line.  The configuration (given with -c, or read from the default configuration file) must
identify the store and the DMP identifier settings.
"""
epilog = None
default_prog_name = "dmphub"

def find_default_conf_file():
    """
    return the path to the default configuration file.  This is taken from the DMPHUB_HOME environment
    variable, if set, as ``$DMPHUB_HOME/etc/dmphub_conf.yml``; otherwise, it is looked for in the
    ``etc`` directory of the source code distribution.
    """
    if os.environ.get('DMPHUB_HOME'):
        return os.path.join(os.environ['DMPHUB_HOME'], 'etc', 'dmphub_conf.yml')
    return str(Path(__file__).parents[2] / 'etc' / 'dmphub_conf.yml')

def main(cmdname, args):
    """
    a function that executes the ``dmphub`` command-line tool.
    """
    if not cmdname:
        cmdname = default_prog_name

    argparser = define_prog_opts(cmdname, description, epilog)
    hub = CLISuite(cmdname, find_default_conf_file(), argparser)

    for cmd in (create, update, delete, get, listing, history, repair):
        hub.load_subcommand(cmd)

    hub.execute(args)
    return args

def console_main():
    """
    run the ``dmphub`` program with the arguments given on the command line, exiting with the status
    appropriate to the outcome
    """
    prog = default_prog_name
    try:
        prog = os.path.splitext(os.path.basename(sys.argv[0]))[0]
        main(prog, sys.argv[1:])
        sys.exit(0)
    except CommandFailure as ex:
        logging.getLogger(f"{prog} {ex.cmd}").critical(str(ex))
        sys.exit(ex.stat)
    except ConfigurationException as ex:
        logging.getLogger(prog).critical("Config error: "+str(ex))
        sys.exit(6)
    except Exception as ex:
        logging.getLogger(prog).exception(ex)
        sys.exit(200)

if __name__ == "__main__":
    console_main()

