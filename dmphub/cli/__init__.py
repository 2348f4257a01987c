"""
the framework for the ``dmphub`` command-line program, a suite of subcommands each implemented in its
own module.

A subcommand module provides:

``default_name``
    the name the subcommand is invoked with
``help``
    a one-line summary shown in the program's command listing
``description``
    the text that opens the subcommand's own help page
``load_into(subparser, current_dests=None, as_cmd=None)``
    defines the subcommand's arguments on the given ``ArgumentParser``
``execute(args, config=None, log=None)``
    carries out the subcommand; a failure is reported by raising :py:class:`CommandFailure`

:py:class:`CLISuite` assembles such modules into a program:  it parses the command line, loads the
configuration, sets up logging, and dispatches to the requested subcommand.
"""
import os, sys, logging
from copy import deepcopy
from argparse import ArgumentParser, HelpFormatter

from ..exceptions import ConfigurationException
from .. import config as cfgmod

EXPLAIN = cfgmod.NORMAL

def explain(log, message, *params):
    """
    record a message at the EXPLAIN level, which sits between DEBUG and INFO.  Such messages describe
    what a command is doing; they go to the log file but reach the terminal only with --verbose.
    """
    log.log(EXPLAIN, message, *params)

class _ParagraphFormatter(HelpFormatter):
    # keeps blank-line paragraph breaks in descriptions
    def _fill_text(self, text, width, indent):
        return "\n\n".join(super(_ParagraphFormatter, self)._fill_text(p, width, indent)
                           for p in text.split("\n\n"))

def define_prog_opts(progname, description=None, epilog=None, parser=None):
    """
    set up the options common to all subcommands of a program

    :param str progname:    the program name shown in usage messages
    :param str description: text shown before the option descriptions
    :param str epilog:      text shown after the option descriptions
    :param ArgumentParser parser:  the parser to add the options to; if not given, a new one is
                            created.
    :return:  the configured parser
    """
    if not parser:
        parser = ArgumentParser(progname, None, description, epilog, formatter_class=_ParagraphFormatter)

    cmdhelp = "Use '%(prog)s CMD -h' to get help on a particular command CMD."
    parser.epilog = cmdhelp + ("\n\n" + parser.epilog if parser.epilog else "")

    parser.add_argument("-w", "--workdir", type=str, dest='workdir', metavar='DIR', default="",
                        help="resolve relative file paths (including the log file) against DIR "+
                             "instead of the current directory")
    parser.add_argument("-c", "--config", type=str, dest='conf', metavar='FILE',
                        help="load the hub configuration from FILE")
    parser.add_argument("-l", "--logfile", type=str, dest='logfile', metavar='FILE',
                        help="write log messages to FILE instead of the configured log file")
    parser.add_argument("-q", "--quiet", action="store_true", dest='quiet',
                        help="suppress messages to standard error")
    parser.add_argument("-D", "--debug", action="store_true", dest='debug',
                        help="include DEBUG messages in the log file")
    parser.add_argument("-v", "--verbose", action="store_true", dest='verbose',
                        help="also show progress messages (and, with -D, DEBUG messages) on the terminal")

    return parser

class CommandFailure(Exception):
    """
    raised when a subcommand cannot complete.  The program should exit with the status carried in
    ``stat``.  The statuses used are:
      * 1:  unspecified processing failure
      * 2:  misused command-line arguments
      * 3:  unreadable or invalid input (including DMPs that fail validation)
      * 4:  failure writing output
      * 5:  the DMP store could not be reached
      * 6:  configuration error
      * 9:  the client system is not permitted to make the request
      * 10: unrecognized subcommand
      * 11: the requested DMP (or version) does not exist
      * 12: attempt to change a historical or deleted version of a DMP
      * 13: the DMP was changed concurrently by another client
      * 14: the DMP to be created already exists
      * 15: no new DMP identifier could be allocated
    """

    def __init__(self, cmdname, message, exstat=1, cause=None):
        """
        :param str cmdname:   the name of the failed command
        :param str message:   what went wrong; if empty, the message of ``cause`` is used
        :param int exstat:    the exit status to use
        :param Exception cause:  the exception that triggered the failure, if any
        """
        if not message:
            message = str(cause) if cause else "Command failed for an unknown reason"
        super(CommandFailure, self).__init__(message)
        self.cmd = cmdname
        self.stat = exstat
        self.cause = cause

class CLISuite(object):
    """
    a command-line program made up of subcommands
    """

    def __init__(self, progname, defconffile=None, parser=None):
        """
        :param str progname:     the program's name
        :param str defconffile:  the configuration file to read when none is given with -c; it is
                                 skipped if it does not exist
        :param ArgumentParser parser:  a parser with the program's common options; if not given,
                                 one is made with :py:func:`define_prog_opts`.
        """
        self.suitename = progname
        self._defconffile = defconffile
        self.parser = parser or define_prog_opts(progname)
        self._dests = set(a.dest for a in self.parser._actions)
        self._subparsers = self.parser.add_subparsers(title="commands", dest="cmd")
        self._cmds = {}

    def parse_args(self, args):
        return self.parser.parse_args(args)

    def load_subcommand(self, cmdmod, cmdname=None):
        """
        add a subcommand to this program
        :param module cmdmod:  the module implementing the subcommand
        :param str   cmdname:  the name to invoke it by (default: the module's ``default_name``)
        """
        if not hasattr(cmdmod, "load_into"):
            raise ValueError("Not a subcommand module (missing load_into()): " + repr(cmdmod))
        cmdname = cmdname or cmdmod.default_name

        sub = self._subparsers.add_parser(cmdname, help=cmdmod.help, description=cmdmod.description,
                                          formatter_class=_ParagraphFormatter)
        cmd = cmdmod.load_into(sub, self._dests, cmdname) or cmdmod
        self._dests.update(a.dest for a in sub._actions)
        self._cmds[cmdname] = cmd

    def extract_config_for_cmd(self, config, cmdname, cmd=None):
        """
        return the configuration for the named subcommand.  Settings under ``cmd.<cmdname>`` in the
        given configuration override the top-level ones; the ``cmd`` section itself is dropped.
        """
        if 'cmd' not in config:
            return config

        out = deepcopy(config)
        percmd = out.pop('cmd')
        if cmdname not in percmd and cmd is not None:
            cmdname = getattr(cmd, 'default_name', cmdname)
        if cmdname in percmd:
            out = cfgmod.merge_config(percmd[cmdname], out)
        return out

    def configure_log(self, args, config):
        """
        send log messages to the log file (and, unless --quiet, to standard error) and return the
        program's logger
        """
        wdir = config.get('working_dir', os.getcwd())
        if args.logfile:
            config['logfile'] = os.path.join(wdir, args.logfile)
        else:
            config.setdefault('logfile', self.suitename + ".log")
        config.setdefault('logdir', wdir)

        cfgmod.configure_log(level=(args.debug and logging.DEBUG) or cfgmod.NORMAL, config=config)
        if not args.quiet:
            logging.getLogger().addHandler(self._terminal_handler(args))

        log = logging.getLogger("cli." + self.suitename)
        log.setLevel(cfgmod.NORMAL)
        if args.verbose:
            log.info("Log file: %s", cfgmod.global_logfile)
        return log

    def _terminal_handler(self, args):
        hdlr = logging.StreamHandler(sys.stderr)
        if args.verbose:
            hdlr.setLevel((args.debug and logging.DEBUG) or cfgmod.NORMAL)
            hdlr.setFormatter(logging.Formatter("%(name)s %(levelname)s: %(message)s"))
        else:
            hdlr.setLevel(logging.INFO)
            hdlr.setFormatter(logging.Formatter(self.suitename + " %(levelname)s: %(message)s"))
        return hdlr

    def load_config(self, args):
        """
        read the configuration file named with -c or, failing that, the default configuration file.
        An empty configuration is returned if neither is available.
        """
        if args.conf:
            return cfgmod.load_from_file(args.conf)
        if self._defconffile and os.path.isfile(self._defconffile):
            return cfgmod.load_from_file(self._defconffile)
        return {}

    def _set_working_dir(self, args, config):
        if args.workdir:
            wdir = os.path.abspath(args.workdir)
            if not os.path.isdir(wdir):
                raise CommandFailure(args.cmd, "Working directory does not exist: " + wdir, 2)
            args.workdir = wdir
        else:
            wdir = os.path.abspath(config.get('working_dir', os.getcwd()))
        config['working_dir'] = wdir

    def execute(self, args, config=None):
        """
        run the subcommand selected in the arguments
        :param list|Namespace args:  the command-line arguments (excluding the program name), either
                                     as a list of strings or already parsed
        :param dict config:  the configuration to use; if None, it is read via :py:meth:`load_config`
        :return:  whatever the subcommand returns
        """
        argv = args if isinstance(args, list) else None
        if argv is not None:
            args = self.parse_args(argv)
        if not args.cmd:
            raise CommandFailure(self.suitename, "No command given (use -h for help)", 2)
        cmd = self._cmds.get(args.cmd)
        if cmd is None:
            raise CommandFailure(args.cmd, "Unrecognized command: " + args.cmd, 10)

        try:
            if config is None:
                config = self.load_config(args)
            config = self.extract_config_for_cmd(config, args.cmd, cmd)
            self._set_working_dir(args, config)

            log = self.configure_log(args, config)
            if argv:
                explain(log, "Running: %s %s", self.suitename, " ".join(argv))

            return cmd.execute(args, config, log.getChild(args.cmd))

        except CommandFailure as ex:
            ex.cmd = args.cmd if not ex.cmd or ex.cmd == args.cmd else args.cmd + " " + ex.cmd
            raise
        except ConfigurationException as ex:
            raise CommandFailure(args.cmd, "Configuration error: " + str(ex), 6, ex)
