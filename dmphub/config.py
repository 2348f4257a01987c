"""
Utilities for loading configuration data and setting up logging.

Configuration for the DMP Hub components is a plain nested dictionary; this module provides the
means for reading such data from YAML or JSON files, layering one set of parameters over another,
and configuring the Python logging system from configuration parameters.
"""
import os, json, logging
from collections.abc import Mapping
from copy import deepcopy

import yaml

from .exceptions import ConfigurationException

NORMAL = (logging.INFO + logging.WARNING) // 2
logging.addLevelName(NORMAL, "NORMAL")

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
_log_handler = None
global_logfile = None

def load_from_file(configfile: str) -> Mapping:
    """
    read the configuration from the given file and return it as a dictionary.  The file format
    is determined by its filename extension:  ``.json`` is read as JSON, while ``.yml`` and
    ``.yaml`` are read as YAML (the default for other extensions).

    :param str configfile:  the path to the configuration file
    :rtype: dict
    :raises ConfigurationException:  if the file cannot be read or parsed
    """
    try:
        with open(configfile) as fd:
            if configfile.endswith('.json'):
                data = json.load(fd)
            else:
                data = yaml.safe_load(fd)
    except (IOError, OSError) as ex:
        raise ConfigurationException("Unable to read config file, %s: %s" % (configfile, str(ex)),
                                     cause=ex)
    except (ValueError, yaml.YAMLError) as ex:
        raise ConfigurationException("%s: config file format error: %s" % (configfile, str(ex)),
                                     cause=ex)

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationException("%s: config file does not contain a dictionary" % configfile)
    return data

def merge_config(primary: Mapping, defconf: Mapping) -> Mapping:
    """
    merge two configurations, with one providing the default values for the other.  Dictionary
    values are merged recursively; all other values in ``primary`` replace those in ``defconf``.
    Neither input is modified.

    :param dict primary:  the configuration whose values take precedence
    :param dict defconf:  the configuration providing default values
    :rtype: dict
    """
    out = deepcopy(defconf)
    for key, val in primary.items():
        if isinstance(val, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_config(val, out[key])
        else:
            out[key] = deepcopy(val)
    return out

def get_required(config: Mapping, param: str):
    """
    return the value of a required configuration parameter.  The parameter name may be a
    dot-delimited path into nested dictionaries (e.g. ``dmp_id.base_url``).
    :raises ConfigurationException:  if the parameter is not set
    """
    node = config
    for part in param.split('.'):
        if not isinstance(node, Mapping) or node.get(part) is None:
            raise ConfigurationException("Missing required config parameter: " + param)
        node = node[part]
    return node

def configure_log(logfile: str=None, level: int=None, format: str=None, config: Mapping=None,
                  addstderr=False):
    """
    configure the root logger to record messages to a file.  This only has an effect the first
    time it is called; subsequent calls are ignored.

    :param str logfile:  the path to the log file; if relative, it is taken to be relative to the
                         ``logdir`` config parameter (or the current directory).  If not given, the
                         ``logfile`` config parameter is used.
    :param int   level:  the minimum level of messages to record; defaults to the ``loglevel``
                         config parameter (or DEBUG).
    :param str  format:  the format for log messages; defaults to the ``logformat`` parameter.
    :param dict config:  the configuration to draw logging parameters from
    :param bool addstderr:  if True, also send messages at WARNING and above to standard error
    """
    global _log_handler, global_logfile
    if _log_handler:
        return
    if not config:
        config = {}

    if not logfile:
        logfile = config.get('logfile', 'dmphub.log')
    if not os.path.isabs(logfile):
        logfile = os.path.join(config.get('logdir', os.getcwd()), logfile)
    if level is None:
        level = config.get('loglevel', logging.DEBUG)
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
    if not format:
        format = config.get('logformat', LOG_FORMAT)

    logdir = os.path.dirname(logfile)
    if logdir and not os.path.exists(logdir):
        os.makedirs(logdir)

    _log_handler = logging.FileHandler(logfile)
    _log_handler.setLevel(level)
    _log_handler.setFormatter(logging.Formatter(format))
    root = logging.getLogger()
    root.addHandler(_log_handler)
    root.setLevel(min(level, root.level) if root.level else level)
    global_logfile = logfile

    if addstderr:
        handler = logging.StreamHandler()
        handler.setLevel(logging.WARNING)
        handler.setFormatter(logging.Formatter(format))
        root.addHandler(handler)

    root.log(NORMAL, "Logging to %s", logfile)

def reset_log():
    """
    detach the file handler set up by :py:func:`configure_log` (for testing purposes)
    """
    global _log_handler, global_logfile
    if _log_handler:
        logging.getLogger().removeHandler(_log_handler)
        _log_handler.close()
    _log_handler = None
    global_logfile = None
