"""
Copyright (c) 2019, Brian Stafford
Copyright (c) 2019-2020, The Decred developers
See LICENSE for details
"""

import json
import logging
from logging import Logger
from logging.handlers import RotatingFileHandler
import os
from pathlib import Path
import shutil
import sys
from tempfile import TemporaryDirectory
import traceback
from typing import Any, Dict, Optional, Union


def formatTraceback(err: Exception) -> str:
    """
    Format a traceback for an error so that it can go into logs.

    Args:
        err: The error the traceback is extracted from.

    Returns:
        The __str__() of the error, followed by the standard formatting
            of the traceback on the following lines.
    """
    return "".join(traceback.format_exception(None, err, err.__traceback__))


def mkdir(path: Union[Path, str]) -> bool:
    """
    Create the directory if it doesn't exist. Uses os.path .

    Args:
        path: the directory path.
    """
    if os.path.isdir(path):
        return True
    if os.path.isfile(path):
        return False
    os.makedirs(path)
    return True


class LogSettings:
    """
    Used to track a few logging-related settings.
    """

    root = logging.getLogger("")
    defaultLevel = logging.INFO
    moduleLevels: Dict[str, int] = {}
    loggers: Dict[str, Logger] = {}


LogSettings.root.setLevel(logging.NOTSET)


def prepareLogging(
    filepath: Union[Path, str, None] = None,
    logLvl: int = logging.INFO,
    lvlMap: Optional[Dict[str, int]] = None,
) -> None:
    """
    Prepare for using getLogger. Logs to stdout. If filepath is provided, log
    outputs will be saved to a rotating log file at the specified location. Any
    loggers, both future loggers and those already created, will have their
    levels set according to the new logLvl and lvlMap.

    Args:
        filepath: The base name for the rotating log file.
        logLvl: The default logging level used for all new loggers without
            entries in the lvlMap.
        lvlMap: The name->level mapping will be added to the stored level dict,
            which is referenced when loggers are created using getLogger.
    """
    LogSettings.defaultLevel = logLvl
    LogSettings.moduleLevels.update(lvlMap if lvlMap else {})
    for name, logger in LogSettings.loggers.items():
        if name in LogSettings.moduleLevels:
            logger.setLevel(LogSettings.moduleLevels[name])
        else:
            logger.setLevel(LogSettings.defaultLevel)

    log_formatter = logging.Formatter(
        "%(asctime)s %(name)s %(levelname)s %(funcName)s(%(lineno)d) %(message)s"
    )
    if filepath:
        fileHandler = RotatingFileHandler(
            filepath,
            mode="a",
            maxBytes=5 * 1024 * 1024,
            backupCount=2,
            encoding=None,
            delay=False,
        )
        fileHandler.setFormatter(log_formatter)
        LogSettings.root.addHandler(fileHandler)
    if not sys.executable.endswith("pythonw.exe"):
        # Skip adding the stdout handler for pythonw in windows.
        printHandler = logging.StreamHandler()
        printHandler.setFormatter(log_formatter)
        LogSettings.root.addHandler(printHandler)


def getLogger(name: str) -> Logger:
    """
    Gets a named logger. If the name has a log level registered with
    prepareLogger, that level will be used, otherwise the default is used.

    Args:
        name: The logger name.
    """
    l = LogSettings.root.getChild(name)
    l.setLevel(LogSettings.moduleLevels.get(name, LogSettings.defaultLevel))
    LogSettings.loggers[name] = l
    return l


def levelFromName(name: Union[str, int]) -> int:
    """
    Convert a level name such as "debug" to the logging module constant.
    Integers are passed through.

    Args:
        name: The level name or number.

    Returns:
        The logging level.
    """
    if isinstance(name, int):
        return name
    lvl = logging.getLevelName(name.upper())
    if not isinstance(lvl, int):
        raise ValueError(f"unknown log level {name!r}")
    return lvl


def fetchSettingsFile(filepath: Union[Path, str]) -> Dict[str, Any]:
    """
    Fetches the JSON settings file, creating an empty json object if necessary.

    Args:
        filepath: The settings file path.

    Returns:
        The decoded settings.
    """
    if not os.path.isfile(filepath):
        with open(filepath, "w+") as f:
            f.write("{}")
    with open(filepath) as f:
        return json.load(f)


def saveFile(path: Union[Path, str], contents: str) -> None:
    """
    Atomic file save.
    """
    with TemporaryDirectory() as tempDir:
        tmpPath = os.path.join(tempDir, "tmp.tmp")
        with open(tmpPath, "w") as f:
            f.write(contents)
            f.flush()
            os.fsync(f.fileno())
        shutil.move(tmpPath, path)


def saveJSON(path: Union[Path, str], obj: Any, **kwargs: Any) -> None:
    """
    Encode the object as JSON and save it atomically. Keyword arguments are
    passed to json.dumps.
    """
    saveFile(path, json.dumps(obj, **kwargs))
