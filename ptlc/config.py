"""
Copyright (c) 2019, Brian Stafford
Copyright (c) 2019-2020, the Decred developers
See LICENSE for details

Configuration settings for a swap party. Settings come from a JSON file in
the OS-appropriate data directory, then keyword overrides, on top of the
defaults below.
"""

import os

from appdirs import AppDirs

from ptlc import PtlcError
from ptlc.util import helpers


_ad = AppDirs("ptlc", False)
DATA_DIR = _ad.user_data_dir

# The master configuration file name.
CONFIG_NAME = "ptlc.conf"
CONFIG_PATH = os.path.join(DATA_DIR, CONFIG_NAME)

INITIATOR = "initiator"
RESPONDER = "responder"

# fmt: off
DEFAULTS = {
    "role":                INITIATOR,
    "seed":                None,         # hex
    "accountIndex":        0,
    "assetId":             None,         # what this party locks
    "amount":              None,
    "counterAssetId":      None,         # what this party expects in return
    "counterAmount":       None,
    "safetyWindow":        10 * 60 * 60, # initiator escrow lifetime, seconds
    "expirationMargin":    60 * 60,      # initiator/responder expiration gap
    "pollInterval":        10,           # seconds between ledger polls
    "confirmationTimeout": 10 * 60,
    "receiveTimeout":      None,         # None blocks until the escrows expire
    "logLevel":            "info",
    "logFile":             None,
}
# fmt: on

log = helpers.getLogger("CONFIG")


def isPositive(v, types=(int, float)):
    # bool is an int subclass, but never a valid quantity.
    return isinstance(v, types) and not isinstance(v, bool) and v > 0


class SwapConfig:
    """
    SwapConfig is the configuration for one party of one swap.
    """

    def __init__(self, path=None, **overrides):
        """
        Args:
            path (str): Optional. A JSON settings file. If not provided, no
                file is read.
            **overrides: Settings that take precedence over the file.
        """
        unknown = set(overrides) - set(DEFAULTS)
        if unknown:
            raise PtlcError(f"unknown settings {sorted(unknown)}")
        self.path = path
        self.file = helpers.fetchSettingsFile(path) if path else {}
        for k in self.file:
            if k not in DEFAULTS:
                log.warning(f"ignoring unknown setting {k!r} in {path}")
        self.settings = dict(DEFAULTS)
        self.settings.update({k: v for k, v in self.file.items() if k in DEFAULTS})
        self.settings.update(overrides)

    def __getattr__(self, k):
        settings = self.__dict__.get("settings", {})
        if k in settings:
            return settings[k]
        raise AttributeError(k)

    def get(self, k):
        """
        Retrieve a setting.

        Args:
            k (str): The setting key.

        Returns:
            mixed: The setting value.
        """
        return self.settings.get(k)

    def set(self, k, v):
        """
        Set the configuration option. The configuration is not saved, so `save`
        should be called separately.

        Args:
            k (str): The setting key.
            v (JSON-encodable): The value.
        """
        if k not in DEFAULTS:
            raise PtlcError(f"unknown setting {k!r}")
        self.settings[k] = v
        self.file[k] = v

    @property
    def isInitiator(self):
        return self.settings["role"] == INITIATOR

    def validate(self):
        """
        Check the settings needed to run a swap.

        Raises:
            PtlcError: A setting is missing or out of range.
        """
        s = self.settings
        if s["role"] not in (INITIATOR, RESPONDER):
            raise PtlcError(f"invalid role {s['role']!r}")
        if not s["seed"]:
            raise PtlcError("no seed configured")
        try:
            bytes.fromhex(s["seed"])
        except (TypeError, ValueError):
            raise PtlcError("seed is not hex")
        for k in ("assetId", "counterAssetId"):
            if not isinstance(s[k], str) or not s[k]:
                raise PtlcError(f"{k} must be a non-empty string")
        for k in ("amount", "counterAmount"):
            if not isPositive(s[k], int):
                raise PtlcError(f"{k} must be a positive integer")
        for k in ("safetyWindow", "expirationMargin"):
            if not isPositive(s[k], int):
                raise PtlcError(f"{k} must be a positive number of seconds")
        if s["expirationMargin"] * 2 >= s["safetyWindow"]:
            raise PtlcError("expirationMargin must be less than half of safetyWindow")
        for k in ("pollInterval", "confirmationTimeout"):
            if not isPositive(s[k]):
                raise PtlcError(f"{k} must be a positive number")
        if s["receiveTimeout"] is not None and not isPositive(s["receiveTimeout"]):
            raise PtlcError("receiveTimeout must be positive or None")
        try:
            helpers.levelFromName(s["logLevel"])
        except ValueError as e:
            raise PtlcError(str(e))

    def prepareLogging(self):
        """
        Configure logging from the logLevel and logFile settings.
        """
        helpers.prepareLogging(
            filepath=self.settings["logFile"],
            logLvl=helpers.levelFromName(self.settings["logLevel"]),
        )

    def save(self):
        """
        Save the file settings.
        """
        if not self.path:
            raise PtlcError("no settings file path")
        helpers.saveJSON(self.path, self.file, indent=4, sort_keys=True)


swapConfig = None


def load(path=CONFIG_PATH):
    """
    Load and return the current configuration.

    The configuration is only loaded once. Successive calls to the modular `load`
    function will return the same instance.

    Args:
        path (str): Optional. The settings file. Defaults to CONFIG_PATH in the
            data directory, which is created if needed.

    Returns:
        SwapConfig: The current configuration.
    """
    global swapConfig
    if not swapConfig:
        if path == CONFIG_PATH:
            helpers.mkdir(DATA_DIR)
        swapConfig = SwapConfig(path)
    return swapConfig
