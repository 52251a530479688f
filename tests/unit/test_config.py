"""
Copyright (c) 2020, The Decred developers
See LICENSE for details
"""

import json
import logging

import pytest

from ptlc import PtlcError
from ptlc import config
from ptlc.config import INITIATOR, RESPONDER, SwapConfig
from ptlc.util import helpers


def validConfig(**k):
    settings = dict(
        role=INITIATOR,
        seed="ab" * 32,
        assetId="ZNN",
        amount=1,
        counterAssetId="QSR",
        counterAmount=2,
    )
    settings.update(k)
    return SwapConfig(**settings)


def test_defaults():
    cfg = SwapConfig()
    for k, v in config.DEFAULTS.items():
        assert cfg.get(k) == v
        assert getattr(cfg, k) == v
    assert cfg.isInitiator
    assert not SwapConfig(role=RESPONDER).isInitiator
    with pytest.raises(AttributeError):
        cfg.notASetting
    with pytest.raises(PtlcError):
        SwapConfig(notASetting=1)


def test_file(tmp_path):
    path = tmp_path / "ptlc.conf"
    path.write_text(json.dumps({"role": RESPONDER, "amount": 5, "extra": True}))
    cfg = SwapConfig(path, amount=7)
    assert cfg.role == RESPONDER
    # Keyword overrides win over the file.
    assert cfg.amount == 7
    assert cfg.get("extra") is None

    cfg.set("assetId", "QSR")
    assert cfg.assetId == "QSR"
    with pytest.raises(PtlcError):
        cfg.set("extra", 1)
    cfg.save()
    saved = json.loads(path.read_text())
    assert saved["assetId"] == "QSR"
    assert saved["role"] == RESPONDER

    # A missing file is created empty.
    newPath = tmp_path / "new.conf"
    assert SwapConfig(newPath).settings == config.DEFAULTS
    assert newPath.is_file()

    with pytest.raises(PtlcError):
        SwapConfig().save()


@pytest.mark.parametrize(
    "overrides",
    [
        {"role": "broker"},
        {"seed": None},
        {"seed": "xyz"},
        {"assetId": ""},
        {"counterAssetId": None},
        {"amount": 0},
        {"counterAmount": -1},
        {"amount": 1.5},
        {"safetyWindow": 0},
        {"expirationMargin": 5000, "safetyWindow": 10000},
        {"pollInterval": 0},
        {"confirmationTimeout": -1},
        {"receiveTimeout": 0},
        {"amount": True},
        {"counterAmount": "5"},
        {"safetyWindow": True},
        {"pollInterval": None},
        {"confirmationTimeout": "10"},
        {"receiveTimeout": "5"},
        {"receiveTimeout": False},
        {"logLevel": "chatty"},
    ],
)
def test_validate_rejects(overrides):
    with pytest.raises(PtlcError):
        validConfig(**overrides).validate()


def test_validate():
    validConfig().validate()
    validConfig(receiveTimeout=30, logLevel="debug").validate()
    validConfig(pollInterval=0.5, receiveTimeout=2.5).validate()
    assert config.isPositive(1)
    assert config.isPositive(0.1)
    assert not config.isPositive(True)
    assert not config.isPositive(1.5, int)


def test_prepareLogging(tmp_path):
    path = tmp_path / "ptlc.log"
    cfg = validConfig(logLevel="debug", logFile=str(path))
    cfg.prepareLogging()
    logger = helpers.getLogger("CONFIGTEST")
    assert logger.getEffectiveLevel() == logging.DEBUG
    logger.debug("something")
    assert path.is_file()
    helpers.prepareLogging()


def test_load(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "swapConfig", None)
    path = tmp_path / "load.conf"
    cfg = config.load(path)
    assert config.load(path) is cfg
    assert config.load() is cfg
