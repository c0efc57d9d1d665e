import logging
import os
import pathlib
import sys
from datetime import datetime, timezone

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import disputes`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from disputes.config import get_config_manager  # noqa: E402
from disputes.crypto import KeyRing, sign_contract  # noqa: E402
from disputes.dispute import Dispute  # noqa: E402
from disputes.models import Contract  # noqa: E402
from disputes.observability import ROOT_LOGGER_NAME  # noqa: E402


TRADE_DATE = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)


class RecordingTrigger:
    """Persistence trigger that only counts save requests."""

    def __init__(self):
        self.count = 0

    def queue_up_for_save(self) -> None:
        self.count += 1


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Fresh configuration and no DISPUTES_* environment for every test."""
    for name in list(os.environ):
        if name.startswith("DISPUTES_"):
            monkeypatch.delenv(name, raising=False)
    get_config_manager().reset()
    yield
    get_config_manager().reset()

    # Drop handlers installed by configure_logging so they do not outlive captured streams
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_disputes_managed", False):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def offerer_keys():
    return KeyRing.generate()


@pytest.fixture(scope="session")
def taker_keys():
    return KeyRing.generate()


@pytest.fixture(scope="session")
def arbitrator_keys():
    return KeyRing.generate()


@pytest.fixture
def contract(offerer_keys, taker_keys):
    return Contract(
        offer_id="abc123-offer",
        trade_amount=25_000_000,
        trade_price=6_512_300,
        currency_code="EUR",
        payment_method_id="SEPA",
        taker_fee_tx_id="f" * 64,
        arbitrator_address="arbitrator.onion:9999",
        buyer_is_offerer=True,
        offerer_pub_key_ring=offerer_keys.pub_key_ring,
        taker_pub_key_ring=taker_keys.pub_key_ring,
        offerer_payout_address="bc1qofferer",
        taker_payout_address="bc1qtaker",
    )


@pytest.fixture
def trigger():
    return RecordingTrigger()


@pytest.fixture
def make_dispute(contract, offerer_keys, taker_keys, arbitrator_keys, trigger):
    """Factory for disputes bound to ``trigger``; keyword overrides apply."""
    contract_as_json = contract.to_json()

    def _make(**overrides):
        fields = dict(
            storage=trigger,
            trade_id="abc123",
            trader_id=1,
            dispute_opener_is_buyer=True,
            dispute_opener_is_offerer=True,
            trader_pub_key_ring=offerer_keys.pub_key_ring,
            trade_date=TRADE_DATE,
            contract=contract,
            contract_hash=contract.hash(),
            deposit_tx_serialized=b"\x02\x00\x00\x00deposit",
            payout_tx_serialized=None,
            deposit_tx_id="d" * 64,
            payout_tx_id=None,
            contract_as_json=contract_as_json,
            offerer_contract_signature=sign_contract(contract_as_json, offerer_keys),
            taker_contract_signature=sign_contract(contract_as_json, taker_keys),
            arbitrator_pub_key_ring=arbitrator_keys.pub_key_ring,
            is_support_ticket=False,
        )
        fields.update(overrides)
        return Dispute(**fields)

    return _make


@pytest.fixture
def dispute(make_dispute):
    return make_dispute()
