"""Key ring and contract signature tests."""

import pytest

from disputes.crypto import KeyRing, PubKeyRing, sign_contract, verify_contract_signature


class TestPubKeyRing:

    def test_structural_equality(self, offerer_keys):
        ring = offerer_keys.pub_key_ring
        copy = PubKeyRing.from_dict(ring.to_dict())
        assert copy == ring
        assert hash(copy) == hash(ring)
        assert copy.key_id == ring.key_id

    def test_distinct_keys_differ(self, offerer_keys, taker_keys):
        assert offerer_keys.pub_key_ring != taker_keys.pub_key_ring

    @pytest.mark.parametrize("sig_key,enc_key,error", [
        (b"\x00" * 31, b"\x00" * 32, ValueError),
        (b"\x00" * 32, b"\x00" * 33, ValueError),
        ("not bytes", b"\x00" * 32, TypeError),
    ])
    def test_key_length_checked(self, sig_key, enc_key, error):
        with pytest.raises(error):
            PubKeyRing(signature_pub_key=sig_key, encryption_pub_key=enc_key)

    def test_repr_hides_keys(self, offerer_keys):
        assert repr(offerer_keys.pub_key_ring) == f"PubKeyRing(key_id={offerer_keys.pub_key_ring.key_id})"


class TestSignatures:

    def test_sign_and_verify(self, offerer_keys):
        signature = offerer_keys.sign(b"payload")
        assert offerer_keys.pub_key_ring.verify(b"payload", signature)

    def test_wrong_key_fails(self, offerer_keys, taker_keys):
        signature = offerer_keys.sign(b"payload")
        assert not taker_keys.pub_key_ring.verify(b"payload", signature)

    def test_tampered_data_fails(self, offerer_keys):
        signature = offerer_keys.sign(b"payload")
        assert not offerer_keys.pub_key_ring.verify(b"payload!", signature)

    @pytest.mark.parametrize("signature", ["", "AAAA", "!!!not base64!!!"])
    def test_malformed_signature_fails(self, offerer_keys, signature):
        assert not offerer_keys.pub_key_ring.verify(b"payload", signature)

    def test_contract_signature(self, contract, offerer_keys, taker_keys):
        text = contract.to_json()
        signature = sign_contract(text, offerer_keys)
        assert verify_contract_signature(text, signature, offerer_keys.pub_key_ring)
        assert not verify_contract_signature(text, signature, taker_keys.pub_key_ring)
        assert not verify_contract_signature(text + " ", signature, offerer_keys.pub_key_ring)

    def test_generated_rings_are_unique(self):
        assert KeyRing.generate().pub_key_ring != KeyRing.generate().pub_key_ring


class TestContract:

    def test_roles(self, contract, offerer_keys, taker_keys):
        assert contract.buyer_is_offerer
        assert contract.buyer_pub_key_ring == offerer_keys.pub_key_ring
        assert contract.seller_pub_key_ring == taker_keys.pub_key_ring

    def test_json_is_canonical(self, contract):
        text = contract.to_json()
        assert ", " not in text and ": " not in text
        assert text.index('"arbitrator_address"') < text.index('"trade_amount"')

    def test_hash_is_stable(self, contract):
        from disputes.models import Contract
        assert Contract.from_dict(contract.to_dict()).hash() == contract.hash()
        assert len(contract.hash()) == 32
