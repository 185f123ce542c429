import unittest

from stakesync.core.decoders import (
    ERC20_APPROVAL,
    ERC20_EVENTS,
    ERC20_TRANSFER,
    REWARD_RATE_UPDATED,
    REWARDS_CLAIMED,
    STAKED,
    STAKING_EVENTS,
    WITHDRAWN,
    DecoderStyle,
    get_event_family,
    list_event_families,
)
from stakesync.core.types import DecodeOutcome
from stakesync.tests.utils import (
    ALICE,
    BOB,
    STAKING_ADDRESS,
    address_topic,
    make_indexed_numeric_log,
    make_log,
    make_transfer_log,
    tx_hash,
    uint_topic,
)
from stakesync.utils.hex_utils import event_signature_hash

TRANSFER_TOPIC0 = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
APPROVAL_TOPIC0 = "0x8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925"


class TestEventSignatures(unittest.TestCase):
    def test_erc20_signatures(self):
        self.assertEqual(ERC20_TRANSFER.signature, TRANSFER_TOPIC0)
        self.assertEqual(ERC20_APPROVAL.signature, APPROVAL_TOPIC0)

    def test_staking_signatures(self):
        self.assertEqual(STAKED.signature, event_signature_hash("Staked(address,uint256)"))
        self.assertEqual(
            WITHDRAWN.signature, event_signature_hash("Withdrawn(address,uint256)")
        )
        self.assertEqual(
            REWARDS_CLAIMED.signature,
            event_signature_hash("RewardsClaimed(address,uint256)"),
        )
        self.assertEqual(
            REWARD_RATE_UPDATED.signature,
            event_signature_hash("RewardRateUpdated(uint256)"),
        )

    def test_families(self):
        self.assertEqual(
            [d.event_name for d in STAKING_EVENTS.decoders],
            ["staked", "withdrawn", "rewards_claimed", "reward_rate_updated"],
        )
        self.assertEqual(
            [d.event_name for d in ERC20_EVENTS.decoders],
            ["erc20_transfer", "erc20_approval"],
        )
        self.assertIs(get_event_family("staking"), STAKING_EVENTS)
        self.assertIs(get_event_family("erc20"), ERC20_EVENTS)
        self.assertEqual(list_event_families(), ["erc20", "staking"])
        self.assertIs(STAKING_EVENTS.decoder_for("withdrawn"), WITHDRAWN)

    def test_unknown_family(self):
        with self.assertRaises(ValueError):
            get_event_family("erc721")
        with self.assertRaises(ValueError):
            ERC20_EVENTS.decoder_for("staked")


class TestIndexedNumericDecoder(unittest.TestCase):
    def test_decode_staked(self):
        log = make_indexed_numeric_log(STAKED.signature, ALICE, 1000, 101, tx_hash(1))
        result = STAKED.decode(log)
        self.assertEqual(result.outcome, DecodeOutcome.DECODED)
        self.assertEqual(
            result.args,
            {"user": ALICE, "amount": "1000", "signature": STAKED.signature},
        )

    def test_amount_beyond_64_bits(self):
        amount = 2**255 + 12345
        log = make_indexed_numeric_log(
            WITHDRAWN.signature, BOB, amount, 101, tx_hash(1)
        )
        result = WITHDRAWN.decode(log)
        self.assertEqual(result.outcome, DecodeOutcome.DECODED)
        self.assertEqual(result.args["amount"], str(amount))
        self.assertEqual(int(result.args["amount"]), amount)

    def test_too_few_topics_skipped(self):
        log = make_log(
            STAKING_ADDRESS,
            [REWARDS_CLAIMED.signature, address_topic(ALICE)],
            101,
            tx_hash(1),
        )
        result = REWARDS_CLAIMED.decode(log)
        self.assertEqual(result.outcome, DecodeOutcome.SKIPPED)
        self.assertIsNone(result.args)
        self.assertIn("3 topics", result.reason)

    def test_foreign_topic0_skipped(self):
        log = make_indexed_numeric_log(WITHDRAWN.signature, ALICE, 1, 101, tx_hash(1))
        self.assertEqual(STAKED.decode(log).outcome, DecodeOutcome.SKIPPED)

    def test_short_topic_word_skipped(self):
        log = make_log(
            STAKING_ADDRESS, [STAKED.signature, "0x01", uint_topic(5)], 101, tx_hash(1)
        )
        self.assertEqual(STAKED.decode(log).outcome, DecodeOutcome.SKIPPED)


class TestStructDecoder(unittest.TestCase):
    def test_styles(self):
        self.assertEqual(STAKED.style, DecoderStyle.INDEXED_NUMERIC)
        self.assertEqual(REWARD_RATE_UPDATED.style, DecoderStyle.STRUCT)
        self.assertEqual(ERC20_TRANSFER.style, DecoderStyle.STRUCT)

    def test_decode_transfer(self):
        value = 10**30
        log = make_transfer_log(ERC20_TRANSFER.signature, ALICE, BOB, value, 7, tx_hash(2))
        result = ERC20_TRANSFER.decode(log)
        self.assertEqual(result.outcome, DecodeOutcome.DECODED)
        self.assertEqual(
            result.args,
            {"from": ALICE, "to": BOB, "value": str(value), "signature": TRANSFER_TOPIC0},
        )

    def test_decode_approval(self):
        log = make_transfer_log(ERC20_APPROVAL.signature, ALICE, BOB, 5, 7, tx_hash(2))
        result = ERC20_APPROVAL.decode(log)
        self.assertEqual(result.outcome, DecodeOutcome.DECODED)
        self.assertEqual(result.args["owner"], ALICE)
        self.assertEqual(result.args["spender"], BOB)
        self.assertEqual(result.args["value"], "5")

    def test_decode_reward_rate_updated(self):
        log = make_log(
            STAKING_ADDRESS,
            [REWARD_RATE_UPDATED.signature],
            12,
            tx_hash(3),
            data=uint_topic(2**70),
        )
        result = REWARD_RATE_UPDATED.decode(log)
        self.assertEqual(result.outcome, DecodeOutcome.DECODED)
        self.assertEqual(
            result.args,
            {
                "new_reward_rate": str(2**70),
                "signature": REWARD_RATE_UPDATED.signature,
            },
        )

    def test_truncated_data_malformed(self):
        log = make_log(
            STAKING_ADDRESS,
            [REWARD_RATE_UPDATED.signature],
            12,
            tx_hash(3),
            data="0x0102",
        )
        result = REWARD_RATE_UPDATED.decode(log)
        self.assertEqual(result.outcome, DecodeOutcome.MALFORMED)
        self.assertIsNotNone(result.reason)

    def test_topic_count_mismatch_malformed(self):
        log = make_log(
            STAKING_ADDRESS,
            [ERC20_TRANSFER.signature, address_topic(ALICE)],
            12,
            tx_hash(3),
            data=uint_topic(1),
        )
        self.assertEqual(ERC20_TRANSFER.decode(log).outcome, DecodeOutcome.MALFORMED)

    def test_foreign_topic0_skipped(self):
        log = make_transfer_log(ERC20_APPROVAL.signature, ALICE, BOB, 5, 7, tx_hash(2))
        self.assertEqual(ERC20_TRANSFER.decode(log).outcome, DecodeOutcome.SKIPPED)

    def test_decode_is_pure(self):
        log = make_transfer_log(ERC20_TRANSFER.signature, ALICE, BOB, 9, 7, tx_hash(2))
        self.assertEqual(ERC20_TRANSFER.decode(log), ERC20_TRANSFER.decode(log))
