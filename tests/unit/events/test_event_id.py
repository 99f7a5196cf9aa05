# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import pytest

from ledgerpipe.events.event_id import (
    EventIdParts,
    create_event_id,
    create_event_id_from_parts,
    create_toid,
    is_event_id,
    is_toid,
    parse_event_id,
    parse_toid,
)


class TestToid:
    """Total order ids packing ledger, transaction and operation."""

    @pytest.mark.fast
    def test_first_operation_of_first_ledger(self):
        assert create_toid(1, 1, 1) == "0000000004294971392"

    @pytest.mark.fast
    def test_is_zero_padded_to_nineteen_digits(self):
        assert len(create_toid(0, 1, 1)) == 19
        assert create_toid(0, 1, 1) == "0000000000000004096"

    @pytest.mark.fast
    def test_parse_recovers_components(self):
        assert parse_toid(create_toid(123_456, 7, 3)) == (123_456, 7, 3)

    @pytest.mark.fast
    def test_ordering_follows_ledger_then_transaction(self):
        ids = [create_toid(10, 2, 1), create_toid(10, 1, 4), create_toid(9, 500, 1)]
        assert sorted(ids) == [create_toid(9, 500, 1), create_toid(10, 1, 4), create_toid(10, 2, 1)]

    @pytest.mark.fast
    @pytest.mark.parametrize(
        "ledger, tx, op",
        [(-1, 1, 1), (2_147_483_648, 1, 1), (1, 0, 1), (1, 1_048_576, 1), (1, 1, 0), (1, 1, 4_096)],
    )
    def test_out_of_range_components(self, ledger, tx, op):
        with pytest.raises(ValueError):
            create_toid(ledger, tx, op)

    @pytest.mark.fast
    def test_is_toid(self):
        assert is_toid("0000000004294971392")
        assert not is_toid("-1")
        assert not is_toid("abc")
        assert not is_toid("9223372036854775808")


class TestEventId:
    """Event ids: TOID plus zero-based event index."""

    @pytest.mark.fast
    def test_event_index_is_zero_based_on_the_wire(self):
        assert create_event_id("0000000004294971392", 1) == "0000000004294971392-0000000000"
        assert create_event_id("4294971392", 3) == "0000000004294971392-0000000002"

    @pytest.mark.fast
    def test_from_parts_and_back(self):
        event_id = create_event_id_from_parts(95_000, 4, 2, 3)

        assert is_event_id(event_id)
        assert parse_event_id(event_id) == EventIdParts(95_000, 4, 2, 3)

    @pytest.mark.fast
    def test_invalid_event_index(self):
        with pytest.raises(ValueError):
            create_event_id("0000000004294971392", 0)

    @pytest.mark.fast
    @pytest.mark.parametrize(
        "value", ["", "0000000004294971392", "0000000004294971392-1", "x" * 19 + "-0000000000"]
    )
    def test_malformed_ids_rejected(self, value):
        assert not is_event_id(value)
        with pytest.raises(ValueError):
            parse_event_id(value)
