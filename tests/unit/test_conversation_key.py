from __future__ import annotations

import itertools

import pytest

from dm_service.domain.value_objects.conversation_key import ConversationKey, address_of

IDS = [1, 2, 3, 9, 10, 12, 100, 2**40]


@pytest.mark.parametrize("a,b", list(itertools.combinations(IDS, 2)))
def test_address_is_order_independent(a, b):
    assert address_of(a, b) == address_of(b, a)
    assert hash(address_of(a, b)) == hash(address_of(b, a))


def test_distinct_counterparts_give_distinct_keys():
    keys = {address_of(1, other) for other in IDS if other != 1}
    assert len(keys) == len(IDS) - 1


def test_members_sorted_numerically():
    key = address_of(12, 3)
    assert key.members == (3, 12)
    assert str(key) == "3-12"


def test_counterpart_of():
    key = address_of(5, 7)
    assert key.counterpart_of(5) == 7
    assert key.counterpart_of(7) == 5
    assert key.involves(5) and not key.involves(6)
    with pytest.raises(ValueError):
        key.counterpart_of(6)


def test_same_identity_is_not_a_conversation():
    with pytest.raises(ValueError):
        address_of(4, 4)


def test_direct_construction_requires_ascending_members():
    with pytest.raises(ValueError):
        ConversationKey(9, 2)
