from __future__ import annotations

import pytest

from cann_registry.address import address_to_locking_bytecode
from cann_registry.binary import build_op_return
from cann_registry.records import (
    extract_records_from_transaction,
    parse_records,
    record_hash,
    revocation_record,
    serialize_records,
)
from cann_registry.transaction import Transaction

from conftest import ALICE


def test_later_records_override_earlier_ones() -> None:
    assert parse_records(["social.x=@alice", "social.x=@bob"]) == {"social": {"x": "@bob"}}


def test_nested_paths_and_values_with_equals() -> None:
    tree = parse_records(["text.profile.bio=hi", "url.home=https://example.com/?a=b"])
    assert tree == {
        "text": {"profile": {"bio": "hi"}},
        "url": {"home": "https://example.com/?a=b"},
    }


def test_indexed_entries_become_arrays() -> None:
    tree = parse_records(["addr.bch.1=second", "addr.bch.0=first"])
    assert tree == {"addr": {"bch": ["first", "second"]}}


def test_text_meta_joins_entries() -> None:
    tree = parse_records(["text.bio.meta=type:text", "text.bio.0=hello", "text.bio.1=world"])
    assert tree == {"text": {"bio": "hello world"}}


def test_revocation_hides_record() -> None:
    records = ["social.x=@alice", "social.y=@alice", revocation_record("social.x=@alice")]
    assert parse_records(records) == {"social": {"y": "@alice"}}
    assert revocation_record("social.x=@alice") == f"revoked={record_hash('social.x=@alice')}"


def test_revoking_meta_hides_list() -> None:
    records = [
        "addr.bch.meta=type:array",
        "addr.bch.0=q1",
        "social.x=@a",
        revocation_record("addr.bch.meta=type:array"),
    ]
    assert parse_records(records) == {"social": {"x": "@a"}}


def test_malformed_records_are_skipped() -> None:
    assert parse_records(["no-equals-sign", "social=flat", ".x=1", "social.x=ok"]) == {"social": {"x": "ok"}}


def test_serialize_records_can_be_parsed_back() -> None:
    tree = {"social": {"x": "@a"}, "addr": {"bch": ["q1", "q2"]}}
    records = serialize_records(tree)
    assert "addr.bch.meta=type:array" in records
    assert parse_records(records) == tree


def test_non_ascii_digit_segment_is_a_plain_key() -> None:
    crafted = "addr.bch.\u00b2=q"

    assert parse_records(["social.x=@a", crafted]) == {"social": {"x": "@a"}, "addr": {"bch": {"\u00b2": "q"}}}
    assert parse_records(["social.x=@a", crafted, revocation_record(crafted)]) == {"social": {"x": "@a"}}


@pytest.mark.parametrize(
    "tree",
    [
        {"addr": {"bch": []}, "social": {"x": "@a"}},
        {"addr": {"bch": {"0": "q"}}},
        {"addr": {"meta": "q"}},
        {"social": {"X": "@a"}},
        {"social": {"x.y": "@a"}},
    ],
)
def test_serialize_rejects_trees_that_cannot_be_parsed_back(tree) -> None:
    with pytest.raises(ValueError):
        serialize_records(tree)


def test_serialize_keeps_digit_keys_that_parse_back() -> None:
    tree = {"addr": {"0": "q", "7": {"bch": "r"}}, "list": {"3": ["a", "b"]}}
    assert parse_records(serialize_records(tree)) == tree


def test_extract_records_from_transaction() -> None:
    tx = Transaction()
    tx.add_output(0, build_op_return(b"social.x=@alice"))
    tx.add_output(1000, address_to_locking_bytecode(ALICE))
    tx.add_output(10, build_op_return(b"paid=ignored"))
    tx.add_output(0, build_op_return(b"text.bio=hi"))
    tx.add_output(0, b"\x6a")
    assert extract_records_from_transaction(tx) == ["social.x=@alice", "text.bio=hi"]
