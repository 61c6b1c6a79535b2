"""Tests for summing records into per-key totals."""

import random

from procmem.aggregate import amass, drop_id, overall_totals, with_pid, with_pid_and_name
from procmem.models import MemUsage, PerProc


def pp(private, proportional, resident=None, swap=0, proportional_swap=None):
    return PerProc(
        private=private,
        resident=proportional if resident is None else resident,
        proportional=proportional,
        swap=swap,
        proportional_swap=swap if proportional_swap is None else proportional_swap,
    )


RECORDS = [
    (100, "worker", pp(3000, 5000, resident=6000)),
    (200, "worker", pp(1000, 3000, resident=4000, swap=100)),
    (300, "bash", pp(800, 950, resident=2000, swap=12, proportional_swap=4)),
]


def test_keyers():
    record = pp(1, 2)

    assert with_pid(7, "bash", record) == (7, record)
    assert with_pid_and_name(7, "bash", record) == ((7, "bash"), record)
    assert drop_id(7, "bash", record) == ("bash", record)


def test_empty():
    assert amass(True, []) == {}


def test_by_pid_is_identity():
    totals = amass(True, (with_pid(*record) for record in RECORDS))

    assert set(totals) == {100, 200, 300}
    assert totals[100] == MemUsage(private=5000, shared=2000, swap=0, resident=6000, count=1)
    assert totals[300].swap == 4


def test_by_name_sums_fields():
    totals = amass(True, (drop_id(*record) for record in RECORDS))

    worker = totals["worker"]
    assert worker.private == 8000
    assert worker.shared == 4000
    assert worker.swap == 100
    assert worker.resident == 10000
    assert worker.count == 2


def test_with_pss_private_is_sum_of_proportional():
    totals = amass(True, (drop_id(*record) for record in RECORDS))

    assert sum(usage.private for usage in totals.values()) == sum(r[2].proportional for r in RECORDS)


def test_order_does_not_matter():
    shuffled = list(RECORDS) * 3
    expected = amass(True, (drop_id(*record) for record in shuffled))

    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert amass(True, (drop_id(*record) for record in shuffled)) == expected


def test_without_pss_keeps_largest_shared():
    records = [
        ("httpd", pp(1000, 1000, resident=5000)),
        ("httpd", pp(1200, 1200, resident=4000)),
    ]

    usage = amass(False, records)["httpd"]

    assert usage.shared == 4000
    assert usage.private == 2200 + 4000
    assert usage.count == 2


def test_overall_totals():
    totals = amass(True, (drop_id(*record) for record in RECORDS))

    assert overall_totals(totals.values()) == (8950, 104)
    assert overall_totals([]) == (0, 0)
