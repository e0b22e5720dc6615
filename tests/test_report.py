from metalpro.bom_parser import BOMRow
from metalpro.matcher import match_rows
from metalpro.report import build_report, cart_ready_rows, matching_stats, rows_needing_attention


def test_matching_stats_counts_low_as_matched():
    rows = [
        BOMRow(row_index=1, qty=1, match_confidence="high"),
        BOMRow(row_index=2, qty=1, match_confidence="medium"),
        BOMRow(row_index=3, qty=1, match_confidence="low"),
        BOMRow(row_index=4, qty=1, match_confidence="none"),
    ]
    stats = matching_stats(rows)
    assert (stats.total_rows, stats.high, stats.medium, stats.low, stats.unmatched) == (4, 1, 1, 1, 1)
    assert stats.match_rate == 75.0


def test_matching_stats_empty_rows():
    stats = matching_stats([])
    assert stats.total_rows == 0
    assert stats.match_rate == 0.0


def test_match_rate_is_rounded():
    rows = [BOMRow(row_index=i, qty=1, match_confidence="high" if i == 1 else "none") for i in (1, 2, 3)]
    assert matching_stats(rows).match_rate == 33.3


def test_attention_rows_sorted_by_row_index():
    rows = [
        BOMRow(row_index=5, qty=1, match_confidence="none"),
        BOMRow(row_index=2, qty=0, match_confidence="high", errors=["invalid quantity"]),
        BOMRow(row_index=3, qty=1, match_confidence="medium"),
        BOMRow(row_index=1, qty=1, match_confidence="low"),
    ]
    assert [r.row_index for r in rows_needing_attention(rows)] == [1, 2, 5]


def test_cart_ready_excludes_errors_and_unmatched(index):
    rows = match_rows(
        [
            BOMRow(row_index=1, qty=10, family="profiles", dimension="HEA 100", unit="buc"),
            BOMRow(row_index=2, qty=0, family="profiles", dimension="IPE 200", unit="buc"),
            BOMRow(row_index=3, qty=4, family="lemn", unit="buc"),
            BOMRow(row_index=4, qty=2, family="profiles", dimension="IPE 200", unit="buc", is_selected=True),
        ],
        index,
    )
    assert [r.row_index for r in cart_ready_rows(rows)] == [1, 4]
    assert [r.row_index for r in cart_ready_rows(rows, selected_only=True)] == [4]


def test_build_report_totals(index):
    rows = match_rows(
        [
            BOMRow(row_index=1, qty=10, family="profiles", dimension="HEA 100", grade="S235JR", standard="EN 10025"),
            BOMRow(row_index=2, qty=-1, family="lemn", unit="buc"),
        ],
        index,
    )
    report = build_report(rows)
    assert report.stats.high == 1
    assert report.stats.unmatched == 1
    assert report.stats.match_rate == 50.0
    assert [r.row_index for r in report.attention] == [2]
    assert report.error_count == 1
    assert report.warning_count == 1
