"""Tests for the pure audit pipeline (audit_snapshot / audit_view)."""

import pytest

from erp_kernel.domain.snapshot import read_snapshot
from erp_kernel.domain.statuses import StatusVocabulary
from erp_kernel.exceptions import MalformedSnapshotError
from erp_engines.audit.auditor import audit_snapshot, audit_view
from erp_engines.audit.checker import ALL_CHECKS
from erp_engines.audit.issue_types import IssueCategory, IssueCode, Severity


SNAPSHOT = {
    "projects": [{
        "Project_ID": "PRJ-1",
        "Status": "U proizvodnji",
        "products": [
            {"Product_ID": "P-1", "Name": "Ormar", "Status": "U proizvodnji"},
            {"Product_ID": "P-2", "Name": "Komoda", "Status": "Rezanje"},
        ],
    }],
    "workOrders": [{
        "Work_Order_ID": "W1",
        "Work_Order_Number": "RN-001",
        "Status": "Završeno",
        "Total_Value": 1000,
        "Profit": 300,
        "items": [
            {
                "ID": "I1", "Project_ID": "PRJ-1", "Product_ID": "P-2",
                "Product_Name": "Komoda", "Status": "Završeno",
                "Product_Value": 1000, "Material_Cost": 300, "Actual_Labor_Cost": 200,
                "Started_At": "2026-01-10T08:00:00Z",
            },
        ],
    }],
}


class TestAuditSnapshot:
    def test_end_to_end(self):
        report = audit_snapshot(SNAPSHOT)

        assert report.checks_performed == ALL_CHECKS
        assert report.total_issues == 4
        assert report.high_count == 2
        assert report.medium_count == 2
        codes = {i.code for i in report.all_issues}
        assert codes == {
            IssueCode.LEGACY_PRODUCT_STATUS,
            IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY,
            IssueCode.PROFIT_MISMATCH,
            IssueCode.MISSING_COMPLETED_AT,
        }
        assert report.category_counts() == {
            IssueCategory.PRODUCT_STATUS: 1,
            IssueCategory.SYNC_MISMATCH: 1,
            IssueCategory.CALCULATION: 1,
            IssueCategory.MISSING_DATA: 1,
        }

    def test_digest_recorded(self):
        report = audit_snapshot(SNAPSHOT)
        assert report.snapshot_digest == read_snapshot(SNAPSHOT).digest

    def test_deterministic(self):
        assert audit_snapshot(SNAPSHOT) == audit_snapshot(SNAPSHOT)

    def test_parallel_same_report(self):
        assert audit_snapshot(SNAPSHOT, parallel=True) == audit_snapshot(SNAPSHOT)

    def test_empty_snapshot_is_clean(self):
        assert audit_snapshot({}).is_clean

    def test_malformed_snapshot_propagates(self):
        with pytest.raises(MalformedSnapshotError):
            audit_snapshot({"workOrders": {"W1": {}}})

    def test_enabled_checks_subset(self):
        report = audit_snapshot(SNAPSHOT, enabled_checks=["financial_integrity"])
        assert report.checks_performed == ("financial_integrity",)
        assert [i.code for i in report.all_issues] == [IssueCode.PROFIT_MISMATCH]

    def test_custom_vocabulary(self):
        vocabulary = StatusVocabulary(product_aliases={"Gotovo": "Ready"})
        snapshot = {"products": [
            {"Product_ID": "P-1", "Project_ID": "PRJ-1", "Status": "Gotovo"},
        ]}
        assert audit_snapshot(snapshot, vocabulary=vocabulary).is_clean
        assert audit_snapshot(snapshot).low_count == 1


class TestAuditView:
    def test_display_limit_and_tolerance(self):
        view = read_snapshot(SNAPSHOT)
        report = audit_view(view, profit_tolerance=1000, display_limit=0)
        assert IssueCode.PROFIT_MISMATCH not in {i.code for i in report.all_issues}
        assert all(g.issues == () for g in report.by_category)
        assert report.by_severity[Severity.LOW] == 0
