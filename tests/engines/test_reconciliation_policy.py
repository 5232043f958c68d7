"""
Tests for ReconciliationPolicy -- issue to corrective action mapping.

Covers each issue code's action, report-only codes, localized status
labels, nested records left to the report, per-document merging in
plan_actions, and legacy map validation.
"""

from decimal import Decimal

import pytest

from erp_kernel.domain.snapshot import read_snapshot
from erp_kernel.domain.statuses import ProductStatus, StatusVocabulary
from erp_engines.audit.checker import ConsistencyChecker
from erp_engines.audit.issue_types import (
    EntityType,
    Issue,
    IssueCategory,
    IssueCode,
    Severity,
    refs_of,
)
from erp_engines.reconciliation.action_types import (
    ActionPlan,
    CorrectiveAction,
    to_document_value,
)
from erp_engines.reconciliation.policy import (
    DEFAULT_LEGACY_MAP,
    ReconciliationPolicy,
)


def _product_issue(code, severity=Severity.MEDIUM, product_id="P-1", **details):
    return Issue(
        code=code,
        category=IssueCategory.PRODUCT_STATUS,
        severity=severity,
        description=f"{code.value} {product_id}",
        refs=refs_of(
            (EntityType.PROJECT, "PRJ-1"),
            (EntityType.PRODUCT, product_id),
        ),
        details=details or None,
    )


def _financial_issue(code=IssueCode.PROFIT_MISMATCH, wo_id="W1", total="1000",
                     profit="500", margin="50.00"):
    return Issue(
        code=code,
        category=IssueCategory.CALCULATION,
        severity=Severity.HIGH if code == IssueCode.PROFIT_MISMATCH else Severity.MEDIUM,
        description=f"{code.value} {wo_id}",
        refs=refs_of((EntityType.WORK_ORDER, wo_id)),
        details={
            "calculated_total_value": Decimal(total),
            "calculated_profit": Decimal(profit),
            "calculated_profit_margin": Decimal(margin),
        },
    )


@pytest.fixture
def policy():
    return ReconciliationPolicy()


# =============================================================================
# propose_action
# =============================================================================


class TestProposeAction:
    def test_scenario_c_in_production_becomes_cutting(self, policy):
        view = read_snapshot({
            "projects": [{"Project_ID": "PRJ-1", "Status": "Odobreno"}],
            "products": [{
                "Product_ID": "P-1", "Project_ID": "PRJ-1", "Status": "U proizvodnji",
            }],
        })
        issue = ConsistencyChecker().check_product_status(view=view)[0]

        action = policy.propose_action(issue)
        assert action.target_collection == "products"
        assert action.target_id == "P-1"
        assert dict(action.field_updates) == {"Status": "Rezanje"}
        assert action.reason == IssueCode.LEGACY_PRODUCT_STATUS

    def test_nested_product_is_report_only(self, policy, captured_logs):
        view = read_snapshot({"projects": [{
            "Project_ID": "PRJ-1",
            "Status": "Odobreno",
            "products": [{"Product_ID": "P-1", "Status": "U proizvodnji"}],
        }]})
        issue = ConsistencyChecker().check_product_status(view=view)[0]

        assert issue.detail("product_collection") == "projects"
        assert policy.propose_action(issue) is None
        logged = [r for r in captured_logs() if r["message"] == "nested_record_report_only"]
        assert logged[0]["product_id"] == "P-1"

    @pytest.mark.parametrize("legacy,expected", [
        ("WaitingForProduction", "Na čekanju"),
        ("InProduction", "Rezanje"),
        ("Done", "Instalirano"),
    ])
    def test_legacy_map(self, policy, legacy, expected):
        issue = _product_issue(IssueCode.LEGACY_PRODUCT_STATUS, legacy_status=legacy)
        assert policy.propose_action(issue).field_updates["Status"] == expected

    def test_completed_item_sets_ready(self, policy):
        issue = _product_issue(IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY, Severity.HIGH)
        action = policy.propose_action(issue)
        assert action.field_updates["Status"] == "Spremno"
        assert action.severity == Severity.HIGH

    def test_in_progress_item_uses_suggested_status(self, policy):
        issue = _product_issue(
            IssueCode.IN_PROGRESS_ITEM_PRODUCT_WAITING, suggested_status="Edging",
        )
        assert policy.propose_action(issue).field_updates["Status"] == "Kantiranje"

    @pytest.mark.parametrize("suggested", [None, "Nonsense", "Done"])
    def test_in_progress_item_falls_back_to_assembly(self, policy, suggested):
        issue = _product_issue(
            IssueCode.IN_PROGRESS_ITEM_PRODUCT_WAITING, suggested_status=suggested,
        )
        assert policy.propose_action(issue).field_updates["Status"] == "Sklapanje"

    def test_profit_mismatch_recomputes_work_order(self, policy):
        action = policy.propose_action(_financial_issue())
        assert action.target == ("workOrders", "W1")
        assert dict(action.field_updates) == {
            "Total_Value": Decimal("1000"),
            "Profit": Decimal("500"),
            "Profit_Margin": Decimal("50.00"),
        }
        assert action.document_updates() == {
            "Total_Value": 1000,
            "Profit": 500,
            "Profit_Margin": 50,
        }

    def test_missing_total_value_recomputes_work_order(self, policy):
        action = policy.propose_action(_financial_issue(IssueCode.MISSING_TOTAL_VALUE))
        assert action.reason == IssueCode.MISSING_TOTAL_VALUE
        assert action.field_updates["Total_Value"] == Decimal("1000")

    def test_zero_item_value_keeps_stored_totals(self, policy):
        issue = _financial_issue(total="0", profit="-20", margin="0")
        assert policy.propose_action(issue) is None

    def test_financial_issue_without_sums_is_report_only(self, policy):
        issue = Issue(
            code=IssueCode.MISSING_TOTAL_VALUE,
            category=IssueCategory.MISSING_DATA,
            severity=Severity.MEDIUM,
            description="no sums",
            refs=refs_of((EntityType.WORK_ORDER, "W1")),
        )
        assert policy.propose_action(issue) is None

    def test_work_order_rollup(self, policy):
        issue = Issue(
            code=IssueCode.WORK_ORDER_STATUS_STALE,
            category=IssueCategory.SYNC_MISMATCH,
            severity=Severity.LOW,
            description="stale",
            refs=refs_of((EntityType.WORK_ORDER, "W1")),
            details={"derived_status": "Completed"},
        )
        action = policy.propose_action(issue)
        assert action.target == ("workOrders", "W1")
        assert dict(action.field_updates) == {"Status": "Završeno"}

    def test_project_rollup(self, policy):
        issue = Issue(
            code=IssueCode.PROJECT_STATUS_STALE,
            category=IssueCategory.SYNC_MISMATCH,
            severity=Severity.LOW,
            description="stale",
            refs=refs_of((EntityType.PROJECT, "PRJ-1")),
            details={"derived_status": "InProduction"},
        )
        action = policy.propose_action(issue)
        assert action.target == ("projects", "PRJ-1")
        assert dict(action.field_updates) == {"Status": "U proizvodnji"}

    @pytest.mark.parametrize("code", [
        IssueCode.UNKNOWN_PRODUCT_STATUS,
        IssueCode.MISSING_STARTED_AT,
        IssueCode.MISSING_COMPLETED_AT,
        IssueCode.SUBTASK_COST_MISMATCH,
        IssueCode.MISSING_LABOR_COST,
    ])
    def test_report_only_codes(self, policy, code):
        assert policy.propose_action(_product_issue(code)) is None

    def test_product_issue_without_product_ref(self, policy):
        issue = Issue(
            code=IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY,
            category=IssueCategory.SYNC_MISMATCH,
            severity=Severity.HIGH,
            description="orphan",
        )
        assert policy.propose_action(issue) is None


def _item_issue(collection="workOrderItems", **details):
    return Issue(
        code=IssueCode.ITEM_STATUS_STALE,
        category=IssueCategory.SYNC_MISMATCH,
        severity=Severity.MEDIUM,
        description="stale item",
        refs=refs_of(
            (EntityType.WORK_ORDER, "W1"),
            (EntityType.WORK_ORDER_ITEM, "I1"),
        ),
        details={"derived_status": "Completed", "item_collection": collection, **details},
    )


class TestItemCompletion:
    def test_flat_item_completed_with_derived_timestamps(self, policy):
        issue = _item_issue(
            derived_started_at="2024-01-02T08:00:00",
            derived_completed_at="2024-01-03T16:00:00",
        )
        action = policy.propose_action(issue)
        assert action.target == ("workOrderItems", "I1")
        assert dict(action.field_updates) == {
            "Status": "Završeno",
            "Started_At": "2024-01-02T08:00:00",
            "Completed_At": "2024-01-03T16:00:00",
        }

    def test_existing_timestamps_not_overwritten(self, policy):
        action = policy.propose_action(_item_issue())
        assert dict(action.field_updates) == {"Status": "Završeno"}

    def test_nested_item_is_report_only(self, policy):
        assert policy.propose_action(_item_issue(collection="workOrders")) is None

    def test_checker_issue_on_flat_item(self, policy):
        view = read_snapshot({
            "workOrders": [{"Work_Order_ID": "W1", "Status": "U toku"}],
            "workOrderItems": [{
                "ID": "I1",
                "Work_Order_ID": "W1",
                "Status": "U toku",
                "Started_At": "2024-01-01T07:00:00",
                "Processes": [
                    {"Process_Name": "Rezanje", "Status": "Završeno",
                     "Completed_At": "2024-01-02T10:00:00"},
                    {"Process_Name": "Sklapanje", "Status": "Završeno",
                     "Completed_At": "2024-01-04T12:00:00"},
                ],
            }],
        })
        issue = ConsistencyChecker().check_item_process_rollup(view=view)[0]

        action = policy.propose_action(issue)
        assert dict(action.field_updates) == {
            "Status": "Završeno",
            "Completed_At": "2024-01-04T12:00:00",
        }


class TestStatusLabels:
    def test_canonical_values_without_aliases(self):
        policy = ReconciliationPolicy(vocabulary=StatusVocabulary(
            product_aliases={}, item_aliases={}, work_order_aliases={}, project_aliases={},
        ))
        not_ready = _product_issue(IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY, Severity.HIGH)
        legacy = _product_issue(IssueCode.LEGACY_PRODUCT_STATUS, legacy_status="InProduction")

        assert policy.propose_action(not_ready).field_updates["Status"] == "Ready"
        assert policy.propose_action(legacy).field_updates["Status"] == "Cutting"
        assert policy.propose_action(_item_issue()).field_updates["Status"] == "Completed"

    def test_configured_label_written(self):
        policy = ReconciliationPolicy(vocabulary=StatusVocabulary(
            product_aliases={"Gotovo": "Ready"},
        ))
        issue = _product_issue(IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY, Severity.HIGH)
        assert policy.propose_action(issue).field_updates["Status"] == "Gotovo"

    def test_written_label_reads_back_as_target(self, policy):
        vocab = policy.vocabulary
        for status in ProductStatus:
            assert vocab.product_status(vocab.product_label(status)) == status


# =============================================================================
# plan_actions
# =============================================================================


class TestPlanActions:
    def test_empty(self, policy):
        plan = policy.plan_actions([])
        assert plan.is_empty
        assert len(plan) == 0
        assert plan.report_only == ()

    def test_report_only_collected(self, policy):
        unknown = _product_issue(IssueCode.UNKNOWN_PRODUCT_STATUS, Severity.LOW)
        legacy = _product_issue(IssueCode.LEGACY_PRODUCT_STATUS, legacy_status="Done")
        plan = policy.plan_actions([unknown, legacy])
        assert len(plan) == 1
        assert plan.report_only == (unknown,)

    def test_stronger_issue_wins_conflicting_field(self, policy, captured_logs):
        legacy = _product_issue(
            IssueCode.LEGACY_PRODUCT_STATUS, Severity.MEDIUM, legacy_status="InProduction",
        )
        not_ready = _product_issue(IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY, Severity.HIGH)

        plan = policy.plan_actions([legacy, not_ready])

        assert len(plan) == 1
        action = plan.actions[0]
        assert action.field_updates["Status"] == "Spremno"
        assert action.reasons == (
            IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY,
            IssueCode.LEGACY_PRODUCT_STATUS,
        )
        assert action.severity == Severity.HIGH
        conflicts = [r for r in captured_logs() if r["message"] == "action_field_conflict"]
        assert conflicts[0]["fields"] == ["Status"]

    def test_merge_same_work_order(self, policy):
        mismatch = _financial_issue(IssueCode.PROFIT_MISMATCH)
        missing = _financial_issue(IssueCode.MISSING_TOTAL_VALUE)
        plan = policy.plan_actions([missing, mismatch])
        assert len(plan) == 1
        assert plan.actions[0].reasons == (
            IssueCode.PROFIT_MISMATCH,
            IssueCode.MISSING_TOTAL_VALUE,
        )

    def test_distinct_targets_kept_apart(self, policy):
        plan = policy.plan_actions([
            _product_issue(IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY, Severity.HIGH, "P-1"),
            _product_issue(IssueCode.COMPLETED_ITEM_PRODUCT_NOT_READY, Severity.HIGH, "P-2"),
            _financial_issue(),
        ])
        assert [a.target for a in plan.actions] == [
            ("products", "P-1"),
            ("products", "P-2"),
            ("workOrders", "W1"),
        ]

    def test_plan_is_deterministic(self, policy):
        issues = [
            _product_issue(IssueCode.LEGACY_PRODUCT_STATUS, legacy_status="Done"),
            _financial_issue(),
        ]
        assert policy.plan_actions(issues) == policy.plan_actions(issues)


# =============================================================================
# Legacy map validation and action types
# =============================================================================


class TestLegacyMapValidation:
    def test_default(self, policy):
        assert dict(policy.legacy_map) == dict(DEFAULT_LEGACY_MAP)

    def test_custom_target(self):
        policy = ReconciliationPolicy({
            ProductStatus.WAITING_FOR_PRODUCTION: ProductStatus.MATERIALS_ORDERED,
            ProductStatus.IN_PRODUCTION: ProductStatus.ASSEMBLY,
            ProductStatus.DONE: ProductStatus.READY,
        })
        issue = _product_issue(IssueCode.LEGACY_PRODUCT_STATUS, legacy_status="InProduction")
        assert policy.propose_action(issue).field_updates["Status"] == "Sklapanje"

    def test_incomplete_map_rejected(self):
        with pytest.raises(ValueError, match="no target"):
            ReconciliationPolicy({ProductStatus.DONE: ProductStatus.INSTALLED})

    def test_legacy_target_rejected(self):
        with pytest.raises(ValueError, match="not a current status"):
            ReconciliationPolicy({
                ProductStatus.WAITING_FOR_PRODUCTION: ProductStatus.PENDING,
                ProductStatus.IN_PRODUCTION: ProductStatus.DONE,
                ProductStatus.DONE: ProductStatus.INSTALLED,
            })

    def test_current_key_rejected(self):
        with pytest.raises(ValueError, match="not a legacy status"):
            ReconciliationPolicy({
                **DEFAULT_LEGACY_MAP,
                ProductStatus.CUTTING: ProductStatus.EDGING,
            })


class TestActionTypes:
    def test_action_requires_updates_and_reasons(self):
        with pytest.raises(ValueError):
            CorrectiveAction("products", "P-1", {}, (IssueCode.PROFIT_MISMATCH,))
        with pytest.raises(ValueError):
            CorrectiveAction("products", "P-1", {"Status": "Ready"}, ())

    def test_field_updates_are_read_only(self):
        action = CorrectiveAction(
            "products", "P-1", {"Status": "Ready"}, (IssueCode.LEGACY_PRODUCT_STATUS,),
        )
        with pytest.raises(TypeError):
            action.field_updates["Status"] = "Pending"

    def test_to_dict(self):
        action = CorrectiveAction(
            "workOrders", "W1",
            {"Profit": Decimal("12.50")},
            (IssueCode.PROFIT_MISMATCH,),
        )
        assert action.to_dict() == {
            "targetCollection": "workOrders",
            "targetId": "W1",
            "fieldUpdates": {"Profit": 12.5},
            "reason": "PROFIT_MISMATCH",
        }

    @pytest.mark.parametrize("value,expected", [
        (Decimal("10"), 10),
        (Decimal("10.00"), 10),
        (Decimal("-3.25"), -3.25),
        (ProductStatus.READY, "Ready"),
        ("Ready", "Ready"),
    ])
    def test_to_document_value(self, value, expected):
        converted = to_document_value(value)
        assert converted == expected
        assert type(converted) is type(expected)

    def test_empty_plan(self):
        assert ActionPlan().is_empty
