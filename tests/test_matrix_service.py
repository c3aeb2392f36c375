"""Tests for approval matrix resolution and rule maintenance."""
from decimal import Decimal

import pytest

from approvals.core.exceptions import (
    InvalidConfigurationError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from approvals.models import ApprovalLevel, AuditLog
from approvals.services.matrix_service import matrix_service, validate_levels

from factories import ADMIN, add_document, add_rule


class TestResolve:

    def test_department_specific_rule_wins_over_generic(self, seeded):
        add_rule(seeded, department=None, roles=("supervisor", "manager"))
        sales = add_rule(seeded, department="sales", roles=("manager",))

        route = matrix_service.resolve(seeded, "quotation", "sales", Decimal("5000"))

        assert route.rule_id == sales.id
        assert [lvl.role for lvl in route.levels] == ["manager"]

    def test_narrower_band_wins(self, seeded):
        add_rule(seeded, min_amount="0", max_amount="100000", roles=("admin",))
        narrow = add_rule(seeded, min_amount="1000", max_amount="10000", roles=("manager",))

        route = matrix_service.resolve(seeded, "quotation", None, Decimal("5000"))
        assert route.rule_id == narrow.id

    def test_bounded_rule_beats_unbounded(self, seeded):
        add_rule(seeded, min_amount="0", max_amount=None, roles=("admin",))
        bounded = add_rule(seeded, min_amount="0", max_amount="1000000", roles=("manager",))

        route = matrix_service.resolve(seeded, "quotation", None, Decimal("5000"))
        assert route.rule_id == bounded.id

    def test_unbounded_max_matches_large_amounts(self, seeded):
        open_ended = add_rule(seeded, min_amount="50000", max_amount=None, roles=("admin",))

        route = matrix_service.resolve(seeded, "quotation", None, Decimal("9999999"))
        assert route.rule_id == open_ended.id

    def test_band_bounds_are_inclusive(self, seeded):
        rule = add_rule(seeded, min_amount="1000", max_amount="2000")

        assert matrix_service.resolve(seeded, "quotation", None, Decimal("1000")).rule_id == rule.id
        assert matrix_service.resolve(seeded, "quotation", None, Decimal("2000")).rule_id == rule.id
        assert matrix_service.resolve(seeded, "quotation", None, Decimal("2000.01")) is None

    def test_inactive_rules_are_ignored(self, seeded):
        add_rule(seeded, is_active=False)
        assert matrix_service.resolve(seeded, "quotation", None, Decimal("5000")) is None

    def test_other_transaction_types_are_ignored(self, seeded):
        add_rule(seeded, transaction_type="billing")
        assert matrix_service.resolve(seeded, "quotation", None, Decimal("5000")) is None

    def test_document_without_department_skips_department_rules(self, seeded):
        add_rule(seeded, department="sales")
        assert matrix_service.resolve(seeded, "quotation", None, Decimal("5000")) is None

    def test_generic_rule_serves_any_department(self, seeded):
        generic = add_rule(seeded, department=None)
        route = matrix_service.resolve(seeded, "quotation", "operations", Decimal("5000"))
        assert route.rule_id == generic.id

    def test_equally_specific_rules_are_ambiguous(self, seeded):
        add_rule(seeded, department="sales", min_amount="0", max_amount="10000")
        add_rule(seeded, department="sales", min_amount="5000", max_amount="15000")

        with pytest.raises(InvalidConfigurationError) as exc:
            matrix_service.resolve(seeded, "quotation", "sales", Decimal("7500"))
        assert exc.value.status_code == 422

    def test_levels_come_back_in_order(self, seeded):
        add_rule(seeded, roles=("supervisor", "manager", "admin"))

        route = matrix_service.resolve(seeded, "quotation", None, Decimal("5000"))
        assert [lvl.level for lvl in route.levels] == [1, 2, 3]
        assert route.final_level == 3
        assert route.level(2).role == "manager"
        assert route.level(4) is None


class TestValidateLevels:

    def test_dense_levels_are_accepted(self):
        validate_levels([{"level": 2, "role": "manager"}, {"level": 1, "role": "supervisor"}])

    @pytest.mark.parametrize("levels", [
        [],
        [{"level": 1, "role": "manager"}, {"level": 3, "role": "admin"}],
        [{"level": 1, "role": "manager"}, {"level": 1, "role": "admin"}],
        [{"level": 2, "role": "manager"}],
        [{"level": 1, "role": ""}],
    ])
    def test_invalid_levels_are_rejected(self, levels):
        with pytest.raises(ValidationError):
            validate_levels(levels)


class TestRuleMaintenance:

    def test_create_rule_with_levels(self, seeded):
        rule = matrix_service.create_rule(
            seeded,
            transaction_type="billing",
            department="finance",
            min_amount=Decimal("0"),
            max_amount=Decimal("50000"),
            levels=[{"level": 1, "role": "supervisor"}, {"level": 2, "role": "manager", "user_id": 2}],
            actor=ADMIN,
        )

        assert [lvl.role for lvl in rule.levels] == ["supervisor", "manager"]
        assert rule.levels[1].user_id == 2
        assert seeded.query(AuditLog).filter(AuditLog.action == "approval_rule.created").count() == 1

    def test_create_rule_rejects_inverted_band(self, seeded):
        with pytest.raises(ValidationError):
            matrix_service.create_rule(
                seeded,
                transaction_type="billing",
                min_amount=Decimal("500"),
                max_amount=Decimal("100"),
                levels=[{"level": 1, "role": "manager"}],
            )

    def test_update_replaces_levels(self, seeded):
        rule = add_rule(seeded, roles=("supervisor", "manager"))

        updated = matrix_service.update_rule(
            seeded, rule.id,
            levels=[{"level": 1, "role": "admin"}],
            actor=ADMIN,
            max_amount=Decimal("20000"),
        )

        assert [lvl.role for lvl in updated.levels] == ["admin"]
        assert updated.max_amount == Decimal("20000")
        assert seeded.query(ApprovalLevel).filter(ApprovalLevel.rule_id == rule.id).count() == 1

    def test_update_without_levels_keeps_them(self, seeded):
        rule = add_rule(seeded, roles=("supervisor", "manager"))

        updated = matrix_service.update_rule(seeded, rule.id, is_active=False)

        assert updated.is_active is False
        assert len(updated.levels) == 2

    def test_get_missing_rule(self, seeded):
        with pytest.raises(ResourceNotFoundError):
            matrix_service.get_rule(seeded, 999)

    def test_delete_refused_while_pending_documents_use_rule(self, seeded):
        rule = add_rule(seeded)
        doc = add_document(seeded, status="pending_approval")
        doc.approval_rule_id = rule.id
        doc.current_level = 1
        seeded.commit()

        with pytest.raises(ResourceConflictError):
            matrix_service.delete_rule(seeded, rule.id)

    def test_delete_detaches_finished_documents(self, seeded):
        rule = add_rule(seeded)
        doc = add_document(seeded, status="approved")
        doc.approval_rule_id = rule.id
        seeded.commit()

        matrix_service.delete_rule(seeded, rule.id, actor=ADMIN)

        seeded.expire_all()
        assert matrix_service.list_rules(seeded) == []
        assert seeded.query(ApprovalLevel).count() == 0
        assert doc.approval_rule_id is None

    def test_level_replacement_refused_while_document_pending(self, seeded):
        rule = add_rule(seeded, roles=("supervisor", "manager"))
        doc = add_document(seeded, status="pending_approval")
        doc.approval_rule_id = rule.id
        doc.current_level = 2
        seeded.commit()

        with pytest.raises(ResourceConflictError):
            matrix_service.update_rule(seeded, rule.id, levels=[{"level": 1, "role": "admin"}])

        seeded.expire_all()
        assert [lvl.role for lvl in matrix_service.get_rule(seeded, rule.id).levels] == [
            "supervisor", "manager",
        ]

    def test_field_updates_allowed_while_document_pending(self, seeded):
        rule = add_rule(seeded, roles=("supervisor", "manager"))
        doc = add_document(seeded, status="pending_approval")
        doc.approval_rule_id = rule.id
        doc.current_level = 1
        seeded.commit()

        updated = matrix_service.update_rule(seeded, rule.id, max_amount=Decimal("20000"))

        assert updated.max_amount == Decimal("20000")
        assert len(updated.levels) == 2

    def test_level_replacement_allowed_once_documents_finish(self, seeded):
        rule = add_rule(seeded, roles=("supervisor", "manager"))
        doc = add_document(seeded, status="approved")
        doc.approval_rule_id = rule.id
        seeded.commit()

        updated = matrix_service.update_rule(seeded, rule.id, levels=[{"level": 1, "role": "admin"}])

        assert [lvl.role for lvl in updated.levels] == ["admin"]

    @pytest.mark.parametrize("field", ["transaction_type", "min_amount", "is_active"])
    def test_null_required_field_is_rejected(self, seeded, field):
        rule = add_rule(seeded)

        with pytest.raises(ValidationError) as exc:
            matrix_service.update_rule(seeded, rule.id, **{field: None})
        assert field in exc.value.message

    def test_null_optional_fields_are_cleared(self, seeded):
        rule = add_rule(seeded, department="sales")

        updated = matrix_service.update_rule(seeded, rule.id, department=None, max_amount=None)

        assert updated.department is None
        assert updated.max_amount is None
