"""
Tests for WorkflowService.

Tests cover:
- create_document: initial stored status and stamps
- perform_transition: status write, stamps, audit rows, refusals
- Conditional status write: lost races raise StaleWorkflowStatusError
- Audit log immutability
- get_workflow_status / get_pending_documents / get_history
- workflow_transition log records
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select, text

from erp_kernel.domain.workflow import (
    DocumentType,
    WorkflowAction,
    WorkflowErrorKind,
    WorkflowStatus,
)
from erp_kernel.exceptions import (
    DocumentNotFoundError,
    ImmutabilityViolationError,
    OptimisticLockError,
    StaleWorkflowStatusError,
)
from erp_kernel.models.audit_log import WorkflowAuditLogModel
from erp_kernel.models.document import WorkflowDocumentModel
from erp_services.workflow_service import WorkflowService

JO = DocumentType.JOB_ORDER
PJO = DocumentType.PROFORMA_JOB_ORDER
BKK = DocumentType.CASH_DISBURSEMENT


def _audit_count(session, document_id) -> int:
    return session.execute(
        select(func.count())
        .select_from(WorkflowAuditLogModel)
        .where(WorkflowAuditLogModel.document_id == document_id)
    ).scalar_one()


class TestCreateDocument:
    def test_starts_in_draft(self, workflow_service, make_actor, deterministic_clock):
        actor = make_actor("ops")
        doc = workflow_service.create_document(JO, "JO-0001", actor)

        assert doc.id is not None
        assert doc.document_type == "jo"
        assert doc.status == "draft"
        assert doc.created_by_id == actor.actor_id
        assert doc.created_at == deterministic_clock.now()
        assert doc.submitted_at is None

    def test_accepts_string_type(self, workflow_service, make_actor):
        doc = workflow_service.create_document("bkk", "BKK-0001", make_actor("finance"))
        assert doc.document_type == "bkk"


class TestPerformTransition:
    def test_submit_stamps_and_audits(
        self, session, workflow_service, make_actor, deterministic_clock,
    ):
        maker = make_actor("ops")
        doc = workflow_service.create_document(JO, "JO-0002", maker)
        deterministic_clock.advance(60)

        result = workflow_service.submit_document(JO, doc.id, maker)

        assert result.success
        assert result.new_status is WorkflowStatus.PENDING_CHECK
        assert doc.status == "pending_check"
        assert doc.submitted_by_id == maker.actor_id
        assert doc.submitted_at == deterministic_clock.now()
        assert doc.updated_at == deterministic_clock.now()
        assert _audit_count(session, doc.id) == 1

    def test_proforma_stores_pending_approval(self, workflow_service, make_actor):
        maker = make_actor("administration")
        doc = workflow_service.create_document(PJO, "PJO-0001", maker)

        workflow_service.submit_document(PJO, doc.id, maker)

        assert doc.status == "pending_approval"
        view = workflow_service.get_workflow_status(PJO, doc.id, "finance_manager")
        assert view.status is WorkflowStatus.PENDING_CHECK
        assert view.available_actions == (WorkflowAction.CHECK, WorkflowAction.REJECT)

    def test_job_order_approval_stores_active(self, workflow_service, make_actor):
        doc = workflow_service.create_document(JO, "JO-0003", make_actor("ops"))
        workflow_service.submit_document(JO, doc.id, make_actor("ops"))
        workflow_service.check_document(JO, doc.id, make_actor("finance_manager"))
        director = make_actor("director")

        result = workflow_service.approve_document(JO, doc.id, director)

        assert result.success
        assert doc.status == "active"
        assert doc.approved_by_id == director.actor_id
        view = workflow_service.get_workflow_status(JO, doc.id, "owner")
        assert view.status is WorkflowStatus.APPROVED
        assert view.available_actions == ()

    def test_reject_records_reason(self, session, workflow_service, make_actor):
        doc = workflow_service.create_document(BKK, "BKK-0002", make_actor("finance"))
        workflow_service.submit_document(BKK, doc.id, make_actor("finance"))
        checker = make_actor("operations_manager")

        result = workflow_service.reject_document(BKK, doc.id, checker, "  Missing receipt ")

        assert result.success
        assert doc.status == "rejected"
        assert doc.rejected_by_id == checker.actor_id
        assert doc.rejection_reason == "Missing receipt"
        assert _audit_count(session, doc.id) == 2

    def test_permission_denied_changes_nothing(
        self, session, workflow_service, make_actor,
    ):
        doc = workflow_service.create_document(PJO, "PJO-0002", make_actor("owner"))

        result = workflow_service.submit_document(PJO, doc.id, make_actor("ops"))

        assert not result.success
        assert result.error is WorkflowErrorKind.PERMISSION_DENIED
        assert doc.status == "draft"
        assert doc.submitted_at is None
        assert _audit_count(session, doc.id) == 0

    def test_blank_reject_reason_refused(self, session, workflow_service, make_actor):
        doc = workflow_service.create_document(JO, "JO-0004", make_actor("ops"))
        workflow_service.submit_document(JO, doc.id, make_actor("ops"))

        result = workflow_service.reject_document(JO, doc.id, make_actor("owner"), "   ")

        assert result.error is WorkflowErrorKind.VALIDATION_ERROR
        assert result.reason == "Rejection reason is required"
        assert doc.status == "pending_check"
        assert doc.rejection_reason is None
        assert _audit_count(session, doc.id) == 1

    def test_string_action_accepted(self, workflow_service, make_actor):
        doc = workflow_service.create_document(BKK, "BKK-0003", make_actor("finance"))
        result = workflow_service.perform_transition("bkk", doc.id, "submit", make_actor("finance"))
        assert result.success

    def test_unknown_document(self, workflow_service, make_actor):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            workflow_service.submit_document(JO, uuid4(), make_actor("ops"))
        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"

    def test_document_type_mismatch(self, workflow_service, make_actor):
        doc = workflow_service.create_document(JO, "JO-0005", make_actor("ops"))
        with pytest.raises(DocumentNotFoundError):
            workflow_service.submit_document(BKK, doc.id, make_actor("owner"))

    def test_flushes_but_does_not_commit(self, session, workflow_service, make_actor):
        doc = workflow_service.create_document(JO, "JO-0006", make_actor("ops"))
        workflow_service.submit_document(JO, doc.id, make_actor("ops"))
        assert session.in_transaction()
        assert not session.new
        assert not session.dirty


class TestConditionalWrite:
    def test_concurrent_status_change_detected(self, session, workflow_service, make_actor):
        doc = workflow_service.create_document(JO, "JO-0007", make_actor("ops"))
        workflow_service.submit_document(JO, doc.id, make_actor("ops"))

        # Another writer rejects the document behind this session's back
        session.execute(
            text("UPDATE workflow_documents SET status = 'rejected' WHERE id = :id"),
            {"id": str(doc.id)},
        )

        with pytest.raises(StaleWorkflowStatusError) as exc_info:
            workflow_service.check_document(JO, doc.id, make_actor("finance_manager"))

        assert exc_info.value.expected_status == "pending_check"
        assert exc_info.value.code == "STALE_WORKFLOW_STATUS"
        assert isinstance(exc_info.value, OptimisticLockError)
        assert _audit_count(session, doc.id) == 1


class TestAuditImmutability:
    @pytest.fixture
    def audit_row(self, session, workflow_service, make_actor) -> WorkflowAuditLogModel:
        doc = workflow_service.create_document(BKK, "BKK-0004", make_actor("finance"))
        workflow_service.submit_document(BKK, doc.id, make_actor("finance"), "please review")
        return session.execute(
            select(WorkflowAuditLogModel).where(WorkflowAuditLogModel.document_id == doc.id)
        ).scalar_one()

    def test_update_blocked(self, session, audit_row):
        audit_row.comment = "edited"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "WorkflowAuditLog"

    def test_delete_blocked(self, session, audit_row):
        session.delete(audit_row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestQueries:
    def test_workflow_status_view(self, workflow_service, make_actor):
        maker = make_actor("finance")
        checker = make_actor("finance_manager")
        doc = workflow_service.create_document(BKK, "BKK-0005", maker)
        workflow_service.submit_document(BKK, doc.id, maker)
        workflow_service.check_document(BKK, doc.id, checker)

        view = workflow_service.get_workflow_status(BKK, doc.id, "director")

        assert view.document_number == "BKK-0005"
        assert view.status is WorkflowStatus.CHECKED
        assert view.stored_status == "checked"
        assert view.available_actions == (WorkflowAction.APPROVE, WorkflowAction.REJECT)
        assert view.submitted_by_id == maker.actor_id
        assert view.checked_by_id == checker.actor_id
        assert view.approved_by_id is None
        assert view.rejection_reason is None

    def test_view_reflects_reject_in_same_session(
        self, workflow_service, make_actor, deterministic_clock,
    ):
        maker = make_actor("administration")
        checker = make_actor("marketing_manager")
        doc = workflow_service.create_document(PJO, "PJO-0010", maker)
        workflow_service.submit_document(PJO, doc.id, maker)
        deterministic_clock.advance(120)
        workflow_service.reject_document(PJO, doc.id, checker, "Wrong customer")

        view = workflow_service.get_workflow_status(PJO, doc.id, "owner")

        assert view.status is WorkflowStatus.REJECTED
        assert view.stored_status == "rejected"
        assert view.submitted_by_id == maker.actor_id
        assert view.rejected_by_id == checker.actor_id
        assert view.rejected_at == deterministic_clock.now()
        assert view.rejection_reason == "Wrong customer"

    def test_view_after_reload_is_utc(
        self, session, workflow_service, make_actor, deterministic_clock,
    ):
        maker = make_actor("ops")
        doc = workflow_service.create_document(JO, "JO-0011", maker)
        deterministic_clock.advance(30)
        workflow_service.submit_document(JO, doc.id, maker)
        session.expire_all()

        view = workflow_service.get_workflow_status(JO, doc.id, "finance_manager")

        assert view.submitted_by_id == maker.actor_id
        assert view.submitted_at == deterministic_clock.now()
        assert view.submitted_at.utcoffset() == timedelta(0)
        assert view.available_actions == (WorkflowAction.CHECK, WorkflowAction.REJECT)

    def test_pending_documents_newest_first(
        self, workflow_service, make_actor, deterministic_clock,
    ):
        maker = make_actor("ops")
        numbers = []
        for i in range(3):
            doc = workflow_service.create_document(JO, f"JO-1{i:03d}", maker)
            workflow_service.submit_document(JO, doc.id, maker)
            numbers.append(doc.document_number)
            deterministic_clock.advance(60)

        pending = workflow_service.get_pending_documents(JO, "finance_manager")

        assert [p.document_number for p in pending] == list(reversed(numbers))
        assert all(p.status is WorkflowStatus.PENDING_CHECK for p in pending)
        assert pending[0].available_actions == (WorkflowAction.CHECK, WorkflowAction.REJECT)

    def test_pending_documents_limit(self, workflow_service, make_actor, deterministic_clock):
        maker = make_actor("administration")
        for i in range(4):
            doc = workflow_service.create_document(PJO, f"PJO-1{i:03d}", maker)
            workflow_service.submit_document(PJO, doc.id, maker)
            deterministic_clock.advance(60)

        assert len(workflow_service.get_pending_documents(PJO, "owner", limit=2)) == 2

    def test_pending_documents_match_role(self, workflow_service, make_actor):
        maker = make_actor("finance")
        drafted = workflow_service.create_document(BKK, "BKK-2000", maker)
        submitted = workflow_service.create_document(BKK, "BKK-2001", maker)
        workflow_service.submit_document(BKK, submitted.id, maker)

        makers_view = workflow_service.get_pending_documents(BKK, "finance")
        checkers_view = workflow_service.get_pending_documents(BKK, "marketing_manager")

        assert [p.document_id for p in makers_view] == [drafted.id]
        assert submitted.id in {p.document_id for p in checkers_view}

    def test_pending_documents_unknown_role(self, workflow_service, make_actor):
        workflow_service.create_document(BKK, "BKK-3000", make_actor("finance"))
        assert workflow_service.get_pending_documents(BKK, "guest") == []

    def test_history_oldest_first(self, workflow_service, make_actor, deterministic_clock):
        maker = make_actor("ops")
        checker = make_actor("operations_manager")
        owner = make_actor("owner")
        doc = workflow_service.create_document(JO, "JO-0008", maker)
        workflow_service.submit_document(JO, doc.id, maker)
        deterministic_clock.advance(60)
        workflow_service.check_document(JO, doc.id, checker)
        deterministic_clock.advance(60)
        workflow_service.reject_document(JO, doc.id, owner, "Customer cancelled")

        history = workflow_service.get_history(doc.id)

        assert [(h.from_status, h.to_status) for h in history] == [
            (WorkflowStatus.DRAFT, WorkflowStatus.PENDING_CHECK),
            (WorkflowStatus.PENDING_CHECK, WorkflowStatus.CHECKED),
            (WorkflowStatus.CHECKED, WorkflowStatus.REJECTED),
        ]
        assert [h.actor_role for h in history] == ["ops", "operations_manager", "owner"]
        assert history[-1].comment == "Customer cancelled"
        assert history[-1].actor_id == owner.actor_id

    def test_history_same_instant_keeps_lifecycle_order(self, workflow_service, make_actor):
        finance = make_actor("finance")
        doc = workflow_service.create_document(BKK, "BKK-0012", finance)
        workflow_service.submit_document(BKK, doc.id, finance)
        workflow_service.check_document(BKK, doc.id, make_actor("operations_manager"))
        workflow_service.approve_document(BKK, doc.id, make_actor("director"))

        history = workflow_service.get_history(doc.id)

        assert len({h.transitioned_at for h in history}) == 1
        assert [h.action for h in history] == [
            WorkflowAction.SUBMIT,
            WorkflowAction.CHECK,
            WorkflowAction.APPROVE,
        ]


class TestTransitionLogging:
    def test_success_logged(self, workflow_service, make_actor, captured_logs):
        maker = make_actor("ops")
        doc = workflow_service.create_document(JO, "JO-0009", maker)

        workflow_service.submit_document(JO, doc.id, maker)

        records = [r for r in captured_logs() if r["message"] == "workflow_transition"]
        assert len(records) == 1
        record = records[0]
        assert record["outcome"] == "success"
        assert record["from_status"] == "draft"
        assert record["to_status"] == "pending_check"
        assert record["document_id"] == str(doc.id)
        assert record["actor_id"] == str(maker.actor_id)
        assert record["level"] == "INFO"

    def test_refusal_logged(self, workflow_service, make_actor, captured_logs):
        doc = workflow_service.create_document(PJO, "PJO-0003", make_actor("owner"))

        workflow_service.submit_document(PJO, doc.id, make_actor("ops"))

        records = [r for r in captured_logs() if r["message"] == "workflow_transition"]
        assert records[-1]["outcome"] == "permission_denied"
        assert records[-1]["level"] == "WARNING"
        assert "to_status" not in records[-1]

    def test_outcome_sink_receives_records(
        self, session, permission_table, deterministic_clock, make_actor,
    ):
        sink: list[dict] = []
        service = WorkflowService(
            session, table=permission_table, clock=deterministic_clock,
            outcome_sink=sink.append,
        )
        doc = service.create_document(BKK, "BKK-0006", make_actor("finance"))
        service.submit_document(BKK, doc.id, make_actor("finance"))
        service.approve_document(BKK, doc.id, make_actor("owner"))

        assert [r["outcome"] for r in sink] == ["success", "permission_denied"]

    def test_default_table_used(self, session, make_actor):
        service = WorkflowService(session)
        doc = service.create_document(JO, "JO-0010", make_actor("ops"))
        assert service.submit_document(JO, doc.id, make_actor("ops")).success
