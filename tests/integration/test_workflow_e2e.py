"""
End-to-end workflow tests: configuration -> engine -> service -> database.

Each scenario drives a document through its lifecycle with the default
permission table and checks the stored status, the status view, the audit
history and the emitted trace records together.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from erp_kernel.db.engine import get_session, session_scope
from erp_kernel.domain.workflow import (
    DocumentType,
    WorkflowAction,
    WorkflowErrorKind,
    WorkflowStatus,
)
from erp_kernel.models.document import WorkflowDocumentModel
from erp_services.workflow_service import ActorProfile, WorkflowService


class TestJobOrderLifecycle:
    def test_ops_submits_finance_checks_director_approves(
        self, workflow_service, make_actor, deterministic_clock, captured_logs,
    ):
        ops = make_actor("ops")
        finance_manager = make_actor("finance_manager")
        director = make_actor("director")
        doc = workflow_service.create_document(DocumentType.JOB_ORDER, "JO-E2E-1", ops)

        steps = [
            (ops, WorkflowAction.SUBMIT, WorkflowStatus.PENDING_CHECK),
            (finance_manager, WorkflowAction.CHECK, WorkflowStatus.CHECKED),
            (director, WorkflowAction.APPROVE, WorkflowStatus.APPROVED),
        ]
        for actor, action, expected in steps:
            deterministic_clock.advance(300)
            result = workflow_service.perform_transition(
                DocumentType.JOB_ORDER, doc.id, action, actor,
            )
            assert result.success, result.reason
            assert result.new_status is expected

        view = workflow_service.get_workflow_status(DocumentType.JOB_ORDER, doc.id, "owner")
        assert view.status is WorkflowStatus.APPROVED
        assert view.stored_status == "active"
        assert view.available_actions == ()
        assert view.submitted_by_id == ops.actor_id
        assert view.checked_by_id == finance_manager.actor_id
        assert view.approved_by_id == director.actor_id
        assert view.approved_at == deterministic_clock.now()

        history = workflow_service.get_history(doc.id)
        assert [h.action for h in history] == [a for _, a, _ in steps]

        outcomes = [
            r["outcome"] for r in captured_logs() if r["message"] == "workflow_transition"
        ]
        assert outcomes == ["success", "success", "success"]

    def test_approved_document_is_final(self, workflow_service, make_actor):
        doc = workflow_service.create_document(DocumentType.JOB_ORDER, "JO-E2E-2", make_actor("ops"))
        workflow_service.submit_document(DocumentType.JOB_ORDER, doc.id, make_actor("ops"))
        workflow_service.check_document(DocumentType.JOB_ORDER, doc.id, make_actor("owner"))
        workflow_service.approve_document(DocumentType.JOB_ORDER, doc.id, make_actor("owner"))

        result = workflow_service.reject_document(
            DocumentType.JOB_ORDER, doc.id, make_actor("owner"), "Too late",
        )
        assert result.error is WorkflowErrorKind.PERMISSION_DENIED
        assert len(workflow_service.get_history(doc.id)) == 3


class TestProformaRejection:
    def test_owner_needs_reason_to_reject_checked(
        self, workflow_service, make_actor, captured_logs,
    ):
        admin = make_actor("administration")
        owner = make_actor("owner")
        doc = workflow_service.create_document(
            DocumentType.PROFORMA_JOB_ORDER, "PJO-E2E-1", admin,
        )
        workflow_service.submit_document(DocumentType.PROFORMA_JOB_ORDER, doc.id, admin)
        workflow_service.check_document(
            DocumentType.PROFORMA_JOB_ORDER, doc.id, make_actor("marketing_manager"),
        )

        refused = workflow_service.reject_document(
            DocumentType.PROFORMA_JOB_ORDER, doc.id, owner, "",
        )
        assert refused.error is WorkflowErrorKind.VALIDATION_ERROR
        assert refused.reason == "Rejection reason is required"

        rejected = workflow_service.reject_document(
            DocumentType.PROFORMA_JOB_ORDER, doc.id, owner, "Margin below target",
        )
        assert rejected.success

        view = workflow_service.get_workflow_status(
            DocumentType.PROFORMA_JOB_ORDER, doc.id, "owner",
        )
        assert view.status is WorkflowStatus.REJECTED
        assert view.rejection_reason == "Margin below target"
        assert view.rejected_by_id == owner.actor_id
        assert view.available_actions == ()

        outcomes = [
            r["outcome"] for r in captured_logs() if r["message"] == "workflow_transition"
        ]
        assert outcomes == ["success", "success", "validation_error", "success"]


class TestCashDisbursementQueue:
    def test_document_moves_between_queues(self, workflow_service, make_actor):
        finance = make_actor("finance")
        doc = workflow_service.create_document(
            DocumentType.CASH_DISBURSEMENT, "BKK-E2E-1", finance,
        )

        def queue(role: str) -> list:
            return [
                p.document_id
                for p in workflow_service.get_pending_documents(DocumentType.CASH_DISBURSEMENT, role)
            ]

        assert doc.id in queue("finance")
        assert doc.id in queue("director")

        workflow_service.submit_document(DocumentType.CASH_DISBURSEMENT, doc.id, finance)
        assert doc.id not in queue("finance")
        assert doc.id in queue("operations_manager")

        workflow_service.check_document(
            DocumentType.CASH_DISBURSEMENT, doc.id, make_actor("operations_manager"),
        )
        assert doc.id not in queue("operations_manager")
        assert doc.id in queue("director")

        workflow_service.approve_document(
            DocumentType.CASH_DISBURSEMENT, doc.id, make_actor("director"),
        )
        assert doc.id not in queue("director")
        assert doc.id not in queue("owner")


class TestSessionScope:
    def test_failed_scope_rolls_back(self, db_tables, permission_table):
        actor = ActorProfile(actor_id=uuid4(), role="ops")
        document_number = f"JO-SCOPE-{uuid4().hex[:8]}"

        with pytest.raises(RuntimeError):
            with session_scope() as session:
                service = WorkflowService(session, table=permission_table)
                doc = service.create_document(DocumentType.JOB_ORDER, document_number, actor)
                service.submit_document(DocumentType.JOB_ORDER, doc.id, actor)
                raise RuntimeError("caller aborted")

        session = get_session()
        try:
            found = session.execute(
                select(WorkflowDocumentModel).where(
                    WorkflowDocumentModel.document_number == document_number,
                )
            ).scalar_one_or_none()
        finally:
            session.close()
        assert found is None
