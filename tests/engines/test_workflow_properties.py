"""
Property-based tests for the workflow engine.

Properties:
- Every offered action has a successor from the current status.
- Terminal statuses offer nothing to anyone.
- A reject with a blank comment always fails with VALIDATION_ERROR.
- A privileged reject from pending_check with a reason yields rejected.
- Approve from draft never succeeds.
- Read paths are idempotent.
- A successful perform_action agrees with get_available_actions.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from erp_config import load_permission_table
from erp_engines.workflow import get_available_actions, perform_action
from erp_kernel.domain.workflow import (
    TERMINAL_STATUSES,
    DocumentType,
    WorkflowAction,
    WorkflowErrorKind,
    WorkflowStatus,
    target_status,
)

TABLE = load_permission_table()

KNOWN_ROLES = sorted(TABLE.roles)

document_types = st.sampled_from(list(DocumentType))
statuses = st.sampled_from(list(WorkflowStatus))
actions = st.sampled_from(list(WorkflowAction))
roles = st.one_of(
    st.sampled_from(KNOWN_ROLES),
    st.text(min_size=0, max_size=20),
)
blank_comments = st.one_of(
    st.none(),
    st.text(alphabet=" \t\n\r", max_size=10),
)
reasons = st.text(min_size=1, max_size=200).filter(lambda s: s.strip())


@given(doc_type=document_types, status=statuses, role=roles)
@settings(max_examples=300)
def test_offered_actions_have_successors(doc_type, status, role):
    for action in get_available_actions(TABLE, doc_type, status, role):
        assert target_status(status, action) is not None


@given(doc_type=document_types, role=roles, action=actions, comment=st.text(max_size=50))
def test_terminal_statuses_offer_nothing(doc_type, role, action, comment):
    for status in TERMINAL_STATUSES:
        assert get_available_actions(TABLE, doc_type, status, role) == []
        result = perform_action(TABLE, doc_type, status, role, action, comment)
        assert not result.success


@given(doc_type=document_types, status=statuses, role=roles, comment=blank_comments)
def test_blank_reject_never_succeeds(doc_type, status, role, comment):
    result = perform_action(TABLE, doc_type, status, role, WorkflowAction.REJECT, comment)
    assert not result.success
    if WorkflowAction.REJECT in get_available_actions(TABLE, doc_type, status, role):
        assert result.error is WorkflowErrorKind.VALIDATION_ERROR


@given(doc_type=document_types, role=st.sampled_from(["owner", "director"]), reason=reasons)
def test_privileged_reject_from_pending_check(doc_type, role, reason):
    result = perform_action(
        TABLE, doc_type, WorkflowStatus.PENDING_CHECK, role, WorkflowAction.REJECT, reason,
    )
    assert result.success
    assert result.new_status is WorkflowStatus.REJECTED
    assert result.comment == reason.strip()


@given(doc_type=document_types, role=roles, comment=st.one_of(st.none(), st.text(max_size=30)))
def test_approve_from_draft_never_succeeds(doc_type, role, comment):
    result = perform_action(
        TABLE, doc_type, WorkflowStatus.DRAFT, role, WorkflowAction.APPROVE, comment,
    )
    assert not result.success
    assert result.error in (
        WorkflowErrorKind.PERMISSION_DENIED,
        WorkflowErrorKind.INVALID_TRANSITION,
    )


@given(doc_type=document_types, status=statuses, role=roles)
def test_read_path_idempotent(doc_type, status, role):
    first = get_available_actions(TABLE, doc_type, status, role)
    second = get_available_actions(TABLE, doc_type, status, role)
    assert first == second


@given(
    doc_type=document_types,
    status=statuses,
    role=roles,
    action=actions,
    reason=reasons,
)
@settings(max_examples=300)
def test_success_matches_available_actions(doc_type, status, role, action, reason):
    result = perform_action(TABLE, doc_type, status, role, action, reason)
    offered = action in get_available_actions(TABLE, doc_type, status, role)
    assert result.success == offered
    if result.success:
        assert result.new_status is target_status(status, action)
