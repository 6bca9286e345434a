"""
Stock Adjustment Workflow.

State machine for the adjustment approval lifecycle.
"""

from stock_kernel.domain.adjustment import AdjustmentStatus
from stock_kernel.domain.workflow import Guard, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.adjustment.workflows")

ACTION_SUBMIT = "submit"
ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
ACTION_RESUBMIT = "resubmit"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ITEMS_VALID = Guard(
    name="items_valid",
    description="At least one item, and every item delta matches the adjustment direction",
)

REASON_PROVIDED = Guard(
    name="reason_provided",
    description="A non-empty rejection reason is supplied",
)

APPROVAL_CAPABILITY = Guard(
    name="approval_capability",
    description="Caller holds the approval capability (checked outside the kernel)",
)


# -----------------------------------------------------------------------------
# Adjustment Workflow
# -----------------------------------------------------------------------------

_DRAFT = AdjustmentStatus.DRAFT.value
_SUBMITTED = AdjustmentStatus.SUBMITTED.value
_APPROVED = AdjustmentStatus.APPROVED.value
_REJECTED = AdjustmentStatus.REJECTED.value

ADJUSTMENT_WORKFLOW = Workflow(
    name="stock_adjustment",
    description="Stock adjustment approval lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _SUBMITTED, _APPROVED, _REJECTED),
    transitions=(
        Transition(_DRAFT, _SUBMITTED, action=ACTION_SUBMIT, guard=ITEMS_VALID),
        Transition(
            _SUBMITTED, _APPROVED, action=ACTION_APPROVE,
            guard=APPROVAL_CAPABILITY, requires_approval=True,
        ),
        Transition(_SUBMITTED, _REJECTED, action=ACTION_REJECT, guard=REASON_PROVIDED),
        Transition(_REJECTED, _SUBMITTED, action=ACTION_RESUBMIT, guard=ITEMS_VALID),
    ),
    terminal_states=(_APPROVED,),
)

# Header fields and items may only change in these states.
EDITABLE_STATES = frozenset({AdjustmentStatus.DRAFT})
DELETABLE_STATES = frozenset({AdjustmentStatus.DRAFT})

logger.info(
    "adjustment_workflow_registered",
    extra={
        "workflow_name": ADJUSTMENT_WORKFLOW.name,
        "state_count": len(ADJUSTMENT_WORKFLOW.states),
        "transition_count": len(ADJUSTMENT_WORKFLOW.transitions),
        "initial_state": ADJUSTMENT_WORKFLOW.initial_state,
        "guards": [
            ITEMS_VALID.name,
            REASON_PROVIDED.name,
            APPROVAL_CAPABILITY.name,
        ],
    },
)
