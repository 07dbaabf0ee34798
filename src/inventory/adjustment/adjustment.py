"""InventoryAdjustment aggregate (CQRS): a proposed out-of-band stock correction.

State Machine:
    draft ──► pending_approval ──► approved
      │                      └──► rejected
      └──────────────────────────► approved   (small change, auto-applied)

``approved`` and ``rejected`` are terminal. The adjustment itself never
touches stock: InventoryService applies it through the same credit/debit
path as any other movement, and only then is it marked approved.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from inventory.adjustment.events import AdjustmentApproved, AdjustmentRejected, AdjustmentSubmitted
from inventory.domain import inventory
from inventory.shared.errors import InvalidAdjustmentStateError, RoleSeparationError
from inventory.shared.precision import line_value, round_quantity


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class AdjustmentType(Enum):
    LOSS = "loss"
    DRYING = "drying"
    DAMAGE = "damage"
    EXPIRY = "expiry"
    COUNT_CORRECTION = "count_correction"
    THEFT = "theft"
    FOUND = "found"
    OTHER = "other"

    @property
    def is_decrease_only(self) -> bool:
        return self in DECREASING_TYPES


DECREASING_TYPES = frozenset(
    {
        AdjustmentType.LOSS,
        AdjustmentType.DRYING,
        AdjustmentType.DAMAGE,
        AdjustmentType.EXPIRY,
        AdjustmentType.THEFT,
    }
)

ADJUSTMENT_LABELS = {
    AdjustmentType.LOSS: "Loss/Wastage",
    AdjustmentType.DRYING: "Drying Loss",
    AdjustmentType.DAMAGE: "Damage",
    AdjustmentType.EXPIRY: "Expiry",
    AdjustmentType.COUNT_CORRECTION: "Count Correction",
    AdjustmentType.THEFT: "Theft",
    AdjustmentType.FOUND: "Found Stock",
    AdjustmentType.OTHER: "Other",
}


class AdjustmentStatus(Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


_VALID_TRANSITIONS = {
    AdjustmentStatus.DRAFT: {AdjustmentStatus.PENDING_APPROVAL, AdjustmentStatus.APPROVED},
    AdjustmentStatus.PENDING_APPROVAL: {AdjustmentStatus.APPROVED, AdjustmentStatus.REJECTED},
    AdjustmentStatus.APPROVED: set(),  # Terminal
    AdjustmentStatus.REJECTED: set(),  # Terminal
}

_ACTIONS = {
    AdjustmentStatus.PENDING_APPROVAL: "submit",
    AdjustmentStatus.APPROVED: "approve",
    AdjustmentStatus.REJECTED: "reject",
}


def parse_adjustment_type(value) -> AdjustmentType:
    if isinstance(value, AdjustmentType):
        return value
    try:
        return AdjustmentType(value)
    except ValueError:
        raise ValidationError({"adjustment_type": [f"Unknown adjustment type '{value}'"]}) from None


# ---------------------------------------------------------------------------
# InventoryAdjustment Aggregate
# ---------------------------------------------------------------------------
@inventory.aggregate
class InventoryAdjustment:
    """A signed correction to one product's stock in one warehouse."""

    adjustment_number = String(required=True, max_length=30, unique=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    batch_id = Identifier()
    adjustment_type = String(required=True, max_length=30, choices=AdjustmentType)
    quantity_change = Float(required=True)
    quantity_before = Float(default=0.0)
    quantity_after = Float(default=0.0)
    unit_cost = Float(default=0.0, min_value=0.0)
    total_value_impact = Float(default=0.0)
    reason = Text(required=True)
    notes = Text()
    status = String(max_length=20, choices=AdjustmentStatus, default=AdjustmentStatus.DRAFT.value)
    created_by = String(required=True, max_length=100)
    approved_by = String(max_length=100)
    approved_at = DateTime()
    approval_notes = Text()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def quantity_after_must_match_change(self):
        expected = round_quantity((self.quantity_before or 0.0) + (self.quantity_change or 0.0))
        if round_quantity(self.quantity_after or 0.0) != expected:
            raise ValidationError({"quantity_after": ["Quantity after must equal quantity before plus change"]})

    @invariant.post
    def decided_adjustments_must_name_a_decider(self):
        if self.status in (AdjustmentStatus.APPROVED.value, AdjustmentStatus.REJECTED.value) and not self.approved_by:
            raise ValidationError({"approved_by": ["A decided adjustment must record who decided it"]})

    @classmethod
    def propose(
        cls,
        adjustment_number,
        product_id,
        warehouse_id,
        adjustment_type,
        quantity_change,
        quantity_before,
        reason,
        created_by,
        unit_cost=0.0,
        batch_id=None,
        notes=None,
    ):
        """Draft a new adjustment after checking the proposal is well formed."""
        adjustment_type = parse_adjustment_type(adjustment_type)
        errors = {}

        if not reason or not str(reason).strip():
            errors["reason"] = ["A reason is required for every adjustment"]
        if not created_by:
            errors["created_by"] = ["The creating user is required"]

        quantity_change = round_quantity(quantity_change)
        if quantity_change == 0:
            errors["quantity_change"] = ["Quantity change cannot be zero"]
        elif adjustment_type.is_decrease_only and quantity_change > 0:
            errors["quantity_change"] = [f"A {adjustment_type.value} adjustment must decrease stock"]

        if errors:
            raise ValidationError(errors)

        now = datetime.now(UTC)
        quantity_before = round_quantity(quantity_before)
        return cls(
            adjustment_number=adjustment_number,
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            batch_id=str(batch_id) if batch_id else None,
            adjustment_type=adjustment_type.value,
            quantity_change=quantity_change,
            quantity_before=quantity_before,
            quantity_after=round_quantity(quantity_before + quantity_change),
            unit_cost=unit_cost or 0.0,
            total_value_impact=line_value(abs(quantity_change), unit_cost or 0.0),
            reason=str(reason).strip(),
            notes=notes,
            created_by=str(created_by),
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_increase(self) -> bool:
        return self.quantity_change > 0

    @property
    def is_decrease(self) -> bool:
        return self.quantity_change < 0

    @property
    def magnitude(self) -> float:
        return abs(self.quantity_change)

    @property
    def type_label(self) -> str:
        return ADJUSTMENT_LABELS[AdjustmentType(self.adjustment_type)]

    def requires_approval(self, threshold) -> bool:
        """Changes at or above ``threshold`` need a second user to approve."""
        return self.magnitude >= threshold

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = AdjustmentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidAdjustmentStateError(current.value, _ACTIONS[target_status])

    def submit_for_approval(self):
        """Park the adjustment until a different user approves or rejects it."""
        self._assert_can_transition(AdjustmentStatus.PENDING_APPROVAL)
        self.status = AdjustmentStatus.PENDING_APPROVAL.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            AdjustmentSubmitted(
                adjustment_id=str(self.id),
                adjustment_number=self.adjustment_number,
                product_id=str(self.product_id),
                warehouse_id=str(self.warehouse_id),
                adjustment_type=self.adjustment_type,
                quantity_change=self.quantity_change,
                created_by=self.created_by,
                submitted_at=self.updated_at,
            )
        )

    def auto_approve(self):
        """Approve a small draft on its creator's authority."""
        self._assert_can_transition(AdjustmentStatus.APPROVED)
        self._mark_approved(self.created_by, notes=None, auto_approved=True)

    def approve(self, approver_id, notes=None):
        """Approve a pending adjustment on behalf of a user other than its creator."""
        if not approver_id:
            raise ValidationError({"approved_by": ["The approving user is required"]})
        if str(approver_id) == str(self.created_by):
            raise RoleSeparationError()
        if self.status != AdjustmentStatus.PENDING_APPROVAL.value:
            raise InvalidAdjustmentStateError(self.status, "approve")

        self._mark_approved(str(approver_id), notes=notes, auto_approved=False)

    def reject(self, reviewer_id, notes=None):
        if not reviewer_id:
            raise ValidationError({"approved_by": ["The reviewing user is required"]})
        self._assert_can_transition(AdjustmentStatus.REJECTED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = AdjustmentStatus.REJECTED.value
            self.approved_by = str(reviewer_id)
            self.approved_at = now
            self.approval_notes = notes
            self.updated_at = now
        self.raise_(
            AdjustmentRejected(
                adjustment_id=str(self.id),
                adjustment_number=self.adjustment_number,
                rejected_by=str(reviewer_id),
                notes=notes,
                rejected_at=now,
            )
        )

    def _mark_approved(self, approver_id, notes, auto_approved):
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = AdjustmentStatus.APPROVED.value
            self.approved_by = approver_id
            self.approved_at = now
            self.approval_notes = notes
            self.updated_at = now
        self.raise_(
            AdjustmentApproved(
                adjustment_id=str(self.id),
                adjustment_number=self.adjustment_number,
                product_id=str(self.product_id),
                warehouse_id=str(self.warehouse_id),
                quantity_change=self.quantity_change,
                total_value_impact=self.total_value_impact,
                approved_by=approver_id,
                auto_approved=auto_approved,
                approved_at=now,
            )
        )
