"""Proposal entity — one message in an order's append-only negotiation log.

A proposal is authored either by the buyer, as one of a closed set of
actions, or by the supplier, as a free-text note. The two shapes are value
objects and exactly one of them is present on any proposal. Nothing on a
proposal changes after it has been written to the log.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text, ValueObject

from negotiation.domain import negotiation


class BuyerActionType(Enum):
    STARTED = "Started"
    CART_CHANGED = "Cart_Changed"
    ACCEPTED = "Accepted"
    CANCELLED = "Cancelled"


class ProposalAuthor(Enum):
    BUYER = "Buyer"
    SUPPLIER = "Supplier"


@negotiation.value_object(part_of="Order")
class BuyerAction:
    """What the buyer did at this point of the negotiation, with an optional remark."""

    action = String(required=True, choices=BuyerActionType, max_length=20)
    buyer_user_id = Integer(required=True, min_value=1)
    note = Text()


@negotiation.value_object(part_of="Order")
class SupplierNote:
    """A supplier's written reply. The text is mandatory."""

    note = Text(required=True)
    supplier_user_id = Integer(required=True, min_value=1)

    @invariant.post
    def note_must_not_be_blank(self):
        if self.note is None or not self.note.strip():
            raise ValidationError({"note": ["Supplier note cannot be empty"]})


@negotiation.entity(part_of="Order")
class Proposal:
    buyer_action = ValueObject(BuyerAction)
    supplier_note = ValueObject(SupplierNote)
    sequence = Integer(min_value=1)  # position in the order's log, set on append
    submitted_at = DateTime()

    @invariant.post
    def exactly_one_author(self):
        if (self.buyer_action is None) == (self.supplier_note is None):
            raise ValidationError({"proposal": ["A proposal has exactly one author: the buyer or the supplier"]})

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def from_buyer(cls, action, buyer_user_id, note=None):
        """Record a buyer action such as starting, accepting or cancelling a negotiation."""
        try:
            action = BuyerActionType(action)
        except ValueError:
            raise ValidationError({"action": [f"Unknown buyer action: {action}"]}) from None

        return cls(
            buyer_action=BuyerAction(
                action=action.value,
                buyer_user_id=buyer_user_id,
                note=note,
            ),
            submitted_at=datetime.now(UTC),
        )

    @classmethod
    def from_supplier(cls, note, supplier_user_id):
        """Record a supplier note. Blank or whitespace-only text is rejected."""
        if note is None or not str(note).strip():
            raise ValidationError({"note": ["Supplier note cannot be empty"]})

        return cls(
            supplier_note=SupplierNote(
                note=note,
                supplier_user_id=supplier_user_id,
            ),
            submitted_at=datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------
    def is_buyer_authored(self):
        return self.buyer_action is not None

    def is_supplier_authored(self):
        return self.supplier_note is not None

    @property
    def author(self):
        return ProposalAuthor.BUYER if self.is_buyer_authored() else ProposalAuthor.SUPPLIER

    @property
    def author_id(self):
        if self.is_buyer_authored():
            return self.buyer_action.buyer_user_id
        return self.supplier_note.supplier_user_id

    @property
    def action(self):
        """The buyer action, or None for supplier notes."""
        if self.is_buyer_authored():
            return BuyerActionType(self.buyer_action.action)
        return None

    @property
    def note(self):
        if self.is_buyer_authored():
            return self.buyer_action.note
        return self.supplier_note.note
