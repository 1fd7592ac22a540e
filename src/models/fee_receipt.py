"""Fee receipt models."""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from models.codec import (
    check_keys,
    optional_str,
    require_list,
    require_mapping,
    require_number,
    require_str,
)


@dataclass
class FeeReceipt:
    """One paid fee receipt."""

    receipt_no: str
    amount: float
    paid_on: str
    cycle: str
    semester: Optional[str] = None
    pdf_url: Optional[str] = None
    receipt_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "receipt_no": self.receipt_no,
            "amount": self.amount,
            "paid_on": self.paid_on,
            "cycle": self.cycle,
            "semester": self.semester,
            "pdf_url": self.pdf_url,
            "receipt_id": self.receipt_id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "FeeReceipt":
        what = "fee receipt"
        data = require_mapping(data, what)
        check_keys(
            data,
            what,
            required=("receipt_no", "amount", "paid_on", "cycle"),
            optional=("semester", "pdf_url", "receipt_id"),
        )
        return cls(
            receipt_no=require_str(data, "receipt_no", what),
            amount=require_number(data, "amount", what),
            paid_on=require_str(data, "paid_on", what),
            cycle=require_str(data, "cycle", what),
            semester=optional_str(data, "semester", what),
            pdf_url=optional_str(data, "pdf_url", what),
            receipt_id=optional_str(data, "receipt_id", what),
        )


@dataclass
class FeeReceipts:
    """All receipts of a student with the total amount paid."""

    receipts: List[FeeReceipt] = field(default_factory=list)
    total_paid: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "receipts": [r.to_dict() for r in self.receipts],
            "total_paid": self.total_paid,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "FeeReceipts":
        data = require_mapping(data, "fee receipts")
        check_keys(data, "fee receipts", required=("receipts", "total_paid"))
        return cls(
            receipts=[
                FeeReceipt.from_dict(r)
                for r in require_list(data["receipts"], "fee receipts.receipts")
            ],
            total_paid=require_number(data, "total_paid", "fee receipts"),
        )
