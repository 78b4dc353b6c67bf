from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import ExpenseType, ExpenseCategory


class Expense(db.Model):
    """
    One ledger line of a shipment.

    PROVISION rows are money received from the client; DISBURSEMENT rows are
    money paid out on the client's behalf. All amounts are whole GNF.

    BALANCE INVARIANT: for every shipment,
        sum(PROVISION) - sum(paid DISBURSEMENT) >= 0
    Provisions count whether or not they are marked paid.
    The ledger service enforces it under the shipment's version lock.

    Once paid, a row is frozen except for its free-text fields and can never
    be deleted.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_expenses_amount_nonnegative"),
        db.Index("ix_expenses_shipment_type_paid", "shipment_id", "type", "paid"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)

    type = db.Column(db.Enum(ExpenseType, native_enum=False, validate_strings=True), nullable=False)
    category = db.Column(db.Enum(ExpenseCategory, native_enum=False, validate_strings=True), nullable=False)
    description = db.Column(db.String(500), nullable=False)

    # Whole GNF
    amount = db.Column(db.BigInteger, nullable=False)
    quantity = db.Column(db.Integer, nullable=True)
    unit_price = db.Column(db.BigInteger, nullable=True)

    reference = db.Column(db.String(120), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shipment = db.relationship(
        "Shipment",
        backref=db.backref("expenses", lazy=True, order_by="Expense.created_at.desc()"),
    )

    def __repr__(self) -> str:
        return f"<Expense id={self.id} {self.type} {self.category} amount={self.amount} paid={self.paid}>"

    def to_dict(self, include_shipment: bool = False) -> dict:
        data = {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "type": self.type.value,
            "category": self.category.value,
            "description": self.description,
            "amount": int(self.amount),
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "reference": self.reference,
            "supplier": self.supplier,
            "paid": self.paid,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_shipment and self.shipment is not None:
            data["shipment"] = {
                "id": self.shipment.id,
                "tracking_number": self.shipment.tracking_number,
                "client_name": self.shipment.client_name,
            }
        return data
