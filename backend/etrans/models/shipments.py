from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import ShipmentStatus, CustomsRegime, Circuit, ContainerType, DocumentType


def _num(value):
    return float(value) if value is not None else None


class Shipment(db.Model):
    """
    Shipment ("dossier") tracked from arrival through customs to delivery.

    MULTI-TENANT: Belongs to exactly one company; every read and write is
    scoped by company_id.

    LIFECYCLE: status moves along ShipmentStatus. ARCHIVED is a terminal
    side-state (soft delete). There is no hard delete.

    LEDGER LOCK: version_id is the optimistic lock shared by all ledger
    mutations on this shipment. Every expense create/update/pay/delete
    touches ledger_updated_at, which bumps version_id; a concurrent writer
    holding a stale version fails with StaleDataError and retries.
    """
    __tablename__ = "shipments"
    __table_args__ = (
        db.Index("ix_shipments_company_status", "company_id", "status"),
        db.Index("ix_shipments_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Uniqueness guaranteed here, not by the generator
    tracking_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    # Client snapshot
    client_name = db.Column(db.String(255), nullable=False)
    client_nif = db.Column(db.String(64), nullable=True)
    client_phone = db.Column(db.String(64), nullable=True)
    client_address = db.Column(db.String(255), nullable=True)

    # Goods
    description = db.Column(db.Text, nullable=False)
    hs_code = db.Column(db.String(16), nullable=True)
    packaging = db.Column(db.String(64), nullable=True)
    package_count = db.Column(db.Integer, nullable=True)
    gross_weight = db.Column(db.Float, nullable=True)
    net_weight = db.Column(db.Float, nullable=True)

    # Values (declared currency) and GNF conversion
    cif_value = db.Column(db.Numeric(16, 2), nullable=True)
    cif_currency = db.Column(db.String(3), nullable=False, default="USD")
    exchange_rate = db.Column(db.Numeric(16, 4), nullable=True)
    cif_value_gnf = db.Column(db.BigInteger, nullable=True)
    fob_value = db.Column(db.Numeric(16, 2), nullable=True)
    freight_value = db.Column(db.Numeric(16, 2), nullable=True)
    insurance_value = db.Column(db.Numeric(16, 2), nullable=True)

    # Transport
    bl_number = db.Column(db.String(64), nullable=True, index=True)
    vessel_name = db.Column(db.String(120), nullable=True)
    voyage_number = db.Column(db.String(64), nullable=True)
    port_of_loading = db.Column(db.String(120), nullable=True)
    port_of_discharge = db.Column(db.String(120), nullable=False, default="CONAKRY")
    eta = db.Column(db.DateTime(timezone=True), nullable=True)
    ata = db.Column(db.DateTime(timezone=True), nullable=True)
    manifest_number = db.Column(db.String(64), nullable=True)
    manifest_year = db.Column(db.Integer, nullable=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    supplier_country = db.Column(db.String(120), nullable=True)

    # Customs
    customs_regime = db.Column(
        db.Enum(CustomsRegime, native_enum=False, validate_strings=True),
        nullable=False,
        default=CustomsRegime.IM4,
    )
    customs_office = db.Column(db.String(32), nullable=True)
    customs_office_name = db.Column(db.String(120), nullable=True)
    declarant_code = db.Column(db.String(32), nullable=True)
    declarant_name = db.Column(db.String(120), nullable=True)
    circuit = db.Column(db.Enum(Circuit, native_enum=False, validate_strings=True), nullable=True)
    ddi_number = db.Column(db.String(64), nullable=True)
    declaration_number = db.Column(db.String(64), nullable=True)
    liquidation_number = db.Column(db.String(64), nullable=True)
    quittance_number = db.Column(db.String(64), nullable=True)
    bae_number = db.Column(db.String(64), nullable=True)
    do_number = db.Column(db.String(64), nullable=True)
    bs_number = db.Column(db.String(64), nullable=True)

    # Duty snapshot (GNF), filled by the duty calculator
    duty_dd = db.Column(db.BigInteger, nullable=True)
    duty_rtl = db.Column(db.BigInteger, nullable=True)
    duty_tva = db.Column(db.BigInteger, nullable=True)
    duty_pc = db.Column(db.BigInteger, nullable=True)
    duty_ca = db.Column(db.BigInteger, nullable=True)
    duty_bfu = db.Column(db.BigInteger, nullable=True)
    total_duties = db.Column(db.BigInteger, nullable=True)

    # Delivery
    delivery_place = db.Column(db.String(255), nullable=True)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_driver = db.Column(db.String(120), nullable=True)
    delivery_phone = db.Column(db.String(64), nullable=True)
    delivery_truck = db.Column(db.String(64), nullable=True)

    status = db.Column(
        db.Enum(ShipmentStatus, native_enum=False, validate_strings=True),
        nullable=False,
        default=ShipmentStatus.PENDING,
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    ledger_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("shipments", lazy=True))
    client = db.relationship("Client", backref=db.backref("shipments", lazy=True))
    created_by = db.relationship("User")
    containers = db.relationship(
        "Container", backref="shipment", lazy=True,
        cascade="all, delete-orphan", order_by="Container.id",
    )
    documents = db.relationship(
        "Document", backref="shipment", lazy=True,
        cascade="all, delete-orphan", order_by="Document.created_at.desc()",
    )
    timeline = db.relationship(
        "TimelineEvent", backref="shipment", lazy=True,
        order_by="TimelineEvent.id.desc()",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Shipment id={self.id} tracking={self.tracking_number!r} status={self.status}>"

    def to_dict(self, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "client_id": self.client_id,
            "created_by_id": self.created_by_id,
            "tracking_number": self.tracking_number,
            "client_name": self.client_name,
            "client_nif": self.client_nif,
            "client_phone": self.client_phone,
            "client_address": self.client_address,
            "description": self.description,
            "hs_code": self.hs_code,
            "packaging": self.packaging,
            "package_count": self.package_count,
            "gross_weight": self.gross_weight,
            "net_weight": self.net_weight,
            "cif_value": _num(self.cif_value),
            "cif_currency": self.cif_currency,
            "exchange_rate": _num(self.exchange_rate),
            "cif_value_gnf": self.cif_value_gnf,
            "fob_value": _num(self.fob_value),
            "freight_value": _num(self.freight_value),
            "insurance_value": _num(self.insurance_value),
            "bl_number": self.bl_number,
            "vessel_name": self.vessel_name,
            "voyage_number": self.voyage_number,
            "port_of_loading": self.port_of_loading,
            "port_of_discharge": self.port_of_discharge,
            "eta": to_utc_z(self.eta),
            "ata": to_utc_z(self.ata),
            "manifest_number": self.manifest_number,
            "manifest_year": self.manifest_year,
            "supplier_name": self.supplier_name,
            "supplier_country": self.supplier_country,
            "customs_regime": self.customs_regime.value if self.customs_regime else None,
            "customs_office": self.customs_office,
            "customs_office_name": self.customs_office_name,
            "declarant_code": self.declarant_code,
            "declarant_name": self.declarant_name,
            "circuit": self.circuit.value if self.circuit else None,
            "ddi_number": self.ddi_number,
            "declaration_number": self.declaration_number,
            "liquidation_number": self.liquidation_number,
            "quittance_number": self.quittance_number,
            "bae_number": self.bae_number,
            "do_number": self.do_number,
            "bs_number": self.bs_number,
            "duty_dd": self.duty_dd,
            "duty_rtl": self.duty_rtl,
            "duty_tva": self.duty_tva,
            "duty_pc": self.duty_pc,
            "duty_ca": self.duty_ca,
            "duty_bfu": self.duty_bfu,
            "total_duties": self.total_duties,
            "delivery_place": self.delivery_place,
            "delivery_date": to_utc_z(self.delivery_date),
            "delivery_driver": self.delivery_driver,
            "delivery_phone": self.delivery_phone,
            "delivery_truck": self.delivery_truck,
            "status": self.status.value,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "containers": [c.to_dict() for c in self.containers],
        }
        if include_children:
            data["documents"] = [d.to_dict() for d in self.documents]
            data["expenses"] = [e.to_dict() for e in self.expenses]
            data["timeline"] = [t.to_dict() for t in self.timeline]
            data["created_by"] = (
                {"id": self.created_by.id, "name": self.created_by.name}
                if self.created_by else None
            )
            data["client"] = self.client.to_dict() if self.client else None
        return data


class Container(db.Model):
    __tablename__ = "containers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)
    number = db.Column(db.String(32), nullable=False)
    type = db.Column(
        db.Enum(ContainerType, native_enum=False, validate_strings=True),
        nullable=False,
        default=ContainerType.DRY_40HC,
    )
    seal_number = db.Column(db.String(64), nullable=True)
    gross_weight = db.Column(db.Float, nullable=True)
    package_count = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)
    temperature = db.Column(db.Float, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "number": self.number,
            "type": self.type.value,
            "seal_number": self.seal_number,
            "gross_weight": self.gross_weight,
            "package_count": self.package_count,
            "description": self.description,
            "temperature": self.temperature,
        }


class Document(db.Model):
    """Reference to a shipment document stored elsewhere (url only)."""
    __tablename__ = "documents"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)
    type = db.Column(db.Enum(DocumentType, native_enum=False, validate_strings=True), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(1024), nullable=False)
    reference = db.Column(db.String(120), nullable=True)
    issue_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "type": self.type.value,
            "name": self.name,
            "url": self.url,
            "reference": self.reference,
            "issue_date": to_utc_z(self.issue_date),
            "created_at": to_utc_z(self.created_at),
        }


class TimelineEvent(db.Model):
    """
    Append-only audit log of a shipment's history.

    IMMUTABLE: Never update or delete. One row per real status change,
    plus creation and other notable actions.
    """
    __tablename__ = "timeline_events"
    __table_args__ = (
        db.Index("ix_timeline_events_shipment_occurred", "shipment_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)
    action = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.Enum(ShipmentStatus, native_enum=False, validate_strings=True), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    user_name = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "action": self.action,
            "description": self.description,
            "status": self.status.value if self.status else None,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "occurred_at": to_utc_z(self.occurred_at),
        }
