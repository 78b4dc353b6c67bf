"""
Closed enumerations for the freight/customs domain.

Adding a category, status or type is a schema change, not a runtime string.
Columns store the member name (native Enum types are disabled so SQLite and
PostgreSQL behave the same and migrations stay simple).
"""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    """User roles ordered by privilege, DIRECTOR highest."""
    DIRECTOR = "DIRECTOR"
    ACCOUNTANT = "ACCOUNTANT"
    AGENT = "AGENT"
    CLIENT = "CLIENT"


class ShipmentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ARRIVED = "ARRIVED"
    DDI_OBTAINED = "DDI_OBTAINED"
    DECLARATION_FILED = "DECLARATION_FILED"
    LIQUIDATION_ISSUED = "LIQUIDATION_ISSUED"
    CUSTOMS_PAID = "CUSTOMS_PAID"
    BAE_ISSUED = "BAE_ISSUED"
    TERMINAL_PAID = "TERMINAL_PAID"
    DO_RELEASED = "DO_RELEASED"
    EXIT_NOTE_ISSUED = "EXIT_NOTE_ISSUED"
    IN_DELIVERY = "IN_DELIVERY"
    DELIVERED = "DELIVERED"
    INVOICED = "INVOICED"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


# Between arrival and delivery; used by dashboard stats
IN_PROGRESS_STATUSES = (
    ShipmentStatus.ARRIVED,
    ShipmentStatus.DDI_OBTAINED,
    ShipmentStatus.DECLARATION_FILED,
    ShipmentStatus.LIQUIDATION_ISSUED,
    ShipmentStatus.CUSTOMS_PAID,
    ShipmentStatus.BAE_ISSUED,
    ShipmentStatus.TERMINAL_PAID,
    ShipmentStatus.DO_RELEASED,
    ShipmentStatus.EXIT_NOTE_ISSUED,
    ShipmentStatus.IN_DELIVERY,
)


class CustomsRegime(str, enum.Enum):
    IM4 = "IM4"
    IM5 = "IM5"
    IM6 = "IM6"
    IM7 = "IM7"
    EX1 = "EX1"
    EX2 = "EX2"
    TR = "TR"


class Circuit(str, enum.Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


class ContainerType(str, enum.Enum):
    DRY_20 = "DRY_20"
    DRY_40 = "DRY_40"
    DRY_40HC = "DRY_40HC"
    REEFER_20 = "REEFER_20"
    REEFER_40 = "REEFER_40"
    REEFER_40HR = "REEFER_40HR"
    OPEN_TOP_20 = "OPEN_TOP_20"
    OPEN_TOP_40 = "OPEN_TOP_40"
    FLAT_RACK_20 = "FLAT_RACK_20"
    FLAT_RACK_40 = "FLAT_RACK_40"


class DocumentType(str, enum.Enum):
    BL = "BL"
    INVOICE = "INVOICE"
    PACKING_LIST = "PACKING_LIST"
    DDI = "DDI"
    PHYTO_CERT = "PHYTO_CERT"
    ORIGIN_CERT = "ORIGIN_CERT"
    EUR1 = "EUR1"
    TRANSIT_ORDER = "TRANSIT_ORDER"
    DECLARATION = "DECLARATION"
    LIQUIDATION = "LIQUIDATION"
    QUITTANCE = "QUITTANCE"
    BAE = "BAE"
    DO = "DO"
    EXIT_NOTE = "EXIT_NOTE"
    EIR = "EIR"
    TERMINAL_INVOICE = "TERMINAL_INVOICE"
    TERMINAL_RECEIPT = "TERMINAL_RECEIPT"
    MSC_INVOICE = "MSC_INVOICE"
    DELIVERY_NOTE = "DELIVERY_NOTE"
    CUSTOMS_INVOICE = "CUSTOMS_INVOICE"
    OTHER = "OTHER"


class ExpenseType(str, enum.Enum):
    PROVISION = "PROVISION"        # money received from the client
    DISBURSEMENT = "DISBURSEMENT"  # money paid out on the client's behalf


class ExpenseCategory(str, enum.Enum):
    DD = "DD"
    TVA = "TVA"
    RTL = "RTL"
    PC = "PC"
    CA = "CA"
    BFU = "BFU"
    DDI_FEE = "DDI_FEE"
    ACCONAGE = "ACCONAGE"
    BRANCHEMENT = "BRANCHEMENT"
    SURESTARIES = "SURESTARIES"
    MANUTENTION = "MANUTENTION"
    PASSAGE_TERRE = "PASSAGE_TERRE"
    RELEVAGE = "RELEVAGE"
    SECURITE_TERMINAL = "SECURITE_TERMINAL"
    DO_FEE = "DO_FEE"
    SEAWAY_BILL = "SEAWAY_BILL"
    MANIFEST_FEE = "MANIFEST_FEE"
    CONTAINER_DAMAGE = "CONTAINER_DAMAGE"
    SECURITE_MSC = "SECURITE_MSC"
    SURCHARGE = "SURCHARGE"
    PAC = "PAC"
    ADP_FEE = "ADP_FEE"
    TRANSPORT = "TRANSPORT"
    TRANSPORT_ADD = "TRANSPORT_ADD"
    HONORAIRES = "HONORAIRES"
    COMMISSION = "COMMISSION"
    ASSURANCE = "ASSURANCE"
    MAGASINAGE = "MAGASINAGE"
    SCANNER = "SCANNER"
    ESCORTE = "ESCORTE"
    AUTRE = "AUTRE"


# Categories produced by the customs duty calculator
DUTY_CATEGORIES = (
    ExpenseCategory.DD,
    ExpenseCategory.RTL,
    ExpenseCategory.PC,
    ExpenseCategory.CA,
    ExpenseCategory.TVA,
    ExpenseCategory.BFU,
)
