from enum import Enum


class InstallmentType(str, Enum):
    ANNUAL = "ANNUAL"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    QUARTERLY = "QUARTERLY"
    MONTHLY = "MONTHLY"


class FeeStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    # Derived on read from installment due dates; never stored on student_fees
    OVERDUE = "OVERDUE"


class PaymentMode(str, Enum):
    CASH = "CASH"
    CHEQUE = "CHEQUE"
    CARD = "CARD"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    BANK_TRANSFER = "BANK_TRANSFER"


class DiscountType(str, Enum):
    SCHOLARSHIP = "SCHOLARSHIP"
    SIBLING = "SIBLING"
    STAFF_WARD = "STAFF_WARD"
    MERIT = "MERIT"
    FINANCIAL_AID = "FINANCIAL_AID"
    OTHER = "OTHER"


class FeeAuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DEACTIVATE = "DEACTIVATE"
    CANCEL = "CANCEL"
    VERIFY = "VERIFY"


class ReminderType(str, Enum):
    BEFORE_DUE = "BEFORE_DUE"
    ON_DUE = "ON_DUE"
    AFTER_DUE = "AFTER_DUE"
