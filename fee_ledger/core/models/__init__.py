from fee_ledger.core.models.tenant import Tenant
from fee_ledger.core.models.academic_year import AcademicYear
from fee_ledger.core.models.class_model import SchoolClass
from fee_ledger.auth.models import User
from fee_ledger.core.models.fee_type import FeeType
from fee_ledger.core.models.fee_structure import FeeStructure, FeeStructureItem
from fee_ledger.core.models.fee_installment import FeeInstallment
from fee_ledger.core.models.student_fee import StudentFee
from fee_ledger.core.models.fee_payment import FeePayment
from fee_ledger.core.models.fee_receipt import FeeReceipt
from fee_ledger.core.models.receipt_sequence import ReceiptSequence
from fee_ledger.core.models.fee_discount import FeeDiscount
from fee_ledger.core.models.fee_audit_log import FeeAuditLog
from fee_ledger.core.models.fee_reminder import FeeReminder

__all__ = [
    "Tenant",
    "AcademicYear",
    "SchoolClass",
    "User",
    "FeeType",
    "FeeStructure",
    "FeeStructureItem",
    "FeeInstallment",
    "StudentFee",
    "FeePayment",
    "FeeReceipt",
    "ReceiptSequence",
    "FeeDiscount",
    "FeeAuditLog",
    "FeeReminder",
]
