from fintrack.schemas.base import (
    AccountCreate,
    AccountDetailResponse,
    AccountResponse,
    BudgetResponse,
    BudgetUpdate,
    BudgetUsage,
    BulkDeleteRequest,
    BulkDeleteResponse,
    CurrentBudget,
    DashboardResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    UserResponse,
    UserSync,
)
from fintrack.schemas.receipt import (
    ExtractionResult,
    ReceiptUpload,
    ScanNotice,
    ScanResponse,
)
