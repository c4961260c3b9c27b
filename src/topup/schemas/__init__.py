"""Public schema exports."""

from .catalog import CategoryCreate, CategoryRead, ProductCreate, ProductRead, ProductUpdate
from .game_account import GameAccountCreate, GameAccountRead, GameAccountUpdate
from .transaction import (
	GameAccountSnapshot,
	TransactionCancel,
	TransactionCreate,
	TransactionLogRead,
	TransactionRead,
	TransactionReceipt,
	TransactionStatusUpdate,
)
from .voucher import (
	VoucherCreate,
	VoucherEvaluateRequest,
	VoucherEvaluation,
	VoucherRead,
	VoucherUpdate,
	VoucherUsageStats,
	VoucherUserUsage,
)

__all__ = [
	"CategoryCreate",
	"CategoryRead",
	"GameAccountCreate",
	"GameAccountRead",
	"GameAccountSnapshot",
	"GameAccountUpdate",
	"ProductCreate",
	"ProductRead",
	"ProductUpdate",
	"TransactionCancel",
	"TransactionCreate",
	"TransactionLogRead",
	"TransactionRead",
	"TransactionReceipt",
	"TransactionStatusUpdate",
	"VoucherCreate",
	"VoucherEvaluateRequest",
	"VoucherEvaluation",
	"VoucherRead",
	"VoucherUpdate",
	"VoucherUsageStats",
	"VoucherUserUsage",
]
