"""Service layer exports."""

from . import (
	catalog_service,
	expiry_service,
	game_account_service,
	payment_service,
	quota_ledger,
	transaction_service,
	transaction_state,
	voucher_evaluator,
	voucher_service,
)

__all__ = [
	"catalog_service",
	"expiry_service",
	"game_account_service",
	"payment_service",
	"quota_ledger",
	"transaction_service",
	"transaction_state",
	"voucher_evaluator",
	"voucher_service",
]
