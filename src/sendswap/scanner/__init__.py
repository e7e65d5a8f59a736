"""Deposit scanning and the deposit monitor."""

from sendswap.scanner.base import DepositScanner, SimulatedScanner, TransactionInfo
from sendswap.scanner.factory import ScannerFactory

__all__ = ["DepositScanner", "ScannerFactory", "SimulatedScanner", "TransactionInfo"]
