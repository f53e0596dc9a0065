"""
Bill change notification

Services call every registered BillObserver after a successful commit.
An observer failing must not undo a committed bill, so errors are logged.
"""
from typing import Iterable, Optional, List
import logging

from app.modules.ledger.ports import BillObserver

logger = logging.getLogger(__name__)


def _label(bill) -> str:
    return str(getattr(bill, "bill_number", None) or getattr(bill, "invoice_number", None) or bill.id)


class LoggingBillObserver:
    """Default observer: writes bill events to the application log"""

    def bill_saved(self, bill) -> None:
        logger.info(f"Bill {_label(bill)} saved with status {bill.status.value}")

    def payment_recorded(self, bill, payment) -> None:
        logger.info(f"Payment of {payment.amount} ({payment.mode.value}) recorded on bill {_label(bill)}")

    def status_changed(self, bill, previous) -> None:
        logger.info(f"Bill {_label(bill)} moved from {previous.value} to {bill.status.value}")


class BillNotifier:
    def __init__(self, observers: Optional[Iterable[BillObserver]] = None):
        self.observers: List[BillObserver] = list(observers) if observers is not None else [LoggingBillObserver()]

    def _emit(self, event: str, *args):
        for observer in self.observers:
            try:
                getattr(observer, event)(*args)
            except Exception:
                logger.exception(f"Observer {type(observer).__name__} failed on {event}")

    def bill_saved(self, bill):
        self._emit("bill_saved", bill)

    def payment_recorded(self, bill, payment):
        self._emit("payment_recorded", bill, payment)

    def status_changed(self, bill, previous):
        if bill.status != previous:
            self._emit("status_changed", bill, previous)
