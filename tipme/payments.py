"""Payment capture for newly created tips.

``create_tip`` persists every tip as PENDING and then asks a
:class:`PaymentCapture` for the outcome. A real processor integration
replaces :func:`get_payment_capture` (or overrides it as a FastAPI
dependency) and nothing else in the tip flow changes.
"""
import logging

from .models import Tip, TipStatus

logger = logging.getLogger(__name__)


class PaymentCapture:
    def capture(self, tip: Tip) -> TipStatus:
        """Capture funds for ``tip`` and return COMPLETED or FAILED."""
        raise NotImplementedError


class AutoCompleteCapture(PaymentCapture):
    """Stand-in processor: every tip is treated as captured immediately."""

    def capture(self, tip: Tip) -> TipStatus:
        logger.debug("auto-completing tip %s (%d cents)", tip.id, tip.amount_cents)
        return TipStatus.COMPLETED


_default_capture = AutoCompleteCapture()


def get_payment_capture() -> PaymentCapture:
    return _default_capture
