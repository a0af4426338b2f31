# purchasing/handlers.py
import logging

from core.domain.dispatcher import register_handler
from core.services.notifications import send_email
from .domain import PurchaseOrderSent
from .models import PurchaseOrder

logger = logging.getLogger(__name__)


@register_handler(PurchaseOrderSent)
def email_supplier_on_purchase_order(event: PurchaseOrderSent) -> None:
    """
    Mail the order lines to the supplier. Suppliers without an email
    address get the order by phone; nothing to do here.
    """
    purchase_order = (
        PurchaseOrder.objects.select_related("supplier").filter(pk=event.purchase_order_id).first()
    )
    if purchase_order is None:
        return

    rows = [
        f"- {line.product_name}: {line.quantity} {line.unit}"
        for line in purchase_order.lines.all()
    ]
    expected = (
        f"Consegna richiesta: {purchase_order.expected_date:%d/%m/%Y}\n"
        if purchase_order.expected_date
        else ""
    )
    send_email(
        f"Ordine d'acquisto {purchase_order.number}",
        f"Spett.le {purchase_order.supplier.company_name},\n\n"
        f"vi trasmettiamo l'ordine {purchase_order.number}:\n\n"
        + "\n".join(rows)
        + f"\n\n{expected}",
        [purchase_order.supplier.email],
    )
