# billing/workflow.py
"""
Invoice state machine.

    issued ─send─> sent
    issued / sent / partially_paid ─register_payment─> partially_paid / paid
"""
from core.workflow import Transition, Workflow
from .models import Invoice

S = Invoice.Status

OPEN_STATES = frozenset({S.ISSUED, S.SENT, S.PARTIALLY_PAID})

INVOICE_WORKFLOW = Workflow(
    Invoice,
    [
        Transition(
            action="send",
            sources=frozenset({S.ISSUED}),
            target=S.SENT,
            permission="billing.send_invoice",
        ),
        Transition(
            action="register_partial_payment",
            sources=OPEN_STATES,
            target=S.PARTIALLY_PAID,
            permission="billing.record_payment",
        ),
        Transition(
            action="register_payment",
            sources=OPEN_STATES,
            target=S.PAID,
            permission="billing.record_payment",
        ),
    ],
    final_states=(S.PAID,),
)
