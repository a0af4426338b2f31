# purchasing/workflow.py
"""
Purchase order and shopping list state machines.

    draft ─send─> sent ─receive─> received
      └──────┴─cancel─> cancelled

    draft ─finalize─> finalized ─order─> ordered
      └──────────order───────────┘
"""
from typing import Optional

from core.workflow import Transition, Workflow
from .models import PurchaseOrder, ShoppingList

S = PurchaseOrder.Status
L = ShoppingList.Status


def has_lines(purchase_order: PurchaseOrder) -> Optional[str]:
    return None if purchase_order.lines.exists() else "purchase order has no lines"


def has_items(shopping_list: ShoppingList) -> Optional[str]:
    return None if shopping_list.items.exists() else "shopping list has no items"


PURCHASE_ORDER_WORKFLOW = Workflow(
    PurchaseOrder,
    [
        Transition(
            action="send",
            sources=frozenset({S.DRAFT}),
            target=S.SENT,
            permission="purchasing.manage_purchase_order",
            requires=(has_lines,),
        ),
        Transition(
            action="receive",
            sources=frozenset({S.SENT}),
            target=S.RECEIVED,
            permission="purchasing.receive_purchase_order",
        ),
        Transition(
            action="cancel",
            sources=frozenset({S.DRAFT, S.SENT}),
            target=S.CANCELLED,
            permission="purchasing.manage_purchase_order",
        ),
    ],
    final_states=(S.RECEIVED, S.CANCELLED),
)

SHOPPING_LIST_WORKFLOW = Workflow(
    ShoppingList,
    [
        Transition(
            action="finalize",
            sources=frozenset({L.DRAFT}),
            target=L.FINALIZED,
            permission="purchasing.manage_shopping_list",
            requires=(has_items,),
        ),
        Transition(
            action="order",
            sources=frozenset({L.DRAFT, L.FINALIZED}),
            target=L.ORDERED,
            permission="purchasing.manage_shopping_list",
            requires=(has_items,),
        ),
    ],
    final_states=(L.ORDERED,),
)
