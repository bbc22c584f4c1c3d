"""Split engine: turns a bill snapshot into per-participant shares.

Everything here is pure and synchronous. Inputs are duck-typed so the same
code runs over ORM rows, response schemas or plain test doubles:

- bill: ``subtotal``, ``tax``, ``tip_amount``
- item: ``id``, ``name``, ``price``, ``quantity``
- participant: ``id``, ``name``
- claim: ``participant_id``, ``item_id``, ``share``

A claim's ``share`` counts units of the item's quantity. Shares are normalized
against the other claims on the same item, so a lone claim always owns the
whole item and 2:1 claims split it two thirds to one third. No cent rounding
is applied; sums can carry Decimal division residue.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from splitbill.schemas.split import ItemAllocation, ParticipantSplit, SplitItemDetail
from splitbill.utils.decimal_utils import sum_decimals

ZERO = Decimal("0")
ONE = Decimal("1")


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def total_shares_by_item(claims: Iterable) -> Dict:
    """Sum of claimed shares per item id; items without claims are absent"""
    totals: Dict = defaultdict(lambda: ZERO)
    for claim in claims:
        totals[claim.item_id] += _dec(claim.share)
    return dict(totals)


def effective_fraction(share, total_shares) -> Decimal:
    """
    Fraction of an item owned by a claim.

    A zero or missing total is treated as 1.
    """
    total = _dec(total_shares)
    if total == ZERO:
        total = ONE
    return _dec(share) / total


def bill_subtotal(bill, items: Sequence) -> Decimal:
    """The bill's stored subtotal, or the item line-total sum when it has none"""
    if bill.subtotal is not None:
        return _dec(bill.subtotal)
    return sum_decimals([_dec(i.price) * i.quantity for i in items])


def compute_splits(bill, items: Sequence, participants: Sequence, claims: Sequence) -> List[ParticipantSplit]:
    """
    Compute every participant's share of a bill.

    Args:
        bill: Bill with subtotal, tax and tip_amount
        items: Items of the bill
        participants: Participants of the bill; output keeps this order
        claims: Current claim ledger for the bill

    Returns:
        One ParticipantSplit per participant. Claims pointing at unknown
        items are ignored; a zero subtotal gives zero tax and tip shares.
    """
    items_by_id = {item.id: item for item in items}
    totals = total_shares_by_item(claims)

    claims_by_participant: Dict = defaultdict(list)
    for claim in claims:
        claims_by_participant[claim.participant_id].append(claim)

    subtotal = bill_subtotal(bill, items)
    tax = _dec(bill.tax)
    tip_amount = _dec(bill.tip_amount)

    splits = []
    for participant in participants:
        items_total = ZERO
        details = []

        for claim in claims_by_participant.get(participant.id, []):
            item = items_by_id.get(claim.item_id)
            if item is None:
                continue

            fraction = effective_fraction(claim.share, totals.get(item.id))
            amount = _dec(item.price) * item.quantity * fraction
            items_total += amount
            details.append(
                SplitItemDetail(
                    item_id=item.id,
                    item_name=item.name,
                    share=fraction,
                    amount=amount,
                )
            )

        proportion = items_total / subtotal if subtotal > ZERO else ZERO
        tax_share = tax * proportion
        tip_share = tip_amount * proportion

        splits.append(
            ParticipantSplit(
                participant_id=participant.id,
                participant_name=participant.name,
                items_total=items_total,
                tax_share=tax_share,
                tip_share=tip_share,
                total=items_total + tax_share + tip_share,
                items=details,
            )
        )

    return splits


def summarize_items(items: Sequence, claims: Sequence) -> List[ItemAllocation]:
    """
    Claimed and remaining units per item.

    Over-claiming is accepted by the ledger; it is only flagged here.
    """
    totals = total_shares_by_item(claims)
    allocations = []
    for item in items:
        claimed = totals.get(item.id, ZERO)
        quantity = Decimal(item.quantity)
        allocations.append(
            ItemAllocation(
                item_id=item.id,
                quantity=item.quantity,
                claimed=claimed,
                remaining=max(quantity - claimed, ZERO),
                over_claimed=claimed > quantity,
            )
        )
    return allocations
