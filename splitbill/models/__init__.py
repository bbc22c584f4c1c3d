"""SQLAlchemy models"""
from splitbill.models.bill import Bill, BillStatus
from splitbill.models.bill_item import BillItem
from splitbill.models.participant import Participant
from splitbill.models.item_claim import ItemClaim

__all__ = ["Bill", "BillStatus", "BillItem", "Participant", "ItemClaim"]
