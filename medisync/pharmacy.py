"""
Catalog and cart helpers for the pharmacy storefront.
"""
# medisync/pharmacy.py

from __future__ import annotations

from typing import Dict, List

from medisync.config import REFILL_PRICE
from medisync.models import CartItem, Medication, Product

ALL_CATEGORIES = 'All'
PRESCRIPTION_CATEGORY = 'Prescription'
PRESCRIPTION_IMAGE = ('https://images.unsplash.com/photo-1585435557343-3b092031a831'
                      '?auto=format&fit=crop&q=80&w=200')
MAX_DRUG_SUGGESTIONS = 5


def categories(products: List[Product]) -> List[str]:
    """'All' followed by each distinct product category, in catalog order."""
    seen = []
    for product in products:
        if product.category not in seen:
            seen.append(product.category)
    return [ALL_CATEGORIES] + seen


def filter_products(products: List[Product], query: str = '', category: str = ALL_CATEGORIES) -> List[Product]:
    """Plain-text catalog search within a category.

    Args:
        products: The full catalog.
        query: Case-insensitive substring matched against name and description.
        category: A category name, or 'All'.
    """
    in_category = [p for p in products if category == ALL_CATEGORIES or p.category == category]
    needle = (query or '').strip().lower()
    if not needle:
        return in_category
    return [p for p in in_category if needle in p.name.lower() or needle in p.description.lower()]


def products_by_ids(products: List[Product], ids: List[str]) -> List[Product]:
    """Catalog products whose id is in `ids`, kept in catalog order."""
    wanted = set(ids)
    return [p for p in products if p.id in wanted]


def resolve_scan_matches(matches: List[Dict], products: List[Product]) -> List[Dict]:
    """Turns AI prescription matches into `{product, quantity}` pairs.

    Unknown product ids are dropped; a missing or invalid quantity counts as one.
    """
    by_id = {p.id: p for p in products}
    found = []
    for match in matches:
        product = by_id.get(match.get('product_id'))
        if product is None:
            continue
        try:
            quantity = int(match.get('quantity') or 1)
        except (TypeError, ValueError):
            quantity = 1
        found.append({"product": product, "quantity": max(1, quantity)})
    return found


def medication_to_cart_item(med: Medication, quantity: int = 1) -> CartItem:
    """Wraps a medication as a flat-priced prescription refill line."""
    return CartItem(
        id=med.id,
        name=med.name,
        category=PRESCRIPTION_CATEGORY,
        price=REFILL_PRICE,
        image=PRESCRIPTION_IMAGE,
        description=f"Refill for {med.name} {med.dosage}",
        stock=999,  # authorised prescriptions are not stock-limited
        quantity=quantity,
        medication_id=med.id,
    )


def suggest_drugs(text: str, drugs: List[str], limit: int = MAX_DRUG_SUGGESTIONS) -> List[str]:
    """Type-ahead for the prescribe form; needs at least two characters."""
    if not text or len(text) <= 1:
        return []
    needle = text.lower()
    return [d for d in drugs if needle in d.lower()][:limit]
