"""
Size and SKU normalization for footwear products.

Sizes are free-form labels ("42", "9.5", "XL"). They are ordered by their
numeric content first and by the raw label second; labels without any
numeric content sort last.
"""
import math
import re
from typing import Any, Dict, Iterable, List, Optional

NON_NUMERIC = re.compile(r'[^0-9.]')
DIGIT_GROUP = re.compile(r'\d+')
HAS_LETTER = re.compile(r'[A-Za-z]')

BRAND_CODES = {
    'Adidas': 'ADI',
    'Nike': 'NK',
    'Vans': 'VNS',
    'LV': 'LV',
    'Luis Vuitton': 'LV',
}


def size_value(size: Any) -> float:
    """Numeric part of a size label, or +inf when there is none."""
    digits = NON_NUMERIC.sub('', str(size))
    if not digits:
        return math.inf
    try:
        return float(digits)
    except ValueError:
        # e.g. "9.5.1"
        return math.inf


def size_sort_key(size: Any):
    label = str(size)
    return (size_value(label), label)


def sort_size_labels(labels: Iterable[Any]) -> List[str]:
    """Deduplicate and order a plain list of size labels."""
    unique = dict.fromkeys(str(label).strip() for label in labels)
    return sorted((label for label in unique if label), key=size_sort_key)


def sort_size_entries(entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(entries, key=lambda entry: size_sort_key(entry['size']))


def _coerce_quantity(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def normalize_size_entries(entries: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Canonicalize a size list that replaces a product's ledger wholesale.

    Entries are deduplicated by label (last one wins), entries without a
    positive quantity are dropped and the rest is ordered by size.
    Normalizing an already normalized list returns it unchanged.
    """
    by_label: Dict[str, int] = {}
    for entry in entries or []:
        label = str(entry.get('size', '')).strip()
        if not label:
            continue
        by_label.pop(label, None)
        by_label[label] = _coerce_quantity(entry.get('quantity'))

    kept = [
        {'size': label, 'quantity': quantity}
        for label, quantity in by_label.items()
        if quantity > 0
    ]
    return sort_size_entries(kept)


def brand_code(category: Optional[str]) -> str:
    category = category or ''
    return BRAND_CODES.get(category) or category.upper()[:3]


def model_code(name: Optional[str], category: Optional[str] = '') -> str:
    """
    Short model code from a product name.

    The brand prefix is stripped from the name, then the code is built from
    the initials of the first two alphabetic tokens plus the first digit
    group, truncated to three characters.
    """
    model = str(name or '')
    brand = str(category or '')
    if brand and model.lower().startswith(brand.lower()):
        model = model[len(brand):].strip()

    tokens = model.split()
    initials = [token[0].upper() for token in tokens if HAS_LETTER.search(token)]
    digits = next(
        (match.group() for match in (DIGIT_GROUP.search(token) for token in tokens) if match),
        '',
    )

    code = ''.join(initials[:2]) + digits
    code = code[:3]
    if code:
        return code
    if tokens:
        return tokens[0][:3].upper()
    return 'MDL'


def format_sku(category: Optional[str], name: Optional[str], sequence: int) -> str:
    return f"{brand_code(category)}-{model_code(name, category)}-{sequence:03d}"
