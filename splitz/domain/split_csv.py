"""CSV snapshot of items, assignments and per-person amounts.

Layout::

    "Item Name","Qty","Price","HST?","HST Amount","Price incl Tax","Alice","Bob","Alice (Pays)","Bob (Pays)"
    "Milk","2","3.00","No","0.00","6.00","X","","6.00",""
    ...
    "","","","","","","","","",""
    "Fees & Adjustments","","","","","","","","",""
    "BAG","","0.10","Yes","0.01","0.11","X","X","0.06","0.06"

``Price`` is the unit price; the line total is ``Qty x Price``. Import reads
the item rows only and replaces the whole item list.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from splitz.domain.engine import item_allocations
from splitz.domain.errors import CsvFormatError
from splitz.domain.receipt import LineItem, Taxable
from splitz.domain.rules import build_split_rules
from splitz.domain.session import Person, SplitSession, new_person_id
from splitz.domain.settings import SplitSettings
from splitz.domain.tax import post_tax, quantize_money, tax

ITEM_NAME = "Item Name"
QTY = "Qty"
PRICE = "Price"
TAXABLE = "HST?"
TAX_AMOUNT = "HST Amount"
PRICE_INCL_TAX = "Price incl Tax"
FIXED_COLUMNS = (ITEM_NAME, QTY, PRICE, TAXABLE, TAX_AMOUNT, PRICE_INCL_TAX)
FEES_SECTION = "Fees & Adjustments"
PAYS_SUFFIX = " (Pays)"
MARKER = "X"
UNIT_PRICE_PLACES = Decimal("0.000001")


@dataclass
class CsvImport:
    items: list[LineItem]
    people: list[Person]
    assignments: dict[str, list[str]]


def _format_quantity(quantity: Decimal) -> str:
    if quantity == quantity.to_integral_value():
        return str(int(quantity))
    return str(quantity.normalize())


def _format_taxable(taxable: Taxable) -> str:
    if taxable is Taxable.TAXABLE:
        return "Yes"
    if taxable is Taxable.NON_TAXABLE:
        return "No"
    return ""


def _parse_taxable(cell: str | None) -> Taxable:
    if cell is None:
        return Taxable.UNKNOWN
    text = cell.strip().lower()
    if text in ("yes", "y", "true"):
        return Taxable.TAXABLE
    if text in ("no", "n", "false"):
        return Taxable.NON_TAXABLE
    return Taxable.UNKNOWN


def _parse_decimal(cell: str | None) -> Decimal | None:
    if cell is None:
        return None
    text = cell.strip().replace("$", "").replace(",", "")
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _format_unit_price(item: LineItem) -> str:
    if not item.quantity:
        return f"{item.price:.2f}"
    unit = item.price / item.quantity
    if unit == quantize_money(unit):
        return f"{unit:.2f}"
    # Enough places that qty x price rounds back to the line total.
    return str(unit.quantize(UNIT_PRICE_PLACES).normalize())


def export_csv(session: SplitSession, settings: SplitSettings) -> str:
    """Render the session's items, fees and discounts as CSV text."""
    rate = settings.tax_rate
    people = session.people
    person_ids = set(session.person_ids())
    names = [person.display_name for person in people]
    header = list(FIXED_COLUMNS) + names + [f"{name}{PAYS_SUFFIX}" for name in names]
    blank_people = [""] * (2 * len(people))

    rules = {rule.item_id: rule for rule in build_split_rules(session)}
    rows: list[list[str]] = [header]

    for item in session.receipt.line_items:
        taxable = item.taxable.is_taxable
        pays: dict[str, Decimal] = {}
        rule = rules.get(item.item_id)
        if rule is not None:
            narrowed, _ = rule.restricted_to(person_ids)
            pays = {pid: amount for pid, amount, _ in item_allocations(item, narrowed, rate)}
        rows.append(
            [
                item.display_name,
                _format_quantity(item.quantity),
                _format_unit_price(item),
                _format_taxable(item.taxable),
                f"{quantize_money(tax(item.price, taxable, rate)):.2f}",
                f"{quantize_money(post_tax(item.price, taxable, rate)):.2f}",
            ]
            + [MARKER if person.person_id in pays else "" for person in people]
            + [f"{pays[person.person_id]:.2f}" if person.person_id in pays else "" for person in people]
        )

    charges = [
        (fee.category, fee.amount, fee.taxable, fee.split_among) for fee in session.receipt.fees
    ] + [
        (discount.label, -discount.amount, discount.taxable, discount.split_among)
        for discount in session.receipt.discounts
    ]
    if charges:
        rows.append([""] * len(FIXED_COLUMNS) + blank_people)
        rows.append([FEES_SECTION] + [""] * (len(FIXED_COLUMNS) - 1) + blank_people)
    for label, amount, taxable_flag, split_among in charges:
        taxable = taxable_flag.is_taxable
        total = post_tax(amount, taxable, rate)
        scope = [pid for pid in split_among if pid in person_ids] if split_among else session.person_ids()
        per_person = quantize_money(total / len(scope)) if scope else None
        rows.append(
            [
                label,
                "",
                f"{amount:.2f}",
                _format_taxable(taxable_flag),
                f"{quantize_money(tax(amount, taxable, rate)):.2f}",
                f"{quantize_money(total):.2f}",
            ]
            + [MARKER if person.person_id in scope else "" for person in people]
            + [f"{per_person:.2f}" if person.person_id in scope else "" for person in people]
        )

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def _person_column_indices(header: list[str]) -> list[int]:
    return [
        idx
        for idx, cell in enumerate(header)
        if cell and cell not in FIXED_COLUMNS and not cell.endswith(PAYS_SUFFIX)
    ]


def _match_person_columns(header: list[str], columns: list[int], people: list[Person]) -> dict[str, int]:
    """Pair each person with the next unused column carrying their name.

    Matching in column order keeps people who share a display name on
    their own columns.
    """
    unused = list(columns)
    matched: dict[str, int] = {}
    for person in people:
        idx = next((i for i in unused if header[i] == person.display_name), None)
        if idx is None:
            continue
        unused.remove(idx)
        matched[person.person_id] = idx
    return matched


def import_csv(text: str, people: list[Person] | None = None) -> CsvImport:
    """Rebuild line items and the assignment matrix from exported CSV text.

    Person columns are matched against ``people`` by display name, in column
    order; when ``people`` is None one person is created per column instead.
    The line total of each item is ``Qty x Price``. Rows without a name, or
    with a zero/unreadable quantity or price, are skipped.
    """
    rows = [row for row in csv.reader(io.StringIO(text.lstrip("\ufeff")))]
    rows = [[cell.strip() for cell in row] for row in rows]
    header_index = next((i for i, row in enumerate(rows) if any(row)), None)
    if header_index is None:
        raise CsvFormatError("CSV is empty")
    header = rows[header_index]

    missing = [column for column in (ITEM_NAME, QTY, PRICE) if column not in header]
    if missing:
        raise CsvFormatError(f"CSV is missing required columns: {', '.join(missing)}")
    name_idx = header.index(ITEM_NAME)
    qty_idx = header.index(QTY)
    price_idx = header.index(PRICE)
    taxable_idx = header.index(TAXABLE) if TAXABLE in header else None
    tax_idx = header.index(TAX_AMOUNT) if TAX_AMOUNT in header else None

    columns = _person_column_indices(header)
    if people is None:
        people = [Person(person_id=new_person_id(), display_name=header[idx]) for idx in columns]
        person_columns = {person.person_id: idx for person, idx in zip(people, columns)}
    else:
        person_columns = _match_person_columns(header, columns, people)

    def cell(row: list[str], idx: int | None) -> str | None:
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    items: list[LineItem] = []
    assignments: dict[str, list[str]] = {}
    for row in rows[header_index + 1 :]:
        if not any(row):
            continue
        name = cell(row, name_idx) or ""
        if name == FEES_SECTION:
            break
        if not name or name == ITEM_NAME:
            continue
        quantity = _parse_decimal(cell(row, qty_idx))
        price = _parse_decimal(cell(row, price_idx))
        if not quantity or not price:
            continue

        item_id = f"item-{len(items) + 1}"
        items.append(
            LineItem(
                item_id=item_id,
                name_raw=name,
                quantity=quantity,
                unit_price=price,
                line_subtotal=quantize_money(quantity * price),
                taxable=_parse_taxable(cell(row, taxable_idx)),
                tax_amount=_parse_decimal(cell(row, tax_idx)),
            )
        )
        assigned = [
            pid
            for pid, idx in person_columns.items()
            if (cell(row, idx) or "").upper() == MARKER
        ]
        if assigned:
            assignments[item_id] = assigned

    return CsvImport(items=items, people=list(people), assignments=assignments)
