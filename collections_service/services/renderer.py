"""
Message rendering by placeholder substitution into a template body.

Placeholders use ``{name}`` syntax. Every occurrence of a declared placeholder
is replaced in a single pass, so substituted values are never re-scanned.
Tokens that are not declared on the template are left verbatim.
"""
import re
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from collections_service.models.domain import Customer, Debt, Template

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

# Placeholders bound by build_substitutions
KNOWN_PLACEHOLDERS = (
    "name",
    "amount",
    "original_amount",
    "days_in_arrears",
    "due_date",
    "invoice_number",
    "company",
    "description",
    "email",
    "phone",
)


def extract_placeholders(body: str) -> List[str]:
    """Placeholder names in order of first appearance."""
    seen: List[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(body):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


def render(template: Template, substitutions: Mapping[str, str]) -> str:
    """
    Substitute bound values into the template body.

    Args:
        template: Template whose declared placeholders are substituted
        substitutions: Placeholder name to value

    Returns:
        Rendered message body. Declared placeholders without a binding render
        as an empty string.
    """
    declared = set(template.placeholders)

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in declared:
            return match.group(0)
        value = substitutions.get(name)
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, template.body)


def format_amount(amount: Decimal, currency_symbol: str = "$") -> str:
    return f"{currency_symbol}{amount:,.2f}"


def build_substitutions(
    customer: Customer,
    debt: Debt,
    currency_symbol: str = "$",
    date_format: str = "%Y-%m-%d",
) -> Dict[str, str]:
    """Bindings for every known placeholder available on the customer and debt."""
    bindings: Dict[str, Optional[str]] = {
        "name": customer.name,
        "amount": format_amount(debt.amount, currency_symbol),
        "original_amount": format_amount(debt.original_amount, currency_symbol),
        "days_in_arrears": str(debt.days_in_arrears),
        "due_date": debt.due_date.strftime(date_format),
        "invoice_number": debt.invoice_number,
        "company": customer.company,
        "description": debt.description,
        "email": customer.email,
        "phone": customer.phone,
    }
    return {key: value for key, value in bindings.items() if value is not None}
