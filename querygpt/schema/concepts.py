"""
Business concept glossary.

Static, tenant-independent hints mapping common business terms to the
canonical tables and join columns. Rendered verbatim into every
session-opening instruction.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ConceptHint:
    """Canonical tables and join guidance for one business term."""

    concept: str
    tables: tuple[str, ...]
    guidance: str

    def render(self) -> str:
        return f"- {self.concept}: {', '.join(self.tables)}. {self.guidance}"


CONCEPT_HINTS: tuple[ConceptHint, ...] = (
    ConceptHint(
        concept="user",
        tables=("ck_user",),
        guidance=(
            "Salesmen, supervisors and distributors are rows of ck_user; join on "
            "ck_user.loginid. Use ck_user.name for a user's name, not the login id."
        ),
    ),
    ConceptHint(
        concept="outlet",
        tables=("ck_outlet_details",),
        guidance=(
            "Retailers, stores and customers are outlets; join on outletcode. "
            "Use ck_outlet_details.outletname when the user asks for an outlet name."
        ),
    ),
    ConceptHint(
        concept="product",
        tables=("ck_sku_details",),
        guidance=(
            "Products, SKUs and items join on skucode. Use ck_sku_details.skuname "
            "when the user asks for a product name."
        ),
    ),
    ConceptHint(
        concept="location",
        tables=("ck_location_hierarchy", "ck_location_master"),
        guidance=(
            "Regions, areas, territories and beats are locations; join on locationcode. "
            "Use the location name column rather than the code for display."
        ),
    ),
    ConceptHint(
        concept="order",
        tables=("ck_order", "ck_order_details"),
        guidance=(
            "Order headers live in ck_order and order lines in ck_order_details; "
            "join them on orderid, and to outlets on outletcode."
        ),
    ),
    ConceptHint(
        concept="sale",
        tables=("ck_invoice", "ck_invoice_details"),
        guidance=(
            "Sales and secondary sales are invoiced orders; join invoices to orders on "
            "orderid and to products on skucode."
        ),
    ),
    ConceptHint(
        concept="loadout",
        tables=("dms_loadout", "dms_loadout_details"),
        guidance=(
            "Loadouts are van or vehicle dispatches from the distributor; join header "
            "and lines on loadoutid, and to salesmen on ck_user.loginid."
        ),
    ),
)

GENERAL_RULES: tuple[str, ...] = (
    "When the user asks for a name, select the human-readable name column, never a code or id.",
    "Prefer the canonical table for a concept when several tables could match.",
)


def render_concept_hints() -> str:
    """Render the glossary as the prompt's concept-hint block."""
    lines = [hint.render() for hint in CONCEPT_HINTS]
    lines.extend(f"- {rule}" for rule in GENERAL_RULES)
    return "\n".join(lines)
