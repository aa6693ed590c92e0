"""Predicate compiler: filter expressions to parameterised WHERE fragments.

Each filter contributes zero or more conjuncts. A conjunct is a static SQL
template whose ``{0}``, ``{1}``... slots refer to its own values; the builder
renumbers those slots into global ``:p1``..``:pN`` bind names in emission
order, so placeholder text and the parameter tuple always line up. User input
only ever travels as a bound value, never as template text.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .models.filter_expression import FilterExpression

PLACEHOLDER_PREFIX = "p"
PLACEHOLDER_RE = re.compile(r":(%s\d+)\b" % PLACEHOLDER_PREFIX)

INDUSTRY_CODE_RE = re.compile(r"^(\d{2}(\.\d{1,3})?|[A-Z](\d|\.)?)$")

ELIGIBLE_ORG_FORMS = ("AS", "ASA", "ENK", "ANS", "DA", "NUF", "SA", "SAS", "A/S", "A/S/ASA")

TRIGRAM_MIN_LENGTH = 3


def looks_like_industry_code(value: str) -> bool:
    """Whether a value has the shape of an industry code (``62``, ``62.01``, ``J``)."""
    return bool(INDUSTRY_CODE_RE.match(value.strip()))


def latest_financial(column: str) -> str:
    """Correlated subselect of a business's latest reported financial value."""
    return (
        f'(SELECT f.{column} FROM "FinancialReport" f '
        f'WHERE f."businessId" = b.id '
        f'ORDER BY f."fiscalYear" DESC NULLS LAST LIMIT 1)'
    )


@dataclass(frozen=True)
class Conjunct:
    """A rendered predicate and the values it binds."""

    sql: str
    params: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class CompiledPredicates:
    """WHERE fragment (without the keyword) plus its ordered parameters."""

    where_sql: str
    params: Tuple[Any, ...] = ()

    def where_clause(self) -> str:
        """``WHERE ...`` or an empty string when nothing constrains the query."""
        return f"WHERE {self.where_sql}" if self.where_sql else ""

    def bind_params(self) -> Dict[str, Any]:
        """Parameters keyed by bind name, for ``sqlalchemy.text``."""
        return {
            f"{PLACEHOLDER_PREFIX}{i}": value
            for i, value in enumerate(self.params, start=1)
        }

    def placeholders(self) -> List[str]:
        """Distinct bind names referenced by the WHERE text, in order of first use."""
        seen: List[str] = []
        for name in PLACEHOLDER_RE.findall(self.where_sql):
            if name not in seen:
                seen.append(name)
        return seen


@dataclass
class PredicateBuilder:
    """Append-only list of conjuncts with sequential parameter numbering."""

    conjuncts: List[Conjunct] = field(default_factory=list)

    @property
    def param_count(self) -> int:
        return sum(len(c.params) for c in self.conjuncts)

    def add(self, template: str, *values: Any) -> Conjunct:
        """Append a conjunct; ``{i}`` in ``template`` binds ``values[i]``."""
        start = self.param_count + 1
        names = [f":{PLACEHOLDER_PREFIX}{start + i}" for i in range(len(values))]
        conjunct = Conjunct(sql=template.format(*names), params=tuple(values))
        self.conjuncts.append(conjunct)
        return conjunct

    def compile(self) -> CompiledPredicates:
        params: List[Any] = []
        for conjunct in self.conjuncts:
            params.extend(conjunct.params)
        return CompiledPredicates(
            where_sql=" AND ".join(c.sql for c in self.conjuncts),
            params=tuple(params),
        )


def _slots(start: int, count: int) -> List[str]:
    return ["{%d}" % i for i in range(start, start + count)]


def _add_any_of(builder: PredicateBuilder, column: str, values: Sequence[str]) -> None:
    if len(values) == 1:
        builder.add(f"{column} = {{0}}", values[0])
    else:
        builder.add(f"{column} = ANY(CAST({{0}} AS text[]))", list(values))


def _add_search(builder: PredicateBuilder, search: str, alias: str) -> None:
    ts = f"{alias}.search_vector @@ plainto_tsquery('norwegian', {{0}})"
    if len(search) >= TRIGRAM_MIN_LENGTH:
        builder.add(f"({ts} OR {alias}.name % {{0}})", search)
    else:
        builder.add(ts, search)


def _add_event_filters(
    builder: PredicateBuilder, expr: FilterExpression, org_number_column: str
) -> None:
    exists = (
        "EXISTS (SELECT 1 FROM public.events_public e "
        f"WHERE e.org_number = {org_number_column}"
    )
    if expr.events == "without":
        builder.add(f"NOT {exists})")
    elif expr.event_types:
        builder.add(
            f"{exists} AND e.event_type = ANY(CAST({{0}} AS text[])))",
            list(expr.event_types),
        )
    elif expr.events == "with":
        builder.add(f"{exists})")


def build_instant_predicates(expr: FilterExpression) -> PredicateBuilder:
    """Conjuncts for the page query over ``public.business_filter_matrix m``."""
    builder = PredicateBuilder()

    industry = expr.industry_code or (expr.industries[0] if expr.industries else None)
    if industry:
        if looks_like_industry_code(industry):
            builder.add("m.industry_code1 = {0}", industry)
        else:
            builder.add("m.industry_text1 ILIKE {0}", f"%{industry}%")
    if expr.sector_code:
        builder.add("m.sector_code = {0}", expr.sector_code)
    if expr.org_form_codes:
        _add_any_of(builder, "m.org_form_code", expr.org_form_codes)
    if expr.city:
        builder.add(
            "(m.address_city ILIKE {0} OR m.address_postal_code ILIKE {0})",
            f"%{expr.city}%",
        )
    if expr.revenue_bucket:
        builder.add("m.revenue_bucket = {0}", expr.revenue_bucket)
    if expr.employee_bucket:
        builder.add("m.employee_bucket = {0}", expr.employee_bucket)
    if expr.vat_registered is not None:
        builder.add("m.vat_registered = {0}", expr.vat_registered)

    # Presence uses the precomputed flag; specific types need the events table.
    if expr.events == "without":
        builder.add("m.has_events = false")
    elif expr.event_types:
        _add_event_filters(builder, expr, "m.org_number")
    elif expr.events == "with":
        builder.add("m.has_events = true")

    if expr.search:
        _add_search(builder, expr.search, "m")
    return builder


def compile_instant_predicates(expr: FilterExpression) -> CompiledPredicates:
    """Compile the page-query WHERE fragment for ``expr``."""
    return build_instant_predicates(expr).compile()


def build_saved_list_predicates(expr: FilterExpression) -> PredicateBuilder:
    """Conjuncts for resolving candidates over ``"Business" b``."""
    builder = PredicateBuilder()
    eligible = ",".join(f"'{code}'" for code in ELIGIBLE_ORG_FORMS)
    builder.add(
        f'(b."registeredInForetaksregisteret" = true OR b."orgFormCode" IN ({eligible}))'
    )

    industries = expr.all_industries
    if industries:
        code_values = [f"{v}%" for v in industries if looks_like_industry_code(v)]
        text_values = [f"%{v}%" for v in industries]
        code_slots = _slots(0, len(code_values))
        text_slots = _slots(len(code_values), len(text_values))
        parts = []
        for n in (1, 2, 3):
            parts.extend(f'b."industryCode{n}" ILIKE {s}' for s in code_slots)
        for n in (1, 2, 3):
            parts.extend(f'b."industryText{n}" ILIKE {s}' for s in text_slots)
        builder.add("(" + " OR ".join(parts) + ")", *code_values, *text_values)

    areas = expr.all_areas
    if areas:
        slots = _slots(0, len(areas))
        city = " OR ".join(f'b."addressCity" ILIKE {s}' for s in slots)
        postal = " OR ".join(f'b."addressPostalCode" ILIKE {s}' for s in slots)
        builder.add(f"(({city}) OR ({postal}))", *[f"%{a}%" for a in areas])

    if expr.org_form_codes:
        builder.add(
            'b."orgFormCode" = ANY(CAST({0} AS text[]))', list(expr.org_form_codes)
        )
    if expr.sector_code:
        builder.add('b."sectorCode" = {0}', expr.sector_code)
    if expr.vat_registered is not None:
        builder.add('b."vatRegistered" = {0}', expr.vat_registered)

    if expr.revenue_min is not None:
        builder.add(f"{latest_financial('revenue')} >= {{0}}", expr.revenue_min)
    if expr.revenue_max is not None:
        builder.add(f"{latest_financial('revenue')} <= {{0}}", expr.revenue_max)
    if expr.profit_min is not None:
        builder.add(f"{latest_financial('profit')} >= {{0}}", expr.profit_min)
    if expr.profit_max is not None:
        builder.add(f"{latest_financial('profit')} <= {{0}}", expr.profit_max)

    _add_event_filters(builder, expr, 'b."orgNumber"')

    web_flags = []
    if expr.web_cms_shopify:
        web_flags.append('w."webCmsShopify" = true')
    if expr.web_ecom_woocommerce:
        web_flags.append('w."webEcomWoocommerce" = true')
    if web_flags:
        builder.add(
            'EXISTS (SELECT 1 FROM "BusinessWebMeta" w WHERE w."businessId" = b.id AND '
            + " AND ".join(web_flags)
            + ")"
        )

    if expr.registered_from:
        builder.add('b."registeredAtBrreg" >= {0}', expr.registered_from)
    if expr.registered_to:
        builder.add(
            'b."registeredAtBrreg" <= {0}', f"{expr.registered_to}T23:59:59.999Z"
        )

    text = expr.q or expr.search
    if text:
        builder.add(
            '(b.name ILIKE {0} OR b."orgNumber" ILIKE {1})', f"%{text}%", f"%{text}%"
        )
    return builder


def compile_saved_list_predicates(expr: FilterExpression) -> CompiledPredicates:
    """Compile the candidate-resolution WHERE fragment for ``expr``."""
    return build_saved_list_predicates(expr).compile()
