"""Filter expression parsed from an inbound query string."""

import math
from datetime import date
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

from pydantic import BaseModel, Field

TRUE_VALUES = ("1", "true", "yes")
EVENT_PRESENCE_VALUES = ("with", "without")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_int(value: Optional[str]) -> Optional[int]:
    value = _clean(value)
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number)


def _parse_date(value: Optional[str]) -> Optional[str]:
    value = _clean(value)
    if value is None:
        return None
    try:
        return date.fromisoformat(value[:10]).isoformat()
    except ValueError:
        return None


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class FilterExpression(BaseModel):
    """Flat map of recognised filter keys to values.

    Every attribute is optional; ``None`` or an empty list means no constraint.
    Parsing never fails: unrecognised keys are dropped and malformed values
    are normalised to "absent".
    """

    industry_code: Optional[str] = None
    industries: List[str] = Field(default_factory=list)
    sector_code: Optional[str] = None
    org_form_codes: List[str] = Field(default_factory=list)
    city: Optional[str] = None
    areas: List[str] = Field(default_factory=list)
    revenue_bucket: Optional[str] = None
    employee_bucket: Optional[str] = None
    vat_registered: Optional[bool] = None
    search: Optional[str] = None
    q: Optional[str] = None
    events: Optional[str] = None
    event_types: List[str] = Field(default_factory=list)
    revenue_min: Optional[int] = None
    revenue_max: Optional[int] = None
    profit_min: Optional[int] = None
    profit_max: Optional[int] = None
    web_cms_shopify: bool = False
    web_ecom_woocommerce: bool = False
    registered_from: Optional[str] = None
    registered_to: Optional[str] = None

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "FilterExpression":
        """Build an expression from ``(key, value)`` query pairs."""
        single = {}
        multi = {"industries": [], "areas": [], "orgFormCode": [], "eventTypes": []}
        present = set()
        for key, value in pairs:
            present.add(key)
            if key in multi:
                if key == "eventTypes":
                    multi[key].extend(_split_csv(value))
                elif _clean(value):
                    multi[key].append(value.strip())
            elif key not in single:
                single[key] = value

        vat_raw = _clean(single.get("vatRegistered"))
        events = (_clean(single.get("events")) or "").lower()

        def flag(name: str) -> bool:
            # Presence alone turns a flag on, whatever its value
            return name in present

        return cls(
            industry_code=_clean(single.get("industryCode")),
            industries=multi["industries"],
            sector_code=_clean(single.get("sectorCode")),
            org_form_codes=multi["orgFormCode"],
            city=_clean(single.get("city")),
            areas=multi["areas"],
            revenue_bucket=_clean(single.get("revenueBucket")),
            employee_bucket=_clean(single.get("employeeBucket")),
            vat_registered=(
                None if vat_raw is None else vat_raw.lower() in TRUE_VALUES
            ),
            search=_clean(single.get("search")),
            q=_clean(single.get("q")),
            events=events if events in EVENT_PRESENCE_VALUES else None,
            event_types=multi["eventTypes"],
            revenue_min=_parse_int(single.get("revenueMin")),
            revenue_max=_parse_int(single.get("revenueMax")),
            profit_min=_parse_int(single.get("profitMin")),
            profit_max=_parse_int(single.get("profitMax")),
            web_cms_shopify=flag("webCmsShopify"),
            web_ecom_woocommerce=flag("webEcomWoocommerce"),
            registered_from=_parse_date(single.get("registeredFrom")),
            registered_to=_parse_date(single.get("registeredTo")),
        )

    @classmethod
    def from_query_string(cls, query: Optional[str]) -> "FilterExpression":
        """Parse a raw query string, with or without the leading ``?``."""
        query = (query or "").strip()
        if query.startswith("?"):
            query = query[1:]
        return cls.from_pairs(parse_qsl(query, keep_blank_values=True))

    @property
    def all_industries(self) -> List[str]:
        """Industry filters from both the single and repeatable keys."""
        values = list(self.industries)
        if self.industry_code and self.industry_code not in values:
            values.append(self.industry_code)
        return values

    @property
    def all_areas(self) -> List[str]:
        """Area filters from both ``city`` and ``areas``."""
        values = list(self.areas)
        if self.city and self.city not in values:
            values.append(self.city)
        return values

    def count_signature(self) -> Tuple:
        """The fixed eight-argument signature of the count aggregation."""
        return (
            self.industry_code,
            self.sector_code,
            self.org_form_codes[0] if self.org_form_codes else None,
            self.city,
            self.revenue_bucket,
            self.employee_bucket,
            self.vat_registered,
            self.search,
        )

    def to_pairs(self) -> List[Tuple[str, str]]:
        """Serialise back to query pairs, sorted by key."""
        pairs: List[Tuple[str, str]] = []
        scalars = {
            "industryCode": self.industry_code,
            "sectorCode": self.sector_code,
            "city": self.city,
            "revenueBucket": self.revenue_bucket,
            "employeeBucket": self.employee_bucket,
            "search": self.search,
            "q": self.q,
            "events": self.events,
            "revenueMin": self.revenue_min,
            "revenueMax": self.revenue_max,
            "profitMin": self.profit_min,
            "profitMax": self.profit_max,
            "registeredFrom": self.registered_from,
            "registeredTo": self.registered_to,
        }
        for key, value in scalars.items():
            if value is not None:
                pairs.append((key, str(value)))
        if self.vat_registered is not None:
            pairs.append(("vatRegistered", "true" if self.vat_registered else "false"))
        if self.event_types:
            pairs.append(("eventTypes", ",".join(self.event_types)))
        pairs.extend(("industries", v) for v in self.industries)
        pairs.extend(("areas", v) for v in self.areas)
        pairs.extend(("orgFormCode", v) for v in self.org_form_codes)
        if self.web_cms_shopify:
            pairs.append(("webCmsShopify", "1"))
        if self.web_ecom_woocommerce:
            pairs.append(("webEcomWoocommerce", "1"))
        return sorted(pairs, key=lambda pair: pair[0])

    def to_query_string(self) -> str:
        """Canonical query string (no leading ``?``)."""
        return urlencode(self.to_pairs())
