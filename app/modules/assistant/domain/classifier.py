"""
Query Classifier

Routes a free-text question to the data domains it needs. The routing is a
pair of ordered rule tables over normalized text: one selects domains, the
other picks the Cost Explorer service filter. Matching is deliberately
permissive; a question may select several domains or none.
"""

import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional, Sequence

from app.modules.reporting.domain.cost_fetcher import month_range
from app.schemas.assistant import CostScope, Domain, QueryClassification
from app.schemas.costs import DateRange

Predicate = Callable[[str], bool]


def normalize(text: str) -> str:
    """Lower-case and strip accents so `instância` and `instancia` match alike."""
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def contains_any(*terms: str) -> Predicate:
    def _predicate(text: str) -> bool:
        return any(term in text for term in terms)

    return _predicate


@dataclass(frozen=True)
class DomainRule:
    name: str
    predicate: Predicate
    domain: Domain


@dataclass(frozen=True)
class CostScopeRule:
    name: str
    predicate: Predicate
    scope: CostScope


DOMAIN_RULES: Sequence[DomainRule] = (
    DomainRule(
        "cost",
        contains_any(
            "cost", "spend", "billing", "bill", "invoice", "expense",
            "gast", "custo", "fatura", "factura", "coste",
        ),
        Domain.COST,
    ),
    DomainRule(
        "compute",
        contains_any(
            "ec2", "instance", "instancia", "servidor", "server",
            "virtual machine", "maquina virtual",
        ),
        Domain.COMPUTE,
    ),
    DomainRule(
        "storage",
        contains_any("s3", "bucket"),
        Domain.STORAGE,
    ),
    DomainRule(
        "database",
        contains_any(
            "rds", "database", "banco de dados", "base de dados",
            "base de datos", "bases de datos", "banco",
        ),
        Domain.DATABASE,
    ),
    DomainRule(
        "load_balancer",
        contains_any(
            "load balancer", "load-balancer", "loadbalancer",
            "balanceador", "elb",
        ),
        Domain.LOAD_BALANCER,
    ),
)

# First match wins, so the database filter outranks compute and storage.
COST_SCOPE_RULES: Sequence[CostScopeRule] = (
    CostScopeRule(
        "database",
        contains_any(
            "rds", "database", "banco de dados", "base de dados",
            "base de datos", "banco",
        ),
        CostScope.DATABASE,
    ),
    CostScopeRule(
        "compute",
        contains_any(
            "ec2", "compute", "computacao", "computo", "instance",
            "instancia", "servidor", "server",
        ),
        CostScope.COMPUTE,
    ),
    CostScopeRule(
        "storage",
        contains_any("s3", "storage", "bucket", "armazenamento", "almacenamiento"),
        CostScope.STORAGE,
    ),
)

MONTHS = {
    # English
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11,
    "december": 12,
    # Portuguese
    "janeiro": 1, "fevereiro": 2, "marco": 3, "abril": 4, "maio": 5,
    "junho": 6, "julho": 7, "agosto": 8, "setembro": 9, "outubro": 10,
    "novembro": 11, "dezembro": 12,
    # Spanish
    "enero": 1, "febrero": 2, "marzo": 3, "mayo": 5, "junio": 6, "julio": 7,
    "septiembre": 9, "setiembre": 9, "octubre": 10, "noviembre": 11,
    "diciembre": 12,
}

_MONTH_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(MONTHS, key=len, reverse=True)) + r")\b"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryClassifier:
    def __init__(
        self,
        domain_rules: Sequence[DomainRule] = DOMAIN_RULES,
        cost_scope_rules: Sequence[CostScopeRule] = COST_SCOPE_RULES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.domain_rules = tuple(domain_rules)
        self.cost_scope_rules = tuple(cost_scope_rules)
        self._clock = clock

    def classify(self, query: str) -> QueryClassification:
        text = normalize(query)
        domains = frozenset(
            rule.domain for rule in self.domain_rules if rule.predicate(text)
        )
        if Domain.COST not in domains:
            return QueryClassification(domains=domains)
        return QueryClassification(
            domains=domains,
            cost_scope=self.resolve_cost_scope(text),
            date_range=self.resolve_month(text),
        )

    def resolve_cost_scope(self, text: str) -> CostScope:
        for rule in self.cost_scope_rules:
            if rule.predicate(text):
                return rule.scope
        return CostScope.ALL

    def resolve_month(self, text: str, today: Optional[date] = None) -> Optional[DateRange]:
        """
        Span of the first month named in `text`, in the current year.
        Returns None when no month is named.
        """
        match = _MONTH_PATTERN.search(text)
        if not match:
            return None
        year = (today or self._clock().date()).year
        return month_range(year, MONTHS[match.group(1)])
