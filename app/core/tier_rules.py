from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Mapping

from app.core.errors import ConfigurationError, InvalidValueError

ZERO = Decimal("0")


def q2(x: Decimal) -> Decimal:
    # баллы хранятся в Numeric(14, 2): классифицируем уже округлённое значение
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_decimal(value, what: str = "points") -> Decimal:
    """Приводит число к Decimal. NaN, бесконечность и мусор дают InvalidValueError."""
    if isinstance(value, bool):
        raise InvalidValueError(f"{what} must be a number", value=value)
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidValueError(f"{what} must be a number", value=value) from None
    if not d.is_finite():
        raise InvalidValueError(f"{what} must be finite", value=value)
    return d


@dataclass(frozen=True)
class TierThreshold:
    name: str
    min_points: Decimal


@dataclass(frozen=True)
class TierThresholds:
    # Пороги отсортированы по возрастанию; ранг тира = индекс в tiers
    tiers: tuple[TierThreshold, ...]
    version: int = 0
    _ranks: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_ranks", {t.name: i for i, t in enumerate(self.tiers)})

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.tiers]

    @property
    def lowest(self) -> str:
        return self.tiers[0].name

    def rank(self, tier: str) -> int | None:
        return self._ranks.get(tier)

    def as_dicts(self) -> list[dict]:
        return [{"name": t.name, "min_points": t.min_points} for t in self.tiers]


def _coerce_item(item) -> TierThreshold:
    if isinstance(item, TierThreshold):
        return item
    if isinstance(item, Mapping):
        name, min_points = item.get("name"), item.get("min_points")
    else:
        try:
            name, min_points = item
        except (TypeError, ValueError):
            raise ConfigurationError("threshold must be a (name, min_points) pair", item=item) from None

    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ConfigurationError("tier name must be a non-empty string", item=item)
    try:
        points = to_decimal(min_points, what="min_points")
    except InvalidValueError as e:
        raise ConfigurationError(e.detail, tier=name) from None
    return TierThreshold(name=name, min_points=points)


def validate_thresholds(items: Iterable, version: int = 0) -> TierThresholds:
    """
    Проверяет набор порогов и возвращает неизменяемый снимок.

    Требования:
      - хотя бы один тир, имена уникальны;
      - min_points >= 0 и строго возрастают в порядке ранга;
      - есть нулевой «пол» (min_points == 0), чтобы любой балл попадал в тир.

    Порядок входа задаёт ранги (от низшего к высшему),
    поэтому Silver=500, Gold=300 считается ошибкой, сортировки нет.
    """
    tiers = tuple(_coerce_item(i) for i in (items or ()))
    if not tiers:
        raise ConfigurationError("threshold set is empty")

    seen: set[str] = set()
    for t in tiers:
        if t.name in seen:
            raise ConfigurationError("duplicate tier name", tier=t.name)
        seen.add(t.name)
        if t.min_points < ZERO:
            raise ConfigurationError("min_points must be non-negative", tier=t.name)

    for prev, cur in zip(tiers, tiers[1:]):
        if cur.min_points <= prev.min_points:
            raise ConfigurationError(
                "thresholds must be strictly increasing",
                tier=cur.name,
                min_points=str(cur.min_points),
                previous=prev.name,
            )

    if tiers[0].min_points != ZERO:
        raise ConfigurationError("zero floor tier is missing", lowest=tiers[0].name)

    return TierThresholds(tiers=tiers, version=version)


def classify(points, thresholds: TierThresholds | Iterable) -> str:
    """Тир с наибольшим порогом, не превышающим points. Без побочных эффектов."""
    p = to_decimal(points)
    if p < ZERO:
        raise InvalidValueError("points must be non-negative", points=str(p))

    items = thresholds.tiers if isinstance(thresholds, TierThresholds) else [
        _coerce_item(i) for i in thresholds
    ]
    ordered = sorted(items, key=lambda t: t.min_points)
    if not ordered:
        raise ConfigurationError("threshold set is empty")
    for t in ordered:
        if t.min_points < ZERO:
            raise ConfigurationError("min_points must be non-negative", tier=t.name)
    if not any(t.min_points == ZERO for t in ordered):
        raise ConfigurationError("zero floor tier is missing")

    tier = ordered[0].name
    for t in ordered[1:]:
        if t.min_points > p:
            break
        tier = t.name
    return tier


def tier_rank(tier: str, thresholds: TierThresholds) -> int:
    rank = thresholds.rank(tier)
    if rank is None:
        raise ConfigurationError("unknown tier", tier=tier, version=thresholds.version)
    return rank
