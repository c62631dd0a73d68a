"""Revenue, cost, profit and margin: global, per lot and per cost category."""
from dataclasses import dataclass

from .models import COST_CATEGORIES, KG_PER_ARROBA
from .utils import group_by, number_or_zero, to_id, to_number


@dataclass(frozen=True)
class Summary:
    revenue: float
    cost: float

    @property
    def profit(self):
        return self.revenue - self.cost

    @property
    def margin(self):
        """Profit as a percentage of revenue; None when there is no revenue."""
        if not self.revenue:
            return None
        return self.profit / self.revenue * 100


@dataclass(frozen=True)
class LotSummary(Summary):
    lot: dict = None


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    label: str
    total: float
    percentage: float = None


def sale_total(weight_kg, price_per_arroba):
    """(weight / 30) * price per arroba. None when either input is not a number."""
    weight = to_number(weight_kg)
    price = to_number(price_per_arroba)
    if weight is None or price is None:
        return None
    return (weight / KG_PER_ARROBA) * price


def total_revenue(sales):
    return sum(number_or_zero(sale.get('valor_total')) for sale in sales)


def total_cost(costs):
    return sum(number_or_zero(cost.get('valor')) for cost in costs)


def summarize(sales, costs):
    return Summary(revenue=total_revenue(sales), cost=total_cost(costs))


def by_lot(lots, animals, sales, costs):
    """
    One LotSummary per lot, in the order the lots were given.
    Revenue follows sale -> animal -> lot. Only costs explicitly scoped to the
    lot count; general costs (no lot) are never spread over the lots.
    """
    lot_of_animal = {to_id(animal.get('id')): to_id(animal.get('lote_id')) for animal in animals}
    sales_by_lot = {}
    for sale in sales:
        lot_id = lot_of_animal.get(to_id(sale.get('animal_id')))
        if lot_id is not None:
            sales_by_lot.setdefault(lot_id, []).append(sale)
    costs_by_lot = group_by(costs, 'lote_id')

    results = []
    for lot in lots:
        lot_id = to_id(lot.get('id'))
        results.append(LotSummary(
            revenue=total_revenue(sales_by_lot.get(lot_id, [])),
            cost=total_cost(costs_by_lot.get(lot_id, [])),
            lot=lot,
        ))
    return results


def by_category(costs):
    """Cost totals per category, largest first, with each share of the global cost."""
    totals = {}
    for cost in costs:
        category = cost.get('categoria') or 'outros'
        totals[category] = totals.get(category, 0.0) + number_or_zero(cost.get('valor'))

    grand_total = sum(totals.values())
    results = [
        CategoryTotal(
            category=category,
            label=COST_CATEGORIES.get(category, category),
            total=total,
            percentage=(total / grand_total * 100) if grand_total else None,
        )
        for category, total in totals.items()
    ]
    return sorted(results, key=lambda item: item.total, reverse=True)
