"""
Zootechnical metrics over already-fetched collections: arroba conversion,
average daily gain (GMD) and the current-weight policy used by the dashboard.

Every function here is pure. Records are the plain dicts returned by the API.
"""
from .models import KG_PER_ARROBA
from .utils import days_between, group_by, number_or_zero, parse_date, sort_by_date, to_id, to_number


def kg_to_arroba(kg):
    """Converts kilograms to arrobas (1 @ = 30 kg). None stays None."""
    weight = to_number(kg)
    if weight is None:
        return None
    return weight / KG_PER_ARROBA


def daily_gain(weight, previous_weight, when, previous_when):
    """
    Weight change per elapsed day between two measurements, in kg/day.
    Returns None (undefined, not zero) when either weight or date is missing,
    or when the elapsed days are zero or negative.
    """
    current = to_number(weight)
    previous = to_number(previous_weight)
    current_date = parse_date(when)
    previous_date = parse_date(previous_when)
    if None in (current, previous, current_date, previous_date):
        return None

    days = days_between(current_date, previous_date)
    if days <= 0:
        return None
    return (current - previous) / days


def weighing_history(animal, weighings):
    """
    Takes an animal record and its weighings and returns the weighings sorted
    chronologically, each paired with its period GMD:
    - against the previous weighing when there is one;
    - for the first weighing, against the entry weight and entry date, when
      the animal has both.
    Returns a list of {'pesagem': record, 'gmd': float or None}.
    """
    sorted_weighings = sort_by_date(weighings, 'data_pesagem')
    history = []

    for i, weighing in enumerate(sorted_weighings):
        gmd = None
        if i > 0:
            previous = sorted_weighings[i - 1]
            gmd = daily_gain(weighing.get('peso_kg'), previous.get('peso_kg'),
                             weighing.get('data_pesagem'), previous.get('data_pesagem'))
        elif animal:
            gmd = daily_gain(weighing.get('peso_kg'), animal.get('peso_entrada_kg'),
                             weighing.get('data_pesagem'), animal.get('data_entrada'))
        history.append({'pesagem': weighing, 'gmd': gmd})

    return history


def weighing_gains(animals_by_id, weighings):
    """Maps every weighing id to its period GMD, grouping by animal only once."""
    gains = {}
    for animal_id, animal_weighings in group_by(weighings, 'animal_id').items():
        animal = animals_by_id.get(animal_id)
        for entry in weighing_history(animal, animal_weighings):
            gains[to_id(entry['pesagem'].get('id'))] = entry['gmd'] if animal else None
    return gains


def animal_gain_first_last(weighings):
    """
    GMD from the first to the last weighing (not an average of the periods).
    Needs at least two dated weighings; otherwise None.
    """
    dated = [w for w in sort_by_date(weighings, 'data_pesagem') if parse_date(w.get('data_pesagem'))]
    if len(dated) < 2:
        return None
    first, last = dated[0], dated[-1]
    return daily_gain(last.get('peso_kg'), first.get('peso_kg'),
                      last.get('data_pesagem'), first.get('data_pesagem'))


def lot_average_gain(animals, weighings_by_animal):
    """Mean of the per-animal first-to-last GMDs that are defined; None if none are."""
    gains = []
    for animal in animals:
        gain = animal_gain_first_last(weighings_by_animal.get(to_id(animal.get('id')), []))
        if gain is not None:
            gains.append(gain)
    if not gains:
        return None
    return sum(gains) / len(gains)


def latest_weighing(weighings):
    """Most recent weighing by date, or None when the list is empty."""
    sorted_weighings = sort_by_date(weighings, 'data_pesagem', reverse=True)
    return sorted_weighings[0] if sorted_weighings else None


def resolved_weight(animal, weighings):
    """
    The animal's best known weight: latest weighing, else entry weight.
    None when the animal has neither. A zero entry weight counts as unknown.
    """
    latest = latest_weighing(weighings)
    if latest is not None:
        return number_or_zero(latest.get('peso_kg'))
    return to_number(animal.get('peso_entrada_kg')) or None


def current_weight(animal, weighings):
    """Current-weight policy for totals: latest weighing, else entry weight, else zero."""
    weight = resolved_weight(animal, weighings)
    return weight if weight is not None else 0.0


def herd_weight(animals, weighings_by_animal):
    """Sum of each animal's current weight (one value per animal, not every weighing)."""
    return sum(
        current_weight(animal, weighings_by_animal.get(to_id(animal.get('id')), []))
        for animal in animals
    )


def lot_average_weight(animals, weighings_by_animal):
    """Mean resolved weight over the animals that have one; None when none do."""
    weights = []
    for animal in animals:
        weight = resolved_weight(animal, weighings_by_animal.get(to_id(animal.get('id')), []))
        if weight is not None:
            weights.append(weight)
    if not weights:
        return None
    return sum(weights) / len(weights)
