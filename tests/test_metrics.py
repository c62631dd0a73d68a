import pytest

from tgagro import metrics


def _animal(id, peso=300, data='2024-01-01', lote_id=1):
    return {'id': id, 'brinco': f'B{id}', 'lote_id': lote_id, 'peso_entrada_kg': peso, 'data_entrada': data}


def _pesagem(id, animal_id, data, peso):
    return {'id': id, 'animal_id': animal_id, 'data_pesagem': data, 'peso_kg': peso}


def test_kg_to_arroba():
    assert metrics.kg_to_arroba(450) == 15
    assert metrics.kg_to_arroba('300') == 10
    assert metrics.kg_to_arroba(None) is None


def test_kg_to_arroba_does_not_change_its_input():
    weight = 450.0
    assert metrics.kg_to_arroba(weight) == metrics.kg_to_arroba(weight)
    assert weight == 450.0


def test_daily_gain_between_two_measurements():
    assert metrics.daily_gain(330, 300, '2024-01-31', '2024-01-01') == pytest.approx(1.0)
    assert metrics.daily_gain(290, 300, '2024-01-11', '2024-01-01') == pytest.approx(-1.0)


def test_daily_gain_is_undefined_for_zero_or_negative_days():
    assert metrics.daily_gain(330, 300, '2024-01-01', '2024-01-01') is None
    assert metrics.daily_gain(330, 300, '2023-12-01', '2024-01-01') is None


def test_daily_gain_is_undefined_for_missing_or_invalid_inputs():
    assert metrics.daily_gain(None, 300, '2024-01-31', '2024-01-01') is None
    assert metrics.daily_gain('abc', 300, '2024-01-31', '2024-01-01') is None
    assert metrics.daily_gain(330, 300, '2024-01-31', None) is None


def test_weighing_history_uses_entry_then_previous_weighing():
    animal = _animal(1, peso=300, data='2024-01-01')
    weighings = [
        _pesagem(3, 1, '2024-03-01', 360),
        _pesagem(1, 1, '2024-01-31', 330),
        _pesagem(2, 1, '2024-03-01', 365),
    ]

    history = metrics.weighing_history(animal, weighings)

    assert [h['pesagem']['id'] for h in history] == [1, 3, 2]
    assert history[0]['gmd'] == pytest.approx(1.0)  # vs entry: 30 kg / 30 days
    assert history[1]['gmd'] == pytest.approx(1.0)  # 30 kg / 30 days (2024 is a leap year)
    assert history[2]['gmd'] is None                # same day as the previous weighing


def test_first_weighing_without_entry_date_has_no_gain():
    animal = _animal(1, peso=300, data=None)
    history = metrics.weighing_history(animal, [_pesagem(1, 1, '2024-01-31', 330)])
    assert history[0]['gmd'] is None


def test_weighing_gains_maps_every_weighing():
    animals = {1: _animal(1), 2: _animal(2, peso=200)}
    weighings = [
        _pesagem(10, 1, '2024-01-11', 310),
        _pesagem(11, 2, '2024-01-21', 240),
        _pesagem(12, 1, '2024-01-21', 330),
        _pesagem(13, 99, '2024-01-21', 330),
    ]

    gains = metrics.weighing_gains(animals, weighings)

    assert gains[10] == pytest.approx(1.0)
    assert gains[11] == pytest.approx(2.0)
    assert gains[12] == pytest.approx(2.0)
    assert gains[13] is None


def test_animal_gain_first_last_ignores_intermediate_weighings():
    weighings = [
        _pesagem(1, 1, '2024-01-01', 300),
        _pesagem(2, 1, '2024-01-05', 400),
        _pesagem(3, 1, '2024-01-11', 320),
    ]
    assert metrics.animal_gain_first_last(weighings) == pytest.approx(2.0)
    assert metrics.animal_gain_first_last(weighings[:1]) is None


def test_lot_without_weighings_averages_entry_weights_and_has_no_gain():
    animals = [_animal(1, peso=300), _animal(2, peso=320)]

    assert metrics.lot_average_weight(animals, {}) == pytest.approx(310)
    assert metrics.lot_average_gain(animals, {}) is None


def test_lot_average_gain_only_counts_defined_gains():
    animals = [_animal(1), _animal(2), _animal(3)]
    by_animal = {
        1: [_pesagem(1, 1, '2024-01-01', 300), _pesagem(2, 1, '2024-01-11', 310)],
        2: [_pesagem(3, 2, '2024-01-01', 300), _pesagem(4, 2, '2024-01-11', 305)],
        3: [_pesagem(5, 3, '2024-01-01', 300)],
    }
    assert metrics.lot_average_gain(animals, by_animal) == pytest.approx(0.75)


def test_current_weight_takes_latest_weighing_by_date():
    animal = _animal(1, peso=300)
    weighings = [_pesagem(2, 1, '2024-03-01', 380), _pesagem(1, 1, '2024-02-01', 350)]
    assert metrics.current_weight(animal, weighings) == 380


def test_current_weight_falls_back_to_entry_weight_then_zero():
    assert metrics.current_weight(_animal(1, peso=300), []) == 300
    assert metrics.current_weight(_animal(1, peso=None), []) == 0


def test_herd_weight_sums_one_weight_per_animal():
    animals = [_animal(1, peso=300), _animal(2, peso=320), _animal(3, peso=None)]
    by_animal = {1: [_pesagem(1, 1, '2024-02-01', 350), _pesagem(2, 1, '2024-03-01', 380)]}
    assert metrics.herd_weight(animals, by_animal) == pytest.approx(380 + 320)


def test_non_numeric_weight_counts_as_zero_in_sums_and_has_no_gain():
    animals = [_animal(1, peso=300), _animal(2, peso=320)]
    by_animal = {1: [_pesagem(1, 1, '2024-01-01', 300), _pesagem(2, 1, '2024-02-01', 'abc')]}

    assert metrics.herd_weight(animals, by_animal) == pytest.approx(0 + 320)
    assert metrics.lot_average_weight(animals, by_animal) == pytest.approx(160)
    assert metrics.animal_gain_first_last(by_animal[1]) is None
    assert metrics.lot_average_gain(animals, by_animal) is None


def test_same_day_weighings_are_left_out_of_the_lot_gain():
    animals = [_animal(1), _animal(2)]
    by_animal = {
        1: [_pesagem(1, 1, '2024-01-01', 300), _pesagem(2, 1, '2024-01-31', 330)],
        2: [_pesagem(3, 2, '2024-02-01', 300), _pesagem(4, 2, '2024-02-01', 310)],
    }
    assert metrics.animal_gain_first_last(by_animal[2]) is None
    assert metrics.lot_average_gain(animals, by_animal) == pytest.approx(1.0)


def test_zero_entry_weight_does_not_lower_the_lot_average():
    animals = [_animal(1, peso=300), _animal(2, peso=0)]

    assert metrics.resolved_weight(animals[1], []) is None
    assert metrics.lot_average_weight(animals, {}) == pytest.approx(300)
    assert metrics.herd_weight(animals, {}) == pytest.approx(300)
