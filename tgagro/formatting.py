"""pt-BR display helpers, also exposed to the templates as Jinja filters."""
from .metrics import kg_to_arroba
from .models import COST_CATEGORIES
from .utils import parse_date, to_number

PLACEHOLDER = '—'


def _pt_br(number, decimals):
    # 1234567.891 -> '1.234.567,89'
    text = f'{number:,.{decimals}f}'
    return text.replace(',', '_').replace('.', ',').replace('_', '.')


def fmt_brl(value):
    """Currency in reais. Missing values render as R$ 0,00."""
    number = to_number(value) or 0.0
    return f'R$ {_pt_br(number, 2)}'


def fmt_kg(value, decimals=1):
    number = to_number(value)
    if number is None:
        return PLACEHOLDER
    return f'{_pt_br(number, decimals)} kg'


def fmt_arroba(value):
    """Kilograms shown as arrobas with two decimals: 450 -> '15,00 @'."""
    arrobas = kg_to_arroba(value)
    if arrobas is None:
        return PLACEHOLDER
    return f'{_pt_br(arrobas, 2)} @'


def fmt_gmd(value):
    """Average daily gain in kg/day; undefined gains render as the placeholder."""
    number = to_number(value)
    if number is None:
        return PLACEHOLDER
    return f'{_pt_br(number, 3)} kg/dia'


def fmt_percent(value):
    number = to_number(value)
    if number is None:
        return PLACEHOLDER
    return f'{_pt_br(number, 1)}%'


def fmt_date(value):
    parsed = parse_date(value)
    if parsed is None:
        return PLACEHOLDER
    return parsed.strftime('%d/%m/%Y')


def fmt_area(value):
    number = to_number(value)
    if not number:
        return PLACEHOLDER
    return f'{_pt_br(number, 2)} ha'


def category_label(category):
    return COST_CATEGORIES.get(category, category or PLACEHOLDER)


def or_placeholder(value):
    return PLACEHOLDER if value is None or value == '' else value


def register_filters(app):
    app.jinja_env.filters.update(
        brl=fmt_brl,
        kg=fmt_kg,
        arroba=fmt_arroba,
        gmd=fmt_gmd,
        percent=fmt_percent,
        date_br=fmt_date,
        area=fmt_area,
        category=category_label,
        dash=or_placeholder,
    )
