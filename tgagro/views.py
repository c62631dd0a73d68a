"""
Server-rendered pages. Every page load fetches the collections it needs from
the data API (in parallel), joins them through id indexes and renders. Writes
go through the API too and end with a redirect, so the affected page is always
rebuilt from a fresh fetch.
"""
import logging
from dataclasses import asdict, dataclass, replace
from datetime import date

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from . import finance, metrics
from .client import LOCAL_API_URL, ApiClient, ApiError
from .models import COST_CATEGORIES
from .utils import ValidationError, group_by, index_by_id, require_fields, sort_by_date, to_id

logger = logging.getLogger(__name__)

views = Blueprint('views', __name__)

PAGES = {
    'dashboard': 'Dashboard',
    'lotes': 'Lotes',
    'animais': 'Animais',
    'pesagens': 'Pesagens',
    'vendas': 'Vendas',
    'custos': 'Custos',
    'financeiro': 'Financeiro',
}


@dataclass
class ViewState:
    """
    Everything a page needs to know about the user's current selections:
    which page, the active filters and which form (if any) is open.
    Built from the query string and handed to the templates explicitly.
    """
    page: str
    lote_id: int = None
    categoria: str = None
    form: str = None # 'novo' or 'editar'
    edit_id: int = None

    @classmethod
    def from_args(cls, page, args):
        categoria = args.get('categoria') or None
        form = args.get('form') or None
        return cls(
            page=page,
            lote_id=to_id(args.get('lote_id')),
            categoria=categoria if categoria in COST_CATEGORIES else None,
            form=form if form in ('novo', 'editar') else None,
            edit_id=to_id(args.get('edit_id')),
        )

    def to_query(self):
        """Query-string form of the state (page excluded, empty values dropped)."""
        return {key: value for key, value in asdict(self).items() if key != 'page' and value is not None}

    def url(self, **changes):
        state = replace(self, **changes)
        return url_for(f'views.{state.page}', **state.to_query())

    def closed(self):
        return replace(self, form=None, edit_id=None)


def get_client():
    """Client for the configured API_URL, or this application's own /api served in-process."""
    base_url = current_app.config.get('API_URL') or LOCAL_API_URL
    session = current_app.extensions.get('tgagro.http_session')
    return ApiClient(base_url, session=session, timeout=current_app.config.get('API_TIMEOUT', 15))


def _load(*collections):
    """Fetches the collections; on failure notifies the user and returns empty lists."""
    try:
        return get_client().fetch_many(*collections)
    except ApiError as e:
        logger.error("Loading %s failed: %s", ', '.join(collections), e.message)
        flash(e.message, 'error')
        return tuple([] for _ in collections)


def _render(template, state, **context):
    return render_template(template, state=state, pages=PAGES, title=PAGES.get(state.page, 'Configuração'),
                           categories=COST_CATEGORIES, today=date.today().isoformat(), **context)


def _save(collection, body, state, record_id=None, required=(), messages=('Registro salvo!', 'Registro atualizado!')):
    """
    Single write attempt. Validation or API failures are flashed and the form
    stays open; success closes it. Either way the page is reloaded.
    """
    try:
        require_fields(body, required)
        client = get_client()
        if record_id:
            client.update(collection, record_id, body)
        else:
            client.create(collection, body)
    except (ValidationError, ApiError) as e:
        logger.warning("Saving %s failed: %s", collection, e.message)
        flash(e.message, 'error')
        return redirect(state.url(form='editar' if record_id else 'novo', edit_id=record_id))

    flash(messages[1] if record_id else messages[0], 'success')
    return redirect(state.closed().url())


def _delete(collection, record_id, state, message):
    try:
        get_client().delete(collection, record_id)
    except ApiError as e:
        logger.warning("Deleting %s id=%s failed: %s", collection, record_id, e.message)
        flash(e.message, 'error')
    else:
        flash(message, 'success')
    return redirect(state.closed().url())


def _field(name):
    return request.form.get(name, '').strip()


def _optional(name):
    return _field(name) or None


# --- Dashboard ---

@views.route('/')
def dashboard():
    state = ViewState.from_args('dashboard', request.args)
    lotes_list, animais_list, pesagens_list, vendas_list, custos_list = _load('lotes', 'animais', 'pesagens', 'vendas', 'custos')

    weighings_by_animal = group_by(pesagens_list, 'animal_id')
    animals_by_lot = group_by(animais_list, 'lote_id')
    summary = finance.summarize(vendas_list, custos_list)

    cards = {
        'total_animais': len(animais_list),
        'peso_total': metrics.herd_weight(animais_list, weighings_by_animal),
        'receita': summary.revenue,
        'custo': summary.cost,
        'lucro': summary.profit,
        'lotes_ativos': sum(1 for lote in lotes_list if lote.get('status') == 'ativo'),
    }

    rows = []
    for lote in lotes_list:
        lot_animals = animals_by_lot.get(to_id(lote.get('id')), [])
        rows.append({
            'lote': lote,
            'animais': len(lot_animals),
            'peso_medio': metrics.lot_average_weight(lot_animals, weighings_by_animal),
            'gmd_medio': metrics.lot_average_gain(lot_animals, weighings_by_animal),
        })

    return _render('dashboard.html', state, cards=cards, rows=rows)


# --- Lotes ---

@views.route('/lotes')
def lotes():
    state = ViewState.from_args('lotes', request.args)
    (lotes_list,) = _load('lotes')
    editing = index_by_id(lotes_list).get(state.edit_id) if state.form == 'editar' else None
    return _render('lotes.html', state, lotes=lotes_list, editing=editing)


@views.route('/lotes/salvar', methods=['POST'])
def save_lote():
    state = ViewState.from_args('lotes', request.args)
    body = {
        'nome': _field('nome'),
        'raca': _field('raca'),
        'finalidade': _field('finalidade') or 'corte',
        'data_entrada': _optional('data_entrada'),
        'area_ha': _optional('area_ha'),
        'status': _field('status') or 'ativo',
        'observacoes': _field('observacoes'),
    }
    return _save('lotes', body, state, record_id=to_id(request.form.get('id')), required=('nome',),
                 messages=('Lote cadastrado!', 'Lote atualizado!'))


@views.route('/lotes/<int:record_id>/excluir', methods=['POST'])
def delete_lote(record_id):
    return _delete('lotes', record_id, ViewState.from_args('lotes', request.args), 'Lote excluído!')


# --- Animais ---

@views.route('/animais')
def animais():
    state = ViewState.from_args('animais', request.args)
    animais_list, lotes_list = _load('animais', 'lotes')
    lots_by_id = index_by_id(lotes_list)

    shown = animais_list
    if state.lote_id is not None:
        shown = [a for a in animais_list if to_id(a.get('lote_id')) == state.lote_id]

    editing = index_by_id(animais_list).get(state.edit_id) if state.form == 'editar' else None
    return _render('animais.html', state, animais=shown, lotes=lotes_list, lots_by_id=lots_by_id,
                   editing=editing)


@views.route('/animais/salvar', methods=['POST'])
def save_animal():
    state = ViewState.from_args('animais', request.args)
    body = {
        'brinco': _field('brinco'),
        'lote_id': _optional('lote_id'),
        'raca': _field('raca'),
        'sexo': _field('sexo') or 'macho',
        'peso_entrada_kg': _optional('peso_entrada_kg'),
        'data_entrada': _optional('data_entrada'),
        'valor_compra': _optional('valor_compra'),
        'observacoes': _field('observacoes'),
    }
    return _save('animais', body, state, record_id=to_id(request.form.get('id')),
                 required=('brinco', 'lote_id', 'peso_entrada_kg'),
                 messages=('Animal cadastrado!', 'Animal atualizado!'))


@views.route('/animais/<int:record_id>/excluir', methods=['POST'])
def delete_animal(record_id):
    return _delete('animais', record_id, ViewState.from_args('animais', request.args), 'Animal excluído!')


# --- Pesagens ---

@views.route('/pesagens')
def pesagens():
    state = ViewState.from_args('pesagens', request.args)
    pesagens_list, animais_list, lotes_list = _load('pesagens', 'animais', 'lotes')
    animals_by_id = index_by_id(animais_list)
    lots_by_id = index_by_id(lotes_list)

    # GMD uses the animal's whole history, not just the rows that pass the filter.
    gains = metrics.weighing_gains(animals_by_id, pesagens_list)

    shown = pesagens_list
    if state.lote_id is not None:
        shown = [
            p for p in pesagens_list
            if to_id(animals_by_id.get(to_id(p.get('animal_id')), {}).get('lote_id')) == state.lote_id
        ]

    rows = []
    for pesagem in sort_by_date(shown, 'data_pesagem', reverse=True):
        animal = animals_by_id.get(to_id(pesagem.get('animal_id')))
        rows.append({
            'pesagem': pesagem,
            'animal': animal,
            'lote': lots_by_id.get(to_id(animal.get('lote_id'))) if animal else None,
            'gmd': gains.get(to_id(pesagem.get('id'))),
        })

    return _render('pesagens.html', state, rows=rows, animais=animais_list, lotes=lotes_list)


@views.route('/pesagens/salvar', methods=['POST'])
def save_pesagem():
    state = ViewState.from_args('pesagens', request.args)
    body = {
        'animal_id': _optional('animal_id'),
        'data_pesagem': _optional('data_pesagem'),
        'peso_kg': _optional('peso_kg'),
        'observacoes': _field('observacoes'),
    }
    return _save('pesagens', body, state, required=('animal_id', 'data_pesagem', 'peso_kg'),
                 messages=('Pesagem registrada!', 'Pesagem atualizada!'))


@views.route('/pesagens/<int:record_id>/excluir', methods=['POST'])
def delete_pesagem(record_id):
    return _delete('pesagens', record_id, ViewState.from_args('pesagens', request.args), 'Pesagem excluída!')


# --- Vendas ---

@views.route('/vendas')
def vendas():
    state = ViewState.from_args('vendas', request.args)
    vendas_list, animais_list, lotes_list = _load('vendas', 'animais', 'lotes')
    animals_by_id = index_by_id(animais_list)
    lots_by_id = index_by_id(lotes_list)

    rows = []
    for venda in sort_by_date(vendas_list, 'data_venda', reverse=True):
        animal = animals_by_id.get(to_id(venda.get('animal_id')))
        rows.append({
            'venda': venda,
            'animal': animal,
            'lote': lots_by_id.get(to_id(animal.get('lote_id'))) if animal else None,
        })

    return _render('vendas.html', state, rows=rows, animais=animais_list)


@views.route('/vendas/salvar', methods=['POST'])
def save_venda():
    state = ViewState.from_args('vendas', request.args)
    body = {
        'animal_id': _optional('animal_id'),
        'data_venda': _optional('data_venda'),
        'peso_venda_kg': _optional('peso_venda_kg'),
        'preco_arroba': _optional('preco_arroba'),
        'comprador': _field('comprador'),
        'observacoes': _field('observacoes'),
    }
    # The total is fixed here, at entry time, and stored as is.
    body['valor_total'] = finance.sale_total(body['peso_venda_kg'], body['preco_arroba'])
    return _save('vendas', body, state, required=('animal_id', 'data_venda', 'peso_venda_kg', 'preco_arroba'),
                 messages=('Venda registrada!', 'Venda atualizada!'))


@views.route('/vendas/<int:record_id>/excluir', methods=['POST'])
def delete_venda(record_id):
    return _delete('vendas', record_id, ViewState.from_args('vendas', request.args), 'Venda excluída!')


# --- Custos ---

@views.route('/custos')
def custos():
    state = ViewState.from_args('custos', request.args)
    custos_list, lotes_list = _load('custos', 'lotes')
    lots_by_id = index_by_id(lotes_list)

    shown = custos_list
    if state.categoria:
        shown = [c for c in custos_list if c.get('categoria') == state.categoria]

    rows = [
        {'custo': custo, 'lote': lots_by_id.get(to_id(custo.get('lote_id')))}
        for custo in sort_by_date(shown, 'data_custo', reverse=True)
    ]
    return _render('custos.html', state, rows=rows, lotes=lotes_list)


@views.route('/custos/salvar', methods=['POST'])
def save_custo():
    state = ViewState.from_args('custos', request.args)
    body = {
        'descricao': _field('descricao'),
        'categoria': _field('categoria') or 'alimentacao',
        'lote_id': _optional('lote_id'),
        'data_custo': _optional('data_custo'),
        'valor': _optional('valor'),
        'observacoes': _field('observacoes'),
    }
    return _save('custos', body, state, required=('descricao', 'valor', 'data_custo'),
                 messages=('Custo registrado!', 'Custo atualizado!'))


@views.route('/custos/<int:record_id>/excluir', methods=['POST'])
def delete_custo(record_id):
    return _delete('custos', record_id, ViewState.from_args('custos', request.args), 'Custo excluído!')


# --- Financeiro ---

@views.route('/financeiro')
def financeiro():
    state = ViewState.from_args('financeiro', request.args)
    vendas_list, custos_list, lotes_list, animais_list = _load('vendas', 'custos', 'lotes', 'animais')

    return _render(
        'financeiro.html', state,
        summary=finance.summarize(vendas_list, custos_list),
        lot_rows=finance.by_lot(lotes_list, animais_list, vendas_list, custos_list),
        category_rows=finance.by_category(custos_list),
    )


# --- Setup ---

@views.route('/setup', methods=['GET', 'POST'])
def setup():
    state = ViewState(page='setup')
    if request.method == 'POST':
        db_url = _field('db_url')
        if not db_url:
            flash('Informe a DATABASE_URL', 'error')
        else:
            try:
                get_client().setup(db_url)
            except ApiError as e:
                logger.error("Setup failed: %s", e.message)
                flash(e.message, 'error')
            else:
                flash('Banco inicializado com sucesso!', 'success')
        return redirect(url_for('views.setup'))
    return _render('setup.html', state)
