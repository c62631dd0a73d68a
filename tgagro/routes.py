import logging
from dataclasses import dataclass, field

from flask import Blueprint, jsonify, request
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import db
from .finance import sale_total
from .models import COST_CATEGORIES, Animal, Cost, Lot, Sale, Weighing
from .utils import ValidationError, is_blank, parse_date, require_fields, to_id, to_number

logger = logging.getLogger(__name__)

# Create a Blueprint. 'api' is the name of the blueprint.
api = Blueprint('api', __name__)


# --- Field converters ---
# Each one takes the raw JSON value and returns what goes into the column,
# raising ValidationError for values that are present but malformed.

def _text(name, value):
    return value.strip() if isinstance(value, str) else (None if value is None else str(value))


def _number(name, value):
    if is_blank(value):
        return None
    number = to_number(value)
    if number is None:
        raise ValidationError(f"O campo '{name}' deve ser numérico.", fields=[name])
    return number


def _date(name, value):
    if is_blank(value):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f"Data inválida em '{name}'. Use AAAA-MM-DD.", fields=[name])
    return parsed


def _reference(model):
    def convert(name, value):
        if is_blank(value):
            return None
        ref_id = to_id(value)
        if ref_id is None or db.session.get(model, ref_id) is None:
            raise ValidationError(f"Registro {value!r} não encontrado para '{name}'.", fields=[name])
        return ref_id
    return convert


def _choice(*options):
    def convert(name, value):
        if is_blank(value):
            return None
        if value not in options:
            raise ValidationError(f"Valor inválido para '{name}': {value!r}.", fields=[name])
        return value
    return convert


@dataclass
class Collection:
    model: type
    fields: dict
    required: tuple = field(default_factory=tuple)


COLLECTIONS = {
    'lotes': Collection(
        model=Lot,
        required=('nome',),
        fields={
            'nome': _text,
            'raca': _text,
            'finalidade': _choice('corte', 'leite'),
            'data_entrada': _date,
            'area_ha': _number,
            'status': _choice('ativo', 'inativo'),
            'observacoes': _text,
        },
    ),
    'animais': Collection(
        model=Animal,
        required=('brinco', 'lote_id', 'peso_entrada_kg'),
        fields={
            'brinco': _text,
            'lote_id': _reference(Lot),
            'raca': _text,
            'sexo': _choice('macho', 'femea'),
            'peso_entrada_kg': _number,
            'data_entrada': _date,
            'valor_compra': _number,
            'observacoes': _text,
        },
    ),
    'pesagens': Collection(
        model=Weighing,
        required=('animal_id', 'data_pesagem', 'peso_kg'),
        fields={
            'animal_id': _reference(Animal),
            'data_pesagem': _date,
            'peso_kg': _number,
            'observacoes': _text,
        },
    ),
    'vendas': Collection(
        model=Sale,
        required=('animal_id', 'data_venda', 'peso_venda_kg', 'preco_arroba'),
        fields={
            'animal_id': _reference(Animal),
            'data_venda': _date,
            'peso_venda_kg': _number,
            'preco_arroba': _number,
            'valor_total': _number,
            'comprador': _text,
            'observacoes': _text,
        },
    ),
    'custos': Collection(
        model=Cost,
        required=('descricao', 'data_custo', 'valor'),
        fields={
            'descricao': _text,
            'categoria': _choice(*COST_CATEGORIES),
            'lote_id': _reference(Lot),
            'data_custo': _date,
            'valor': _number,
            'observacoes': _text,
        },
    ),
}


def _error(message, status):
    return jsonify({'error': message}), status


def _collection_or_none(name):
    return COLLECTIONS.get(name)


def _apply_fields(record, collection, data, creating):
    """Converts and assigns every known field present in the payload."""
    if creating:
        require_fields(data, collection.required)
    else:
        blanked = [name for name in collection.required if name in data and is_blank(data[name])]
        if blanked:
            raise ValidationError(
                f"Preencha os campos obrigatórios: {', '.join(blanked)}", fields=blanked
            )

    columns = collection.model.__table__.columns
    for name, convert in collection.fields.items():
        if name not in data:
            continue
        value = convert(name, data[name])
        # Blank values never overwrite NOT NULL columns; on create the column default applies.
        if value is None and (creating or not columns[name].nullable):
            continue
        setattr(record, name, value)


def _fill_defaults(record):
    # valor_total is persisted as entered; the API only fills it when the client did not.
    if isinstance(record, Sale) and record.valor_total is None:
        record.valor_total = sale_total(record.peso_venda_kg, record.preco_arroba)


def _record_id():
    """The target id comes from the query string (?id=<id>)."""
    record_id = request.args.get('id', type=int)
    if record_id is None:
        raise ValidationError("Parâmetro 'id' ausente ou inválido.", fields=['id'])
    return record_id


# --- General Routes ---

@api.route('/')
def home():
    """A simple test route to confirm the API is running."""
    return jsonify({'message': 'TG Agro API is running', 'collections': sorted(COLLECTIONS)})


@api.route('/setup', methods=['POST'])
def setup_database():
    """
    One-time initialization: provisions the schema on the datastore given in
    the JSON body as 'dbUrl'. The running application keeps its own database.
    """
    data = request.get_json(silent=True) or {}
    db_url = (data.get('dbUrl') or '').strip()
    if not db_url:
        return _error('Informe a DATABASE_URL', 400)

    try:
        engine = create_engine(db_url)
        try:
            db.metadata.create_all(engine)
        finally:
            engine.dispose()
    except (SQLAlchemyError, ValueError, ImportError) as e:
        logger.error("Database setup failed: %s", e)
        return _error(f'Falha ao inicializar o banco: {e}', 500)

    logger.info("Schema provisioned on %s", engine.url.render_as_string(hide_password=True))
    return jsonify({'message': 'Banco inicializado com sucesso!'}), 200


# --- Collection Routes ---

@api.route('/<collection_name>', methods=['GET'])
def list_records(collection_name):
    """Returns every record of the collection, unfiltered, ordered by id."""
    collection = _collection_or_none(collection_name)
    if collection is None:
        return _error(f"Coleção desconhecida: '{collection_name}'", 404)

    model = collection.model
    records = model.query.order_by(model.id).all()
    return jsonify([record.to_dict() for record in records])


@api.route('/<collection_name>', methods=['POST'])
def create_record(collection_name):
    """Creates a record from the JSON body (identity is assigned by the store)."""
    collection = _collection_or_none(collection_name)
    if collection is None:
        return _error(f"Coleção desconhecida: '{collection_name}'", 404)

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error('Corpo JSON ausente ou inválido.', 400)
    data.pop('id', None)

    try:
        record = collection.model()
        _apply_fields(record, collection, data, creating=True)
        _fill_defaults(record)
        db.session.add(record)
        db.session.commit()
        return jsonify(record.to_dict()), 201

    except ValidationError as e:
        db.session.rollback()
        logger.warning("Rejected %s payload: %s", collection_name, e.message)
        return _error(e.message, 400)
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Integrity error creating %s: %s", collection_name, e.orig)
        return _error('Registro conflita com dados existentes.', 409)
    except Exception as e:
        db.session.rollback()
        logger.exception("Unexpected error creating %s", collection_name)
        return _error(f'Erro inesperado: {str(e)}', 500)


@api.route('/<collection_name>', methods=['PUT'])
def update_record(collection_name):
    """Updates the record given by ?id=<id> with the fields present in the JSON body."""
    collection = _collection_or_none(collection_name)
    if collection is None:
        return _error(f"Coleção desconhecida: '{collection_name}'", 404)

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error('Corpo JSON ausente ou inválido.', 400)
    data.pop('id', None)

    try:
        record = db.session.get(collection.model, _record_id())
        if record is None:
            return _error('Registro não encontrado.', 404)

        _apply_fields(record, collection, data, creating=False)
        db.session.commit()
        return jsonify(record.to_dict()), 200

    except ValidationError as e:
        db.session.rollback()
        logger.warning("Rejected %s update: %s", collection_name, e.message)
        return _error(e.message, 400)
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Integrity error updating %s: %s", collection_name, e.orig)
        return _error('Registro conflita com dados existentes.', 409)
    except Exception as e:
        db.session.rollback()
        logger.exception("Unexpected error updating %s", collection_name)
        return _error(f'Erro inesperado: {str(e)}', 500)


@api.route('/<collection_name>', methods=['DELETE'])
def delete_record(collection_name):
    """
    Deletes the record given by ?id=<id>.
    A lot still referenced by animals or costs is not deleted (409).
    Deleting an animal also deletes its weighings and sales.
    """
    collection = _collection_or_none(collection_name)
    if collection is None:
        return _error(f"Coleção desconhecida: '{collection_name}'", 404)

    try:
        record = db.session.get(collection.model, _record_id())
        if record is None:
            return _error('Registro não encontrado.', 404)

        if isinstance(record, Lot) and (record.animais or record.custos):
            return _error(
                f'O lote possui {len(record.animais)} animal(is) e {len(record.custos)} custo(s) '
                'vinculados. Remova ou mova esses registros antes de excluir o lote.',
                409,
            )

        record_id = record.id
        db.session.delete(record)
        db.session.commit()
        logger.info("Deleted %s id=%s", collection_name, record_id)
        return jsonify({'message': 'Registro excluído.'}), 200

    except ValidationError as e:
        return _error(e.message, 400)
    except Exception as e:
        db.session.rollback()
        logger.exception("Unexpected error deleting from %s", collection_name)
        return _error(f'Erro inesperado: {str(e)}', 500)
