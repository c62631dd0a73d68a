from . import db

KG_PER_ARROBA = 30

COST_CATEGORIES = {
    'alimentacao': 'Alimentação',
    'saude': 'Saúde/Vet',
    'mao_de_obra': 'Mão de Obra',
    'infraestrutura': 'Infraestrutura',
    'transporte': 'Transporte',
    'outros': 'Outros',
}


def _iso(value):
    return value.isoformat() if value else None


class Lot(db.Model):
    """A herd grouping of animals sharing a purpose and an area."""
    __tablename__ = 'lotes'

    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    raca = db.Column(db.String(50), nullable=True)
    finalidade = db.Column(db.String(20), nullable=False, default='corte') # corte / leite
    data_entrada = db.Column(db.Date, nullable=True)
    area_ha = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='ativo') # ativo / inativo
    observacoes = db.Column(db.Text, nullable=True)

    # --- Relationships ---
    # No cascade: a lot with animals or costs cannot be deleted (see routes.delete_record).
    animais = db.relationship('Animal', backref='lote', lazy=True)
    custos = db.relationship('Cost', backref='lote', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'nome': self.nome,
            'raca': self.raca,
            'finalidade': self.finalidade,
            'data_entrada': _iso(self.data_entrada),
            'area_ha': self.area_ha,
            'status': self.status,
            'observacoes': self.observacoes,
        }

    def __repr__(self):
        return f'<Lot {self.nome}>'


class Animal(db.Model):
    """A single animal, identified on screen by its ear tag (brinco)."""
    __tablename__ = 'animais'

    id = db.Column(db.Integer, primary_key=True)
    brinco = db.Column(db.String(30), nullable=False)
    raca = db.Column(db.String(50), nullable=True)
    sexo = db.Column(db.String(10), nullable=False, default='macho')
    peso_entrada_kg = db.Column(db.Float, nullable=False)
    data_entrada = db.Column(db.Date, nullable=True)
    valor_compra = db.Column(db.Float, nullable=True)
    observacoes = db.Column(db.Text, nullable=True)

    # --- Foreign Keys ---
    lote_id = db.Column(db.Integer, db.ForeignKey('lotes.id'), nullable=False)

    # --- Relationships ---
    # Deleting an animal removes its whole weighing and sale history.
    pesagens = db.relationship('Weighing', backref='animal', lazy=True, cascade="all, delete-orphan")
    vendas = db.relationship('Sale', backref='animal', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'brinco': self.brinco,
            'lote_id': self.lote_id,
            'raca': self.raca,
            'sexo': self.sexo,
            'peso_entrada_kg': self.peso_entrada_kg,
            'data_entrada': _iso(self.data_entrada),
            'valor_compra': self.valor_compra,
            'observacoes': self.observacoes,
        }

    def __repr__(self):
        return f'<Animal {self.brinco}>'


class Weighing(db.Model):
    """A dated weight measurement of one animal."""
    __tablename__ = 'pesagens'

    id = db.Column(db.Integer, primary_key=True)
    data_pesagem = db.Column(db.Date, nullable=False)
    peso_kg = db.Column(db.Float, nullable=False)
    observacoes = db.Column(db.Text, nullable=True)

    animal_id = db.Column(db.Integer, db.ForeignKey('animais.id'), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'animal_id': self.animal_id,
            'data_pesagem': _iso(self.data_pesagem),
            'peso_kg': self.peso_kg,
            'observacoes': self.observacoes,
        }

    def __repr__(self):
        return f'<Weighing for animal {self.animal_id} on {self.data_pesagem}>'


class Sale(db.Model):
    """
    The sale of an animal. valor_total is stored as computed at entry time,
    (peso_venda_kg / 30) * preco_arroba, and is never recomputed on read.
    """
    __tablename__ = 'vendas'

    id = db.Column(db.Integer, primary_key=True)
    data_venda = db.Column(db.Date, nullable=False)
    peso_venda_kg = db.Column(db.Float, nullable=False)
    preco_arroba = db.Column(db.Float, nullable=False)
    valor_total = db.Column(db.Float, nullable=False)
    comprador = db.Column(db.String(100), nullable=True)
    observacoes = db.Column(db.Text, nullable=True)

    animal_id = db.Column(db.Integer, db.ForeignKey('animais.id'), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'animal_id': self.animal_id,
            'data_venda': _iso(self.data_venda),
            'peso_venda_kg': self.peso_venda_kg,
            'preco_arroba': self.preco_arroba,
            'valor_total': self.valor_total,
            'comprador': self.comprador,
            'observacoes': self.observacoes,
        }

    def __repr__(self):
        return f'<Sale of animal {self.animal_id} on {self.data_venda}>'


class Cost(db.Model):
    """An operating cost, optionally scoped to a lot (no lot = general cost)."""
    __tablename__ = 'custos'

    id = db.Column(db.Integer, primary_key=True)
    descricao = db.Column(db.String(200), nullable=False)
    categoria = db.Column(db.String(30), nullable=False, default='alimentacao')
    data_custo = db.Column(db.Date, nullable=False)
    valor = db.Column(db.Float, nullable=False)
    observacoes = db.Column(db.Text, nullable=True)

    lote_id = db.Column(db.Integer, db.ForeignKey('lotes.id'), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'descricao': self.descricao,
            'categoria': self.categoria,
            'lote_id': self.lote_id,
            'data_custo': _iso(self.data_custo),
            'valor': self.valor,
            'observacoes': self.observacoes,
        }

    def __repr__(self):
        return f'<Cost {self.descricao} ({self.categoria})>'
