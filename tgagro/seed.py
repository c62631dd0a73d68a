"""
Bulk import of weighings (pesagens) from a spreadsheet export.

Run it with `flask --app tgagro import-pesagens pesagens.csv`, or directly
with `python -m tgagro.seed pesagens.csv`.
"""
import logging
import sys

import pandas as pd

from . import create_app, db
from .models import Animal, Weighing
from .utils import parse_date, to_number

logger = logging.getLogger(__name__)

# Adjust these to EXACTLY match the headers of the CSV being imported.
CSV_COLUMN_MAP = {
    'ear_tag_col': 'Brinco',
    'date_col': 'Data',
    'weight_col': 'Peso',
}


def import_pesagens(csv_path, column_map=None):
    """
    Reads a CSV of (ear tag, date, weight) rows and stages one Weighing per row,
    committing them all at once. Rows whose animal is unknown or whose date or
    weight cannot be read are skipped.
    Returns (created, skipped).
    """
    columns = {**CSV_COLUMN_MAP, **(column_map or {})}

    df = pd.read_csv(csv_path, dtype={columns['ear_tag_col']: str})
    logger.info("Found %d rows in %s", len(df), csv_path)

    # Ear tag -> animal id, looked up once per tag.
    animal_id_cache = {}
    created = skipped = 0

    for index, row in df.iterrows():
        ear_tag = str(row[columns['ear_tag_col']]).strip()

        if ear_tag not in animal_id_cache:
            animal = Animal.query.filter_by(brinco=ear_tag).first()
            animal_id_cache[ear_tag] = animal.id if animal else None
        animal_id = animal_id_cache[ear_tag]
        if animal_id is None:
            logger.warning("Animal '%s' not found. Skipping row %d.", ear_tag, index + 1)
            skipped += 1
            continue

        weighing_date = parse_date(row[columns['date_col']])
        weight = to_number(row[columns['weight_col']])
        if weighing_date is None or weight is None:
            logger.warning("Invalid date or weight on row %d. Skipping.", index + 1)
            skipped += 1
            continue

        db.session.add(Weighing(data_pesagem=weighing_date, peso_kg=weight, animal_id=animal_id))
        created += 1

    db.session.commit()
    logger.info("Weighing import complete: %d created, %d skipped", created, skipped)
    return created, skipped


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        import_pesagens(sys.argv[1])
