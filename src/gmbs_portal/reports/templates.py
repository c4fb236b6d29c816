"""Plain-text intervention report template."""

from datetime import datetime
from typing import Iterable

from gmbs_portal.common.models import as_utc, utcnow

_MONTHS_FR = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)

REPORT_TEMPLATE = """RAPPORT D'INTERVENTION
=====================

Référence: {intervention_id}
Date: {date}
Artisan: {artisan_name}

DESCRIPTION DES TRAVAUX RÉALISÉS
--------------------------------
L'intervention a été réalisée conformément aux consignes reçues.

Les travaux suivants ont été effectués :
- Diagnostic initial de la situation
- Réalisation des travaux nécessaires
- Vérification du bon fonctionnement
- Nettoyage de la zone d'intervention

PHOTOS JOINTES ({photo_count})
--------------------------------
{photo_lines}

OBSERVATIONS
------------
L'intervention s'est déroulée dans de bonnes conditions.
Le client a été informé des travaux réalisés.

CONCLUSION
----------
Intervention réalisée avec succès.

---
Rapport généré automatiquement le {date}
Ce rapport sera transmis au gestionnaire pour validation."""


def format_date_fr(value: datetime) -> str:
    return f"{value.day} {_MONTHS_FR[value.month - 1]} {value.year}"


def render_report(
    intervention_id: str,
    artisan_name: str,
    photos: Iterable,
    now: datetime | None = None,
) -> str:
    """Render report content listing the attached photos in upload order.

    ``photos`` are objects with ``original_filename``, ``comment`` and
    ``created_at`` attributes.
    """
    photos = list(photos)
    now = now or utcnow()
    lines = []
    for index, photo in enumerate(photos, start=1):
        taken = as_utc(photo.created_at) or now
        line = f"  {index}. {photo.original_filename} ({taken:%H:%M})"
        if photo.comment:
            line += f" - {photo.comment}"
        lines.append(line)

    date = format_date_fr(now)
    return REPORT_TEMPLATE.format(
        intervention_id=intervention_id,
        date=date,
        artisan_name=artisan_name or "Artisan",
        photo_count=len(photos),
        photo_lines="\n".join(lines),
    )
