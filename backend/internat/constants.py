"""
Constantes métier : source de vérité unique pour les niveaux, cohortes, statuts et rôles.
Les tuples sont ordonnés : l'ordre de NIVEAUX et SEXES est l'ordre canonique des récaps.
"""

# Niveaux scolaires, du plus jeune au plus âgé
NIVEAUX = ("6eme", "5eme", "4eme", "3eme", "2nde", "1ere", "Term")

# Cohortes (groupes filles / garçons), filles en premier dans les récaps
SEXES = ("F", "M")

# Statuts d'appel : présent, absent avec autorisation conditionnelle (ACF), absent
STATUTS = ("present", "acf", "absent")
STATUT_ABSENT = "absent"
STATUT_ACF = "acf"

# Rôles du personnel : l'AED fait l'appel, les autres rôles administrent
ROLE_AED = "aed"
ROLES = (ROLE_AED, "cpe", "manager", "superadmin")
ADMIN_ROLES = ("cpe", "manager", "superadmin")

# Limites de saisie
MAX_ROLL_CALL_SIZE = 100
MAX_OBSERVATION_LENGTH = 500

# Texte neutre substitué à une observation absente ou vide
NOTHING_TO_REPORT = "Rien à signaler"

COHORT_LABELS = {"F": "Filles", "M": "Garçons"}
NIVEAU_LABELS = {
    "6eme": "6ème",
    "5eme": "5ème",
    "4eme": "4ème",
    "3eme": "3ème",
    "2nde": "2nde",
    "1ere": "1ère",
    "Term": "Terminale",
}


def is_admin_role(role: str) -> bool:
    return role in ADMIN_ROLES


def group_key(grade_level: str, cohort: str) -> str:
    """Clé stable d'un groupe (niveau × cohorte), ex. '6eme-F'."""
    return f"{grade_level}-{cohort}"


def group_label(grade_level: str, cohort: str) -> str:
    """Libellé lisible d'un groupe, ex. '6ème Filles'."""
    return f"{NIVEAU_LABELS.get(grade_level, grade_level)} {COHORT_LABELS.get(cohort, cohort)}"


def group_sort_key(grade_level: str, cohort: str) -> tuple:
    """Clé de tri canonique : niveau (6ème → Terminale) puis cohorte (F, M)."""
    niveau_rank = NIVEAUX.index(grade_level) if grade_level in NIVEAUX else len(NIVEAUX)
    cohort_rank = SEXES.index(cohort) if cohort in SEXES else len(SEXES)
    return (niveau_rank, cohort_rank, grade_level, cohort)
