"""ProfessionMapping — damage-type codes to the craft taxonomy used for routing."""

# Intake categorises by damage ("wasser", "feuer", ...), while craftsmen,
# partners and rules are keyed by the craft that does the work.
DAMAGE_TYPE_TO_PROFESSION: dict[str, str] = {
    "wasser": "trocknung",
    "feuer": "maler",
    "gebaeude": "gutachter",
    "kfz": "kfz",
    "glas": "glas",
    "rechtsfall": "rechtsfall",
}

PROFESSION_LABELS: dict[str, str] = {
    "maler": "Maler",
    "trocknung": "Trocknung",
    "gutachter": "Gutachter",
    "bodenleger": "Bodenleger",
    "sanitaer": "Sanitär",
    "dachdecker": "Dachdecker",
    "kfz": "KFZ",
    "glas": "Glas",
    "rechtsfall": "Rechtsfall",
}


def profession_for(damage_type: str) -> str:
    """Pure, total mapping. Unknown codes pass through unchanged.

    A new damage type therefore never fails here; it simply finds no
    candidates later on.
    """
    return DAMAGE_TYPE_TO_PROFESSION.get(damage_type, damage_type)


def is_known_profession(profession: str) -> bool:
    return profession in PROFESSION_LABELS
