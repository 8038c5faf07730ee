"""
Human-readable names for grading outputs (Korean, as shown on the sorting line, and English).

Kept out of the core: the pipeline only ever returns the enum values.
"""

from __future__ import annotations

from typing import Dict, Mapping, Union

from .decision import Decision
from .labels import DefectLabel, RipenessLabel, SizeBucket, parse_defect, parse_ripeness


RIPENESS_KO: Dict[RipenessLabel, str] = {
    RipenessLabel.HALF_RIPE: "반숙",
    RipenessLabel.UNRIPE: "미숙",
    RipenessLabel.BREAKING: "중숙",
    RipenessLabel.RIPE: "익음",
    RipenessLabel.UNHEALTHY: "과숙",
    RipenessLabel.RIPE_WITH_MINOR_DEFECT: "흠과",
}

RIPENESS_EN: Dict[RipenessLabel, str] = {
    RipenessLabel.HALF_RIPE: "half ripe",
    RipenessLabel.UNRIPE: "unripe",
    RipenessLabel.BREAKING: "breaking",
    RipenessLabel.RIPE: "ripe",
    RipenessLabel.UNHEALTHY: "overripe",
    RipenessLabel.RIPE_WITH_MINOR_DEFECT: "ripe, minor blemish",
}

DEFECT_KO: Dict[DefectLabel, str] = {
    DefectLabel.BROWN_SPOT: "갈색 반점",
    DefectLabel.BLACK_SPOT: "검은 반점",
    DefectLabel.SCAB: "더뎅이병",
}

DEFECT_EN: Dict[DefectLabel, str] = {
    DefectLabel.BROWN_SPOT: "brown spot",
    DefectLabel.BLACK_SPOT: "black spot",
    DefectLabel.SCAB: "scab",
}

SIZE_KO: Dict[SizeBucket, str] = {
    SizeBucket.SMALL: "소",
    SizeBucket.MEDIUM: "중",
    SizeBucket.LARGE: "대",
    SizeBucket.EXTRA_LARGE: "특대",
}

SIZE_EN: Dict[SizeBucket, str] = {
    SizeBucket.SMALL: "small",
    SizeBucket.MEDIUM: "medium",
    SizeBucket.LARGE: "large",
    SizeBucket.EXTRA_LARGE: "extra large",
}

# Weight ranges printed next to the size grade. The 45000-bound table was
# calibrated against a different weight split than the 50000-bound one.
WEIGHT_RANGES: Dict[str, Dict[SizeBucket, str]] = {
    "default": {
        SizeBucket.SMALL: "150-300g",
        SizeBucket.MEDIUM: "350-500g",
        SizeBucket.LARGE: "500-650g",
        SizeBucket.EXTRA_LARGE: "600-750g",
    },
    "size_classification": {
        SizeBucket.SMALL: "300g 미만",
        SizeBucket.MEDIUM: "300~450g",
        SizeBucket.LARGE: "450~600g",
        SizeBucket.EXTRA_LARGE: "600g 초과",
    },
}

DECISION_KO: Dict[Decision, str] = {
    Decision.ACCEPT: "판매 가능",
    Decision.CONDITIONAL: "조건부 판매",
    Decision.REJECT: "판매 불가",
    Decision.HOLD: "판정 보류",
}

DETECTION_KO: Dict[str, str] = {
    "Apple": "사과",
    "Banana": "바나나",
    "Orange": "오렌지",
    "Mango": "망고",
    "Grape": "포도",
    "Guava": "구아바",
    "Kiwi": "키위",
    "Lemon": "레몬",
    "Litchi": "리치",
    "Pomegranate": "석류",
    "Strawberry": "딸기",
    "Watermelon": "수박",
}

VARIETY_KO: Dict[str, str] = {
    "Anwar Ratool": "안와르 라툴",
    "Chaunsa (Black)": "차운사 (블랙)",
    "Chaunsa (Summer Bahisht)": "차운사 (서머 바히슈트)",
    "Chaunsa (White)": "차운사 (화이트)",
    "Dosehri": "도세리",
    "Fajri": "파즈리",
    "Langra": "랑그라",
    "Sindhri": "신드리",
    "Alphonso": "알폰소",
    "Amrapali": "암라팔리",
    "Dasheri": "다세리",
    "Mallika": "말리카",
    "Neelam": "닐람",
    "Pairi": "파이리",
    "Ramkela": "람켈라",
    "Totapuri": "토타푸리",
}


def _pick(lang: str, ko: Mapping, en: Mapping) -> Mapping:
    if lang == "ko":
        return ko
    if lang == "en":
        return en
    raise ValueError(f"Unsupported display language: {lang!r} (expected 'ko' or 'en')")


def ripeness_name(label: Union[RipenessLabel, str], lang: str = "ko") -> str:
    parsed = parse_ripeness(label) if isinstance(label, str) else label
    table = _pick(lang, RIPENESS_KO, RIPENESS_EN)
    if isinstance(parsed, RipenessLabel):
        return table[parsed]
    return str(label)


def defect_name(label: Union[DefectLabel, str], lang: str = "ko") -> str:
    parsed = parse_defect(label) if isinstance(label, str) else label
    table = _pick(lang, DEFECT_KO, DEFECT_EN)
    if isinstance(parsed, DefectLabel):
        return table[parsed]
    return str(label)


def size_name(bucket: SizeBucket, lang: str = "ko", *, weights: str = "default") -> str:
    """
    e.g. "대 (500-650g)". Pass weights="" to leave the weight range out.
    """
    name = _pick(lang, SIZE_KO, SIZE_EN)[bucket]
    if not weights:
        return name
    if weights not in WEIGHT_RANGES:
        raise ValueError(f"Unknown weight table: {weights!r}")
    return f"{name} ({WEIGHT_RANGES[weights][bucket]})"


def decision_name(decision: Decision, lang: str = "ko") -> str:
    if lang == "en":
        return decision.value
    return _pick(lang, DECISION_KO, {})[decision]


def lookup_name(label: str, table: Mapping[str, str]) -> str:
    """Variety / detection names: plain lookup, unknown labels pass through unchanged."""
    return table.get(label, label)
