"""
Constants and enums for diminished value appraisals.
"""

from enum import Enum
from typing import Dict, Iterable, Union


class StateCode(str, Enum):
    """States with diminished value law support."""
    GA = "GA"
    FL = "FL"
    NC = "NC"
    TX = "TX"
    CA = "CA"


class AccidentHistory(str, Enum):
    """Accident history flag for a subject vehicle or comparable."""
    CLEAN = "clean"
    PRIOR_DAMAGE = "prior_damage"
    UNKNOWN = "unknown"


class HistoryMatchStatus(str, Enum):
    """How a comparable's title history lines up with the subject's."""
    EXACT = "exact"  # Both clean, or both carry history flags
    SIMILAR = "similar"  # Report available but histories differ
    NO_DATA = "no_data"  # No VINData report for the comparable


class FaultStatus(str, Enum):
    """Claimant's fault position, as reported on the pre-qualification form."""
    NOT_AT_FAULT = "not_at_fault"
    AT_FAULT = "at_fault"
    UNSURE = "unsure"


class CaseStatus(str, Enum):
    """Lifecycle status of a DV case."""
    DRAFT = "draft"
    READY_FOR_DOWNLOAD = "ready_for_download"
    COMPLETED = "completed"


class PreAccidentValueBucket(str, Enum):
    """Self-reported pre-accident value range from the wizard."""
    UNDER_5000 = "<5000"
    FROM_5000_TO_10000 = "5000-10000"
    FROM_10000_TO_20000 = "10000-20000"
    FROM_20000_TO_30000 = "20000-30000"
    FROM_30000_TO_40000 = "30000-40000"
    FROM_40000_TO_50000 = "40000-50000"
    FROM_50000_TO_75000 = "50000-75000"
    OVER_75000 = ">75000"


class DamageCode(str, Enum):
    """Body areas that can be marked as impacted."""
    FRONT_BUMPER = "front_bumper"
    REAR_BUMPER = "rear_bumper"
    LEFT_FRONT_FENDER = "left_front_fender"
    RIGHT_FRONT_FENDER = "right_front_fender"
    LEFT_REAR_QUARTER = "left_rear_quarter"
    RIGHT_REAR_QUARTER = "right_rear_quarter"
    HOOD = "hood"
    TRUNK = "trunk"
    ROOF = "roof"
    LEFT_DOOR = "left_door"
    RIGHT_DOOR = "right_door"
    WINDSHIELD = "windshield"
    REAR_GLASS = "rear_glass"


DAMAGE_CODE_LABELS: Dict[DamageCode, str] = {
    DamageCode.FRONT_BUMPER: "Front Bumper",
    DamageCode.REAR_BUMPER: "Rear Bumper",
    DamageCode.LEFT_FRONT_FENDER: "Left Front Fender",
    DamageCode.RIGHT_FRONT_FENDER: "Right Front Fender",
    DamageCode.LEFT_REAR_QUARTER: "Left Rear Quarter Panel",
    DamageCode.RIGHT_REAR_QUARTER: "Right Rear Quarter Panel",
    DamageCode.HOOD: "Hood",
    DamageCode.TRUNK: "Trunk/Liftgate",
    DamageCode.ROOF: "Roof",
    DamageCode.LEFT_DOOR: "Left Door(s)",
    DamageCode.RIGHT_DOOR: "Right Door(s)",
    DamageCode.WINDSHIELD: "Windshield",
    DamageCode.REAR_GLASS: "Rear Glass",
}


def format_damage_areas(codes: Iterable[Union[DamageCode, str]]) -> str:
    """Join damage codes into a readable list; unknown codes pass through."""
    labels = []
    for code in codes:
        try:
            labels.append(DAMAGE_CODE_LABELS[DamageCode(code)])
        except ValueError:
            labels.append(str(code))
    return ", ".join(labels)


def is_guarantee_eligible(bucket: Union[PreAccidentValueBucket, str, None]) -> bool:
    """Vehicles worth under $5,000 (or with no bucket) are not guarantee eligible."""
    if not bucket:
        return False
    return PreAccidentValueBucket(bucket) != PreAccidentValueBucket.UNDER_5000
