"""
State Law Reference Data

Jurisdiction-specific context for diminished value claims: how DV is
measured, the statutes and case law usually cited, negotiation angles and
compliance notes. The adjustment factors used by the calculators also live
here so every state-dependent number is in one place.

Usage:
    from autovalue.valuation.state_law import get_state_law

    law = get_state_law("GA")
    print(law.statute_of_limitations)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Union

from .constants import FaultStatus, StateCode

NEGLIGENCE_CONTRIBUTORY = "contributory"
NEGLIGENCE_COMPARATIVE = "comparative"

# Multiplier applied to the stigma deduction (stigma-deduction engine)
STIGMA_STATE_FACTORS: Dict[StateCode, float] = {
    StateCode.GA: 1.15,
    StateCode.NC: 1.05,
}

# Multiplier applied to the case loss formula (calculate_diminished_value)
CASE_STATE_ADJUSTMENTS: Dict[StateCode, float] = {
    StateCode.GA: 1.15,
    StateCode.FL: 1.0,
    StateCode.NC: 1.05,
}


@dataclass
class CaseLaw:
    """A cited decision and what it holds."""

    name: str
    citation: str
    holding: str


@dataclass
class StateLaw:
    """Diminished value legal context for one state."""

    state: StateCode
    state_name: str
    dv_measure: str
    statute_of_limitations_years: int
    negligence_rule: str
    key_statutes: List[str] = field(default_factory=list)
    key_case_law: List[CaseLaw] = field(default_factory=list)
    negotiation_angles: List[str] = field(default_factory=list)
    compliance_notes: List[str] = field(default_factory=list)

    @property
    def statute_of_limitations(self) -> str:
        return f"{self.statute_of_limitations_years} years from date of loss"


GEORGIA_LAW = StateLaw(
    state=StateCode.GA,
    state_name="Georgia",
    dv_measure=(
        "Diminished value is measured as the difference in fair market value of the "
        "vehicle immediately before the collision and immediately after proper repairs "
        "are completed."
    ),
    statute_of_limitations_years=4,
    negligence_rule=NEGLIGENCE_COMPARATIVE,
    key_statutes=[
        "O.C.G.A. § 33-4-6 - Bad faith penalty provisions for insurance claims",
        "O.C.G.A. § 51-12-8 - General damages for tortious injury to property",
    ],
    key_case_law=[
        CaseLaw(
            name="State Farm v. Mabry",
            citation="274 Ga. 498 (2001)",
            holding=(
                "Insurers must evaluate and pay inherent diminished value under "
                "first-party physical damage coverage; repair costs alone are not "
                "always sufficient."
            ),
        ),
        CaseLaw(
            name="GEICO v. Bouldin",
            citation="344 Ga. App. 878 (2018)",
            holding=(
                "Policyholders can recover diminished value under uninsured/underinsured "
                "motorist coverage when the at-fault party is uninsured."
            ),
        ),
        CaseLaw(
            name="Perma Ad Ideas of America, Inc. v. Mayville",
            citation="158 Ga. App. 707 (1981)",
            holding=(
                "The party in possession who suffers the loss may recover, even when "
                "title is in another party's name."
            ),
        ),
    ],
    negotiation_angles=[
        "Georgia DOI Directive 08-P&C-2 states that no formula (including 17c) is approved for determining diminished value.",
        "Insurers must consider all relevant evidence submitted by the claimant, not just internal formulas.",
        "Independent appraisals with comparable sales data are strong evidence of actual market loss.",
        "State Farm v. Mabry establishes that DV is a legitimate element of property damage in Georgia.",
    ],
    compliance_notes=[
        "Statute of Limitations: 4 years from date of loss (O.C.G.A. § 9-3-31)",
        "The 17(c) formula is not mandated by Georgia law and should not be used as the sole basis for valuation.",
        "Claimants may file complaints with the Georgia Department of Insurance if claims are improperly denied.",
    ],
)

FLORIDA_LAW = StateLaw(
    state=StateCode.FL,
    state_name="Florida",
    dv_measure=(
        "Diminished value is recoverable from the at-fault party's liability insurance. "
        "Florida follows traditional tort principles for property damage claims."
    ),
    statute_of_limitations_years=4,
    negligence_rule=NEGLIGENCE_COMPARATIVE,
    key_statutes=[
        "Fla. Stat. § 627.7015 - Mediation of automobile insurance claims",
        "Fla. Stat. § 95.11(3)(a) - 4-year statute of limitations for property damage",
    ],
    key_case_law=[
        CaseLaw(
            name="Standard Property Damage Rules",
            citation="Florida Common Law",
            holding="Diminished value is recoverable as property damage when the at-fault party is liable.",
        ),
    ],
    negotiation_angles=[
        "DV claims go against the at-fault driver's property damage liability coverage.",
        "Document pre-accident value with multiple sources.",
        "Consider mediation under Fla. Stat. § 627.7015 if the claim is disputed.",
    ],
    compliance_notes=[
        "Statute of Limitations: 4 years from date of loss",
        "Florida is no-fault for medical claims, but property damage follows tort rules.",
    ],
)

NORTH_CAROLINA_LAW = StateLaw(
    state=StateCode.NC,
    state_name="North Carolina",
    dv_measure=(
        "Diminished value is recoverable from the at-fault party as an element of "
        "property damage."
    ),
    statute_of_limitations_years=3,
    negligence_rule=NEGLIGENCE_CONTRIBUTORY,
    key_statutes=[
        "N.C.G.S. § 1-52 - 3-year statute of limitations for property damage",
    ],
    key_case_law=[
        CaseLaw(
            name="Standard Property Damage Rules",
            citation="North Carolina Common Law",
            holding="North Carolina recognizes diminished value as compensable property damage.",
        ),
    ],
    negotiation_angles=[
        "North Carolina is a contributory negligence state; the claimant must not be at fault at all.",
        "Document the accident report showing the other party at fault.",
        "Use independent appraisals and comparable sales data.",
    ],
    compliance_notes=[
        "Statute of Limitations: 3 years from date of loss",
        "Pure contributory negligence: any fault by the claimant bars recovery.",
    ],
)

TEXAS_LAW = StateLaw(
    state=StateCode.TX,
    state_name="Texas",
    dv_measure=(
        "Diminished value is recoverable against the at-fault party's liability "
        "insurance as an element of property damage."
    ),
    statute_of_limitations_years=2,
    negligence_rule=NEGLIGENCE_COMPARATIVE,
    key_statutes=[
        "Tex. Civ. Prac. & Rem. Code § 16.003 - 2-year statute of limitations",
    ],
    key_case_law=[
        CaseLaw(
            name="Colson v. Tenneco, Inc.",
            citation="65 S.W.3d 872 (Tex. App. 2001)",
            holding="Diminished value is recoverable in property damage cases.",
        ),
    ],
    negotiation_angles=[
        "Use comparable vehicle sales data to support market value estimates.",
        "Independent professional appraisals carry significant weight.",
        "The statute of limitations is 2 years; act promptly.",
    ],
    compliance_notes=[
        "Statute of Limitations: 2 years from date of loss",
    ],
)

CALIFORNIA_LAW = StateLaw(
    state=StateCode.CA,
    state_name="California",
    dv_measure=(
        "Diminished value is recoverable from the at-fault party as an element of "
        "property damage under tort law principles."
    ),
    statute_of_limitations_years=4,
    negligence_rule=NEGLIGENCE_COMPARATIVE,
    key_statutes=[
        "Cal. Code Civ. Proc. § 338 - Limitations for injury to property",
    ],
    key_case_law=[
        CaseLaw(
            name="Standard Property Damage Rules",
            citation="California Common Law",
            holding="Diminished value is a component of property damage recoverable from the at-fault party.",
        ),
    ],
    negotiation_angles=[
        "Recovery is reduced by the claimant's percentage of fault.",
        "Support the claim with comparable sales data and market analysis.",
    ],
    compliance_notes=[
        "Statute of Limitations: 4 years from date of loss",
        "Comparative negligence: recovery is reduced by the claimant's fault percentage.",
    ],
)

STATE_LAWS: Dict[StateCode, StateLaw] = {
    StateCode.GA: GEORGIA_LAW,
    StateCode.FL: FLORIDA_LAW,
    StateCode.NC: NORTH_CAROLINA_LAW,
    StateCode.TX: TEXAS_LAW,
    StateCode.CA: CALIFORNIA_LAW,
}


def parse_state(state: Union[StateCode, str]) -> StateCode:
    """
    Normalize a state code.

    Raises:
        ValueError: If the state is not one we have DV law support for.
    """
    try:
        return StateCode(str(state.value if isinstance(state, StateCode) else state).upper())
    except ValueError:
        raise ValueError(f"Unsupported state: {state}") from None


def get_state_law(state: Union[StateCode, str]) -> StateLaw:
    """Get the law for a state, falling back to Georgia for unknown codes."""
    try:
        return STATE_LAWS[parse_state(state)]
    except ValueError:
        return GEORGIA_LAW


def get_negotiation_angles(state: Union[StateCode, str]) -> List[str]:
    return list(get_state_law(state).negotiation_angles)


def get_case_law_summary(state: Union[StateCode, str]) -> str:
    law = get_state_law(state)
    return "\n\n".join(
        f"{case.name} ({case.citation}): {case.holding}" for case in law.key_case_law
    )


def get_compliance_reminder(state: Union[StateCode, str]) -> str:
    law = get_state_law(state)
    lines = [f"COMPLIANCE NOTES FOR {law.state_name.upper()}:"]
    lines.extend(f"• {note}" for note in law.compliance_notes)
    return "\n".join(lines)


def is_recovery_barred(state: Union[StateCode, str], fault: Union[FaultStatus, str]) -> bool:
    """At-fault claimants cannot recover in contributory negligence states."""
    law = get_state_law(state)
    return (
        law.negligence_rule == NEGLIGENCE_CONTRIBUTORY
        and FaultStatus(fault) == FaultStatus.AT_FAULT
    )
