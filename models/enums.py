"""
Closed vocabularies shared by the steering and consistency engines.

Every tag that the extraction layer writes into the store as a plain string
is parsed into one of these enums at the store boundary, so the engines never
compare raw strings.
"""

from enum import Enum


class SystemClass(str, Enum):
    AUTONOMOUS = "autonomous_system"
    HETERONOMOUS = "heteronomous_system"
    ENVIRONMENT = "environment"
    TOOL = "tool"


class ControlType(str, Enum):
    COGNITIVE = "cognitive"
    IDEOLOGICAL = "ideological"
    ETHICAL = "ethical"
    ECONOMIC = "economic"


class RelationType(str, Enum):
    """
    Relation tags carried by correlations.

    The first four are the control relations produced by the extractor and
    scored by the path finder. The remaining tags are assertion stances that
    sources use when a statement supports or undermines another object; they
    only matter to the opposite-relation table of the consistency engine and
    are neutral for feedback scoring.
    """
    DIRECT_CONTROL = "direct_control"
    POSITIVE_FEEDBACK = "positive_feedback"
    NEGATIVE_FEEDBACK = "negative_feedback"
    SUPPLY = "supply"

    DRAIN = "drain"
    BLOCK = "block"
    SUPPORT = "support"
    OPPOSE = "oppose"
    CONTRADICT = "contradict"
    AMPLIFY = "amplify"
    DAMPEN = "dampen"
    SUPPRESS = "suppress"
    ENABLE = "enable"
    DISABLE = "disable"
    PREVENT = "prevent"


class SteeringGoal(str, Enum):
    STRENGTHEN = "strengthen"
    WEAKEN = "weaken"


class ContradictionType(str, Enum):
    OPPOSITE_RELATION = "opposite_relation"
    IMPACT_REVERSAL = "impact_reversal"
    CERTAINTY_DROP = "certainty_drop"
    NARRATIVE_REVERSAL = "narrative_reversal"


class RecommendedAction(str, Enum):
    NONE = "none"
    FLAG_FOR_REVIEW = "flag_for_review"
    LOWER_RELIABILITY = "lower_reliability"
    REJECT_NEW = "reject_new"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"
