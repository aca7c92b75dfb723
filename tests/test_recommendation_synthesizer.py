import pytest

from engine.config import PathfinderConfig
from engine.recommendation_synthesizer import RecommendationSynthesizer
from models.enums import SteeringGoal
from models.snapshot import Node
from models.steering import InfluentialNode


TARGET = Node(id="t", name="Inflation")


def _influencer(object_id, leverage, influence=0.8, multiplier=1.0, power=2.0, certainty=0.9, paths=1):
    return InfluentialNode(
        object_id=object_id,
        object_name=object_id.title(),
        influence_strength=influence,
        path_count=paths,
        feedback_multiplier=multiplier,
        available_power=power,
        certainty_score=certainty,
        control_leverage=leverage,
    )


def test_empty_ranking_gives_one_isolation_warning():
    result = RecommendationSynthesizer().synthesize([], TARGET, SteeringGoal.STRENGTHEN)

    assert result.primary is None
    assert result.alternatives == []
    assert len(result.warnings) == 1
    assert "isolated" in result.warnings[0]


def test_isolation_warning_mentions_search_bound_when_upstream_exists():
    config = PathfinderConfig(max_depth=2, min_influence_threshold=0.3)

    result = RecommendationSynthesizer(config).synthesize([], TARGET, SteeringGoal.WEAKEN, upstream_count=4)

    assert len(result.warnings) == 1
    assert "4 upstream" in result.warnings[0]
    assert "depth 2" in result.warnings[0]
    assert "0.30" in result.warnings[0]


def test_primary_recommendation_from_top_node():
    top = _influencer("bank", leverage=2.16, influence=0.8, multiplier=1.5, power=2.0, certainty=0.9)

    result = RecommendationSynthesizer().synthesize([top], TARGET, SteeringGoal.WEAKEN)

    primary = result.primary
    assert primary.object_id == "bank"
    assert primary.action == 'Weaken "Bank"'
    assert primary.expected_impact == pytest.approx(1.0)
    assert primary.confidence == pytest.approx(0.9)
    assert "2.16" in primary.rationale
    assert "power: 2.00" in primary.rationale
    assert "influence: 0.80" in primary.rationale
    assert "certainty: 0.90" in primary.rationale
    assert "positive" in primary.rationale
    assert result.warnings == []


def test_expected_impact_below_one_is_not_capped():
    top = _influencer("bank", leverage=1.0, influence=0.5, multiplier=0.7)

    result = RecommendationSynthesizer().synthesize([top], TARGET, SteeringGoal.STRENGTHEN)

    assert result.primary.expected_impact == pytest.approx(0.35)
    assert result.primary.action == 'Strengthen "Bank"'
    assert "negative" in result.primary.rationale


def test_alternatives_are_the_next_ranked_nodes():
    ranked = [_influencer(f"n{i}", leverage=10 - i) for i in range(7)]

    result = RecommendationSynthesizer().synthesize(ranked, TARGET, SteeringGoal.STRENGTHEN)

    assert result.primary.object_id == "n0"
    assert [r.object_id for r in result.alternatives] == ["n1", "n2", "n3", "n4"]


def test_alternative_count_follows_config():
    ranked = [_influencer(f"n{i}", leverage=10 - i) for i in range(7)]

    result = RecommendationSynthesizer(PathfinderConfig(top_alternatives=2)).synthesize(
        ranked, TARGET, SteeringGoal.STRENGTHEN
    )

    assert [r.object_id for r in result.alternatives] == ["n1", "n2"]


def test_low_confidence_and_low_power_warnings():
    top = _influencer("rumour", leverage=0.1, power=0.5, certainty=0.3)

    result = RecommendationSynthesizer().synthesize([top], TARGET, SteeringGoal.STRENGTHEN)

    assert len(result.warnings) == 2
    assert "Low reliability" in result.warnings[0]
    assert "0.30" in result.warnings[0]
    assert "Limited available power" in result.warnings[1]
    assert "0.50" in result.warnings[1]
