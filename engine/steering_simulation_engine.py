import logging
import time
from typing import Callable, Iterable, Optional

from models.enums import SteeringGoal
from models.snapshot import Edge, Node
from models.steering import SteeringResult
from .config import PathfinderConfig
from .errors import NodeNotFoundError
from .graph_snapshot import build_snapshot
from .graph_store import GraphStore
from .influence_path_finder import InfluencePathFinder
from .node_influence_aggregator import aggregate_influences
from .recommendation_synthesizer import RecommendationSynthesizer

logger = logging.getLogger(__name__)


class SteeringSimulationEngine:
    """
    Answers "which object should be acted on to strengthen or weaken the
    target?" for one snapshot of the influence graph.

    Pipeline: build snapshot -> enumerate incoming influence paths ->
    aggregate per influencer and rank by control leverage -> synthesize
    recommendations. Each call works on its own snapshot; nothing is
    shared between calls.
    """

    def __init__(self,
                 config: Optional[PathfinderConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config or PathfinderConfig()
        self._finder = InfluencePathFinder(self.config, clock=clock)
        self._synthesizer = RecommendationSynthesizer(self.config)

    def simulate_from_store(self, store: GraphStore, target_id: str, goal: SteeringGoal) -> SteeringResult:
        """Loads nodes then active edges from ``store``; read failures propagate."""
        nodes = store.list_nodes()
        edges = store.list_active_edges()
        return self.simulate(nodes, edges, target_id, goal)

    def simulate(self,
                 nodes: Iterable[Node],
                 edges: Iterable[Edge],
                 target_id: str,
                 goal: SteeringGoal) -> SteeringResult:
        t0 = time.perf_counter()
        goal = SteeringGoal(goal)
        snapshot = build_snapshot(nodes, edges)

        if not snapshot.nodes:
            logger.info("Steering simulation for %s skipped: graph is empty", target_id)
            return SteeringResult(
                target_node_id=target_id,
                target_node_name=None,
                goal=goal,
                warnings=["No data: the influence graph has no objects to analyse."],
                analysis_metadata=self._metadata(0, t0, system_state=snapshot.statistics()),
            )

        target = snapshot.nodes.get(target_id)
        if target is None:
            raise NodeNotFoundError(target_id)

        search = self._finder.find_paths(snapshot, target_id)
        ranked = aggregate_influences(search.paths, snapshot)
        upstream = snapshot.upstream_of(target_id)
        recommendations = self._synthesizer.synthesize(ranked, target, goal, upstream_count=len(upstream))

        warnings = list(recommendations.warnings)
        if search.deadline_exceeded:
            warnings.append(
                f"Analysis stopped at the {self.config.max_wall_time_ms:.0f}ms time limit; "
                f"ranking is based on the first {len(search.paths)} paths found."
            )

        result = SteeringResult(
            target_node_id=target_id,
            target_node_name=target.name,
            goal=goal,
            ranked_influential_nodes=ranked[:self.config.top_ranked],
            primary_recommendation=recommendations.primary,
            alternative_recommendations=recommendations.alternatives,
            warnings=warnings,
            analysis_metadata=self._metadata(
                len(search.paths),
                t0,
                truncated=search.truncated,
                deadline_exceeded=search.deadline_exceeded,
                upstream_objects=len(upstream),
                influential_objects=len(ranked),
                system_state=snapshot.statistics(),
            ),
        )
        logger.info(
            "Steering simulation for %s (%s): %d paths, %d influential objects, %.1fms",
            target_id, goal.value, len(search.paths), len(ranked),
            result.analysis_metadata["elapsed_ms"],
        )
        return result

    def _metadata(self, paths_analyzed: int, t0: float, **extra):
        metadata = {
            "paths_analyzed": paths_analyzed,
            "max_depth": self.config.max_depth,
            "elapsed_ms": (time.perf_counter() - t0) * 1000,
            "truncated": False,
            "deadline_exceeded": False,
            "upstream_objects": 0,
            "influential_objects": 0,
        }
        metadata.update(extra)
        return metadata
