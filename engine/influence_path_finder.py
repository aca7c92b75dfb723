import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Tuple

from models.enums import RelationType
from models.steering import InfluencePath
from .config import PathfinderConfig
from .graph_snapshot import GraphSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Frontier:
    node_id: str
    node_ids: Tuple[str, ...]
    strength: float
    relation_types: Tuple[RelationType, ...]
    certainties: Tuple[float, ...]
    depth: int


@dataclass
class PathSearchResult:
    paths: List[InfluencePath] = field(default_factory=list)
    path_limit_reached: bool = False
    deadline_exceeded: bool = False

    @property
    def truncated(self) -> bool:
        return self.path_limit_reached or self.deadline_exceeded


class InfluencePathFinder:
    """
    Enumerates bounded-depth influence paths that end at a target object by
    walking incoming correlations backwards, breadth first.

    Paths are emitted in discovery order: frontier entries are expanded FIFO
    and each entry's incoming correlations in snapshot order, so the
    ``max_paths`` cut always keeps the same prefix for the same input.
    """

    def __init__(
        self,
        config: Optional[PathfinderConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or PathfinderConfig()
        self._clock = clock

    def find_paths(self, snapshot: GraphSnapshot, target_id: str) -> PathSearchResult:
        cfg = self.config
        result = PathSearchResult()
        deadline = None
        if cfg.max_wall_time_ms is not None:
            deadline = self._clock() + cfg.max_wall_time_ms / 1000.0

        queue: Deque[_Frontier] = deque([
            _Frontier(
                node_id=target_id,
                node_ids=(target_id,),
                strength=1.0,
                relation_types=(),
                certainties=(),
                depth=0,
            )
        ])

        while queue:
            if len(result.paths) >= cfg.max_paths:
                result.path_limit_reached = True
                break
            if deadline is not None and self._clock() > deadline:
                result.deadline_exceeded = True
                logger.warning(
                    "Path search for %s aborted after %.1fms with %d paths",
                    target_id, cfg.max_wall_time_ms, len(result.paths),
                )
                break

            current = queue.popleft()
            if current.depth >= cfg.max_depth:
                continue

            for edge in snapshot.incoming(current.node_id):
                source_id = edge.source_id
                strength = current.strength * edge.impact_factor
                if strength < cfg.min_influence_threshold:
                    continue
                # Only a return to the target itself may repeat a node.
                if source_id in current.node_ids and source_id != target_id:
                    continue

                node_ids = (source_id,) + current.node_ids
                relation_types = (edge.relation_type,) + current.relation_types
                certainties = (edge.certainty,) + current.certainties
                depth = current.depth + 1

                result.paths.append(InfluencePath(
                    node_ids=node_ids,
                    relation_types=relation_types,
                    certainties=certainties,
                    total_strength=strength,
                    certainty=sum(certainties) / len(certainties),
                    depth=depth,
                    is_feedback_loop=source_id == target_id,
                ))
                queue.append(_Frontier(
                    node_id=source_id,
                    node_ids=node_ids,
                    strength=strength,
                    relation_types=relation_types,
                    certainties=certainties,
                    depth=depth,
                ))

                if len(result.paths) >= cfg.max_paths:
                    result.path_limit_reached = True
                    break

        logger.debug(
            "Found %d influence paths into %s (limit reached: %s)",
            len(result.paths), target_id, result.path_limit_reached,
        )
        return result
