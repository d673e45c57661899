"""
Flow Registry - live lesson visits held in process
"""
from typing import Dict, Optional, Tuple
import logging

from models.lesson import Lesson
from services.flow_controller import FlowConfig, LessonFlowController
from services.game_adapter import MiniGameAdapter
from services.stores import ProgressStore, TelemetrySink

logger = logging.getLogger(__name__)


class FlowRegistry:
    """
    Keeps one controller per (user, lesson) visit.

    Opening a lesson again replaces the previous visit, which is cancelled
    the same way as navigating away.
    """

    def __init__(self, progress_store: ProgressStore, telemetry: TelemetrySink,
                 game_adapter: MiniGameAdapter, **controller_options):
        self.progress_store = progress_store
        self.telemetry = telemetry
        self.game_adapter = game_adapter
        self.controller_options = controller_options
        self._flows: Dict[str, LessonFlowController] = {}
        self._by_visit: Dict[Tuple[int, str], str] = {}

    def open(self, user_id: int, lesson: Lesson, catalog, config: FlowConfig) -> LessonFlowController:
        previous = self._by_visit.get((user_id, lesson.id))
        if previous is not None:
            self.close(previous)

        controller = LessonFlowController(
            lesson, catalog, user_id,
            self.progress_store, self.telemetry, self.game_adapter,
            config=config, **self.controller_options
        )
        self._flows[controller.id] = controller
        self._by_visit[(user_id, lesson.id)] = controller.id
        controller.start()
        return controller

    def get(self, flow_id: str, user_id: int) -> Optional[LessonFlowController]:
        """Return the flow if it exists and belongs to this user."""
        controller = self._flows.get(flow_id)
        if controller is None or controller.user_id != user_id:
            return None
        return controller

    def close(self, flow_id: str) -> bool:
        controller = self._flows.pop(flow_id, None)
        if controller is None:
            return False
        key = (controller.user_id, controller.lesson.id)
        if self._by_visit.get(key) == flow_id:
            del self._by_visit[key]
        controller.cancel()
        logger.info(f"Closed flow {flow_id} for lesson {controller.lesson.id}")
        return True

    def close_all(self) -> None:
        for flow_id in list(self._flows):
            self.close(flow_id)

    def __len__(self) -> int:
        return len(self._flows)
