"""Downstream agents: documents derived from a project's research doc."""

from avara.services.agents.base import DownstreamAgent
from avara.services.agents.core_business import CoreBusinessAgent
from avara.services.agents.risk import RiskAgent
from avara.services.agents.roadmap import RoadmapAgent
from avara.services.agents.tasks import TaskAgent

__all__ = ["CoreBusinessAgent", "DownstreamAgent", "RiskAgent", "RoadmapAgent", "TaskAgent"]
